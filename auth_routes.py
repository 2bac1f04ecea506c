"""
Authentication Routes
Creator login, staff login and the role guards used by every dashboard blueprint
"""

from dataclasses import dataclass, asdict
from flask import Blueprint, request, jsonify, redirect
from flask_login import login_user, logout_user, current_user
import logging

from db_single import get_session
from models import User, ROLE_CREATOR, STAFF_ROLES

logger = logging.getLogger(__name__)

# Create blueprint
auth_bp = Blueprint('auth', __name__)

INVALID_LOGIN_MESSAGE = 'Invalid login credentials. Please contact creator - Shan'


# ===== HELPER CLASSES =====

@dataclass(frozen=True)
class StaffSession:
    """What the dashboards know about the signed-in user"""
    id: str
    name: str
    email: str
    role: str

    @classmethod
    def from_user(cls, user):
        return cls(id=user.id, name=user.name, email=user.email, role=user.role)

    def to_dict(self):
        return asdict(self)


def current_staff():
    if not current_user.is_authenticated:
        return None
    return StaffSession.from_user(current_user)


# ===== DECORATORS =====

def require_role(*roles):
    """Decorator to require a signed-in user with one of `roles`"""
    def decorator(f):
        def decorated_function(*args, **kwargs):
            if not current_user.is_authenticated:
                return jsonify({'success': False, 'error': 'Authentication required'}), 401
            if roles and current_user.role not in roles:
                logger.warning(f"⚠️ {current_user.role} blocked from {request.path}")
                return jsonify({'success': False, 'error': 'Access denied for your role'}), 403
            return f(*args, **kwargs)

        decorated_function.__name__ = f.__name__
        return decorated_function
    return decorator


def require_login(f):
    """Any authenticated role"""
    return require_role()(f)


# ===== ROUTES =====

def _authenticate(allowed_roles):
    data = request.get_json(silent=True) or request.form
    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''

    if not email or not password:
        return jsonify({'success': False, 'error': 'Email and password are required'}), 400

    session_db = get_session()
    try:
        user = session_db.query(User).filter_by(email=email).first()
        if not user or user.role not in allowed_roles or not user.check_password(password):
            logger.warning(f"Failed login for {email}")
            return jsonify({'success': False, 'error': INVALID_LOGIN_MESSAGE}), 401

        login_user(user)
        logger.info(f"✅ {user.role} logged in: {user.email}")
        return jsonify({
            'success': True,
            'user': StaffSession.from_user(user).to_dict(),
            'redirect': f"/{user.role}",
        })
    except Exception as e:
        logger.error(f"Login error: {e}")
        return jsonify({'success': False, 'error': INVALID_LOGIN_MESSAGE}), 500
    finally:
        session_db.close()


@auth_bp.route('/creator-login', methods=['GET', 'POST'])
def creator_login():
    if request.method == 'GET':
        return jsonify({'page': 'creator-login', 'roles': [ROLE_CREATOR]})
    return _authenticate((ROLE_CREATOR,))


@auth_bp.route('/login', methods=['GET', 'POST'])
def staff_login():
    if request.method == 'GET':
        return jsonify({'page': 'login', 'roles': list(STAFF_ROLES)})
    return _authenticate(STAFF_ROLES)


@auth_bp.route('/logout', methods=['POST', 'GET'])
def logout():
    if current_user.is_authenticated:
        logger.info(f"Logged out: {current_user.email}")
    logout_user()
    if request.method == 'GET':
        return redirect('/login')
    return jsonify({'success': True, 'message': 'Logged out'})


@auth_bp.route('/api/me')
@require_login
def me():
    return jsonify({'success': True, 'user': current_staff().to_dict()})
