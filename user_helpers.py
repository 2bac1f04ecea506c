"""
User account helpers shared by the Creator dashboard and the CLI
"""

import logging
from sqlalchemy.exc import IntegrityError

from models import User, Feedback, ROLES, ROLE_CREATOR
from ai_helpers import EMAIL_REGEX

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


def _check_fields(name, email, role, password=None, require_password=True):
    if not name or not name.strip():
        return 'Name is required'
    if not email or not EMAIL_REGEX.match(email.strip()):
        return 'A valid email is required'
    if role not in ROLES:
        return f"Invalid role '{role}'. Valid roles: {', '.join(ROLES)}"
    if require_password and (not password or len(password) < MIN_PASSWORD_LENGTH):
        return f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
    return None


def create_user(session, name, email, password, role):
    """
    Returns:
        tuple: (success, message, user)
    """
    error = _check_fields(name, email, role, password)
    if error:
        return False, error, None

    if role == ROLE_CREATOR and session.query(User).filter_by(role=ROLE_CREATOR).count():
        return False, 'A creator account already exists', None

    try:
        user = User(name=name.strip(), email=email.strip().lower(), role=role)
        user.set_password(password)
        session.add(user)
        session.commit()
        logger.info(f"✅ User created: {user.email} ({role})")
        return True, f"User {user.name} created", user
    except IntegrityError:
        session.rollback()
        return False, f"Email {email.strip().lower()} is already registered", None
    except Exception as e:
        session.rollback()
        logger.error(f"Error creating user: {e}")
        return False, 'Failed to create user. Please contact Creator - Shan', None


def update_user(session, user_id, data):
    """
    Update name / email / role / password. The creator's role cannot change.

    Returns:
        tuple: (success, message, user)
    """
    user = session.get(User, user_id)
    if not user:
        return False, 'User not found', None

    name = data.get('name', user.name)
    email = data.get('email', user.email)
    role = data.get('role', user.role)
    password = data.get('password')

    error = _check_fields(name, email, role, password, require_password=bool(password))
    if error:
        return False, error, None
    if user.role == ROLE_CREATOR and role != ROLE_CREATOR:
        return False, "The creator's role cannot be changed", None
    if user.role != ROLE_CREATOR and role == ROLE_CREATOR:
        return False, 'Only one creator account is allowed', None

    try:
        user.name = name.strip()
        user.email = email.strip().lower()
        user.role = role
        if password:
            user.set_password(password)
        session.commit()
        return True, 'User updated', user
    except IntegrityError:
        session.rollback()
        return False, f"Email {email.strip().lower()} is already registered", None
    except Exception as e:
        session.rollback()
        logger.error(f"Error updating user {user_id}: {e}")
        return False, 'Failed to update user. Please contact Creator - Shan', None


def delete_user(session, user_id):
    user = session.get(User, user_id)
    if not user:
        return False, 'User not found'
    if user.role == ROLE_CREATOR:
        return False, 'The creator account cannot be deleted'
    try:
        session.delete(user)
        session.commit()
        logger.info(f"User deleted: {user.email}")
        return True, 'User deleted'
    except Exception as e:
        session.rollback()
        logger.error(f"Error deleting user {user_id}: {e}")
        return False, 'Failed to delete user. Please contact Creator - Shan'


def list_users(session, role=None):
    query = session.query(User)
    if role:
        query = query.filter(User.role == role)
    return query.order_by(User.role, User.name).all()


# ===== FEEDBACK =====

def submit_feedback(session, reporter_name, message):
    if not message or not message.strip():
        return False, 'Feedback message is required', None
    try:
        feedback = Feedback(reporter_name=(reporter_name or 'Anonymous').strip(), message=message.strip())
        session.add(feedback)
        session.commit()
        return True, 'Thank you for your feedback!', feedback
    except Exception as e:
        session.rollback()
        logger.error(f"Error saving feedback: {e}")
        return False, 'Please contact Creator - Shan', None


def get_feedbacks(session):
    return session.query(Feedback).order_by(Feedback.created_at.desc()).all()
