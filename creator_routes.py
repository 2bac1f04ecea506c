"""
Creator Dashboard Routes
User management, AI gateway settings, maintenance mode, diagnostics and system defaults
"""

from flask import Blueprint, request, jsonify
from flask_login import current_user
import logging

from db_single import get_session
from auth_routes import require_role
from models import ROLE_CREATOR, ROLES
from chat_models import AISettings, AICommandError, DEFAULT_ACCESS_LEVEL
from ai_helpers import validate_api_key
from diagnostics import AISystemDiagnostics, create_default_ai_settings
from leave_helpers import get_system_default_leaves, set_system_default_leaves
from maintenance import get_monitor
from user_helpers import create_user, update_user, delete_user, list_users, get_feedbacks

logger = logging.getLogger(__name__)

creator_bp = Blueprint('creator', __name__)

creator_only = require_role(ROLE_CREATOR)


def apply_ai_settings_update(session_db, settings, data):
    """
    Validate and apply a partial AI settings update

    Returns:
        tuple: (success, message)
    """
    if 'api_keys' in data:
        keys = data['api_keys']
        if not isinstance(keys, list) or not all(isinstance(k, str) for k in keys):
            return False, 'api_keys must be a list of strings'
        keys = [k.strip() for k in keys if k and k.strip()]
        invalid = [i + 1 for i, k in enumerate(keys) if not validate_api_key(k)]
        if invalid:
            return False, f"Invalid API key format for key(s) #{', #'.join(str(i) for i in invalid)}"
        settings.api_keys = keys
        if settings.current_index >= len(keys):
            settings.current_index = 0

    if 'model' in data:
        settings.model = (data['model'] or '').strip()

    if 'access_level' in data:
        access = data['access_level']
        if not isinstance(access, dict) or any(role not in ROLES for role in access):
            return False, f"access_level must map roles ({', '.join(ROLES)}) to true/false"
        merged = dict(DEFAULT_ACCESS_LEVEL)
        merged.update(settings.access_level or {})
        merged.update({role: bool(enabled) for role, enabled in access.items()})
        settings.access_level = merged

    if 'current_index' in data:
        index = int(data['current_index'])
        if index < 0 or index >= max(len(settings.api_keys or []), 1):
            return False, 'current_index is out of range'
        settings.current_index = index

    try:
        session_db.commit()
        return True, 'AI settings updated'
    except Exception as e:
        session_db.rollback()
        logger.error(f"Error saving AI settings: {e}")
        return False, 'Failed to save AI settings. Please contact Creator - Shan'


# ===== DASHBOARD =====

@creator_bp.route('/')
@creator_only
def dashboard():
    session_db = get_session()
    try:
        users = list_users(session_db)
        counts = {role: sum(1 for u in users if u.role == role) for role in ROLES}
        settings = session_db.query(AISettings).first()
        return jsonify({
            'success': True,
            'user_counts': counts,
            'maintenance': get_monitor().is_active,
            'ai_settings': settings.to_dict() if settings else None,
            'default_annual_leaves': get_system_default_leaves(session_db),
        })
    finally:
        session_db.close()


# ===== USERS =====

@creator_bp.route('/users', methods=['GET'])
@creator_only
def users_list():
    session_db = get_session()
    try:
        users = list_users(session_db, request.args.get('role'))
        return jsonify({'success': True, 'users': [u.to_dict() for u in users]})
    finally:
        session_db.close()


@creator_bp.route('/users', methods=['POST'])
@creator_only
def users_create():
    data = request.get_json(silent=True) or {}
    session_db = get_session()
    try:
        success, message, user = create_user(session_db, data.get('name'), data.get('email'),
                                             data.get('password'), data.get('role'))
        if not success:
            return jsonify({'success': False, 'error': message}), 400
        return jsonify({'success': True, 'message': message, 'user': user.to_dict()}), 201
    finally:
        session_db.close()


@creator_bp.route('/users/<user_id>', methods=['PUT'])
@creator_only
def users_update(user_id):
    data = request.get_json(silent=True) or {}
    session_db = get_session()
    try:
        success, message, user = update_user(session_db, user_id, data)
        if not success:
            return jsonify({'success': False, 'error': message}), 400
        return jsonify({'success': True, 'message': message, 'user': user.to_dict()})
    finally:
        session_db.close()


@creator_bp.route('/users/<user_id>', methods=['DELETE'])
@creator_only
def users_delete(user_id):
    session_db = get_session()
    try:
        success, message = delete_user(session_db, user_id)
        if not success:
            return jsonify({'success': False, 'error': message}), 400
        return jsonify({'success': True, 'message': message})
    finally:
        session_db.close()


# ===== AI SETTINGS =====

@creator_bp.route('/ai-settings', methods=['GET'])
@creator_only
def ai_settings_get():
    session_db = get_session()
    try:
        settings = session_db.query(AISettings).first() or create_default_ai_settings(session_db)
        return jsonify({'success': True, 'settings': settings.to_dict()})
    finally:
        session_db.close()


@creator_bp.route('/ai-settings', methods=['PUT'])
@creator_only
def ai_settings_update():
    data = request.get_json(silent=True) or {}
    session_db = get_session()
    try:
        settings = session_db.query(AISettings).first() or create_default_ai_settings(session_db)
        try:
            success, message = apply_ai_settings_update(session_db, settings, data)
        except (TypeError, ValueError) as e:
            session_db.rollback()
            success, message = False, f"Invalid settings: {e}"
        if not success:
            return jsonify({'success': False, 'error': message}), 400
        logger.info(f"✅ AI settings updated by {current_user.email}")
        return jsonify({'success': True, 'message': message, 'settings': settings.to_dict()})
    finally:
        session_db.close()


@creator_bp.route('/ai-errors', methods=['GET'])
@creator_only
def ai_errors():
    limit = request.args.get('limit', 50, type=int)
    session_db = get_session()
    try:
        errors = session_db.query(AICommandError).order_by(
            AICommandError.created_at.desc()
        ).limit(limit).all()
        return jsonify({'success': True, 'errors': [e.to_dict() for e in errors]})
    finally:
        session_db.close()


# ===== MAINTENANCE =====

@creator_bp.route('/maintenance', methods=['POST'])
@creator_only
def maintenance_toggle():
    data = request.get_json(silent=True) or {}
    if 'active' not in data:
        return jsonify({'success': False, 'error': "'active' is required"}), 400

    session_db = get_session()
    try:
        success, message = get_monitor().set_active(bool(data['active']), session_db)
        if not success:
            return jsonify({'success': False, 'error': message}), 500
        return jsonify({'success': True, 'message': message, 'maintenance': get_monitor().is_active})
    finally:
        session_db.close()


# ===== DEFAULTS =====

@creator_bp.route('/default-leaves', methods=['GET'])
@creator_only
def default_leaves_get():
    session_db = get_session()
    try:
        return jsonify({'success': True, 'default_annual_leaves': get_system_default_leaves(session_db)})
    finally:
        session_db.close()


@creator_bp.route('/default-leaves', methods=['PUT'])
@creator_only
def default_leaves_update():
    data = request.get_json(silent=True) or {}
    session_db = get_session()
    try:
        success, message = set_system_default_leaves(session_db, data.get('days'))
        if not success:
            return jsonify({'success': False, 'error': message}), 400
        return jsonify({'success': True, 'message': message})
    finally:
        session_db.close()


# ===== FEEDBACK & DIAGNOSTICS =====

@creator_bp.route('/feedbacks', methods=['GET'])
@creator_only
def feedbacks():
    session_db = get_session()
    try:
        return jsonify({'success': True, 'feedbacks': [f.to_dict() for f in get_feedbacks(session_db)]})
    finally:
        session_db.close()


@creator_bp.route('/diagnostics', methods=['GET', 'POST'])
@creator_only
def diagnostics():
    session_db = get_session()
    try:
        health = AISystemDiagnostics(session_db).run_full_diagnostic()
        return jsonify({'success': True, 'health': health.to_dict()})
    finally:
        session_db.close()


@creator_bp.route('/diagnostics/fix', methods=['POST'])
@creator_only
def diagnostics_fix():
    session_db = get_session()
    try:
        fixes = AISystemDiagnostics(session_db).run_automated_fixes()
        return jsonify({'success': True, 'fixes': [f.to_dict() for f in fixes]})
    finally:
        session_db.close()
