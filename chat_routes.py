"""
Chat Routes for the AI Assistant
Every signed-in role can talk to the assistant when the Creator has enabled it for that role
"""

from flask import Blueprint, request, jsonify
from flask_login import current_user
import logging

from db_single import get_session
from auth_routes import require_login
from models import ROLE_ADMIN
from chat_models import AISettings
from ai_helpers import validate_ai_settings, get_creator_credit_message
from ai_assistant import AIAssistant
from timetable_helpers import get_teacher_names

logger = logging.getLogger(__name__)

chat_bp = Blueprint('chat', __name__)


def _assistant(session_db):
    teacher_names = get_teacher_names(session_db) if current_user.role == ROLE_ADMIN else None
    return AIAssistant.for_app(session_db, current_user, teacher_names=teacher_names)


@chat_bp.route('/status')
@require_login
def status():
    """Whether the assistant is usable for the current role"""
    session_db = get_session()
    try:
        settings = session_db.query(AISettings).first()
        is_valid, error = validate_ai_settings(settings)
        enabled = bool(is_valid and (settings.access_level or {}).get(current_user.role))
        return jsonify({
            'success': True,
            'enabled': enabled,
            'error': error,
            'credit': get_creator_credit_message(),
        })
    finally:
        session_db.close()


@chat_bp.route('/chat', methods=['POST'])
@require_login
def chat():
    data = request.get_json(silent=True) or {}
    session_db = get_session()
    try:
        reply = _assistant(session_db).send(data.get('message'))
        if not reply.success:
            return jsonify(reply.to_dict()), 400 if not reply.notices else 502
        return jsonify(reply.to_dict())
    except Exception as e:
        logger.error(f"AI chat error: {e}")
        return jsonify({'success': False, 'error': 'Please contact Creator - Shan'}), 500
    finally:
        session_db.close()


@chat_bp.route('/history')
@require_login
def history():
    session_db = get_session()
    try:
        return jsonify({'success': True, 'messages': _assistant(session_db).history()})
    finally:
        session_db.close()


@chat_bp.route('/reset', methods=['POST'])
@require_login
def reset():
    session_db = get_session()
    try:
        success, message = _assistant(session_db).reset()
        return jsonify({'success': success, 'message': message}), (200 if success else 500)
    finally:
        session_db.close()
