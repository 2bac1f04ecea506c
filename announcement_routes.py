"""
Announcement, Event and Feedback Routes
Shared by every dashboard: everyone reads, head and above publish.
"""

from flask import Blueprint, request, jsonify
from flask_login import current_user
import logging

from db_single import get_session
from auth_routes import require_login, require_role
from models import ROLE_CREATOR, ROLE_ADMIN, ROLE_HEAD
from announcement_models import URGENCY_LEVELS
from announcement_helpers import (
    create_announcement, update_announcement, delete_announcement, get_active_announcements
)
from event_helpers import create_event, get_events, update_event, delete_event, check_event_conflicts
from user_helpers import submit_feedback

logger = logging.getLogger(__name__)

announcement_bp = Blueprint('announcements', __name__)

publishers_only = require_role(ROLE_CREATOR, ROLE_ADMIN, ROLE_HEAD)


# ===== ANNOUNCEMENTS =====

@announcement_bp.route('/announcements', methods=['GET'])
@require_login
def announcements_list():
    session_db = get_session()
    try:
        announcements = get_active_announcements(session_db, current_user.role)
        return jsonify({
            'success': True,
            'announcements': [a.to_dict() for a in announcements],
            'urgency_levels': URGENCY_LEVELS,
        })
    finally:
        session_db.close()


@announcement_bp.route('/announcements', methods=['POST'])
@publishers_only
def announcements_create():
    data = request.get_json(silent=True) or {}
    session_db = get_session()
    try:
        success, message, announcement = create_announcement(session_db, current_user, data)
        if not success:
            return jsonify({'success': False, 'error': message}), 400
        return jsonify({'success': True, 'message': message, 'announcement': announcement.to_dict()}), 201
    finally:
        session_db.close()


@announcement_bp.route('/announcements/<announcement_id>', methods=['PUT'])
@publishers_only
def announcements_update(announcement_id):
    data = request.get_json(silent=True) or {}
    session_db = get_session()
    try:
        success, message, announcement = update_announcement(session_db, current_user, announcement_id, data)
        if not success:
            return jsonify({'success': False, 'error': message}), 400
        return jsonify({'success': True, 'message': message, 'announcement': announcement.to_dict()})
    finally:
        session_db.close()


@announcement_bp.route('/announcements/<announcement_id>', methods=['DELETE'])
@require_login
def announcements_delete(announcement_id):
    session_db = get_session()
    try:
        success, message = delete_announcement(session_db, current_user, announcement_id)
        if not success:
            status = 404 if message == 'Announcement not found.' else 403
            return jsonify({'success': False, 'error': message}), status
        return jsonify({'success': True, 'message': message})
    finally:
        session_db.close()


# ===== EVENTS =====

@announcement_bp.route('/events', methods=['GET'])
@require_login
def events_list():
    session_db = get_session()
    try:
        try:
            events = get_events(session_db, request.args.get('start'), request.args.get('end'),
                                request.args.get('event_type'))
        except ValueError:
            return jsonify({'success': False, 'error': 'start/end must be ISO-8601 datetimes'}), 400
        visible = [e for e in events if not e.audience or current_user.role in e.audience]
        return jsonify({'success': True, 'events': [e.to_dict() for e in visible]})
    finally:
        session_db.close()


@announcement_bp.route('/events', methods=['POST'])
@publishers_only
def events_create():
    data = request.get_json(silent=True) or {}
    session_db = get_session()
    try:
        success, message, event = create_event(session_db, current_user, data)
        if not success:
            return jsonify({'success': False, 'error': message}), 400
        conflicts = check_event_conflicts(session_db, event.start_time, event.end_time, event.id)
        return jsonify({
            'success': True,
            'message': message,
            'event': event.to_dict(),
            'conflicts': [c.to_dict() for c in conflicts],
        }), 201
    finally:
        session_db.close()


@announcement_bp.route('/events/<event_id>', methods=['PUT'])
@publishers_only
def events_update(event_id):
    data = request.get_json(silent=True) or {}
    session_db = get_session()
    try:
        success, message, event = update_event(session_db, event_id, data)
        if not success:
            return jsonify({'success': False, 'error': message}), 400
        return jsonify({'success': True, 'message': message, 'event': event.to_dict()})
    finally:
        session_db.close()


@announcement_bp.route('/events/<event_id>', methods=['DELETE'])
@publishers_only
def events_delete(event_id):
    session_db = get_session()
    try:
        success, message = delete_event(session_db, event_id)
        if not success:
            return jsonify({'success': False, 'error': message}), 404
        return jsonify({'success': True, 'message': message})
    finally:
        session_db.close()


@announcement_bp.route('/events/conflicts', methods=['GET'])
@publishers_only
def events_conflicts():
    start, end = request.args.get('start'), request.args.get('end')
    if not start or not end:
        return jsonify({'success': False, 'error': 'start and end are required'}), 400
    session_db = get_session()
    try:
        try:
            conflicts = check_event_conflicts(session_db, start, end, request.args.get('exclude_id'))
        except ValueError:
            return jsonify({'success': False, 'error': 'start/end must be ISO-8601 datetimes'}), 400
        return jsonify({'success': True, 'conflicts': [c.to_dict() for c in conflicts]})
    finally:
        session_db.close()


# ===== FEEDBACK =====

@announcement_bp.route('/feedback', methods=['POST'])
@require_login
def feedback_submit():
    data = request.get_json(silent=True) or {}
    session_db = get_session()
    try:
        success, message, _ = submit_feedback(session_db, current_user.name, data.get('message'))
        if not success:
            return jsonify({'success': False, 'error': message}), 400
        return jsonify({'success': True, 'message': message}), 201
    finally:
        session_db.close()
