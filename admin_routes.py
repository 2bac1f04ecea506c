"""
Admin Dashboard Routes
Weekly schedule management, the AI scheduler (review-and-apply of AI commands),
weekly reset and the admin view of leave applications.

The review is stateless on the server: every review call takes the current
entries from the client and answers with the updated entries.
"""

from flask import Blueprint, request, jsonify, current_app
from flask_login import current_user
import logging

from db_single import get_session
from auth_routes import require_role
from models import ROLE_ADMIN, ROLE_CREATOR
from timetable_models import SCHOOL_DAYS, CLASS_LEVELS, SUBJECTS
from timetable_helpers import (
    get_all_schedules, get_teachers, get_teacher_names, create_schedule, update_schedule, delete_schedule,
    reset_weekly_data, upsert_schedule_matrix, apply_single_schedule_response, ScheduleCommandExecutor
)
from command_review import CommandReview, plan_ai_commands, make_error_logger
from ai_assistant import AIAssistant, KIND_COMMANDS
from leave_helpers import get_all_leave_applications, get_all_teacher_balances, update_teacher_total_leaves

logger = logging.getLogger(__name__)

admin_bp = Blueprint('admin', __name__)

admin_only = require_role(ROLE_ADMIN, ROLE_CREATOR)


def _schedules_payload(session_db):
    return [s.to_dict() for s in get_all_schedules(session_db)]


def _review_from_request(data):
    """
    Returns:
        tuple: (review, error_response); error_response is None when the entries parse
    """
    try:
        return CommandReview.from_dicts(data.get('entries')), None
    except ValueError as e:
        return None, (jsonify({'success': False, 'error': str(e)}), 400)


# ===== DASHBOARD =====

@admin_bp.route('/')
@admin_only
def dashboard():
    session_db = get_session()
    try:
        return jsonify({
            'success': True,
            'schedules': _schedules_payload(session_db),
            'teachers': [t.to_dict() for t in get_teachers(session_db)],
            'days': SCHOOL_DAYS,
            'levels': CLASS_LEVELS,
            'subjects': SUBJECTS,
            'refresh_seconds': current_app.config['DASHBOARD_REFRESH_SECONDS'],
        })
    finally:
        session_db.close()


# ===== SCHEDULE CRUD =====

@admin_bp.route('/schedules', methods=['GET'])
@admin_only
def schedules_list():
    session_db = get_session()
    try:
        return jsonify({'success': True, 'schedules': _schedules_payload(session_db)})
    finally:
        session_db.close()


@admin_bp.route('/schedules', methods=['POST'])
@admin_only
def schedules_create():
    data = request.get_json(silent=True) or {}
    session_db = get_session()
    try:
        success, message, schedule = create_schedule(session_db, data)
        if not success:
            return jsonify({'success': False, 'error': message}), 400
        return jsonify({'success': True, 'message': message, 'schedule': schedule.to_dict()}), 201
    finally:
        session_db.close()


@admin_bp.route('/schedules/<schedule_id>', methods=['PUT'])
@admin_only
def schedules_update(schedule_id):
    data = request.get_json(silent=True) or {}
    session_db = get_session()
    try:
        success, message = update_schedule(session_db, schedule_id, data)
        if not success:
            status = 404 if message == 'Schedule not found' else 400
            return jsonify({'success': False, 'error': message}), status
        return jsonify({'success': True, 'message': message})
    finally:
        session_db.close()


@admin_bp.route('/schedules/<schedule_id>', methods=['DELETE'])
@admin_only
def schedules_delete(schedule_id):
    session_db = get_session()
    try:
        success, message = delete_schedule(session_db, schedule_id)
        if not success:
            return jsonify({'success': False, 'error': message}), 404
        return jsonify({'success': True, 'message': message})
    finally:
        session_db.close()


@admin_bp.route('/reset-weekly', methods=['POST'])
@admin_only
def reset_weekly():
    session_db = get_session()
    try:
        success, message, counts = reset_weekly_data(session_db)
        if not success:
            return jsonify({'success': False, 'error': message}), 500
        return jsonify({'success': True, 'message': message, 'deleted': counts})
    finally:
        session_db.close()


# ===== AI SCHEDULER =====

@admin_bp.route('/ai/generate', methods=['POST'])
@admin_only
def ai_generate():
    """Ask the assistant for schedule changes and route the reply by kind"""
    data = request.get_json(silent=True) or {}
    prompt = (data.get('prompt') or '').strip()
    if not prompt:
        return jsonify({'success': False, 'error': 'Prompt is required'}), 400

    session_db = get_session()
    try:
        assistant = AIAssistant.for_app(session_db, current_user, teacher_names=get_teacher_names(session_db))
        reply = assistant.send(prompt, trigger=True)
        if not reply.success:
            return jsonify(reply.to_dict()), 502

        response = reply.to_dict()
        if reply.kind == KIND_COMMANDS:
            ok, review = plan_ai_commands(reply.content, current_user.role, make_error_logger(session_db))
            if ok:
                response['entries'] = review.to_list()
        return jsonify(response)
    finally:
        session_db.close()


@admin_bp.route('/ai/plan', methods=['POST'])
@admin_only
def ai_plan():
    """Turn a raw AI command batch into review entries"""
    data = request.get_json(silent=True) or {}
    session_db = get_session()
    try:
        ok, result = plan_ai_commands(data.get('raw_response'), current_user.role,
                                      make_error_logger(session_db))
        if not ok:
            return jsonify({'success': False, 'error': result}), 400
        return jsonify({'success': True, 'entries': result.to_list(), 'valid_count': result.valid_count})
    finally:
        session_db.close()


@admin_bp.route('/ai/review/toggle', methods=['POST'])
@admin_only
def ai_review_toggle():
    data = request.get_json(silent=True) or {}
    review, error_response = _review_from_request(data)
    if error_response:
        return error_response
    try:
        review.toggle_edit(data.get('entry_id'))
    except KeyError:
        return jsonify({'success': False, 'error': 'Entry not found'}), 404
    return jsonify({'success': True, 'entries': review.to_list()})


@admin_bp.route('/ai/review/save', methods=['POST'])
@admin_only
def ai_review_save():
    data = request.get_json(silent=True) or {}
    review, error_response = _review_from_request(data)
    if error_response:
        return error_response
    entry_id = data.get('entry_id')
    try:
        if 'edited_json' in data:
            review.update_edited_json(entry_id, data['edited_json'])
        is_valid, message = review.save_edit(entry_id)
    except KeyError:
        return jsonify({'success': False, 'error': 'Entry not found'}), 404
    return jsonify({'success': is_valid, 'message': message, 'entries': review.to_list()})


@admin_bp.route('/ai/review/apply', methods=['POST'])
@admin_only
def ai_review_apply():
    """Confirm & Apply: run every entry in order, no batch transaction"""
    data = request.get_json(silent=True) or {}
    review, error_response = _review_from_request(data)
    if error_response:
        return error_response
    if not len(review):
        return jsonify({'success': False, 'error': 'No commands to apply'}), 400

    session_db = get_session()
    try:
        summary = review.apply(ScheduleCommandExecutor(session_db), make_error_logger(session_db),
                               current_user.role)
        response = {'success': summary.applied > 0, 'summary': summary.to_dict()}
        if summary.should_reload:
            response['schedules'] = _schedules_payload(session_db)
        return jsonify(response)
    finally:
        session_db.close()


@admin_bp.route('/ai/single-schedule', methods=['POST'])
@admin_only
def ai_single_schedule():
    data = request.get_json(silent=True) or {}
    session_db = get_session()
    try:
        success, message, schedule = apply_single_schedule_response(session_db, data.get('response'))
        if not success:
            return jsonify({'success': False, 'error': message}), 400
        return jsonify({'success': True, 'message': message, 'schedule': schedule.to_dict()}), 201
    finally:
        session_db.close()


@admin_bp.route('/ai/matrix', methods=['POST'])
@admin_only
def ai_matrix():
    data = request.get_json(silent=True) or {}
    session_db = get_session()
    try:
        success, message, count = upsert_schedule_matrix(session_db, data.get('entries'))
        if not success:
            return jsonify({'success': False, 'error': message}), 400
        return jsonify({'success': True, 'message': message, 'saved': count,
                        'schedules': _schedules_payload(session_db)})
    finally:
        session_db.close()


# ===== LEAVES =====

@admin_bp.route('/leaves', methods=['GET'])
@admin_only
def leaves_list():
    filters = {k: request.args.get(k) for k in ('teacher_id', 'status', 'leave_type', 'date_from', 'date_to')}
    session_db = get_session()
    try:
        try:
            applications = get_all_leave_applications(session_db, filters)
        except ValueError as e:
            return jsonify({'success': False, 'error': str(e)}), 400
        return jsonify({'success': True, 'applications': [a.to_dict() for a in applications]})
    finally:
        session_db.close()


@admin_bp.route('/leave-balances', methods=['GET'])
@admin_only
def leave_balances():
    session_db = get_session()
    try:
        return jsonify({'success': True, 'balances': [b.to_dict() for b in get_all_teacher_balances(session_db)]})
    finally:
        session_db.close()


@admin_bp.route('/leave-balances/<teacher_id>', methods=['PUT'])
@admin_only
def leave_balance_update(teacher_id):
    data = request.get_json(silent=True) or {}
    session_db = get_session()
    try:
        success, message = update_teacher_total_leaves(session_db, teacher_id, data.get('total_leaves'))
        if not success:
            return jsonify({'success': False, 'error': message}), 400
        return jsonify({'success': True, 'message': message})
    finally:
        session_db.close()
