"""
Teacher Dashboard Routes
Check-in / sign-out, today's classes, behavior reports and leave applications
"""

from datetime import datetime
from flask import Blueprint, request, jsonify, current_app
from flask_login import current_user
import logging

from db_single import get_session
from auth_routes import require_role
from models import ROLE_TEACHER
from leave_models import LeaveTypeEnum
from attendance_helpers import get_today_attendance, confirm_attendance, sign_out
from timetable_helpers import get_teacher_schedule_for_day
from class_session_helpers import can_start_class, get_active_sessions, start_class, end_class
from behavior_helpers import create_behavior_report, get_recent_reports
from leave_helpers import (
    get_leave_balance, submit_leave_application, cancel_leave_application, get_teacher_leave_applications
)

logger = logging.getLogger(__name__)

teacher_bp = Blueprint('teacher', __name__)

teacher_only = require_role(ROLE_TEACHER)


def _todays_classes(session_db, teacher_id, now=None):
    """Today's schedule rows, each with whether it can be started now"""
    now = now or datetime.now()
    window = current_app.config['CLASS_START_WINDOW_MINUTES']
    active_by_schedule = {s.schedule_id: s for s in get_active_sessions(session_db, teacher_id)}

    classes = []
    for schedule in get_teacher_schedule_for_day(session_db, teacher_id, now.strftime('%A')):
        active = active_by_schedule.get(schedule.id)
        row = schedule.to_dict()
        row['active_session_id'] = active.id if active else None
        row['can_start'] = can_start_class(schedule.time, now, active is not None, window)
        classes.append(row)
    return classes


# ===== DASHBOARD =====

@teacher_bp.route('/')
@teacher_only
def dashboard():
    session_db = get_session()
    try:
        attendance = get_today_attendance(session_db, current_user.id)
        applications, total = get_teacher_leave_applications(session_db, current_user.id)
        return jsonify({
            'success': True,
            'attendance': attendance.to_dict() if attendance else None,
            'classes': _todays_classes(session_db, current_user.id),
            'active_sessions': [s.to_dict() for s in get_active_sessions(session_db, current_user.id)],
            'recent_reports': [r.to_dict() for r in get_recent_reports(session_db, current_user.id)],
            'leave_balance': get_leave_balance(session_db, current_user.id).to_dict(),
            'leave_applications': [a.to_dict() for a in applications],
            'leave_applications_total': total,
            'leave_types': [t.value for t in LeaveTypeEnum],
            'refresh_seconds': current_app.config['DASHBOARD_REFRESH_SECONDS'],
        })
    finally:
        session_db.close()


# ===== ATTENDANCE =====

@teacher_bp.route('/attendance/confirm', methods=['POST'])
@teacher_only
def attendance_confirm():
    session_db = get_session()
    try:
        success, message, record = confirm_attendance(session_db, current_user.id)
        if not success:
            return jsonify({'success': False, 'error': message}), 400
        return jsonify({'success': True, 'message': message, 'attendance': record.to_dict()})
    finally:
        session_db.close()


@teacher_bp.route('/attendance/sign-out', methods=['POST'])
@teacher_only
def attendance_sign_out():
    data = request.get_json(silent=True) or {}
    session_db = get_session()
    try:
        success, message, record = sign_out(session_db, current_user.id, data.get('status'), data.get('remarks'))
        if not success:
            return jsonify({'success': False, 'error': message}), 400
        return jsonify({'success': True, 'message': message, 'attendance': record.to_dict()})
    finally:
        session_db.close()


# ===== CLASSES =====

@teacher_bp.route('/schedule')
@teacher_only
def schedule_today():
    session_db = get_session()
    try:
        return jsonify({'success': True, 'classes': _todays_classes(session_db, current_user.id)})
    finally:
        session_db.close()


@teacher_bp.route('/classes/start', methods=['POST'])
@teacher_only
def class_start():
    data = request.get_json(silent=True) or {}
    session_db = get_session()
    try:
        success, message, class_session = start_class(
            session_db, current_user.id, data.get('schedule_id'),
            window_minutes=current_app.config['CLASS_START_WINDOW_MINUTES']
        )
        if not success:
            return jsonify({'success': False, 'error': message}), 400
        return jsonify({'success': True, 'message': message, 'session': class_session.to_dict()}), 201
    finally:
        session_db.close()


@teacher_bp.route('/classes/<session_id>/end', methods=['POST'])
@teacher_only
def class_end(session_id):
    session_db = get_session()
    try:
        success, message, summary = end_class(session_db, current_user.id, session_id)
        if not success:
            return jsonify({'success': False, 'error': message}), 400
        return jsonify({'success': True, 'message': message, 'summary': summary})
    finally:
        session_db.close()


# ===== BEHAVIOR REPORTS =====

@teacher_bp.route('/behavior-reports', methods=['GET'])
@teacher_only
def behavior_reports():
    session_db = get_session()
    try:
        reports = get_recent_reports(session_db, current_user.id, limit=request.args.get('limit', 5, type=int))
        return jsonify({'success': True, 'reports': [r.to_dict() for r in reports]})
    finally:
        session_db.close()


@teacher_bp.route('/behavior-reports', methods=['POST'])
@teacher_only
def behavior_report_create():
    data = request.get_json(silent=True) or {}
    session_db = get_session()
    try:
        success, message, report = create_behavior_report(session_db, current_user.id, data)
        if not success:
            return jsonify({'success': False, 'error': message}), 400
        return jsonify({'success': True, 'message': message, 'report': report.to_dict()}), 201
    finally:
        session_db.close()


# ===== LEAVES =====

@teacher_bp.route('/leaves', methods=['GET'])
@teacher_only
def leaves_list():
    page = request.args.get('page', 1, type=int)
    session_db = get_session()
    try:
        applications, total = get_teacher_leave_applications(session_db, current_user.id, page)
        return jsonify({
            'success': True,
            'applications': [a.to_dict() for a in applications],
            'total': total,
            'page': page,
            'balance': get_leave_balance(session_db, current_user.id).to_dict(),
        })
    finally:
        session_db.close()


@teacher_bp.route('/leaves', methods=['POST'])
@teacher_only
def leaves_apply():
    data = request.get_json(silent=True) or {}
    session_db = get_session()
    try:
        success, result = submit_leave_application(session_db, current_user.id, data)
        if not success:
            return jsonify({'success': False, 'error': result}), 400
        return jsonify({'success': True, 'message': 'Leave application submitted',
                        'application': result.to_dict()}), 201
    finally:
        session_db.close()


@teacher_bp.route('/leaves/<leave_id>/cancel', methods=['POST'])
@teacher_only
def leaves_cancel(leave_id):
    session_db = get_session()
    try:
        result = cancel_leave_application(session_db, leave_id, current_user.id)
        return jsonify(result), (200 if result['success'] else 400)
    finally:
        session_db.close()


@teacher_bp.route('/leave-balance')
@teacher_only
def leave_balance():
    session_db = get_session()
    try:
        return jsonify({'success': True, 'balance': get_leave_balance(session_db, current_user.id).to_dict()})
    finally:
        session_db.close()
