"""
Head Dashboard Routes
Live teacher status, active classes, behavior reports, leave decisions,
the school status report and AI insights on it.
"""

from flask import Blueprint, request, jsonify, current_app, Response
from flask_login import current_user
import logging

from db_single import get_session
from auth_routes import require_role
from models import ROLE_HEAD, ROLE_ADMIN, ROLE_CREATOR
from leave_models import AnnualLeaveApplication
from attendance_helpers import get_teacher_status_board, count_statuses
from class_session_helpers import get_active_sessions
from behavior_helpers import get_recent_reports, get_all_reports
from leave_helpers import (
    approve_leave_application, reject_leave_application, get_pending_leave_applications,
    get_all_teacher_balances, get_teachers_on_leave_for_date
)
from export_helpers import build_school_status_report, format_leave_record_as_text, leave_record_filename
from ai_assistant import AIAssistant

logger = logging.getLogger(__name__)

head_bp = Blueprint('head', __name__)
reports_bp = Blueprint('reports', __name__)

head_only = require_role(ROLE_HEAD, ROLE_ADMIN, ROLE_CREATOR)

INSIGHTS_PROMPT = (
    "Here is today's school status report. Summarise the key points, flag anything that "
    "needs the head's attention and suggest concrete next steps.\n\n{report}"
)


def _decision_response(result):
    status = 200 if result['success'] else 400
    return jsonify(result), status


# ===== DASHBOARD =====

@head_bp.route('/')
@head_only
def dashboard():
    session_db = get_session()
    try:
        rows, total = get_teacher_status_board(session_db)
        return jsonify({
            'success': True,
            'teachers': rows,
            'total_teachers': total,
            'status_counts': count_statuses(rows),
            'active_sessions': [s.to_dict() for s in get_active_sessions(session_db)],
            'recent_reports': [r.to_dict() for r in get_recent_reports(session_db)],
            'pending_leaves': [a.to_dict() for a in get_pending_leave_applications(session_db)],
            'on_leave_today': get_teachers_on_leave_for_date(session_db),
            'refresh_seconds': current_app.config['DASHBOARD_REFRESH_SECONDS'],
        })
    finally:
        session_db.close()


@head_bp.route('/teacher-status')
@head_only
def teacher_status():
    page = request.args.get('page', type=int)
    per_page = request.args.get('per_page', 20, type=int)
    session_db = get_session()
    try:
        rows, total = get_teacher_status_board(session_db, page=page, per_page=per_page)
        return jsonify({'success': True, 'teachers': rows, 'total': total, 'page': page,
                        'status_counts': count_statuses(rows)})
    finally:
        session_db.close()


@head_bp.route('/active-sessions')
@head_only
def active_sessions():
    session_db = get_session()
    try:
        return jsonify({'success': True,
                        'sessions': [s.to_dict() for s in get_active_sessions(session_db)]})
    finally:
        session_db.close()


# ===== LEAVES =====

@head_bp.route('/leaves/pending')
@head_only
def pending_leaves():
    session_db = get_session()
    try:
        return jsonify({'success': True,
                        'applications': [a.to_dict() for a in get_pending_leave_applications(session_db)]})
    finally:
        session_db.close()


@head_bp.route('/leaves/<leave_id>/approve', methods=['POST'])
@head_only
def approve_leave(leave_id):
    data = request.get_json(silent=True) or {}
    session_db = get_session()
    try:
        return _decision_response(
            approve_leave_application(session_db, leave_id, current_user.id, data.get('notes'))
        )
    finally:
        session_db.close()


@head_bp.route('/leaves/<leave_id>/reject', methods=['POST'])
@head_only
def reject_leave(leave_id):
    data = request.get_json(silent=True) or {}
    session_db = get_session()
    try:
        return _decision_response(
            reject_leave_application(session_db, leave_id, current_user.id, data.get('notes'))
        )
    finally:
        session_db.close()


@head_bp.route('/leaves/<leave_id>/export')
@head_only
def export_leave(leave_id):
    session_db = get_session()
    try:
        application = session_db.get(AnnualLeaveApplication, leave_id)
        if not application:
            return jsonify({'success': False, 'error': 'Leave application not found'}), 404
        return Response(
            format_leave_record_as_text(application),
            mimetype='text/plain',
            headers={'Content-Disposition': f'attachment; filename="{leave_record_filename(application)}"'},
        )
    finally:
        session_db.close()


@head_bp.route('/leave-balances')
@head_only
def leave_balances():
    session_db = get_session()
    try:
        return jsonify({'success': True, 'balances': [b.to_dict() for b in get_all_teacher_balances(session_db)]})
    finally:
        session_db.close()


# ===== REPORTS & INSIGHTS =====

@head_bp.route('/school-report')
@head_only
def school_report():
    session_db = get_session()
    try:
        return jsonify({'success': True, 'report': build_school_status_report(session_db)})
    finally:
        session_db.close()


@head_bp.route('/insights', methods=['POST'])
@head_only
def insights():
    """Send the current school report to the assistant"""
    session_db = get_session()
    try:
        report = build_school_status_report(session_db)
        reply = AIAssistant.for_app(session_db, current_user).send(
            INSIGHTS_PROMPT.format(report=report), trigger=True
        )
        payload = reply.to_dict()
        payload['report'] = report
        return jsonify(payload), (200 if reply.success else 502)
    finally:
        session_db.close()


@reports_bp.route('/behavior-reports')
@head_only
def behavior_reports():
    """All behavior reports with class filter, search and sort"""
    session_db = get_session()
    try:
        reports = get_all_reports(
            session_db,
            class_level=request.args.get('class_level'),
            search=request.args.get('search'),
            sort=request.args.get('sort', 'newest'),
        )
        return jsonify({'success': True, 'reports': [r.to_dict() for r in reports]})
    finally:
        session_db.close()


@reports_bp.route('/school-report-viewer')
@head_only
def school_report_viewer():
    session_db = get_session()
    try:
        report = build_school_status_report(session_db)
    finally:
        session_db.close()
    if request.args.get('format') == 'text':
        return Response(report, mimetype='text/plain')
    return jsonify({'success': True, 'report': report})
