"""
Plain-text exports: single leave records and the head's school status report
"""

from datetime import datetime

from attendance_helpers import get_teacher_status_board, count_statuses
from behavior_helpers import get_recent_reports
from class_session_helpers import get_active_sessions
from leave_helpers import get_teachers_on_leave_for_date
from teacher_models import STATUS_LABELS, NO_CHECKIN

REVIEWED_STATUSES = ('Approved', 'Rejected', 'Cancelled')
INCIDENT_PREVIEW_CHARS = 100
ACTION_PREVIEW_CHARS = 50
RECENT_REPORT_LIMIT = 5


def _truncate(text, limit):
    text = text or ''
    return text[:limit] + ('...' if len(text) > limit else '')


def _format_timestamp(value):
    return value.strftime('%b %d, %Y, %H:%M') if value else None


def format_leave_record_as_text(application, teacher_name=None, reviewer_name=None):
    """Render one AnnualLeaveApplication as a downloadable text block"""
    if teacher_name is None:
        teacher_name = application.teacher.name if application.teacher else f"Teacher ID: {application.teacher_id[:8]}"

    status = application.status.value if application.status else 'N/A'
    leave_type = application.leave_type.value if application.leave_type else 'Annual'
    leave_date = application.leave_date.isoformat() if application.leave_date else 'N/A'

    if application.reviewed_by:
        reviewed_by = reviewer_name or (application.reviewer.name if application.reviewer else None) \
            or f"Reviewer ID: {application.reviewed_by[:8]}"
    elif status in ('Approved', 'Rejected'):
        reviewed_by = 'System/Unknown (No reviewer ID)'
    else:
        reviewed_by = 'N/A'

    reviewed_at = _format_timestamp(application.decision_time) \
        or ('Unknown Time' if status in ('Approved', 'Rejected') else 'N/A')

    lines = [
        'Annual Leave Record',
        '--------------------',
        f"Teacher: {teacher_name}",
        f"Leave Type: {leave_type}",
        f"Status: {status}",
        f"Leave Date: {leave_date}",
        f"Reason: {application.reason or 'No reason provided.'}",
        f"Applied At: {_format_timestamp(application.created_at) or 'N/A'}",
    ]
    if status in REVIEWED_STATUSES:
        lines.append(f"Reviewed By: {reviewed_by}")
        lines.append(f"Reviewed At: {reviewed_at}")
        if application.reviewer_notes:
            lines.append(f"Reviewer Notes: {application.reviewer_notes}")
    return '\n'.join(lines) + '\n'


def leave_record_filename(application):
    teacher = application.teacher.name if application.teacher else application.teacher_id[:8]
    return f"leave_record_{teacher.replace(' ', '_')}_{application.leave_date.isoformat()}.txt"


def _teacher_line(row):
    line = f"• {row['name']} ({row['email']}): {STATUS_LABELS.get(row['current_status'], STATUS_LABELS[NO_CHECKIN])}"
    if row['remarks']:
        line += f" - {row['remarks']}"
    if row['last_update']:
        line += f" (Last update: {datetime.fromisoformat(row['last_update']).strftime('%H:%M:%S')})"
    return line


def _behavior_line(report):
    teacher = report.teacher.name if report.teacher else 'Unknown Teacher'
    return (
        f"• {report.student_name} ({report.class_level}): {_truncate(report.incident, INCIDENT_PREVIEW_CHARS)}"
        f" - Action: {_truncate(report.action_taken, ACTION_PREVIEW_CHARS)}"
        f" [{teacher}, {report.created_at.strftime('%m/%d/%Y')}]"
    )


def build_school_status_report(db_session, now=None):
    """
    Snapshot of today's attendance, leave, classes and behavior
    for the head dashboard and the AI insights prompt.
    """
    now = now or datetime.utcnow()
    today = now.date()

    rows, _ = get_teacher_status_board(db_session, today=today)
    counts = count_statuses(rows)
    on_leave = get_teachers_on_leave_for_date(db_session, today)
    sessions = get_active_sessions(db_session)
    reports = get_recent_reports(db_session, limit=RECENT_REPORT_LIMIT)

    leave_lines = [
        f"• {t['teacher_name']} ({t['leave_type']})" + (f": {t['reason']}" if t['reason'] else '')
        for t in on_leave
    ] or ['• None']

    session_lines = [
        f"• {s.class_level} {s.subject} - Teacher: {s.teacher.name if s.teacher else 'Unknown Teacher'}"
        f" ({s.minutes_active(now)} minutes active)"
        for s in sessions
    ] or ['• No classes currently in session']

    behavior_lines = [_behavior_line(r) for r in reports] or ['• No recent behavior reports']

    sections = [
        f"SCHOOL STATUS REPORT FOR {now.strftime('%A, %B %d, %Y')}",
        '',
        'TEACHER ATTENDANCE OVERVIEW:',
        f"- Total Teachers: {len(rows)}",
        f"- Present: {counts['present']} teachers",
        f"- On Break: {counts['break']} teachers",
        f"- Absent: {counts['absent']} teachers",
        f"- No Check-in: {counts['noCheckin']} teachers",
        '',
        f"TEACHERS ON LEAVE TODAY: {len(on_leave)}",
        *leave_lines,
        '',
        'DETAILED TEACHER STATUS:',
        *[_teacher_line(row) for row in rows],
        '',
        'ACTIVE CLASSES IN SESSION:',
        f"- Total Active Classes: {len(sessions)}",
        *session_lines,
        '',
        'RECENT BEHAVIOR REPORTS:',
        f"- Total Recent Reports: {len(reports)}",
        *behavior_lines,
    ]
    return '\n'.join(sections)
