"""
Teacher attendance helper functions
Daily check-in, break / absent sign-out and the live status board
"""

from datetime import date
import logging

from teacher_models import AttendanceLog, AttendanceStatusEnum, NO_CHECKIN, STATUS_LABELS

logger = logging.getLogger(__name__)

SIGN_OUT_STATUSES = (AttendanceStatusEnum.BREAK.value, AttendanceStatusEnum.ABSENT.value)


def get_today_attendance(db_session, teacher_id, today=None):
    today = today or date.today()
    return db_session.query(AttendanceLog).filter_by(teacher_id=teacher_id, date=today).first()


def confirm_attendance(db_session, teacher_id, today=None):
    """
    Check a teacher in as present for today

    Returns:
        tuple: (success: bool, message: str, record: AttendanceLog or None)
    """
    today = today or date.today()
    existing = get_today_attendance(db_session, teacher_id, today)
    if existing:
        return (False, 'Attendance already confirmed for today', existing)

    try:
        record = AttendanceLog(teacher_id=teacher_id, date=today, status=AttendanceStatusEnum.PRESENT)
        db_session.add(record)
        db_session.commit()
        logger.info(f"Attendance confirmed: teacher={teacher_id} date={today}")
        return (True, 'Attendance confirmed successfully', record)
    except Exception as e:
        db_session.rollback()
        logger.error(f"Attendance insert error: {e}")
        return (False, 'Please contact creator - Shan', None)


def sign_out(db_session, teacher_id, status, remarks=None, today=None):
    """
    Record a break or absence, updating today's row or creating one

    Returns:
        tuple: (success: bool, message: str, record: AttendanceLog or None)
    """
    if status not in SIGN_OUT_STATUSES:
        return (False, f"Status must be one of: {', '.join(SIGN_OUT_STATUSES)}", None)

    today = today or date.today()
    remarks = (remarks or '').strip() or None

    try:
        record = get_today_attendance(db_session, teacher_id, today)
        if record:
            record.status = AttendanceStatusEnum(status)
            record.remarks = remarks
        else:
            record = AttendanceLog(teacher_id=teacher_id, date=today,
                                   status=AttendanceStatusEnum(status), remarks=remarks)
            db_session.add(record)
        db_session.commit()
        logger.info(f"Attendance status updated: teacher={teacher_id} status={status}")
        return (True, f'Status updated to {status}', record)
    except Exception as e:
        db_session.rollback()
        logger.error(f"Attendance update error: {e}")
        return (False, 'Please contact creator - Shan', None)


def get_teacher_status_board(db_session, today=None, page=None, per_page=20):
    """
    Every teacher with today's attendance status ('no-checkin' when there is no row).

    Args:
        page: 1-based page number, or None for everyone

    Returns:
        tuple: (rows, total_teachers)
    """
    from models import User, ROLE_TEACHER

    today = today or date.today()
    query = db_session.query(User).filter(User.role == ROLE_TEACHER).order_by(User.name)
    total = query.count()
    if page:
        query = query.offset((max(int(page), 1) - 1) * per_page).limit(per_page)
    teachers = query.all()

    logs = {
        log.teacher_id: log
        for log in db_session.query(AttendanceLog).filter(AttendanceLog.date == today).all()
    }

    rows = []
    for teacher in teachers:
        log = logs.get(teacher.id)
        status = log.status.value if log else NO_CHECKIN
        rows.append({
            'id': teacher.id,
            'name': teacher.name,
            'email': teacher.email,
            'current_status': status,
            'status_label': STATUS_LABELS[status],
            'remarks': log.remarks if log else None,
            'last_update': log.created_at.isoformat() if log and log.created_at else None,
        })
    return rows, total


def count_statuses(rows):
    """Tally status-board rows into present / break / absent / noCheckin"""
    counts = {'present': 0, 'break': 0, 'absent': 0, 'noCheckin': 0}
    for row in rows:
        status = row['current_status']
        if status == NO_CHECKIN:
            counts['noCheckin'] += 1
        else:
            counts[status] += 1
    return counts
