"""
Class session helpers: starting and ending scheduled classes
"""

from datetime import datetime, timedelta
import logging

from timetable_models import ClassSession, ClassSessionStatusEnum, Schedule

logger = logging.getLogger(__name__)

START_WINDOW_MINUTES = 15


def class_start_time(schedule_time, now):
    """Today's datetime for an HH:MM schedule time"""
    hours, minutes = (int(part) for part in schedule_time.split(':'))
    return now.replace(hour=hours, minute=minutes, second=0, microsecond=0)


def can_start_class(schedule_time, now=None, already_active=False, window_minutes=START_WINDOW_MINUTES):
    """A class can be started from `window_minutes` before its time, once"""
    if already_active:
        return False
    now = now or datetime.now()
    try:
        start = class_start_time(schedule_time, now)
    except ValueError:
        # "25:99" style times are stored as given but never open a window
        return False
    return now >= start - timedelta(minutes=window_minutes)


def get_active_sessions(db_session, teacher_id=None):
    query = db_session.query(ClassSession).filter_by(status=ClassSessionStatusEnum.ACTIVE)
    if teacher_id:
        query = query.filter_by(teacher_id=teacher_id)
    return query.order_by(ClassSession.start_time).all()


def get_active_session_for_schedule(db_session, schedule_id):
    return db_session.query(ClassSession).filter_by(
        schedule_id=schedule_id, status=ClassSessionStatusEnum.ACTIVE
    ).first()


def start_class(db_session, teacher_id, schedule_id, now=None, window_minutes=START_WINDOW_MINUTES):
    """
    Start the teacher's scheduled class

    Returns:
        tuple: (success, message, class_session)
    """
    schedule = db_session.get(Schedule, schedule_id)
    if not schedule or schedule.teacher_id != teacher_id:
        return False, "Schedule not found", None

    active = get_active_session_for_schedule(db_session, schedule_id)
    if not can_start_class(schedule.time, now, active is not None, window_minutes):
        if active:
            return False, "Class already in session", active
        return False, f"Class can only be started {window_minutes} minutes before {schedule.time}", None

    try:
        class_session = ClassSession(
            teacher_id=teacher_id,
            schedule_id=schedule.id,
            class_level=schedule.level,
            subject=schedule.subject,
            start_time=datetime.utcnow(),
            status=ClassSessionStatusEnum.ACTIVE
        )
        db_session.add(class_session)
        db_session.commit()
        logger.info(f"Class started: {schedule.level} {schedule.subject} by {teacher_id}")
        return True, "Class started successfully", class_session
    except Exception as e:
        db_session.rollback()
        logger.error(f"Start class error: {e}")
        return False, "Error managing class. Please contact Creator - Shan", None


def end_class(db_session, teacher_id, session_id):
    """
    Close an active session and work out its duration

    Returns:
        tuple: (success, message, summary_dict)
    """
    class_session = db_session.get(ClassSession, session_id)
    if not class_session or class_session.teacher_id != teacher_id:
        return False, "Class session not found", None
    if class_session.status != ClassSessionStatusEnum.ACTIVE:
        return False, "Class session already ended", class_session.to_dict()

    try:
        class_session.end_time = datetime.utcnow()
        class_session.status = ClassSessionStatusEnum.COMPLETED
        db_session.commit()
        logger.info(f"Class ended: {session_id} after {class_session.duration_minutes} minutes")
        return True, "Class ended. Summary generated", class_session.to_dict()
    except Exception as e:
        db_session.rollback()
        logger.error(f"End class error: {e}")
        return False, "Error managing class. Please contact Creator - Shan", None
