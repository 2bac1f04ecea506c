"""
Timetable Helper Functions
Schedule CRUD, the AI schedule matrix, single-schedule AI replies and the
executor that applies reviewed AI commands to the schedules table.
"""

import json
import logging
from datetime import date

from ai_helpers import strip_code_fences
from command_validators import (
    AddSchedule, UpdateSchedule, DeleteSchedule, ADD_SCHEDULE, validate_command, unknown_update_fields,
)

logger = logging.getLogger(__name__)

WEEK_DAYS = ['Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday', 'Sunday']
SINGLE_SCHEDULE_KEYS = ('day', 'time', 'level', 'subject', 'teacher_id')


def _day_rank(day):
    return WEEK_DAYS.index(day) if day in WEEK_DAYS else len(WEEK_DAYS)


def get_all_schedules(session):
    """All schedules ordered by weekday then time"""
    from timetable_models import Schedule

    schedules = session.query(Schedule).all()
    return sorted(schedules, key=lambda s: (_day_rank(s.day), s.time, s.level))


def get_teacher_schedule_for_day(session, teacher_id, day=None):
    """A teacher's classes for one weekday (today by default), ordered by time"""
    from timetable_models import Schedule

    day = day or date.today().strftime('%A')
    return session.query(Schedule).filter(
        Schedule.teacher_id == teacher_id,
        Schedule.day == day
    ).order_by(Schedule.time).all()


def get_teachers(session):
    from models import User, ROLE_TEACHER
    return session.query(User).filter(User.role == ROLE_TEACHER).order_by(User.name).all()


def get_teacher_names(session):
    return [t.name for t in get_teachers(session)]


def resolve_teacher(session, teacher_ref, teacher_name=None):
    """
    Find a teacher by exact id, else by case-insensitive name substring
    (first on teacher_ref, then on teacher_name).
    """
    teachers = get_teachers(session)
    for teacher in teachers:
        if teacher.id == teacher_ref:
            return teacher

    for needle in (teacher_ref, teacher_name):
        if not needle:
            continue
        needle = str(needle).lower()
        for teacher in teachers:
            if needle in teacher.name.lower():
                return teacher
    return None


def _check_teacher(session, teacher_id):
    from models import User, ROLE_TEACHER
    teacher = session.get(User, teacher_id)
    if not teacher or teacher.role != ROLE_TEACHER:
        return False, "Selected teacher does not exist"
    return True, None


# ===== SCHEDULE CRUD =====

def create_schedule(session, data):
    """
    Create one schedule from form data.

    Returns:
        tuple: (success, message, schedule)
    """
    from timetable_models import Schedule

    result = validate_command({**data, 'command': ADD_SCHEDULE})
    if not result.is_valid:
        return False, result.message, None

    ok, error = _check_teacher(session, data['teacher_id'].strip())
    if not ok:
        return False, error, None

    try:
        schedule = Schedule(**{k: data[k].strip() for k in SINGLE_SCHEDULE_KEYS})
        session.add(schedule)
        session.commit()
        logger.info(f"Schedule created: {schedule.day} {schedule.time} {schedule.level} {schedule.subject}")
        return True, "Schedule added successfully", schedule
    except Exception as e:
        session.rollback()
        logger.error(f"Error creating schedule: {e}")
        return False, "Failed to save schedule. Please contact Creator - Shan", None


def update_schedule(session, schedule_id, data):
    """
    Returns:
        tuple: (success, message)
    """
    from timetable_models import Schedule, SCHEDULE_FIELDS

    schedule = session.get(Schedule, schedule_id)
    if not schedule:
        return False, "Schedule not found"

    fields = {k: v for k, v in data.items() if k in SCHEDULE_FIELDS}
    result = validate_command({**fields, 'command': 'UpdateSchedule', 'id': schedule_id})
    if not result.is_valid:
        return False, result.message

    if fields.get('teacher_id'):
        ok, error = _check_teacher(session, fields['teacher_id'].strip())
        if not ok:
            return False, error

    try:
        for key, value in fields.items():
            setattr(schedule, key, value.strip() if isinstance(value, str) else value)
        session.commit()
        logger.info(f"Schedule updated: {schedule_id}")
        return True, "Schedule updated successfully"
    except Exception as e:
        session.rollback()
        logger.error(f"Error updating schedule {schedule_id}: {e}")
        return False, "Failed to update schedule. Please contact Creator - Shan"


def delete_schedule(session, schedule_id):
    from timetable_models import Schedule

    schedule = session.get(Schedule, schedule_id)
    if not schedule:
        return False, "Schedule not found"

    try:
        session.delete(schedule)
        session.commit()
        logger.info(f"Schedule deleted: {schedule_id}")
        return True, "Schedule deleted successfully"
    except Exception as e:
        session.rollback()
        logger.error(f"Error deleting schedule {schedule_id}: {e}")
        return False, "Failed to delete schedule. Please contact Creator - Shan"


def reset_weekly_data(session):
    """
    Delete every attendance log and schedule.

    Returns:
        tuple: (success, message, counts)
    """
    from timetable_models import Schedule, ClassSession
    from teacher_models import AttendanceLog

    try:
        attendance_deleted = session.query(AttendanceLog).delete(synchronize_session=False)
        # sessions keep their history; just detach them from the schedules being removed
        session.query(ClassSession).update({ClassSession.schedule_id: None}, synchronize_session=False)
        schedules_deleted = session.query(Schedule).delete(synchronize_session=False)
        session.commit()
        logger.info(f"🧹 Weekly reset: {attendance_deleted} attendance logs, {schedules_deleted} schedules removed")
        counts = {'attendance_logs': attendance_deleted, 'schedules': schedules_deleted}
        return True, "Weekly data reset successfully", counts
    except Exception as e:
        session.rollback()
        logger.error(f"Error resetting weekly data: {e}")
        return False, "Failed to reset weekly data. Please contact Creator - Shan", {}


def upsert_schedule_matrix(session, entries):
    """
    Save an AI-generated schedule grid. Rows are matched on (day, time, level):
    a match is updated in place, anything else is inserted.

    Returns:
        tuple: (success, message, saved_count)
    """
    from timetable_models import Schedule

    rows = []
    for entry in entries or []:
        result = validate_command({**entry, 'command': ADD_SCHEDULE})
        if not result.is_valid:
            return False, result.message, 0
        rows.append({k: entry[k].strip() for k in SINGLE_SCHEDULE_KEYS})

    if not rows:
        return False, "No schedule entries to submit", 0

    try:
        for row in rows:
            existing = session.query(Schedule).filter_by(
                day=row['day'], time=row['time'], level=row['level']
            ).first()
            if existing:
                existing.subject = row['subject']
                existing.teacher_id = row['teacher_id']
            else:
                session.add(Schedule(**row))
        session.commit()
        logger.info(f"AI schedule matrix saved: {len(rows)} rows")
        return True, "AI schedule submitted successfully!", len(rows)
    except Exception as e:
        session.rollback()
        logger.error(f"Error saving AI schedule matrix: {e}")
        return False, "Failed to submit AI-generated schedule. Please contact Creator - Shan", 0


def apply_single_schedule_response(session, response):
    """
    Create a schedule from an AI reply holding one schedule object. The
    teacher may be given by id or by (part of) their name.

    Returns:
        tuple: (success, message, schedule)
    """
    try:
        schedule = json.loads(strip_code_fences(response))
    except ValueError:
        return False, "AI response did not contain a valid single schedule object.", None

    if not isinstance(schedule, dict) or not all(schedule.get(k) for k in SINGLE_SCHEDULE_KEYS):
        return False, "AI response did not contain a valid single schedule object.", None

    teacher = resolve_teacher(session, schedule.get('teacher_id'), schedule.get('teacher_name'))
    if not teacher:
        return False, ("AI selected an invalid teacher. Please choose a real teacher or ensure "
                       "teacher_id is a valid UUID."), None

    data = {k: str(schedule[k]) for k in SINGLE_SCHEDULE_KEYS}
    data['teacher_id'] = teacher.id
    return create_schedule(session, data)


# ===== AI COMMAND EXECUTION =====

class ScheduleCommandExecutor:
    """
    Applies typed schedule commands, one commit per command.

    Update and delete of an id that does not exist are no-ops (matching the
    behaviour of a plain UPDATE/DELETE ... WHERE id = ?).
    """

    def __init__(self, session):
        self.session = session

    def execute(self, command):
        try:
            if isinstance(command, AddSchedule):
                message = self._add(command)
            elif isinstance(command, UpdateSchedule):
                message = self._update(command)
            elif isinstance(command, DeleteSchedule):
                message = self._delete(command)
            else:
                raise ValueError(f"Unsupported command: {command!r}")
            self.session.commit()
            return message
        except Exception:
            self.session.rollback()
            raise

    def _add(self, command):
        from timetable_models import Schedule
        from models import User

        if not self.session.get(User, command.teacher_id):
            raise ValueError(f"Teacher {command.teacher_id} does not exist")
        self.session.add(Schedule(**command.values()))
        self.session.flush()
        return f"Added {command.level} {command.subject} on {command.day} at {command.time}"

    def _update(self, command):
        from timetable_models import Schedule

        unknown = unknown_update_fields(command)
        if unknown:
            raise ValueError(f"Unknown schedule field(s): {', '.join(unknown)}")
        updated = self.session.query(Schedule).filter(Schedule.id == command.id).update(
            dict(command.fields), synchronize_session=False
        )
        if not updated:
            logger.info(f"UpdateSchedule: no schedule with id {command.id}")
        return f"Updated schedule {command.id}"

    def _delete(self, command):
        from timetable_models import Schedule

        deleted = self.session.query(Schedule).filter(Schedule.id == command.id).delete(
            synchronize_session=False
        )
        if not deleted:
            logger.info(f"DeleteSchedule: no schedule with id {command.id}")
        return f"Deleted schedule {command.id}"
