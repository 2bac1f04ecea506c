"""
Schedule CRUD, AI schedule matrix and weekly reset tests

Run with: pytest tests/test_timetable_helpers.py -v
"""

import sys
import json
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

from timetable_helpers import (
    create_schedule, update_schedule, delete_schedule, get_all_schedules, get_teacher_schedule_for_day,
    resolve_teacher, reset_weekly_data, upsert_schedule_matrix, apply_single_schedule_response,
)
from attendance_helpers import confirm_attendance
from timetable_models import Schedule
from teacher_models import AttendanceLog


def schedule_data(teacher, **overrides):
    data = {'day': 'Tuesday', 'time': '10:30', 'level': 'P4', 'subject': 'English', 'teacher_id': teacher.id}
    data.update(overrides)
    return data


# =============================================================================
# CRUD
# =============================================================================

def test_create_schedule(db, teacher):
    ok, message, schedule = create_schedule(db, schedule_data(teacher))
    assert ok is True
    assert message == 'Schedule added successfully'
    assert schedule.to_dict()['teacher_name'] == 'Tom Teacher'


def test_create_schedule_validates(db, teacher, admin):
    ok, message, _ = create_schedule(db, schedule_data(teacher, time='10.30'))
    assert ok is False
    assert 'Invalid time format' in message

    ok, message, _ = create_schedule(db, schedule_data(admin))
    assert ok is False
    assert message == 'Selected teacher does not exist'


def test_update_and_delete_schedule(db, teacher, second_teacher):
    ok, _, schedule = create_schedule(db, schedule_data(teacher))

    assert update_schedule(db, schedule.id, {'teacher_id': second_teacher.id, 'ignored': 'x'}) == (
        True, 'Schedule updated successfully'
    )
    assert schedule.teacher_id == second_teacher.id
    assert update_schedule(db, schedule.id, {}) == (
        False, f'UpdateSchedule failed for ID {schedule.id}: No fields provided for update.'
    )

    assert delete_schedule(db, schedule.id) == (True, 'Schedule deleted successfully')
    assert delete_schedule(db, schedule.id) == (False, 'Schedule not found')


def test_schedules_sorted_by_weekday_then_time(db, teacher):
    create_schedule(db, schedule_data(teacher, day='Friday', time='08:00'))
    create_schedule(db, schedule_data(teacher, day='Monday', time='11:00'))
    create_schedule(db, schedule_data(teacher, day='Monday', time='09:00'))

    assert [(s.day, s.time) for s in get_all_schedules(db)] == [
        ('Monday', '09:00'), ('Monday', '11:00'), ('Friday', '08:00')
    ]
    assert len(get_teacher_schedule_for_day(db, teacher.id, 'Monday')) == 2


def test_resolve_teacher_by_id_or_name(db, teacher, second_teacher):
    assert resolve_teacher(db, teacher.id) is not None
    assert resolve_teacher(db, 'tina').id == second_teacher.id
    assert resolve_teacher(db, 'unknown', 'TOM').id == teacher.id
    assert resolve_teacher(db, 'nobody') is None


# =============================================================================
# AI SCHEDULE MATRIX & SINGLE SCHEDULE
# =============================================================================

def test_matrix_upserts_on_day_time_level(db, teacher, second_teacher):
    ok, message, count = upsert_schedule_matrix(db, [schedule_data(teacher)])
    assert (ok, count) == (True, 1)

    ok, message, count = upsert_schedule_matrix(db, [
        schedule_data(second_teacher, subject='Music'),
        schedule_data(teacher, level='P5'),
    ])

    assert message == 'AI schedule submitted successfully!'
    assert db.query(Schedule).count() == 2
    replaced = db.query(Schedule).filter_by(level='P4').one()
    assert (replaced.subject, replaced.teacher_id) == ('Music', second_teacher.id)


def test_matrix_rejects_invalid_or_empty(db, teacher):
    assert upsert_schedule_matrix(db, []) == (False, 'No schedule entries to submit', 0)
    ok, message, count = upsert_schedule_matrix(db, [schedule_data(teacher, teacher_id='x')])
    assert ok is False
    assert count == 0
    assert db.query(Schedule).count() == 0


def test_single_schedule_reply_with_teacher_name(db, teacher):
    reply = '```json\n' + json.dumps({'day': 'Wednesday', 'time': '13:00', 'level': 'P6',
                                      'subject': 'Art', 'teacher_id': 'Tom'}) + '\n```'

    ok, message, schedule = apply_single_schedule_response(db, reply)

    assert ok is True
    assert schedule.teacher_id == teacher.id


@pytest.mark.parametrize('reply, message', [
    ('not json', 'AI response did not contain a valid single schedule object.'),
    ('{"day": "Monday"}', 'AI response did not contain a valid single schedule object.'),
    (json.dumps({'day': 'Monday', 'time': '09:00', 'level': 'P1', 'subject': 'Art', 'teacher_id': 'Zed'}),
     'AI selected an invalid teacher. Please choose a real teacher or ensure teacher_id is a valid UUID.'),
])
def test_single_schedule_reply_errors(db, teacher, reply, message):
    assert apply_single_schedule_response(db, reply) == (False, message, None)


# =============================================================================
# WEEKLY RESET
# =============================================================================

def test_reset_weekly_data(db, teacher):
    create_schedule(db, schedule_data(teacher))
    confirm_attendance(db, teacher.id)

    ok, message, counts = reset_weekly_data(db)

    assert ok is True
    assert counts == {'attendance_logs': 1, 'schedules': 1}
    assert db.query(Schedule).count() == 0
    assert db.query(AttendanceLog).count() == 0
