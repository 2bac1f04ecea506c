"""
Teacher attendance, class session and behavior report tests

Run with: pytest tests/test_attendance_and_classes.py -v
"""

import sys
from datetime import datetime
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

from attendance_helpers import confirm_attendance, sign_out, get_teacher_status_board, count_statuses
from class_session_helpers import can_start_class, start_class, end_class, get_active_sessions
from behavior_helpers import create_behavior_report, get_recent_reports, get_all_reports
from teacher_models import AttendanceStatusEnum
from timetable_models import Schedule, ClassSessionStatusEnum


@pytest.fixture
def schedule(db, teacher):
    schedule = Schedule(day='Monday', time='00:00', level='P2', subject='Science', teacher_id=teacher.id)
    db.add(schedule)
    db.commit()
    return schedule


# =============================================================================
# ATTENDANCE
# =============================================================================

def test_confirm_attendance_once_per_day(db, teacher):
    ok, message, record = confirm_attendance(db, teacher.id)
    assert ok is True
    assert message == 'Attendance confirmed successfully'
    assert record.status is AttendanceStatusEnum.PRESENT

    ok, message, existing = confirm_attendance(db, teacher.id)
    assert ok is False
    assert message == 'Attendance already confirmed for today'
    assert existing.id == record.id


def test_sign_out_updates_todays_row(db, teacher):
    confirm_attendance(db, teacher.id)
    ok, message, record = sign_out(db, teacher.id, 'break', '  lunch  ')
    assert ok is True
    assert message == 'Status updated to break'
    assert record.status is AttendanceStatusEnum.BREAK
    assert record.remarks == 'lunch'


def test_sign_out_without_checkin_creates_row(db, teacher):
    ok, _, record = sign_out(db, teacher.id, 'absent')
    assert ok is True
    assert record.status is AttendanceStatusEnum.ABSENT
    assert record.remarks is None


def test_sign_out_rejects_other_statuses(db, teacher):
    ok, message, record = sign_out(db, teacher.id, 'present')
    assert ok is False
    assert message == 'Status must be one of: break, absent'


def test_status_board_counts(db, teacher, second_teacher, admin):
    confirm_attendance(db, teacher.id)

    rows, total = get_teacher_status_board(db)

    assert total == 2
    by_name = {row['name']: row for row in rows}
    assert by_name['Tom Teacher']['status_label'] == 'Present'
    assert by_name['Tina Tutor']['current_status'] == 'no-checkin'
    assert count_statuses(rows) == {'present': 1, 'break': 0, 'absent': 0, 'noCheckin': 1}


def test_status_board_pages(db, teacher, second_teacher):
    rows, total = get_teacher_status_board(db, page=2, per_page=1)
    assert total == 2
    assert [r['name'] for r in rows] == ['Tom Teacher']


# =============================================================================
# CLASS SESSIONS
# =============================================================================

@pytest.mark.parametrize('now, expected', [
    (datetime(2026, 3, 2, 8, 44), False),
    (datetime(2026, 3, 2, 8, 45), True),
    (datetime(2026, 3, 2, 9, 30), True),
])
def test_start_window(now, expected):
    assert can_start_class('09:00', now, window_minutes=15) is expected


def test_cannot_start_twice_or_with_impossible_time():
    now = datetime(2026, 3, 2, 10, 0)
    assert can_start_class('09:00', now, already_active=True) is False
    assert can_start_class('25:99', now) is False


def test_start_and_end_class(db, teacher, schedule):
    ok, message, session = start_class(db, teacher.id, schedule.id)
    assert ok is True
    assert message == 'Class started successfully'
    assert session.class_level == 'P2'
    assert [s.id for s in get_active_sessions(db, teacher.id)] == [session.id]

    ok, message, active = start_class(db, teacher.id, schedule.id)
    assert ok is False
    assert message == 'Class already in session'

    ok, message, summary = end_class(db, teacher.id, session.id)
    assert ok is True
    assert message == 'Class ended. Summary generated'
    assert summary['status'] == ClassSessionStatusEnum.COMPLETED.value
    assert get_active_sessions(db) == []

    ok, message, _ = end_class(db, teacher.id, session.id)
    assert ok is False
    assert message == 'Class session already ended'


def test_other_teachers_schedule_is_not_found(db, second_teacher, schedule):
    ok, message, _ = start_class(db, second_teacher.id, schedule.id)
    assert ok is False
    assert message == 'Schedule not found'


def test_too_early_to_start(db, teacher):
    late = Schedule(day='Monday', time='23:59', level='P1', subject='Art', teacher_id=teacher.id)
    db.add(late)
    db.commit()

    ok, message, _ = start_class(db, teacher.id, late.id, now=datetime.now().replace(hour=8, minute=0))

    assert ok is False
    assert message == 'Class can only be started 15 minutes before 23:59'


# =============================================================================
# BEHAVIOR REPORTS
# =============================================================================

def test_behavior_report_requires_fields(db, teacher):
    ok, message, _ = create_behavior_report(db, teacher.id, {'student_name': 'Ali'})
    assert ok is False
    assert message == 'Missing required fields: class_level, incident, action_taken'


def test_behavior_reports_filter_and_search(db, teacher):
    create_behavior_report(db, teacher.id, {'student_name': 'Ali', 'class_level': 'P1',
                                            'incident': 'Talking in class', 'action_taken': 'Warning'})
    create_behavior_report(db, teacher.id, {'student_name': 'Bea', 'class_level': 'P2',
                                            'incident': 'Pushed a classmate', 'action_taken': 'Parent call'})

    assert len(get_recent_reports(db, teacher.id)) == 2
    assert [r.student_name for r in get_all_reports(db, class_level='P2')] == ['Bea']
    assert [r.student_name for r in get_all_reports(db, search='talking')] == ['Ali']
