"""
Leave management tests: balances, applications and head decisions

Run with: pytest tests/test_leave_helpers.py -v
"""

import sys
from datetime import date, timedelta
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

from leave_helpers import (
    get_leave_balance, get_system_default_leaves, set_system_default_leaves, update_teacher_total_leaves,
    submit_leave_application, approve_leave_application, reject_leave_application, cancel_leave_application,
    get_teacher_leave_applications, get_all_leave_applications, get_teachers_on_leave_for_date,
    validate_leave_date,
)
from leave_models import LeaveStatusEnum, TeacherLeaveBalance
from export_helpers import format_leave_record_as_text, leave_record_filename


TODAY = date.today()
TOMORROW = TODAY + timedelta(days=1)


def apply(db, teacher, days_ahead=3, **extra):
    data = {'leave_date': (TODAY + timedelta(days=days_ahead)).isoformat(), 'leave_type': 'Annual',
            'reason': 'Family event'}
    data.update(extra)
    return submit_leave_application(db, teacher.id, data)


# =============================================================================
# BALANCES
# =============================================================================

def test_new_balance_uses_system_default(db, teacher):
    balance = get_leave_balance(db, teacher.id)
    assert (balance.total_leaves, balance.used_leaves, balance.remaining_leaves) == (14, 0, 14)


def test_default_leaves_flag_changes_new_balances(db, teacher):
    assert set_system_default_leaves(db, 20) == (True, 'Default annual leaves set to 20.')
    assert get_system_default_leaves(db) == 20
    assert get_leave_balance(db, teacher.id).total_leaves == 20


@pytest.mark.parametrize('value, message', [
    ('abc', 'Default leave days must be a whole number.'),
    (-1, 'Default leave days cannot be negative.'),
])
def test_default_leaves_rejects_bad_values(db, value, message):
    assert set_system_default_leaves(db, value) == (False, message)


def test_total_cannot_drop_below_used(db, teacher, head):
    ok, application = apply(db, teacher)
    approve_leave_application(db, application.id, head.id)

    assert update_teacher_total_leaves(db, teacher.id, 0) == (
        False, 'Total leaves cannot be less than leaves already used (1).'
    )
    assert update_teacher_total_leaves(db, teacher.id, 10) == (True, 'Leave balance updated.')
    assert get_leave_balance(db, teacher.id).remaining_leaves == 9


# =============================================================================
# APPLICATIONS
# =============================================================================

def test_leave_date_must_be_in_the_future():
    assert validate_leave_date(TODAY, TODAY) == (False, 'Leave date must be in the future.')
    assert validate_leave_date(TODAY - timedelta(days=1), TODAY)[0] is False
    assert validate_leave_date(TOMORROW, TODAY) == (True, None)


def test_submit_creates_pending_application(db, teacher):
    ok, application = apply(db, teacher)
    assert ok is True
    assert application.status is LeaveStatusEnum.PENDING
    assert application.reason == 'Family event'


@pytest.mark.parametrize('days_ahead', [0, -1, -30])
def test_submit_rejects_today_and_past(db, teacher, days_ahead):
    ok, message = apply(db, teacher, days_ahead=days_ahead)
    assert ok is False
    assert message == 'Leave date must be in the future.'


def test_submit_rejects_duplicate_date(db, teacher):
    apply(db, teacher)
    ok, message = apply(db, teacher)
    assert ok is False
    assert "already have a 'Pending' or 'Approved'" in message


def test_rejected_date_can_be_applied_again(db, teacher, head):
    ok, application = apply(db, teacher)
    reject_leave_application(db, application.id, head.id)
    ok, _ = apply(db, teacher)
    assert ok is True


def test_submit_validates_input(db, teacher):
    assert submit_leave_application(db, teacher.id, {}) == (False, 'A valid leave date (YYYY-MM-DD) is required.')
    ok, message = apply(db, teacher, leave_type='Sabbatical')
    assert ok is False
    assert message == "Unknown leave type 'Sabbatical'."


def test_submit_refused_without_remaining_days(db, teacher):
    update_teacher_total_leaves(db, teacher.id, 0)
    ok, message = apply(db, teacher)
    assert ok is False
    assert message == 'You have no remaining leave days.'


# =============================================================================
# DECISIONS
# =============================================================================

def test_approval_charges_one_day(db, teacher, head):
    ok, application = apply(db, teacher, reason='Doctor')

    result = approve_leave_application(db, application.id, head.id, 'Get well soon')

    assert result == {'success': True, 'message': 'Leave approved successfully', 'remaining_balance': 13}
    balance = db.query(TeacherLeaveBalance).filter_by(teacher_id=teacher.id).one()
    assert (balance.total_leaves, balance.used_leaves, balance.remaining_leaves) == (14, 1, 13)
    assert application.status is LeaveStatusEnum.APPROVED
    assert application.reviewed_by == head.id
    assert application.decision_time is not None


def test_decisions_only_on_pending(db, teacher, head):
    ok, application = apply(db, teacher)
    approve_leave_application(db, application.id, head.id)

    again = approve_leave_application(db, application.id, head.id)
    reject = reject_leave_application(db, application.id, head.id)
    cancel = cancel_leave_application(db, application.id, teacher.id)

    assert again == {'success': False, 'message': 'Leave is already Approved', 'remaining_balance': None}
    assert reject['success'] is False
    assert cancel['message'] == 'Only pending applications can be cancelled'
    assert get_leave_balance(db, teacher.id).used_leaves == 1


def test_reject_leaves_balance_untouched(db, teacher, head):
    ok, application = apply(db, teacher)
    result = reject_leave_application(db, application.id, head.id, 'Exams week')
    assert result['success'] is True
    assert result['remaining_balance'] == 14
    assert application.status is LeaveStatusEnum.REJECTED


def test_cancel_own_pending_only(db, teacher, second_teacher):
    ok, application = apply(db, teacher)

    assert cancel_leave_application(db, application.id, second_teacher.id)['message'] == 'Leave application not found'
    result = cancel_leave_application(db, application.id, teacher.id)

    assert result['success'] is True
    assert application.status is LeaveStatusEnum.CANCELLED


def test_unknown_application(db, head):
    result = approve_leave_application(db, 'ffffffff-ffff-4fff-bfff-ffffffffffff', head.id)
    assert result == {'success': False, 'message': 'Leave application not found', 'remaining_balance': None}


def test_remaining_always_total_minus_used(db, teacher, head):
    for days_ahead in (2, 3, 4):
        ok, application = apply(db, teacher, days_ahead=days_ahead)
        approve_leave_application(db, application.id, head.id)
        balance = get_leave_balance(db, teacher.id)
        assert balance.remaining_leaves == balance.total_leaves - balance.used_leaves
    assert get_leave_balance(db, teacher.id).remaining_leaves == 11


# =============================================================================
# LISTINGS & EXPORT
# =============================================================================

def test_listings(db, teacher, second_teacher, head):
    apply(db, teacher, days_ahead=2)
    apply(db, teacher, days_ahead=5)
    ok, other = apply(db, second_teacher, days_ahead=3)
    approve_leave_application(db, other.id, head.id)

    mine, total = get_teacher_leave_applications(db, teacher.id)
    assert total == 2
    assert mine[0].leave_date > mine[1].leave_date

    approved = get_all_leave_applications(db, {'status': 'Approved'})
    assert [a.teacher_id for a in approved] == [second_teacher.id]

    on_leave = get_teachers_on_leave_for_date(db, TODAY + timedelta(days=3))
    assert on_leave == [{'teacher_id': second_teacher.id, 'teacher_name': 'Tina Tutor',
                         'leave_type': 'Annual', 'reason': 'Family event'}]


def test_bad_filter_value_raises(db):
    with pytest.raises(ValueError):
        get_all_leave_applications(db, {'status': 'Maybe'})


def test_leave_record_text(db, teacher, head):
    ok, application = apply(db, teacher, reason=None)
    approve_leave_application(db, application.id, head.id, 'Enjoy')

    text = format_leave_record_as_text(application)

    assert text.startswith('Annual Leave Record\n--------------------\nTeacher: Tom Teacher\n')
    assert 'Status: Approved' in text
    assert 'Reason: No reason provided.' in text
    assert 'Reviewed By: Harriet Head' in text
    assert text.endswith('Reviewer Notes: Enjoy\n')
    assert leave_record_filename(application) == f"leave_record_Tom_Teacher_{application.leave_date.isoformat()}.txt"


def test_pending_record_has_no_review_lines(db, teacher):
    ok, application = apply(db, teacher)
    text = format_leave_record_as_text(application)
    assert 'Reviewed By' not in text
    assert 'Status: Pending' in text
