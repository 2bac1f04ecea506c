"""
AI command review-and-apply tests

Run with: pytest tests/test_command_review.py -v
"""

import sys
import json
from pathlib import Path
from unittest.mock import MagicMock

sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

from command_review import (
    CommandReview, PlannedCommandEntry, OutcomeStatus, EntryState, plan_ai_commands, make_error_logger,
    PARSE_ERROR_MESSAGE, SHAPE_ERROR_MESSAGE, NOTHING_APPLIED_WARNING, INVALID_ENTRIES_MESSAGE,
)
from chat_models import AICommandError
from timetable_models import Schedule
from timetable_helpers import ScheduleCommandExecutor, get_all_schedules


MISSING_ID = 'ffffffff-ffff-4fff-bfff-ffffffffffff'


def add_command(teacher_id, time='09:00', subject='Mathematics'):
    return {'command': 'AddSchedule', 'day': 'Monday', 'time': time, 'level': 'P3',
            'subject': subject, 'teacher_id': teacher_id}


# =============================================================================
# PLANNING
# =============================================================================

def test_plan_strips_code_fence():
    raw = '```json\n[{"command": "DeleteSchedule", "id": "' + MISSING_ID + '"}]\n```'
    ok, review = plan_ai_commands(raw, 'admin')
    assert ok is True
    assert len(review) == 1
    assert review.valid_count == 1


def test_plan_rejects_bad_json_and_logs():
    log_error = MagicMock()
    ok, message = plan_ai_commands('not json at all', 'admin', log_error)
    assert ok is False
    assert message == PARSE_ERROR_MESSAGE
    payload, error, role = log_error.call_args[0]
    assert payload['rawResponse'] == 'not json at all'
    assert error == PARSE_ERROR_MESSAGE
    assert role == 'admin'


@pytest.mark.parametrize('raw', ['[]', '{"command": "AddSchedule"}', '[{"day": "Monday"}]', '[1, 2]'])
def test_plan_rejects_wrong_shape(raw):
    log_error = MagicMock()
    ok, message = plan_ai_commands(raw, 'admin', log_error)
    assert ok is False
    assert message == SHAPE_ERROR_MESSAGE
    log_error.assert_called_once()


def test_plan_keeps_invalid_entries_for_review():
    raw = json.dumps([{'command': 'DeleteSchedule'}, {'command': 'DeleteSchedule', 'id': MISSING_ID}])
    ok, review = plan_ai_commands(raw, 'admin')
    assert ok is True
    assert len(review) == 2
    assert review.valid_count == 1
    assert review.entries[0].validation.is_valid is False


# =============================================================================
# EDITING
# =============================================================================

@pytest.fixture
def review():
    return CommandReview.from_commands([
        {'command': 'DeleteSchedule'},
        {'command': 'DeleteSchedule', 'id': MISSING_ID},
    ])


def test_toggle_edit_opens_one_editor(review):
    first, second = review.entries
    review.toggle_edit(first.id)
    assert first.is_editing and first.state is EntryState.EDITING
    assert json.loads(first.edited_json) == {'command': 'DeleteSchedule'}

    review.toggle_edit(second.id)
    assert not first.is_editing
    assert second.is_editing

    review.toggle_edit(second.id)
    assert not second.is_editing


def test_save_edit_revalidates(review):
    entry = review.entries[0]
    review.toggle_edit(entry.id)
    review.update_edited_json(entry.id, json.dumps({'command': 'DeleteSchedule', 'id': MISSING_ID}))

    is_valid, message = review.save_edit(entry.id)

    assert is_valid is True
    assert message == 'Command updated and re-validated'
    assert entry.validation.is_valid
    assert entry.state is EntryState.SAVED
    assert review.valid_count == 2


def test_save_edit_with_malformed_json_keeps_editor_open(review):
    entry = review.entries[1]
    review.toggle_edit(entry.id)
    review.update_edited_json(entry.id, '{"command": ')

    is_valid, message = review.save_edit(entry.id)

    assert is_valid is False
    assert message.startswith('Invalid JSON')
    assert entry.is_editing is True
    assert entry.edited_json == '{"command": '
    assert entry.validation.is_valid is False


def test_save_edit_with_non_string_json_marks_invalid(review):
    entry = review.entries[0]
    review.update_edited_json(entry.id, 5)

    is_valid, message = review.save_edit(entry.id)

    assert is_valid is False
    assert message.startswith('Invalid JSON')
    assert entry.validation.is_valid is False


@pytest.mark.parametrize('posted', [['junk'], [{'id': 'a'}, 7], 'entries', {'id': 'a'}])
def test_posted_entries_must_be_objects(posted):
    with pytest.raises(ValueError) as exc:
        CommandReview.from_dicts(posted)
    assert str(exc.value) == INVALID_ENTRIES_MESSAGE


def test_unknown_entry_raises_key_error(review):
    with pytest.raises(KeyError):
        review.toggle_edit('nope')


def test_entries_round_trip_through_client(review):
    review.toggle_edit(review.entries[0].id)
    rebuilt = CommandReview.from_dicts(review.to_list())
    assert [e.id for e in rebuilt] == [e.id for e in review]
    assert rebuilt.entries[0].is_editing is True
    assert rebuilt.entries[0].validation.is_valid is False


def test_posted_entry_without_validation_is_validated():
    entry = PlannedCommandEntry.from_dict({'command': {'command': 'DeleteSchedule', 'id': MISSING_ID}})
    assert entry.validation.is_valid
    assert entry.id


# =============================================================================
# APPLY
# =============================================================================

def test_apply_with_fake_executor_folds_outcomes():
    executor = MagicMock()
    executor.execute.side_effect = ['done', RuntimeError('db down')]
    review = CommandReview.from_commands([
        {'command': 'DeleteSchedule', 'id': MISSING_ID},
        {'command': 'DeleteSchedule'},
        {'command': 'DeleteSchedule', 'id': MISSING_ID},
    ])
    log_error = MagicMock()

    summary = review.apply(executor, log_error, 'admin')

    assert [o.status for o in summary.outcomes] == [
        OutcomeStatus.APPLIED, OutcomeStatus.SKIPPED, OutcomeStatus.FAILED
    ]
    assert summary.applied == 1
    assert summary.failure_count == 2
    assert summary.should_reload is True
    assert summary.warning is None
    assert 'Execution Error: db down' in summary.outcomes[2].message
    assert log_error.call_count == 2


def test_apply_all_failed_warns():
    review = CommandReview.from_commands([{'command': 'DeleteSchedule'}])
    summary = review.apply(MagicMock())
    assert summary.all_failed is True
    assert summary.should_reload is False
    assert summary.to_dict()['warning'] == NOTHING_APPLIED_WARNING


def test_edited_into_invalid_after_validation_fails_final_check():
    review = CommandReview.from_commands([{'command': 'DeleteSchedule', 'id': MISSING_ID}])
    review.entries[0].command = {'command': 'DeleteSchedule'}
    executor = MagicMock()

    summary = review.apply(executor)

    assert summary.failed == 1
    assert summary.outcomes[0].message.startswith('Final DB Check Validation Error')
    executor.execute.assert_not_called()


def test_single_add_inserts_one_row(db, teacher):
    ok, review = plan_ai_commands(json.dumps([add_command(teacher.id)]), 'admin')
    assert ok and review.valid_count == 1

    summary = review.apply(ScheduleCommandExecutor(db), make_error_logger(db), 'admin')

    assert summary.applied == 1
    schedules = get_all_schedules(db)
    assert len(schedules) == 1
    assert schedules[0].teacher_id == teacher.id
    assert schedules[0].subject == 'Mathematics'


def test_middle_invalid_delete_is_skipped_and_logged(db, teacher):
    batch = [
        add_command(teacher.id, time='09:00'),
        {'command': 'DeleteSchedule'},
        add_command(teacher.id, time='10:00', subject='Science'),
    ]
    ok, review = plan_ai_commands(json.dumps(batch), 'admin')
    assert ok

    summary = review.apply(ScheduleCommandExecutor(db), make_error_logger(db), 'admin')

    assert summary.applied == 2
    assert summary.skipped == 1
    assert summary.failure_count == 1
    assert db.query(Schedule).count() == 2

    errors = db.query(AICommandError).all()
    assert len(errors) == 1
    assert errors[0].command_json == {'command': 'DeleteSchedule'}
    assert errors[0].user_role == 'admin'


def test_update_and_delete_of_missing_id_count_as_applied(db):
    review = CommandReview.from_commands([
        {'command': 'UpdateSchedule', 'id': MISSING_ID, 'subject': 'Art'},
        {'command': 'DeleteSchedule', 'id': MISSING_ID},
    ])
    summary = review.apply(ScheduleCommandExecutor(db))
    assert summary.applied == 2


def test_add_for_unknown_teacher_fails(db):
    review = CommandReview.from_commands([add_command(MISSING_ID)])
    summary = review.apply(ScheduleCommandExecutor(db))
    assert summary.failed == 1
    assert 'does not exist' in summary.outcomes[0].message
    assert db.query(Schedule).count() == 0


def test_update_with_unknown_column_fails(db, teacher):
    schedule = Schedule(day='Monday', time='09:00', level='P1', subject='Art', teacher_id=teacher.id)
    db.add(schedule)
    db.commit()

    review = CommandReview.from_commands([
        {'command': 'UpdateSchedule', 'id': schedule.id, 'room': '4B'},
    ])
    summary = review.apply(ScheduleCommandExecutor(db))
    assert summary.failed == 1
    assert 'Unknown schedule field' in summary.outcomes[0].message
