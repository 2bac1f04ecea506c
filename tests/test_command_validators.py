"""
Schedule command validation tests

Run with: pytest tests/test_command_validators.py -v
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

from command_validators import (
    validate_command, parse_command, unknown_update_fields,
    AddSchedule, UpdateSchedule, DeleteSchedule, CommandValidationError, ADD_SCHEDULE_FIELDS,
)


TEACHER_ID = '3f2b8c1e-9a4d-4e2f-b6a1-0c9d8e7f6a5b'
SCHEDULE_ID = 'a1b2c3d4-e5f6-4a1b-8c2d-3e4f5a6b7c8d'


@pytest.fixture
def add_command():
    return {
        'command': 'AddSchedule',
        'day': 'Monday',
        'time': '09:00',
        'level': 'P3',
        'subject': 'Mathematics',
        'teacher_id': TEACHER_ID,
    }


# =============================================================================
# TOTALITY
# =============================================================================

@pytest.mark.parametrize('value', [None, 42, 'AddSchedule', [], ['command'], 3.5])
def test_non_objects_are_invalid(value):
    result = validate_command(value)
    assert result.is_valid is False
    assert result.message == 'Invalid command object.'


@pytest.mark.parametrize('cmd', [{}, {'command': ''}, {'command': '   '}, {'command': 7}])
def test_missing_or_blank_command_type(cmd):
    result = validate_command(cmd)
    assert result.is_valid is False
    assert result.message == 'Missing or invalid command type.'


def test_unknown_command_type():
    result = validate_command({'command': 'DropTable'})
    assert result.is_valid is False
    assert result.message == 'Unknown command type: DropTable'


def test_command_type_is_trimmed(add_command):
    add_command['command'] = ' AddSchedule '
    assert validate_command(add_command).is_valid is True
    assert validate_command({'command': '\tDeleteSchedule\n', 'id': SCHEDULE_ID}).is_valid is True


def test_valid_result_has_no_message(add_command):
    result = validate_command(add_command)
    assert result.is_valid is True
    assert result.message is None
    assert result.to_dict() == {'is_valid': True}


# =============================================================================
# ADD SCHEDULE
# =============================================================================

@pytest.mark.parametrize('field', ADD_SCHEDULE_FIELDS)
@pytest.mark.parametrize('bad', [None, '', '   ', 5])
def test_add_schedule_field_problems_name_the_field(add_command, field, bad):
    add_command[field] = bad
    result = validate_command(add_command)
    assert result.is_valid is False
    assert f"'{field}'" in result.message


@pytest.mark.parametrize('field', ADD_SCHEDULE_FIELDS)
def test_add_schedule_missing_field(add_command, field):
    del add_command[field]
    result = validate_command(add_command)
    assert result.is_valid is False
    assert result.message.startswith(f"AddSchedule failed: Missing or empty '{field}'")


@pytest.mark.parametrize('time_value', ['09:00', '23:59', '00:00', '25:99'])
def test_time_format_only(add_command, time_value):
    add_command['time'] = time_value
    assert validate_command(add_command).is_valid is True


@pytest.mark.parametrize('time_value', ['9:00', '0900', '09:00:00', 'ab:cd', '09-00'])
def test_bad_time_format(add_command, time_value):
    add_command['time'] = time_value
    result = validate_command(add_command)
    assert result.is_valid is False
    assert 'Invalid time format' in result.message


def test_teacher_id_must_be_uuid(add_command):
    add_command['teacher_id'] = 'teacher-1'
    result = validate_command(add_command)
    assert result.is_valid is False
    assert 'Invalid teacher_id format' in result.message


# =============================================================================
# UPDATE / DELETE
# =============================================================================

def test_update_with_only_id_is_invalid():
    result = validate_command({'command': 'UpdateSchedule', 'id': SCHEDULE_ID})
    assert result.is_valid is False
    assert 'No fields provided for update' in result.message


def test_update_with_one_field_is_valid():
    assert validate_command({'command': 'UpdateSchedule', 'id': SCHEDULE_ID, 'subject': 'Art'}).is_valid


def test_update_id_must_be_uuid():
    result = validate_command({'command': 'UpdateSchedule', 'id': '12', 'subject': 'Art'})
    assert result.is_valid is False
    assert 'Invalid id format' in result.message


def test_update_checks_time_and_teacher():
    bad_time = validate_command({'command': 'UpdateSchedule', 'id': SCHEDULE_ID, 'time': '9am'})
    bad_teacher = validate_command({'command': 'UpdateSchedule', 'id': SCHEDULE_ID, 'teacher_id': 'x'})
    assert not bad_time.is_valid and 'Invalid time format' in bad_time.message
    assert not bad_teacher.is_valid and 'Invalid teacher_id format' in bad_teacher.message


def test_delete_needs_only_uuid_id():
    assert validate_command({'command': 'DeleteSchedule', 'id': SCHEDULE_ID}).is_valid
    missing = validate_command({'command': 'DeleteSchedule'})
    assert missing.is_valid is False
    assert missing.message == "DeleteSchedule failed: Missing or empty 'id'."
    assert not validate_command({'command': 'DeleteSchedule', 'id': 'not-a-uuid'}).is_valid


# =============================================================================
# TYPED COMMANDS
# =============================================================================

def test_parse_command_builds_typed_objects(add_command):
    add = parse_command(add_command)
    update = parse_command({'command': 'UpdateSchedule', 'id': SCHEDULE_ID, 'subject': ' Art '})
    delete = parse_command({'command': 'DeleteSchedule', 'id': SCHEDULE_ID})

    assert isinstance(add, AddSchedule)
    assert add.values()['teacher_id'] == TEACHER_ID
    assert isinstance(update, UpdateSchedule)
    assert update.fields == {'subject': 'Art'}
    assert isinstance(delete, DeleteSchedule)
    assert delete.command == 'DeleteSchedule'


def test_parse_command_with_padded_command_type(add_command):
    add_command['command'] = 'AddSchedule '
    assert isinstance(parse_command(add_command), AddSchedule)
    assert isinstance(parse_command({'command': ' UpdateSchedule', 'id': SCHEDULE_ID, 'level': 'P4'}),
                      UpdateSchedule)


def test_parse_command_rejects_invalid():
    with pytest.raises(CommandValidationError) as exc:
        parse_command({'command': 'DeleteSchedule'})
    assert 'Missing or empty' in exc.value.message


def test_unknown_update_fields():
    command = UpdateSchedule(id=SCHEDULE_ID, fields={'subject': 'Art', 'room': '4B'})
    assert unknown_update_fields(command) == ['room']
