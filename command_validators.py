"""
Schedule Command Validation
Checks AI-proposed schedule commands before they are reviewed or applied,
and turns validated dicts into typed command objects.
"""

import re
from dataclasses import dataclass, field
from typing import Optional, Union

from timetable_models import SCHEDULE_FIELDS


UUID_REGEX = re.compile(
    r'^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$'
)
# Format only: "25:99" is accepted
TIME_REGEX = re.compile(r'^\d{2}:\d{2}$', re.ASCII)

ADD_SCHEDULE_FIELDS = ('day', 'time', 'level', 'subject', 'teacher_id')

ADD_SCHEDULE = 'AddSchedule'
UPDATE_SCHEDULE = 'UpdateSchedule'
DELETE_SCHEDULE = 'DeleteSchedule'
SCHEDULE_COMMANDS = (ADD_SCHEDULE, UPDATE_SCHEDULE, DELETE_SCHEDULE)


class CommandValidationError(ValueError):
    """Raised by parse_command when handed a command that does not validate"""
    def __init__(self, message):
        self.message = message
        super().__init__(message)


@dataclass(frozen=True)
class CommandValidationResult:
    is_valid: bool
    message: Optional[str] = None

    def to_dict(self):
        data = {'is_valid': self.is_valid}
        if self.message:
            data['message'] = self.message
        return data


VALID = CommandValidationResult(True)


def _invalid(message):
    return CommandValidationResult(False, message)


def is_uuid(value):
    return isinstance(value, str) and bool(UUID_REGEX.match(value.strip()))


def is_time(value):
    return isinstance(value, str) and bool(TIME_REGEX.match(value.strip()))


def _is_blank(value):
    return not value or not isinstance(value, str) or value.strip() == ''


def validate_command(cmd) -> CommandValidationResult:
    """
    Validate one AI schedule command.

    Never raises: every input, including None and non-dict values, maps to a
    CommandValidationResult. The message is only set when the command is invalid.
    """
    if not isinstance(cmd, dict):
        return _invalid('Invalid command object.')

    command = cmd.get('command')
    if _is_blank(command):
        return _invalid('Missing or invalid command type.')
    command = command.strip()

    if command == ADD_SCHEDULE:
        for name in ADD_SCHEDULE_FIELDS:
            if _is_blank(cmd.get(name)):
                return _invalid(
                    f"AddSchedule failed: Missing or empty '{name}'. Field value was: '{cmd.get(name)}'"
                )
        if not is_time(cmd['time']):
            return _invalid(
                f"AddSchedule failed: Invalid time format for '{cmd['time']}'. Expected HH:MM (24-hour)."
            )
        if not is_uuid(cmd['teacher_id']):
            return _invalid(
                f"AddSchedule failed: Invalid teacher_id format for '{cmd['teacher_id']}'. Expected UUID."
            )
        return VALID

    if command == UPDATE_SCHEDULE:
        schedule_id = cmd.get('id')
        if _is_blank(schedule_id):
            return _invalid("UpdateSchedule failed: Missing or empty 'id'.")
        if not is_uuid(schedule_id):
            return _invalid(f"UpdateSchedule failed: Invalid id format for '{schedule_id}'. Expected UUID.")

        update_fields = {k: v for k, v in cmd.items() if k not in ('command', 'id')}
        if not update_fields:
            return _invalid(f"UpdateSchedule failed for ID {schedule_id}: No fields provided for update.")

        time_value = update_fields.get('time')
        if time_value and not is_time(time_value):
            return _invalid(
                f"UpdateSchedule failed for ID {schedule_id}: Invalid time format for '{time_value}'. "
                f"Expected HH:MM (24-hour)."
            )
        teacher_id = update_fields.get('teacher_id')
        if teacher_id and not is_uuid(teacher_id):
            return _invalid(
                f"UpdateSchedule failed for ID {schedule_id}: Invalid teacher_id format for '{teacher_id}'. "
                f"Expected UUID."
            )
        return VALID

    if command == DELETE_SCHEDULE:
        schedule_id = cmd.get('id')
        if _is_blank(schedule_id):
            return _invalid("DeleteSchedule failed: Missing or empty 'id'.")
        if not is_uuid(schedule_id):
            return _invalid(f"DeleteSchedule failed: Invalid id format for '{schedule_id}'. Expected UUID.")
        return VALID

    return _invalid(f"Unknown command type: {command}")


# ===== TYPED COMMANDS =====

@dataclass(frozen=True)
class AddSchedule:
    day: str
    time: str
    level: str
    subject: str
    teacher_id: str
    command: str = field(default=ADD_SCHEDULE, init=False)

    def values(self):
        return {'day': self.day, 'time': self.time, 'level': self.level,
                'subject': self.subject, 'teacher_id': self.teacher_id}


@dataclass(frozen=True)
class UpdateSchedule:
    id: str
    fields: dict
    command: str = field(default=UPDATE_SCHEDULE, init=False)


@dataclass(frozen=True)
class DeleteSchedule:
    id: str
    command: str = field(default=DELETE_SCHEDULE, init=False)


ScheduleCommand = Union[AddSchedule, UpdateSchedule, DeleteSchedule]


def _clean(value):
    return value.strip() if isinstance(value, str) else value


def parse_command(cmd) -> ScheduleCommand:
    """Build the typed command for a dict. Raises CommandValidationError if it does not validate."""
    result = validate_command(cmd)
    if not result.is_valid:
        raise CommandValidationError(result.message)

    command = cmd['command'].strip()
    if command == ADD_SCHEDULE:
        return AddSchedule(**{name: cmd[name].strip() for name in ADD_SCHEDULE_FIELDS})
    if command == UPDATE_SCHEDULE:
        fields = {k: _clean(v) for k, v in cmd.items() if k not in ('command', 'id')}
        return UpdateSchedule(id=cmd['id'].strip(), fields=fields)
    return DeleteSchedule(id=cmd['id'].strip())


def unknown_update_fields(command: UpdateSchedule):
    """Update keys that are not schedule columns"""
    return sorted(k for k in command.fields if k not in SCHEDULE_FIELDS)
