"""
Review-and-apply pipeline for AI-proposed schedule commands

An AI batch becomes a CommandReview: one PlannedCommandEntry per command, each
carrying its validation result. Entries can be edited as JSON and re-validated.
apply() runs the entries strictly in order. There is no transaction around the
batch: every command stands alone and the result is an ApplySummary tally.
"""

import enum
import json
import logging
import uuid
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from ai_helpers import strip_code_fences
from command_validators import CommandValidationResult, validate_command, parse_command

logger = logging.getLogger(__name__)

PARSE_ERROR_MESSAGE = 'Failed to parse AI JSON response.'
SHAPE_ERROR_MESSAGE = ('AI response did not contain a valid array of commands '
                       'or commands lacked a .command property.')
NOTHING_APPLIED_WARNING = 'All AI commands failed processing or were invalid. No changes applied.'
INVALID_ENTRIES_MESSAGE = 'Review entries must be a list of objects.'


class EntryState(enum.Enum):
    PROPOSED = 'proposed'
    EDITING = 'editing'
    SAVED = 'saved'


class OutcomeStatus(enum.Enum):
    APPLIED = 'applied'
    SKIPPED = 'skipped'
    FAILED = 'failed'


@dataclass
class PlannedCommandEntry:
    id: str
    command: object
    validation: CommandValidationResult
    is_editing: bool = False
    edited_json: str = ''
    was_edited: bool = False

    @property
    def state(self):
        if self.is_editing:
            return EntryState.EDITING
        return EntryState.SAVED if self.was_edited else EntryState.PROPOSED

    @property
    def command_name(self):
        if isinstance(self.command, dict):
            return self.command.get('command')
        return None

    def to_dict(self):
        return {
            'id': self.id,
            'command': self.command,
            'validation': self.validation.to_dict(),
            'state': self.state.value,
            'is_editing': self.is_editing,
            'edited_json': self.edited_json,
        }

    @classmethod
    def from_dict(cls, data):
        """Rebuild an entry posted back by a client"""
        command = data.get('command')
        posted = data.get('validation')
        if isinstance(posted, dict) and 'is_valid' in posted:
            validation = CommandValidationResult(bool(posted['is_valid']), posted.get('message'))
        else:
            validation = validate_command(command)
        return cls(
            id=data.get('id') or str(uuid.uuid4()),
            command=command,
            validation=validation,
            is_editing=bool(data.get('is_editing')),
            edited_json=data.get('edited_json') or '',
            was_edited=data.get('state') == EntryState.SAVED.value,
        )


@dataclass(frozen=True)
class EntryOutcome:
    entry_id: str
    status: OutcomeStatus
    message: str

    def to_dict(self):
        return {'entry_id': self.entry_id, 'status': self.status.value, 'message': self.message}


@dataclass
class ApplySummary:
    applied: int = 0
    skipped: int = 0
    failed: int = 0
    outcomes: List[EntryOutcome] = field(default_factory=list)

    def record(self, outcome):
        if outcome.status is OutcomeStatus.APPLIED:
            self.applied += 1
        elif outcome.status is OutcomeStatus.SKIPPED:
            self.skipped += 1
        else:
            self.failed += 1
        self.outcomes.append(outcome)
        return self

    @property
    def failure_count(self):
        """Skipped entries count as failures"""
        return self.skipped + self.failed

    @property
    def should_reload(self):
        return self.applied > 0

    @property
    def all_failed(self):
        return self.applied == 0 and self.failure_count > 0

    @property
    def warning(self):
        return NOTHING_APPLIED_WARNING if self.all_failed else None

    def to_dict(self):
        return {
            'applied': self.applied,
            'skipped': self.skipped,
            'failed': self.failed,
            'failure_count': self.failure_count,
            'should_reload': self.should_reload,
            'warning': self.warning,
            'outcomes': [o.to_dict() for o in self.outcomes],
        }


def attempt_entry(entry: PlannedCommandEntry, executor) -> EntryOutcome:
    """
    Classify one entry: skip it if its last validation failed, re-check it,
    then hand the typed command to the executor. Exceptions become FAILED
    outcomes so the caller can carry on with the rest of the batch.
    """
    if not entry.validation.is_valid:
        return EntryOutcome(entry.id, OutcomeStatus.SKIPPED,
                            f"Skipped invalid command: {entry.validation.message}")

    recheck = validate_command(entry.command)
    if not recheck.is_valid:
        return EntryOutcome(entry.id, OutcomeStatus.FAILED,
                            f"Final DB Check Validation Error: {recheck.message}")

    try:
        message = executor.execute(parse_command(entry.command))
    except Exception as e:
        return EntryOutcome(entry.id, OutcomeStatus.FAILED,
                            f"Execution Error: {e} (Command: {entry.command_name})")
    return EntryOutcome(entry.id, OutcomeStatus.APPLIED, message)


class CommandReview:
    """The list of entries under review"""

    def __init__(self, entries=None):
        self.entries: List[PlannedCommandEntry] = list(entries or [])

    def __len__(self):
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)

    @classmethod
    def from_commands(cls, commands):
        return cls([
            PlannedCommandEntry(id=str(uuid.uuid4()), command=cmd, validation=validate_command(cmd))
            for cmd in commands
        ])

    @classmethod
    def from_dicts(cls, entries):
        """Rebuild a review from client-posted entries. Raises ValueError for anything but a list of objects."""
        entries = entries or []
        if not isinstance(entries, list) or not all(isinstance(e, dict) for e in entries):
            raise ValueError(INVALID_ENTRIES_MESSAGE)
        return cls([PlannedCommandEntry.from_dict(e) for e in entries])

    @property
    def valid_count(self):
        return sum(1 for e in self.entries if e.validation.is_valid)

    def get(self, entry_id) -> PlannedCommandEntry:
        for entry in self.entries:
            if entry.id == entry_id:
                return entry
        raise KeyError(entry_id)

    def toggle_edit(self, entry_id):
        """Open (or close) the JSON editor for one entry; only one is open at a time"""
        target = self.get(entry_id)
        opening = not target.is_editing
        for entry in self.entries:
            entry.is_editing = False
        if opening:
            target.is_editing = True
            target.edited_json = json.dumps(target.command, indent=2, ensure_ascii=False)
        return target

    def update_edited_json(self, entry_id, text):
        entry = self.get(entry_id)
        entry.edited_json = text
        return entry

    def save_edit(self, entry_id):
        """
        Re-parse and re-validate an entry's edited JSON.

        Returns (is_valid, message). Malformed JSON leaves the editor open with
        the attempted text and marks the entry invalid.
        """
        entry = self.get(entry_id)
        try:
            parsed = json.loads(entry.edited_json)
        except (TypeError, ValueError) as e:
            entry.validation = CommandValidationResult(False, f"Invalid JSON: {e}")
            return False, entry.validation.message

        entry.command = parsed
        entry.validation = validate_command(parsed)
        entry.is_editing = False
        entry.was_edited = True
        if entry.validation.is_valid:
            return True, 'Command updated and re-validated'
        return False, entry.validation.message

    def apply(self, executor, log_error: Optional[Callable] = None, user_role=None) -> ApplySummary:
        """Run every entry in order and fold the outcomes into an ApplySummary"""
        summary = ApplySummary()
        for entry in self.entries:
            outcome = attempt_entry(entry, executor)
            if outcome.status is OutcomeStatus.APPLIED:
                logger.info(f"✅ {outcome.message}")
            else:
                logger.warning(f"AI command {entry.command_name} not applied: {outcome.message}")
                if log_error:
                    log_error(entry.command, outcome.message, user_role)
            summary.record(outcome)

        if summary.all_failed:
            logger.warning(NOTHING_APPLIED_WARNING)
        return summary

    def to_list(self):
        return [e.to_dict() for e in self.entries]


def plan_ai_commands(raw_response, user_role, log_error: Optional[Callable] = None):
    """
    Turn raw AI text into a CommandReview.

    Returns (True, review) or (False, error_message). Rejected responses are
    passed to log_error with the raw text.
    """
    cleaned = strip_code_fences(raw_response)
    try:
        parsed = json.loads(cleaned)
    except ValueError as e:
        logger.error(f"{PARSE_ERROR_MESSAGE} {e}")
        if log_error:
            log_error({'rawResponse': raw_response, 'parseError': str(e)}, PARSE_ERROR_MESSAGE, user_role)
        return False, PARSE_ERROR_MESSAGE

    # An empty array has nothing to review, so it gets the shape error too
    if (not isinstance(parsed, list) or not parsed
            or not all(isinstance(c, dict) and isinstance(c.get('command'), str) for c in parsed)):
        logger.error(SHAPE_ERROR_MESSAGE)
        if log_error:
            log_error({'rawResponse': raw_response}, SHAPE_ERROR_MESSAGE, user_role)
        return False, SHAPE_ERROR_MESSAGE

    return True, CommandReview.from_commands(parsed)


def log_ai_command_error(session, command_json, error_message, user_role=None):
    """Write one row to ai_command_errors. Failures here are logged, not raised."""
    from chat_models import AICommandError

    try:
        session.add(AICommandError(command_json=command_json, error_message=error_message,
                                   user_role=user_role))
        session.commit()
    except Exception as e:
        session.rollback()
        logger.error(f"Failed to log AI command error to database: {e}")


def make_error_logger(session):
    def _log(command_json, error_message, user_role=None):
        log_ai_command_error(session, command_json, error_message, user_role)
    return _log
