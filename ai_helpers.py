"""
AI gateway helpers for EduSync
Role prompts, the OpenRouter chat-completion call, provider error mapping,
API key rotation and the Creator's tool commands.
"""

import json
import re
import time
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Tuple

import requests
from sqlalchemy.exc import IntegrityError

from ai_prompts import PROMPTS_BY_ROLE, TEACHER_NAMES_SUFFIX, CREATOR_CREDIT_MESSAGE

logger = logging.getLogger(__name__)

OPENROUTER_URL = 'https://openrouter.ai/api/v1/chat/completions'
APP_TITLE = 'EduSync AI Assistant'
DEFAULT_TIMEOUT = 30  # seconds

AI_USER_ROLES = ('teacher', 'head', 'admin')
EMAIL_REGEX = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
CODE_FENCE_START = re.compile(r'^```[a-zA-Z]*\n?')
CODE_FENCE_END = re.compile(r'\n?```$')


# ===== ERRORS =====

class AIError(Exception):
    """Base class for failures talking to the chat-completion provider"""
    status = None

    def __init__(self, message):
        self.message = message
        super().__init__(message)


class AIProviderError(AIError):
    """Provider answered with a non-2xx status"""
    def __init__(self, status, message, details=None):
        super().__init__(message)
        self.status = status
        self.details = details or {}

    def to_dict(self):
        return {'status': self.status, 'message': self.message, 'details': self.details}


class AITimeoutError(AIError):
    name = 'TimeoutError'

    def __init__(self, message='Request timeout'):
        super().__init__(message)


class AIResponseFormatError(AIError):
    def __init__(self, message='Invalid response format from OpenRouter API'):
        super().__init__(message)


# ===== PROMPTS & TEXT =====

def get_system_prompt_by_role(role, teacher_names=None):
    """
    System prompt for a role. For admin, a teacher-name allowlist is appended
    when names are supplied.
    """
    try:
        prompt = PROMPTS_BY_ROLE[role]
    except KeyError:
        raise ValueError(f"No system prompt for role '{role}'")

    if role == 'admin' and teacher_names:
        prompt += TEACHER_NAMES_SUFFIX.format(names=', '.join(teacher_names))
    return prompt


def get_creator_credit_message():
    return CREATOR_CREDIT_MESSAGE


_CLEANUP_PATTERNS = [
    # echo
    (re.compile(r"^I understand you're asking about[^.]*\.\s*", re.IGNORECASE), 1),
    (re.compile(r'^As a \w+, I can help you[^.]*\.\s*', re.IGNORECASE), 1),
    # model/key metadata
    (re.compile(r'This response was generated using[^.]*\.\s*'), 0),
    (re.compile(r'using key #\d+[^.]*\.\s*'), 0),
    # debug tags
    (re.compile(r'\(Model: [^)]+\)'), 0),
    (re.compile(r'\[Key \d+ of \d+\]'), 0),
    # assistant prefixes
    (re.compile(r"^(I'll help you|Let me help you|I can assist you)[^.]*\.\s*", re.IGNORECASE), 1),
    (re.compile(r"^(Here's|Here are)[^:]*:\s*", re.IGNORECASE), 1),
    # acknowledgments
    (re.compile(r'^(Certainly|Of course|Sure|Absolutely)[,!.]\s*', re.IGNORECASE), 1),
]


def clean_ai_response(response):
    """Strip echo, metadata and filler prefixes from a model reply"""
    cleaned = response or ''
    for pattern, count in _CLEANUP_PATTERNS:
        cleaned = pattern.sub('', cleaned, count=count)
    return cleaned.strip()


def strip_code_fences(text):
    """Remove a surrounding Markdown code fence (```json ... ```)"""
    cleaned = (text or '').strip()
    cleaned = CODE_FENCE_START.sub('', cleaned, count=1)
    cleaned = CODE_FENCE_END.sub('', cleaned, count=1)
    return cleaned.strip()


def try_parse_json(text):
    """Parsed JSON value, or None if the text is not JSON"""
    try:
        return json.loads(text)
    except (TypeError, ValueError):
        return None


# ===== SETTINGS & KEYS =====

def validate_ai_settings(settings) -> Tuple[bool, Optional[str]]:
    if not settings:
        return False, 'AI settings not found'
    if not settings.api_keys:
        return False, 'No API keys configured'
    if not settings.model or settings.model.strip() == '':
        return False, 'AI model not set'
    return True, None


def validate_api_key(key) -> bool:
    """Format check only: no liveness check"""
    if not key or not isinstance(key, str):
        return False
    if len(key) < 10:
        return False
    return key.startswith('sk-')


# ===== OPENROUTER CALL =====

def call_openrouter_api(api_key, model, messages, timeout=DEFAULT_TIMEOUT, url=OPENROUTER_URL,
                        referer='http://localhost', temperature=0.7, max_tokens=1000):
    """
    POST a chat-completion request and return the assistant's text.

    Raises:
        AIProviderError: non-2xx response (status, message, details)
        AITimeoutError: no answer within `timeout` seconds
        AIResponseFormatError: body without choices[0].message
    """
    headers = {
        'Authorization': f'Bearer {api_key}',
        'Content-Type': 'application/json',
        'HTTP-Referer': referer,
        'X-Title': APP_TITLE,
    }
    payload = {
        'model': model,
        'messages': messages,
        'temperature': temperature,
        'max_tokens': max_tokens,
        'stream': False,
    }

    try:
        response = requests.post(url, headers=headers, json=payload, timeout=timeout)
    except requests.exceptions.Timeout:
        raise AITimeoutError('Request timeout')

    if not response.ok:
        try:
            error_data = response.json()
        except ValueError:
            error_data = {}
        if not isinstance(error_data, dict):
            error_data = {}
        error_info = error_data.get('error')
        message = error_info.get('message') if isinstance(error_info, dict) else None
        raise AIProviderError(
            response.status_code,
            message or f"HTTP {response.status_code}: {response.reason}",
            error_data,
        )

    try:
        data = response.json()
    except ValueError:
        raise AIResponseFormatError()

    choices = data.get('choices') if isinstance(data, dict) else None
    if not choices or not isinstance(choices[0], dict) or not choices[0].get('message'):
        raise AIResponseFormatError()

    return choices[0]['message'].get('content') or 'No response content received'


def handle_ai_error(error, key_index):
    """One-line message for a failed request, with the 1-based key number"""
    number = key_index + 1
    status = getattr(error, 'status', None)
    if status == 401:
        return f"Key #{number} authentication failed"
    if status == 403:
        return f"Key #{number} access denied"
    if status == 429:
        return f"Key #{number} rate limited"
    if status == 500:
        return f"Key #{number} server error"
    if isinstance(error, AITimeoutError):
        return f"Key #{number} request timeout"
    message = getattr(error, 'message', None) or str(error) or 'Unknown error'
    return f"Key #{number} failed: {message}"


# ===== KEY ROTATION =====

@dataclass(frozen=True)
class KeyAttempt:
    index: int
    key: str

    @property
    def has_valid_format(self):
        return validate_api_key(self.key)


class KeyRotation:
    """
    Each configured key exactly once, beginning at start_index and wrapping.

        >>> [a.index for a in KeyRotation(['a', 'b', 'c'], start_index=1)]
        [1, 2, 0]
    """

    def __init__(self, keys, start_index=0):
        self.keys = list(keys or [])
        self.start_index = start_index % len(self.keys) if self.keys else 0

    def __len__(self):
        return len(self.keys)

    def __iter__(self):
        count = len(self.keys)
        for offset in range(count):
            index = (self.start_index + offset) % count
            yield KeyAttempt(index, self.keys[index])


@dataclass
class RotationResult:
    success: bool
    key_index: Optional[int] = None
    value: object = None
    failures: List[str] = field(default_factory=list)

    @property
    def exhausted(self):
        return not self.success


def rotate_keys(keys, start_index, attempt) -> RotationResult:
    """
    Call attempt(key, index) with each key in rotation order until one succeeds.

    Keys with an invalid format are skipped without a request. Any exception from
    attempt() moves on to the next key. When every key has been tried the result
    has success=False and lists why each key failed.
    """
    failures = []
    for candidate in KeyRotation(keys, start_index):
        if not candidate.has_valid_format:
            failures.append(f"Key #{candidate.index + 1} has invalid format")
            continue
        try:
            value = attempt(candidate.key, candidate.index)
        except Exception as e:
            message = handle_ai_error(e, candidate.index)
            logger.warning(f"⚠️ {message}. Trying next key...")
            failures.append(message)
            continue
        return RotationResult(True, candidate.index, value, failures)

    logger.error(f"All {len(keys or [])} AI keys failed")
    return RotationResult(False, failures=failures)


# ===== DATA FOR CREATOR COMMANDS =====

def get_users_count(session):
    from models import User
    return session.query(User).count()


def get_active_classes_count(session):
    from timetable_models import ClassSession, ClassSessionStatusEnum
    return session.query(ClassSession).filter_by(status=ClassSessionStatusEnum.ACTIVE).count()


def get_today_attendance_stats(session, today=None):
    """Every teacher falls in exactly one of present / break / absent / noCheckin"""
    from models import User, ROLE_TEACHER
    from teacher_models import AttendanceLog

    today = today or date.today()
    teacher_ids = [row.id for row in session.query(User.id).filter(User.role == ROLE_TEACHER).all()]
    status_by_teacher = {
        log.teacher_id: log.status.value
        for log in session.query(AttendanceLog).filter(AttendanceLog.date == today).all()
    }

    stats = {'present': 0, 'break': 0, 'absent': 0, 'noCheckin': 0}
    for teacher_id in teacher_ids:
        status = status_by_teacher.get(teacher_id)
        if status in ('present', 'break', 'absent'):
            stats[status] += 1
        else:
            stats['noCheckin'] += 1
    return stats


def get_schedule_stats(session, today=None):
    from timetable_models import Schedule

    today = today or date.today()
    weekday = today.strftime('%A')
    return {
        'totalSchedules': session.query(Schedule).count(),
        'todaySchedules': session.query(Schedule).filter(Schedule.day == weekday).count(),
    }


def add_user_via_ai(session, name, email, password_raw, role):
    """Create a non-creator user from an AI command. Returns a ✅/❌ message."""
    from models import User

    if not name or not email or not password_raw or not role:
        return '❌ Error: Missing required fields (name, email, password, role)'

    if role not in AI_USER_ROLES:
        return f'❌ Error: Invalid role "{role}". Valid roles: {", ".join(AI_USER_ROLES)}'

    if not EMAIL_REGEX.match(email):
        return '❌ Error: Invalid email format'

    try:
        user = User(name=name.strip(), email=email.strip().lower(), role=role)
        user.set_password(password_raw)
        session.add(user)
        session.commit()
    except IntegrityError:
        session.rollback()
        return f'❌ Error: Failed to create user - email "{email.strip().lower()}" is already registered'
    except Exception as e:
        session.rollback()
        logger.error(f"Add user via AI error: {e}")
        return f'❌ Error: Failed to create user - {e}'

    logger.info(f"✅ AI created user {user.email} ({role})")
    return f'✅ Success: User "{name}" created successfully with role "{role}"'


def handle_creator_command(session, command, api_key, model, original_messages, call_api=None):
    """
    Run one Creator tool command.

    addUser answers directly. The data commands produce a tool output which is
    sent back to the model (command as the assistant turn, output as the user
    turn) for a natural-language reply.
    """
    call_api = call_api or call_openrouter_api
    name = command.get('command')

    try:
        if name == 'addUser':
            return add_user_via_ai(session, command.get('name'), command.get('email'),
                                   command.get('password'), command.get('role'))
        elif name == 'getUsersCount':
            tool_result = f"Tool output: Total users in system: {get_users_count(session)}"
        elif name == 'getActiveClassesCount':
            tool_result = f"Tool output: Active classes currently in session: {get_active_classes_count(session)}"
        elif name == 'getTodayAttendanceStats':
            stats = get_today_attendance_stats(session)
            tool_result = (
                f"Tool output: Today's attendance - Present: {stats['present']}, On Break: {stats['break']}, "
                f"Absent: {stats['absent']}, No Check-in: {stats['noCheckin']}"
            )
        elif name == 'getScheduleStats':
            stats = get_schedule_stats(session)
            tool_result = (
                f"Tool output: Total schedules: {stats['totalSchedules']}, "
                f"Today's schedules: {stats['todaySchedules']}"
            )
        else:
            return f"❌ Unknown command: {name}"

        enhanced_messages = list(original_messages) + [
            {'role': 'assistant', 'content': json.dumps(command)},
            {'role': 'user', 'content': tool_result},
        ]
        return clean_ai_response(call_api(api_key, model, enhanced_messages))

    except Exception as e:
        logger.error(f"Command execution error: {e}")
        message = getattr(e, 'message', None) or str(e) or 'Unknown error'
        return f"❌ Error executing command: {message}"


# ===== PERFORMANCE =====

class PerformanceMonitor:
    """Elapsed milliseconds since construction"""

    def __init__(self):
        self.start = time.perf_counter()

    def checkpoint(self, label=None):
        elapsed = (time.perf_counter() - self.start) * 1000
        if label:
            logger.debug(f"[AI Performance] {label}: {elapsed:.2f}ms")
        return elapsed

    def end(self):
        return (time.perf_counter() - self.start) * 1000
