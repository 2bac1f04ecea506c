"""
AI assistant conversation service

One AIAssistant per request: it loads the caller's stored conversation, checks
gateway settings and role access, runs the key rotation against the chat
provider and stores the exchange. Replies are classified so the dashboards can
route a command batch into the review pipeline or a single schedule into the
schedule form.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from functools import partial
from typing import Any, Callable, List, Optional
import logging

from ai_helpers import (
    call_openrouter_api, clean_ai_response, get_system_prompt_by_role, handle_creator_command,
    rotate_keys, strip_code_fences, try_parse_json, validate_ai_settings, PerformanceMonitor
)
from chat_models import AISettings, AIConversation, AIMessage, MessageRoleEnum
from config import Config
from models import ROLE_CREATOR

logger = logging.getLogger(__name__)

KIND_TEXT = 'text'
KIND_COMMANDS = 'commands'
KIND_SCHEDULE = 'schedule'

SCHEDULE_KEYS = ('day', 'time', 'level', 'subject', 'teacher_id')

ALL_KEYS_FAILED_MESSAGE = 'All AI keys failed. Please contact Creator - Shan'
ROLE_BLOCKED_MESSAGE = 'AI not available for this role. Please contact Creator - Shan'

CONFIG_EXTENSION_KEY = 'edusync_config'
TRANSPORT_EXTENSION_KEY = 'edusync_ai_transport'


@dataclass
class ChatReply:
    success: bool
    content: Optional[str] = None
    kind: str = KIND_TEXT
    payload: Any = None
    cached: bool = False
    key_index: Optional[int] = None
    elapsed_ms: Optional[float] = None
    notices: List[str] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self):
        data = {
            'success': self.success,
            'content': self.content,
            'kind': self.kind,
            'payload': self.payload,
            'cached': self.cached,
            'notices': list(self.notices),
        }
        if self.key_index is not None:
            data['key_index'] = self.key_index
        if self.elapsed_ms is not None:
            data['elapsed_ms'] = round(self.elapsed_ms)
        if self.error:
            data['error'] = self.error
        return data


def classify_reply(content):
    """
    ('commands', list) for an array whose items all carry `command`,
    ('schedule', dict) for one complete schedule object, otherwise ('text', None).
    """
    parsed = try_parse_json(strip_code_fences(content))
    if isinstance(parsed, list) and parsed and all(
        isinstance(item, dict) and item.get('command') for item in parsed
    ):
        return KIND_COMMANDS, parsed
    if isinstance(parsed, dict) and all(parsed.get(key) for key in SCHEDULE_KEYS):
        return KIND_SCHEDULE, parsed
    return KIND_TEXT, None


def permission_denied_message(role):
    return (
        "❌ Permission denied: Only the Creator can execute system commands. "
        f"Your role ({role}) does not have sufficient privileges."
    )


class AIAssistant:
    """Chat with the configured model on behalf of one user"""

    def __init__(self, db_session, user, config=None, transport: Optional[Callable] = None,
                 teacher_names=None, debounce_seconds=None):
        self.session = db_session
        self.user = user
        self.config = config or Config
        self.teacher_names = teacher_names
        self.debounce_seconds = (
            self.config.AI_DEBOUNCE_SECONDS if debounce_seconds is None else debounce_seconds
        )
        self.transport = transport or partial(
            call_openrouter_api,
            timeout=self.config.AI_REQUEST_TIMEOUT,
            url=self.config.OPENROUTER_URL,
            referer=self.config.AI_APP_REFERER,
            temperature=self.config.AI_TEMPERATURE,
            max_tokens=self.config.AI_MAX_TOKENS,
        )

    @classmethod
    def for_app(cls, db_session, user, app=None, **kwargs):
        """Assistant wired to the Flask app's config and (optional) injected transport"""
        from flask import current_app
        app = app or current_app
        kwargs.setdefault('transport', app.extensions.get(TRANSPORT_EXTENSION_KEY))
        return cls(db_session, user, app.extensions[CONFIG_EXTENSION_KEY], **kwargs)

    # ===== CONVERSATION STORAGE =====

    def _conversation(self, create=True):
        conversation = self.session.query(AIConversation).filter_by(user_id=self.user.id).first()
        if not conversation and create:
            conversation = AIConversation(user_id=self.user.id)
            self.session.add(conversation)
            self.session.flush()
        return conversation

    def _add_message(self, conversation, role, content, prompt=None):
        message = AIMessage(conversation_id=conversation.id, role=role, content=content, prompt=prompt)
        self.session.add(message)
        conversation.messages.append(message)
        return message

    def history(self):
        conversation = self._conversation(create=False)
        if not conversation:
            return []
        return [m.to_dict() for m in conversation.messages]

    def reset(self):
        """Drop the stored conversation (and with it the response cache)"""
        conversation = self._conversation(create=False)
        if not conversation:
            return True, 'Chat cleared'
        try:
            self.session.delete(conversation)
            self.session.commit()
            logger.info(f"AI conversation cleared for {self.user.id}")
            return True, 'Chat cleared'
        except Exception as e:
            self.session.rollback()
            logger.error(f"Error clearing AI conversation: {e}")
            return False, 'Please contact Creator - Shan'

    # ===== SEND =====

    def _debounced(self, conversation, now):
        if not self.debounce_seconds or not conversation.last_message_at:
            return False
        return now - conversation.last_message_at < timedelta(seconds=self.debounce_seconds)

    def _cached_reply(self, conversation, prompt):
        for message in reversed(conversation.messages):
            if message.role == MessageRoleEnum.ASSISTANT and message.prompt == prompt:
                return message.content
        return None

    def _api_messages(self, conversation, user_input):
        system_prompt = get_system_prompt_by_role(self.user.role, self.teacher_names)
        history = [m.to_api_message() for m in conversation.messages if m.role != MessageRoleEnum.SYSTEM]
        return [{'role': 'system', 'content': system_prompt}] + history + [
            {'role': 'user', 'content': user_input}
        ]

    def _finish(self, content, **extra):
        kind, payload = classify_reply(content)
        return ChatReply(success=True, content=content, kind=kind, payload=payload, **extra)

    def send(self, user_input, trigger=False) -> ChatReply:
        """
        Send one user message.

        `trigger` marks dashboard-initiated prompts (schedule generation, school
        insights): they skip the debounce and the response cache.
        """
        prompt = user_input.strip() if isinstance(user_input, str) else ''
        if not prompt:
            return ChatReply(success=False, error='Message cannot be empty')

        now = datetime.utcnow()
        conversation = self._conversation()

        if not trigger:
            if self._debounced(conversation, now):
                return ChatReply(success=False, error='Please wait before sending another message')

            cached = self._cached_reply(conversation, prompt)
            if cached is not None:
                self._add_message(conversation, MessageRoleEnum.USER, user_input)
                self._add_message(conversation, MessageRoleEnum.ASSISTANT, cached, prompt=prompt)
                conversation.last_message_at = now
                self.session.commit()
                return self._finish(cached, cached=True)

        settings = self.session.query(AISettings).first()
        is_valid, error = validate_ai_settings(settings)
        if not is_valid:
            self.session.commit()
            return ChatReply(success=False, error=f"❌ {error}. Please contact Creator - Shan")

        if not (settings.access_level or {}).get(self.user.role):
            self.session.commit()
            return ChatReply(success=False, error=ROLE_BLOCKED_MESSAGE)

        conversation.last_message_at = now
        api_messages = self._api_messages(conversation, user_input)
        monitor = PerformanceMonitor()

        def attempt(key, index):
            monitor.checkpoint(f"Starting request with key {index + 1}")
            response = self.transport(key, settings.model, api_messages)
            monitor.checkpoint(f"API response received from key {index + 1}")
            return self._interpret(response, key, settings.model, api_messages)

        result = rotate_keys(settings.api_keys, settings.current_index or 0, attempt)
        if result.exhausted:
            self.session.commit()
            return ChatReply(success=False, error=ALL_KEYS_FAILED_MESSAGE, notices=result.failures)

        try:
            settings.current_index = result.key_index
            self._add_message(conversation, MessageRoleEnum.USER, user_input)
            self._add_message(conversation, MessageRoleEnum.ASSISTANT, result.value, prompt=prompt)
            self.session.commit()
        except Exception as e:
            self.session.rollback()
            logger.error(f"Error saving AI conversation: {e}")

        elapsed = monitor.end()
        logger.info(f"✅ AI reply for {self.user.role} via key #{result.key_index + 1} ({elapsed:.0f}ms)")
        return self._finish(result.value, key_index=result.key_index, elapsed_ms=elapsed,
                            notices=result.failures)

    def _interpret(self, response, key, model, api_messages):
        """Run Creator commands, refuse them for everyone else, clean plain text"""
        parsed = try_parse_json((response or '').strip())
        if isinstance(parsed, dict) and parsed.get('command'):
            if self.user.role == ROLE_CREATOR:
                return handle_creator_command(self.session, parsed, key, model, api_messages,
                                              call_api=self.transport)
            return permission_denied_message(self.user.role)
        return clean_ai_response(response)
