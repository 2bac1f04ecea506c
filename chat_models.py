"""
AI assistant models
Gateway settings, the per-user assistant conversation and the AI command error log
"""

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Enum, Index, JSON
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from models import Base, new_uuid


DEFAULT_ACCESS_LEVEL = {
    'creator': True,
    'admin': True,
    'head': True,
    'teacher': False,
}


# ===== ENUMS =====

class MessageRoleEnum(enum.Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


# ===== AI SETTINGS =====

class AISettings(Base):
    """Singleton row holding the gateway configuration. Only the Creator changes it."""
    __tablename__ = 'ai_settings'

    id = Column(String(36), primary_key=True, default=new_uuid)
    api_keys = Column(JSON, nullable=False, default=list)
    current_index = Column(Integer, nullable=False, default=0)
    model = Column(String(200), nullable=False, default='')
    access_level = Column(JSON, nullable=False, default=lambda: dict(DEFAULT_ACCESS_LEVEL))
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<AISettings keys={len(self.api_keys or [])} model={self.model!r} index={self.current_index}>"

    def to_dict(self, mask_keys=True):
        keys = list(self.api_keys or [])
        if mask_keys:
            keys = [mask_api_key(k) for k in keys]
        return {
            'id': self.id,
            'api_keys': keys,
            'current_index': self.current_index,
            'model': self.model,
            'access_level': dict(self.access_level or {}),
        }


def mask_api_key(key):
    if not key or len(key) <= 10:
        return '***'
    return f"{key[:6]}...{key[-4:]}"


# ===== AI COMMAND ERROR LOG =====

class AICommandError(Base):
    """Raw AI command payloads that failed to parse, validate or execute"""
    __tablename__ = 'ai_command_errors'
    __table_args__ = (
        Index('idx_ai_errors_created', 'created_at'),
    )

    id = Column(String(36), primary_key=True, default=new_uuid)
    command_json = Column(JSON, nullable=True)
    error_message = Column(Text, nullable=False)
    user_role = Column(String(20), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<AICommandError role={self.user_role} {self.error_message[:40]!r}>"

    def to_dict(self):
        return {
            'id': self.id,
            'command_json': self.command_json,
            'error_message': self.error_message,
            'user_role': self.user_role,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


# ===== ASSISTANT CONVERSATION =====

class AIConversation(Base):
    """One running assistant conversation per user"""
    __tablename__ = 'ai_conversations'

    id = Column(String(36), primary_key=True, default=new_uuid)
    user_id = Column(String(36), ForeignKey('users.id', ondelete='CASCADE'), unique=True, nullable=False)
    last_message_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    messages = relationship("AIMessage", back_populates="conversation", cascade="all, delete-orphan",
                            order_by="AIMessage.id")

    def __repr__(self):
        return f"<AIConversation id={self.id} user={self.user_id}>"


class AIMessage(Base):
    __tablename__ = 'ai_messages'
    __table_args__ = (
        Index('idx_ai_msg_conversation', 'conversation_id'),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    conversation_id = Column(String(36), ForeignKey('ai_conversations.id', ondelete='CASCADE'), nullable=False)
    role = Column(Enum(MessageRoleEnum, values_callable=lambda obj: [e.value for e in obj]), nullable=False)
    content = Column(Text, nullable=False)
    # For assistant turns: the trimmed user input this reply answered (response cache key)
    prompt = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    conversation = relationship("AIConversation", back_populates="messages")

    def __repr__(self):
        return f"<AIMessage id={self.id} role={self.role.value}>"

    def to_api_message(self):
        return {'role': self.role.value, 'content': self.content}

    def to_dict(self):
        return {
            'id': self.id,
            'role': self.role.value,
            'content': self.content,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
