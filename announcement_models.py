"""
Announcement and calendar event models
"""

from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, ForeignKey, Index, JSON
from sqlalchemy.orm import relationship
from datetime import datetime

from models import Base, new_uuid


URGENCY_LEVELS = {'low': 0, 'normal': 1, 'high': 2, 'critical': 3}
URGENCY_LABELS = {rank: name for name, rank in URGENCY_LEVELS.items()}


class Announcement(Base):
    __tablename__ = 'announcements'
    __table_args__ = (
        Index('idx_announcement_expiry', 'expires_at'),
    )

    id = Column(String(36), primary_key=True, default=new_uuid)
    title = Column(String(200), nullable=False)
    body = Column(Text, nullable=False)
    audience = Column(JSON, nullable=False, default=list)  # role names; empty means everyone
    urgency = Column(Integer, nullable=False, default=1)
    expires_at = Column(DateTime, nullable=True)
    creator_id = Column(String(36), ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    creator = relationship('User')

    def __repr__(self):
        return f"<Announcement {self.title!r} urgency={self.urgency}>"

    def is_visible_to(self, role):
        return not self.audience or role in self.audience

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'body': self.body,
            'audience': list(self.audience or []),
            'urgency': self.urgency,
            'urgency_label': URGENCY_LABELS.get(self.urgency, 'normal'),
            'expires_at': self.expires_at.isoformat() if self.expires_at else None,
            'creator_id': self.creator_id,
            'creator_name': self.creator.name if self.creator else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class Event(Base):
    """School calendar event"""
    __tablename__ = 'events'
    __table_args__ = (
        Index('idx_event_range', 'start_time', 'end_time'),
    )

    id = Column(String(36), primary_key=True, default=new_uuid)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    event_type = Column(String(50), nullable=False, default='general')
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    location = Column(String(200), nullable=True)
    is_all_day = Column(Boolean, default=False)
    audience = Column(JSON, nullable=False, default=list)
    created_by = Column(String(36), ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Event {self.title!r} {self.start_time}>"

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'event_type': self.event_type,
            'start_time': self.start_time.isoformat(),
            'end_time': self.end_time.isoformat(),
            'location': self.location,
            'is_all_day': self.is_all_day,
            'audience': list(self.audience or []),
            'created_by': self.created_by,
        }
