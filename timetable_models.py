"""
Timetable Models
Weekly recurring class slots and the live class sessions started from them
"""

from sqlalchemy import Column, String, DateTime, ForeignKey, Enum, Index
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from models import Base, new_uuid


# ===== CONSTANTS =====

SCHOOL_DAYS = ['Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday']
CLASS_LEVELS = ['Pre-K', 'K1', 'K2', 'P1', 'P2', 'P3', 'P4', 'P5', 'P6']
SUBJECTS = ['English', 'Mathematics', 'Science', 'Social Studies', 'Art', 'Music', 'Physical Education']

# Columns an UpdateSchedule command may touch
SCHEDULE_FIELDS = ('day', 'time', 'level', 'subject', 'teacher_id')


# ===== ENUMS =====

class ClassSessionStatusEnum(enum.Enum):
    ACTIVE = 'active'
    COMPLETED = 'completed'


# ===== MODELS =====

class Schedule(Base):
    """One weekly recurring class slot"""
    __tablename__ = 'schedules'
    __table_args__ = (
        Index('idx_schedule_day_time', 'day', 'time'),
        Index('idx_schedule_teacher', 'teacher_id'),
    )

    id = Column(String(36), primary_key=True, default=new_uuid)
    day = Column(String(20), nullable=False)
    time = Column(String(5), nullable=False)  # HH:MM
    level = Column(String(20), nullable=False)
    subject = Column(String(100), nullable=False)
    teacher_id = Column(String(36), ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    teacher = relationship('User')

    def __repr__(self):
        return f"<Schedule {self.day} {self.time} {self.level} {self.subject}>"

    def to_dict(self):
        return {
            'id': self.id,
            'day': self.day,
            'time': self.time,
            'level': self.level,
            'subject': self.subject,
            'teacher_id': self.teacher_id,
            'teacher_name': self.teacher.name if self.teacher else None,
        }


class ClassSession(Base):
    """A scheduled class that a teacher has actually started"""
    __tablename__ = 'class_sessions'
    __table_args__ = (
        Index('idx_session_teacher_status', 'teacher_id', 'status'),
    )

    id = Column(String(36), primary_key=True, default=new_uuid)
    teacher_id = Column(String(36), ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    schedule_id = Column(String(36), ForeignKey('schedules.id', ondelete='SET NULL'), nullable=True)
    class_level = Column(String(20), nullable=False)
    subject = Column(String(100), nullable=False)
    start_time = Column(DateTime, nullable=False, default=datetime.utcnow)
    end_time = Column(DateTime, nullable=True)
    status = Column(Enum(ClassSessionStatusEnum, values_callable=lambda obj: [e.value for e in obj]),
                    default=ClassSessionStatusEnum.ACTIVE, nullable=False)

    teacher = relationship('User')

    def __repr__(self):
        return f"<ClassSession {self.class_level} {self.subject} status={self.status.value}>"

    @property
    def duration_minutes(self):
        """Whole minutes between start and end (or None while still running)"""
        if not self.end_time or not self.start_time:
            return None
        return round((self.end_time - self.start_time).total_seconds() / 60)

    def minutes_active(self, now=None):
        now = now or datetime.utcnow()
        return round((now - self.start_time).total_seconds() / 60)

    def to_dict(self):
        return {
            'id': self.id,
            'teacher_id': self.teacher_id,
            'teacher_name': self.teacher.name if self.teacher else None,
            'schedule_id': self.schedule_id,
            'class_level': self.class_level,
            'subject': self.subject,
            'start_time': self.start_time.isoformat() if self.start_time else None,
            'end_time': self.end_time.isoformat() if self.end_time else None,
            'status': self.status.value,
            'duration_minutes': self.duration_minutes,
        }
