"""
Teacher activity models
Daily attendance logs and behavior incident reports filed by teachers
"""

from sqlalchemy import Column, String, Text, DateTime, Date, ForeignKey, Enum, Index, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from models import Base, new_uuid


class AttendanceStatusEnum(enum.Enum):
    PRESENT = 'present'
    BREAK = 'break'
    ABSENT = 'absent'


# Shown when a teacher has no attendance row for the day
NO_CHECKIN = 'no-checkin'

STATUS_LABELS = {
    'present': 'Present',
    'break': 'On Break',
    'absent': 'Absent',
    NO_CHECKIN: 'No Check-in',
}


class AttendanceLog(Base):
    """One row per teacher per day"""
    __tablename__ = 'attendance_logs'
    __table_args__ = (
        UniqueConstraint('teacher_id', 'date', name='unique_teacher_date'),
        Index('idx_attendance_date', 'date'),
    )

    id = Column(String(36), primary_key=True, default=new_uuid)
    teacher_id = Column(String(36), ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    date = Column(Date, nullable=False)
    status = Column(Enum(AttendanceStatusEnum, values_callable=lambda obj: [e.value for e in obj]), nullable=False)
    remarks = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    teacher = relationship('User')

    def __repr__(self):
        return f"<AttendanceLog teacher={self.teacher_id} {self.date} {self.status.value}>"

    def to_dict(self):
        return {
            'id': self.id,
            'teacher_id': self.teacher_id,
            'date': self.date.isoformat(),
            'status': self.status.value,
            'remarks': self.remarks,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class BehaviorReport(Base):
    """Append-only student incident report"""
    __tablename__ = 'behavior_reports'
    __table_args__ = (
        Index('idx_behavior_created', 'created_at'),
        Index('idx_behavior_teacher', 'teacher_id'),
    )

    id = Column(String(36), primary_key=True, default=new_uuid)
    student_name = Column(String(120), nullable=False)
    class_level = Column(String(20), nullable=False)
    incident = Column(Text, nullable=False)
    action_taken = Column(Text, nullable=False)
    teacher_id = Column(String(36), ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    teacher = relationship('User')

    def __repr__(self):
        return f"<BehaviorReport {self.student_name} ({self.class_level})>"

    def to_dict(self):
        return {
            'id': self.id,
            'student_name': self.student_name,
            'class_level': self.class_level,
            'incident': self.incident,
            'action_taken': self.action_taken,
            'teacher_id': self.teacher_id,
            'teacher_name': self.teacher.name if self.teacher else 'Unknown Teacher',
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
