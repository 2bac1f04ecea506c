"""
Leave Management Models
Single-day annual leave applications and per-teacher leave balances
"""

from sqlalchemy import Column, Integer, String, Text, DateTime, Date, ForeignKey, Enum, Index
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from models import Base, new_uuid


class LeaveTypeEnum(enum.Enum):
    """Leave type enumeration"""
    ANNUAL = "Annual"
    MEDICAL = "Medical"
    EMERGENCY = "Emergency"
    SICK = "Sick"
    MATERNITY = "Maternity"
    PATERNITY = "Paternity"
    UNPAID = "Unpaid"
    OTHER = "Other"


class LeaveStatusEnum(enum.Enum):
    """Leave application status enumeration"""
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    CANCELLED = "Cancelled"


# Statuses that block another application on the same date
BLOCKING_STATUSES = (LeaveStatusEnum.PENDING, LeaveStatusEnum.APPROVED)


class TeacherLeaveBalance(Base):
    """Annual leave entitlement for one teacher"""
    __tablename__ = 'teacher_leave_balances'

    id = Column(String(36), primary_key=True, default=new_uuid)
    teacher_id = Column(String(36), ForeignKey('users.id', ondelete='CASCADE'), unique=True, nullable=False)
    total_leaves = Column(Integer, nullable=False, default=14)
    used_leaves = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    teacher = relationship('User')

    def __repr__(self):
        return f"<TeacherLeaveBalance teacher_id={self.teacher_id} {self.used_leaves}/{self.total_leaves}>"

    @property
    def remaining_leaves(self):
        # never stored
        return (self.total_leaves or 0) - (self.used_leaves or 0)

    def to_dict(self):
        return {
            'teacher_id': self.teacher_id,
            'teacher_name': self.teacher.name if self.teacher else None,
            'total_leaves': self.total_leaves,
            'used_leaves': self.used_leaves,
            'remaining_leaves': self.remaining_leaves,
        }


class AnnualLeaveApplication(Base):
    """Teacher leave application with approval workflow"""
    __tablename__ = 'annual_leave_applications'
    __table_args__ = (
        Index('idx_leave_teacher_date', 'teacher_id', 'leave_date'),
        Index('idx_leave_status', 'status', 'created_at'),
    )

    id = Column(String(36), primary_key=True, default=new_uuid)
    teacher_id = Column(String(36), ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    leave_date = Column(Date, nullable=False)
    leave_type = Column(Enum(LeaveTypeEnum, values_callable=lambda obj: [e.value for e in obj]),
                        nullable=False, default=LeaveTypeEnum.ANNUAL)
    reason = Column(Text, nullable=True)

    # Approval Workflow
    status = Column(Enum(LeaveStatusEnum, values_callable=lambda obj: [e.value for e in obj]),
                    nullable=False, default=LeaveStatusEnum.PENDING)
    reviewed_by = Column(String(36), ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    decision_time = Column(DateTime, nullable=True)
    reviewer_notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    teacher = relationship('User', foreign_keys=[teacher_id])
    reviewer = relationship('User', foreign_keys=[reviewed_by])

    def __repr__(self):
        return f"<AnnualLeaveApplication id={self.id} teacher_id={self.teacher_id} date={self.leave_date} status={self.status.value}>"

    @property
    def status_badge_class(self):
        """Get Bootstrap badge class for status"""
        badge_map = {
            LeaveStatusEnum.PENDING: 'warning',
            LeaveStatusEnum.APPROVED: 'success',
            LeaveStatusEnum.REJECTED: 'danger',
            LeaveStatusEnum.CANCELLED: 'secondary'
        }
        return badge_map.get(self.status, 'secondary')

    def to_dict(self):
        return {
            'id': self.id,
            'teacher_id': self.teacher_id,
            'teacher_name': self.teacher.name if self.teacher else None,
            'leave_date': self.leave_date.isoformat(),
            'leave_type': self.leave_type.value,
            'reason': self.reason,
            'status': self.status.value,
            'status_badge': self.status_badge_class,
            'reviewed_by': self.reviewed_by,
            'reviewer_name': self.reviewer.name if self.reviewer else None,
            'decision_time': self.decision_time.isoformat() if self.decision_time else None,
            'reviewer_notes': self.reviewer_notes,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
