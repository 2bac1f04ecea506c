"""
Core EduSync models
Users, system-wide flags and feedback. Feature models live in the *_models modules.
"""

import uuid
from datetime import datetime

from sqlalchemy import Column, String, Text, DateTime, Boolean, Index
from sqlalchemy.orm import declarative_base
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

Base = declarative_base()


def new_uuid():
    return str(uuid.uuid4())


# ===== ROLES =====
ROLE_CREATOR = 'creator'
ROLE_ADMIN = 'admin'
ROLE_HEAD = 'head'
ROLE_TEACHER = 'teacher'

ROLES = (ROLE_CREATOR, ROLE_ADMIN, ROLE_HEAD, ROLE_TEACHER)
STAFF_ROLES = (ROLE_ADMIN, ROLE_HEAD, ROLE_TEACHER)

ROLE_HIERARCHY = {
    ROLE_CREATOR: 4,
    ROLE_ADMIN: 3,
    ROLE_HEAD: 2,
    ROLE_TEACHER: 1,
}


# ===== USER MODEL =====
class User(Base, UserMixin):
    __tablename__ = 'users'
    __table_args__ = (
        Index('idx_users_role', 'role'),
    )

    id = Column(String(36), primary_key=True, default=new_uuid)
    name = Column(String(120), nullable=False)
    email = Column(String(120), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default=ROLE_TEACHER)
    created_at = Column(DateTime, default=datetime.utcnow)

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    def has_role_at_least(self, role):
        return ROLE_HIERARCHY.get(self.role, 0) >= ROLE_HIERARCHY.get(role, 99)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'role': self.role,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f'<User {self.email} ({self.role})>'


# ===== SYSTEM FLAGS =====
MAINTENANCE_FLAG = 'maintenance_mode'
DEFAULT_LEAVES_FLAG = 'default_annual_leaves'


class SystemFlag(Base):
    """Named switches and values shared across the whole system"""
    __tablename__ = 'system_flags'

    id = Column(String(36), primary_key=True, default=new_uuid)
    key = Column(String(100), unique=True, nullable=False)
    is_active = Column(Boolean, default=False, nullable=False)
    value = Column(String(255), nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f'<SystemFlag {self.key} active={self.is_active} value={self.value}>'

    def to_dict(self):
        return {
            'key': self.key,
            'is_active': self.is_active,
            'value': self.value,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }


# ===== FEEDBACK =====
class Feedback(Base):
    __tablename__ = 'feedbacks'

    id = Column(String(36), primary_key=True, default=new_uuid)
    reporter_name = Column(String(120), nullable=False)
    message = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'reporter_name': self.reporter_name,
            'message': self.message,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
