"""
User & Session Models
"""
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from stockdesk.core import Base
from .base import UUIDMixin, TimestampMixin
from .enums import UserRole

class User(Base, UUIDMixin, TimestampMixin):
    """Application user"""
    __tablename__ = "users"
    
    username = Column(String(100), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), default=UserRole.USER.value, nullable=False)  # admin, user
    
    # Relationships
    sessions = relationship("UserSession", back_populates="user", cascade="all, delete-orphan")

class UserSession(Base, UUIDMixin, TimestampMixin):
    """Server-side login session; the JWT carries its refresh_token"""
    __tablename__ = "sessions"
    
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    refresh_token = Column(String(128), unique=True, nullable=False, index=True)
    user_agent = Column(Text)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    last_activity_at = Column(DateTime(timezone=True), nullable=False)
    
    # Relationships
    user = relationship("User", back_populates="sessions")

class LoginAttempt(Base, UUIDMixin):
    """Failed login counter per (username, ip)"""
    __tablename__ = "login_attempts"
    __table_args__ = (
        UniqueConstraint("username", "ip", name="uq_login_attempts_username_ip"),
    )
    
    username = Column(String(100), nullable=False)
    ip = Column(String(64), nullable=False)
    attempts = Column(Integer, default=0, nullable=False)
    locked_until = Column(DateTime(timezone=True))
    last_attempt_at = Column(DateTime(timezone=True), nullable=False)

class RateLimit(Base, UUIDMixin):
    """Login request window per ip"""
    __tablename__ = "rate_limits"
    
    ip = Column(String(64), unique=True, nullable=False, index=True)
    count = Column(Integer, default=0, nullable=False)
    window_start = Column(DateTime(timezone=True), nullable=False)
    locked_until = Column(DateTime(timezone=True))
