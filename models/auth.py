import enum
import uuid
from datetime import datetime, timezone
from typing import Dict, Any
from sqlalchemy import Column, String, DateTime, ForeignKey, Index, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from settings.database import Base


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    GUEST = "guest"


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc).replace(tzinfo=None)


class User(Base):
    __tablename__ = 'users'
    __table_args__ = (
        Index('idx_users_username', 'username', unique=True),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    username = Column(String(50), nullable=False)
    password = Column(String(128), nullable=False)
    role = Column(
        SQLEnum(UserRole, name='user_role', values_callable=lambda roles: [r.value for r in roles]),
        default=UserRole.GUEST,
        nullable=False,
    )
    created_at = Column(DateTime, server_default=func.now(), default=_utcnow, nullable=False)
    last_login_at = Column(DateTime, nullable=True)

    sessions = relationship('UserSession', back_populates='user', cascade='all, delete-orphan')

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def to_public_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "role": self.role.value if isinstance(self.role, UserRole) else self.role,
        }


class UserSession(Base):
    __tablename__ = 'sessions'
    __table_args__ = (
        Index('idx_sessions_user_id', 'user_id'),
        Index('idx_sessions_expires_at', 'expires_at'),
    )

    token = Column(String(64), primary_key=True)
    user_id = Column(String(36), ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    created_at = Column(DateTime, server_default=func.now(), default=_utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=False)

    user = relationship('User', back_populates='sessions')
