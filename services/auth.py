import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt

from common.logger import logger
from models.auth import User, UserRole, UserSession
from api.s3.infra.db.uow import UnitOfWork
from settings.config import get_settings


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc).replace(tzinfo=None)


def hash_password(password: str) -> str:
    """Hash a password using bcrypt"""
    salt = bcrypt.gensalt()
    return bcrypt.hashpw(password.encode(), salt).decode()


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode(), password_hash.encode())
    except ValueError:
        # Stored value is not a bcrypt hash
        logger.warning("Password check against a malformed hash")
        return False


def generate_session_token() -> str:
    return secrets.token_hex(32)


def create_user(uow: UnitOfWork, username: str, password: str, role: UserRole = UserRole.GUEST) -> User:
    if uow.users.get_by_username(username):
        raise ValueError("Username already exists")

    user = uow.users.create(username=username, password_hash=hash_password(password), role=role)
    logger.info(f"Created user {user.username} with role {user.role.value}")
    return user


def authenticate(uow: UnitOfWork, username: str, password: str) -> Optional[User]:
    user = uow.users.get_by_username(username)
    if not user or not verify_password(password, user.password):
        logger.info(f"Failed login attempt for username={username}")
        return None

    uow.users.touch_last_login(user, _utcnow())
    return user


def create_session(uow: UnitOfWork, user: User) -> UserSession:
    settings = get_settings()
    return uow.sessions.create(
        token=generate_session_token(),
        user_id=user.id,
        expires_at=_utcnow() + timedelta(days=settings.session_ttl_days)
    )


def resolve_session_user(uow: UnitOfWork, token: Optional[str]) -> Optional[User]:
    if not token:
        return None

    session = uow.sessions.get_active(token, _utcnow())
    if session is None:
        return None
    return session.user


def end_session(uow: UnitOfWork, token: Optional[str]) -> bool:
    if not token:
        return False
    return uow.sessions.delete(token)


def purge_expired_sessions(uow: UnitOfWork) -> int:
    removed = uow.sessions.delete_expired(_utcnow())
    if removed:
        logger.info(f"Purged {removed} expired sessions")
    return removed


def change_password(uow: UnitOfWork, user: User, current_password: str, new_password: str) -> User:
    if not verify_password(current_password, user.password):
        raise ValueError("Current password is incorrect")

    uow.users.update_password(user, hash_password(new_password))
    logger.info(f"Password changed for user {user.username}")
    return user
