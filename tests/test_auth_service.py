"""
Tests for account and session helpers in services.auth.
"""

from datetime import timedelta
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from api.s3.infra.db.uow import UnitOfWork
from management_commands.create_admin import create_admin
from models import UserRole, UserSession
from services import auth as auth_service


@pytest.fixture
def uow(db_session):
    return UnitOfWork(db_session)


class TestPasswords:

    def test_hash_roundtrip(self):
        password_hash = auth_service.hash_password("s3cret-pass")

        assert password_hash != "s3cret-pass"
        assert auth_service.verify_password("s3cret-pass", password_hash)
        assert not auth_service.verify_password("other-pass", password_hash)

    def test_malformed_hash_does_not_verify(self):
        assert auth_service.verify_password("anything", "not-a-bcrypt-hash") is False

    def test_session_tokens_are_random_hex(self):
        token = auth_service.generate_session_token()

        assert len(token) == 64
        assert token != auth_service.generate_session_token()
        int(token, 16)


class TestUsersAndSessions:

    def test_create_user_rejects_duplicates(self, uow):
        auth_service.create_user(uow, "alice", "alice-pass-1")

        with pytest.raises(ValueError, match="Username already exists"):
            auth_service.create_user(uow, "alice", "another-pass")

    def test_authenticate_touches_last_login(self, uow):
        auth_service.create_user(uow, "alice", "alice-pass-1", UserRole.ADMIN)

        user = auth_service.authenticate(uow, "alice", "alice-pass-1")

        assert user.role == UserRole.ADMIN
        assert user.last_login_at is not None
        assert auth_service.authenticate(uow, "alice", "wrong") is None

    def test_session_resolves_until_expiry(self, uow):
        user = auth_service.create_user(uow, "alice", "alice-pass-1")
        session = auth_service.create_session(uow, user)

        assert auth_service.resolve_session_user(uow, session.token).id == user.id
        assert auth_service.resolve_session_user(uow, None) is None
        assert auth_service.resolve_session_user(uow, "unknown") is None

        session.expires_at = auth_service._utcnow() - timedelta(seconds=1)
        uow.flush()
        assert auth_service.resolve_session_user(uow, session.token) is None

    def test_purge_expired_sessions(self, uow, db_session):
        user = auth_service.create_user(uow, "alice", "alice-pass-1")
        live = auth_service.create_session(uow, user)
        stale = auth_service.create_session(uow, user)
        stale.expires_at = auth_service._utcnow() - timedelta(days=1)
        uow.flush()

        assert auth_service.purge_expired_sessions(uow) == 1
        assert [s.token for s in db_session.query(UserSession).all()] == [live.token]

    def test_end_session(self, uow):
        user = auth_service.create_user(uow, "alice", "alice-pass-1")
        session = auth_service.create_session(uow, user)

        assert auth_service.end_session(uow, session.token) is True
        assert auth_service.end_session(uow, session.token) is False
        assert auth_service.end_session(uow, None) is False

    def test_change_password_checks_current(self, uow):
        user = auth_service.create_user(uow, "alice", "alice-pass-1")

        with pytest.raises(ValueError, match="Current password is incorrect"):
            auth_service.change_password(uow, user, "wrong", "new-pass-123")

        auth_service.change_password(uow, user, "alice-pass-1", "new-pass-123")
        assert auth_service.verify_password("new-pass-123", user.password)


class TestCreateAdminCommand:

    @pytest.fixture
    def runner_db(self, session_factory):
        def fake_get_db():
            db = session_factory()
            try:
                yield db
            finally:
                db.close()

        with patch("settings.database.get_db", fake_get_db):
            yield session_factory

    def test_creates_admin(self, runner_db):
        result = CliRunner().invoke(create_admin, ["root-user", "--password", "root-pass-1"])

        assert result.exit_code == 0, result.output
        user = UnitOfWork(runner_db()).users.get_by_username("root-user")
        assert user.role == UserRole.ADMIN

    def test_existing_user_needs_reset(self, runner_db):
        CliRunner().invoke(create_admin, ["root-user", "--password", "root-pass-1"])

        result = CliRunner().invoke(create_admin, ["root-user", "--password", "other-pass-1"])

        assert result.exit_code == 1
        assert "already exists" in result.output

    def test_reset_promotes_and_rekeys(self, runner_db):
        with runner_db() as db:
            uow = UnitOfWork(db)
            auth_service.create_user(uow, "someone", "guest-pass-1", UserRole.GUEST)
            uow.commit()

        result = CliRunner().invoke(create_admin, ["someone", "--password", "fresh-pass-1", "--reset"])

        assert result.exit_code == 0, result.output
        user = UnitOfWork(runner_db()).users.get_by_username("someone")
        assert user.role == UserRole.ADMIN
        assert auth_service.verify_password("fresh-pass-1", user.password)

    def test_short_password(self, runner_db):
        result = CliRunner().invoke(create_admin, ["root-user", "--password", "short"])

        assert result.exit_code == 2
