"""
Pytest configuration and shared fixtures for FileVault tests.

This file provides:
- An in-memory SQLite database wired into ``get_db``
- A real S3ManagementService over a mocked boto3 client
- Logged-in admin and guest API clients
- A rate limiter with a controllable clock
"""

import os

os.environ.setdefault("FILEVAULT_DATABASE_URL", "sqlite://")

import io
import pytest
from datetime import datetime, timezone
from typing import Generator
from unittest.mock import MagicMock

from botocore.exceptions import ClientError
from botocore.response import StreamingBody
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from settings.database import Base, get_db
from api.s3.dependencies import get_rate_limiter, get_s3_service
from api.s3.domain.rate_limiter import UploadRateLimiter
from api.s3.infra.s3.s3_management_service import S3ManagementService

TEST_BUCKET = "filevault-test"
PDF_BYTES = b"%PDF-1.7\n1 0 obj\n<< /Type /Catalog >>\nendobj\n"
LAST_MODIFIED = datetime(2026, 1, 15, 10, 30, tzinfo=timezone.utc)

ADMIN_CREDENTIALS = {"username": "admin", "password": "admin-pass-1", "role": "admin"}
GUEST_CREDENTIALS = {"username": "guest", "password": "guest-pass-1", "role": "guest"}


def missing_object_error(operation: str = "HeadObject") -> ClientError:
    return ClientError({"Error": {"Code": "404", "Message": "Not Found"}}, operation)


def streaming_body(data: bytes) -> StreamingBody:
    return StreamingBody(io.BytesIO(data), len(data))


class FakeClock:
    """Epoch-millis clock the tests can move forward."""

    def __init__(self, start_ms: int = 1_700_000_000_000):
        self.now_ms = start_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, seconds: float):
        self.now_ms += int(seconds * 1000)


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    import models  # noqa: F401  registers tables on Base.metadata
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


# ============================================================================
# Storage and Rate Limit Fixtures
# ============================================================================

@pytest.fixture
def s3_client():
    """Mocked boto3 S3 client with an existing PDF object by default."""
    client = MagicMock()
    client.generate_presigned_url.return_value = (
        f"https://{TEST_BUCKET}.s3.amazonaws.com/uploads/signed?X-Amz-Signature=abc123"
    )
    client.generate_presigned_post.return_value = {
        "url": f"https://{TEST_BUCKET}.s3.amazonaws.com/",
        "fields": {"key": "placeholder", "policy": "cG9saWN5", "x-amz-signature": "abc123"},
    }
    client.head_object.return_value = {
        "ContentLength": len(PDF_BYTES),
        "ContentType": "application/pdf",
        "ETag": '"etag-1"',
        "LastModified": LAST_MODIFIED,
        "Metadata": {},
    }
    client.get_object.side_effect = lambda **kwargs: {
        "Body": streaming_body(PDF_BYTES),
        "ContentLength": len(PDF_BYTES),
        "ContentType": "application/pdf",
        "ETag": '"etag-1"',
        "LastModified": LAST_MODIFIED,
    }
    client.list_objects_v2.return_value = {"Contents": []}
    return client


@pytest.fixture
def s3_service(s3_client) -> S3ManagementService:
    return S3ManagementService(client=s3_client, bucket=TEST_BUCKET)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rate_limiter(clock) -> UploadRateLimiter:
    return UploadRateLimiter(limit=10, window_seconds=60, clock=clock)


# ============================================================================
# API Client Fixtures
# ============================================================================

@pytest.fixture
def app(session_factory, s3_service, rate_limiter):
    from settings.server import filevault_app

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    filevault_app.dependency_overrides[get_db] = override_get_db
    filevault_app.dependency_overrides[get_s3_service] = lambda: s3_service
    filevault_app.dependency_overrides[get_rate_limiter] = lambda: rate_limiter
    yield filevault_app
    filevault_app.dependency_overrides.clear()


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    """Anonymous client."""
    with TestClient(app) as test_client:
        yield test_client


def _registered_client(app, credentials) -> Generator[TestClient, None, None]:
    with TestClient(app) as test_client:
        response = test_client.post("/api/auth/register", json=credentials)
        assert response.status_code == 200, response.text
        yield test_client


@pytest.fixture
def admin_client(app) -> Generator[TestClient, None, None]:
    yield from _registered_client(app, ADMIN_CREDENTIALS)


@pytest.fixture
def guest_client(app) -> Generator[TestClient, None, None]:
    yield from _registered_client(app, GUEST_CREDENTIALS)


# ============================================================================
# Test Data Fixtures
# ============================================================================

@pytest.fixture
def file_payload():
    """Body for POST /api/files pointing at an uploaded PDF."""
    return {
        "name": "quarterly report.pdf",
        "originalName": "quarterly report.pdf",
        "size": 2048,
        "mimeType": "application/pdf",
        "objectPath": f"https://{TEST_BUCKET}.s3.amazonaws.com/uploads/3f2b9c1e-0000-4000-8000-000000000001?X-Amz-Signature=abc",
    }
