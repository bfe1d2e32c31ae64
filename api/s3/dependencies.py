from typing import Generator, Optional
from fastapi import Depends, Request, Response
from sqlalchemy.orm import Session
import logging

from settings.config import get_settings
from settings.database import get_db
from services.auth import resolve_session_user
from common.http_errors import api_error
from models import User, UserRole
from api.s3.infra.db.uow import UnitOfWork
from api.s3.infra.s3.s3_management_service import S3ManagementService
from api.s3.domain.policies import FileSecurityValidator, FileValidationResult
from api.s3.domain.rate_limiter import (
    RateLimitResult,
    UploadRateLimiter,
    client_fingerprint,
    get_upload_rate_limiter
)
from api.s3.schemas.files import UploadUrlRequest

logger = logging.getLogger(__name__)


class AuthContext:
    """Authenticated user resolved from the session cookie."""

    def __init__(self, user: User, session_token: str):
        self.user = user
        self.session_token = session_token
        self.user_id = user.id
        self.username = user.username
        self.role = user.role
        self.is_admin = user.role == UserRole.ADMIN


def get_uow(db: Session = Depends(get_db)) -> Generator[UnitOfWork, None, None]:
    """
    Dependency to get Unit of Work instance.

    Args:
        db: Database session

    Yields:
        UnitOfWork instance
    """
    uow = UnitOfWork(db)
    try:
        yield uow
    except Exception:
        uow.rollback()
        raise


# Singleton S3 service
_s3_service = None


def get_s3_service() -> S3ManagementService:
    """
    Dependency to get S3 Management Service (singleton).

    Returns:
        S3ManagementService instance
    """
    global _s3_service
    if _s3_service is None:
        _s3_service = S3ManagementService()
    return _s3_service


def get_rate_limiter() -> UploadRateLimiter:
    return get_upload_rate_limiter()


def get_optional_auth_context(request: Request, uow: UnitOfWork = Depends(get_uow)) -> Optional[AuthContext]:
    token = request.cookies.get(get_settings().session_cookie_name)
    user = resolve_session_user(uow, token)
    if user is None:
        return None
    return AuthContext(user=user, session_token=token)


def require_auth(auth: Optional[AuthContext] = Depends(get_optional_auth_context)) -> AuthContext:
    if auth is None:
        raise api_error(401, "Authentication required")
    return auth


def require_admin(auth: AuthContext = Depends(require_auth)) -> AuthContext:
    if not auth.is_admin:
        raise api_error(403, "Admin access required")
    return auth


def require_user(auth: AuthContext = Depends(require_auth)) -> AuthContext:
    if auth.role not in (UserRole.ADMIN, UserRole.GUEST):
        raise api_error(403, "User access required")
    return auth


class UploadValidation:
    def __init__(self, validation: FileValidationResult, rate_limit: RateLimitResult):
        self.validation = validation
        self.rate_limit = rate_limit

    @property
    def sanitized_filename(self) -> str:
        return self.validation.sanitized_filename


def validate_file_upload(
    body: UploadUrlRequest,
    request: Request,
    response: Response,
    rate_limiter: UploadRateLimiter = Depends(get_rate_limiter)
) -> UploadValidation:
    """Rate-limit and validate an upload request before any URL is signed."""
    if not body.file_name or not body.file_size or not body.content_type:
        raise api_error(400, "Missing required file information",
                        "fileName, fileSize, and contentType are required")

    client_ip = request.client.host if request.client else None
    client_id = client_fingerprint(client_ip, request.headers.get("User-Agent"))

    rate_limit = rate_limiter.check_rate_limit(client_id)
    if not rate_limit.allowed:
        retry_after = rate_limiter.retry_after_seconds(rate_limit)
        logger.warning(f"Upload rate limit exceeded for client {client_id[:12]}")
        raise api_error(
            429,
            "Too many upload attempts",
            f"Rate limit exceeded. Try again in {retry_after} seconds",
            headers={"Retry-After": str(retry_after)},
            retryAfter=retry_after
        )

    validation = FileSecurityValidator.validate_file(body.file_name, body.file_size, body.content_type)
    if not validation.is_valid:
        raise api_error(400, "File validation failed", validation.errors)

    response.headers["X-Upload-Validation"] = "passed"
    response.headers["X-Rate-Limit-Remaining"] = str(rate_limit.remaining_uploads)
    response.headers["X-Rate-Limit-Reset"] = str(rate_limit.reset_time)

    return UploadValidation(validation=validation, rate_limit=rate_limit)


def validate_folder_name(name: Optional[str]) -> str:
    """Return the sanitized folder name or raise the 400 the folder routes share."""
    if not name:
        raise api_error(400, "Folder name is required")

    validation = FileSecurityValidator.validate_folder_name(name)
    if not validation.is_valid:
        raise api_error(400, "Invalid folder name", validation.errors)
    return validation.sanitized_name


def validate_object_access(path: str) -> str:
    violation = FileSecurityValidator.validate_file_access(path)
    if violation is not None:
        raise api_error(violation.status_code, violation.error, violation.details)
    return path
