import asyncio
import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.staticfiles import StaticFiles

from common.http_errors import error_body
from settings.config import get_settings
from settings.logging_config import setup_logging
from settings.database import SessionLocal
from api.auth import auth_router
from api.s3.router import storage_router
from api.s3.domain.rate_limiter import get_upload_rate_limiter
from api.s3.infra.db.uow import unit_of_work
from services.auth import purge_expired_sessions
from middleware.cors_middleware import add_cors_middleware
from middleware.request_logging_middleware import RequestLoggingMiddleware
from middleware.security_headers_middleware import SecurityHeadersMiddleware

setup_logging()
logger = logging.getLogger(__name__)

settings = get_settings()

description = """
#### FileVault APIs
   Authenticated file management backed by S3: presigned uploads, file records, folders and object access.
"""


def _purge_sessions():
    db = SessionLocal()
    try:
        with unit_of_work(db) as uow:
            purge_expired_sessions(uow)
    finally:
        db.close()


async def _run_periodic_cleanup(interval_seconds: int):
    """Drop expired rate-limit windows and login sessions every interval."""
    rate_limiter = get_upload_rate_limiter()
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            rate_limiter.cleanup()
        except Exception as e:
            logger.error(f"Rate limiter cleanup failed: {str(e)}", exc_info=True)
        try:
            _purge_sessions()
        except Exception as e:
            logger.error(f"Session cleanup failed: {str(e)}", exc_info=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    cleanup_task = asyncio.create_task(
        _run_periodic_cleanup(settings.rate_limit_cleanup_interval_seconds)
    )
    logger.info(f"{settings.app_name} started ({settings.environment})")
    try:
        yield
    finally:
        cleanup_task.cancel()
        try:
            await cleanup_task
        except asyncio.CancelledError:
            pass


filevault_app = FastAPI(
    title=settings.app_name,
    description=description,
    version="1.0.0",
    openapi_version="3.1.0",
    docs_url="/docs/filevault",
    lifespan=lifespan,
)


@filevault_app.exception_handler(HTTPException)
async def http_exception_handler(request, exc):
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.detail),
        headers=getattr(exc, "headers", None)
    )


@filevault_app.exception_handler(RequestValidationError)
async def validation_exception_handler(request, exc):
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request", "details": jsonable_encoder(exc.errors())}
    )


add_cors_middleware(filevault_app)
filevault_app.add_middleware(GZipMiddleware, minimum_size=1000)
filevault_app.add_middleware(SecurityHeadersMiddleware)
filevault_app.add_middleware(RequestLoggingMiddleware)

filevault_app.include_router(auth_router)
filevault_app.include_router(storage_router)


@filevault_app.get('/health')
def health_check():
    """
    Lightweight health check endpoint for probes.
    """
    return {"status": "healthy", "timestamp": datetime.now(tz=timezone.utc).isoformat()}


if settings.static_dir and os.path.isdir(settings.static_dir):
    # Prebuilt frontend bundle; mounted last so API routes win
    filevault_app.mount("/", StaticFiles(directory=settings.static_dir, html=True), name="static")
else:
    @filevault_app.get('/')
    def read_root():
        """
        Root endpoint to check if the FileVault API is running.
        """
        return {"message": "FileVault API is running successfully!"}
