"""
Middleware that logs HTTP requests with structured fields.

Every request gets a start and a completion record. Responses that reject
input (400, 403, 429) also get a SECURITY EVENT warning.
"""
import time
import logging
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger("filevault_app")

SECURITY_EVENT_STATUS_CODES = {400, 403, 429}


class RequestLoggingMiddleware(BaseHTTPMiddleware):

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()

        method = request.method
        path = request.url.path
        query_params = str(request.query_params) if request.query_params else ""
        client_ip = request.client.host if request.client else "unknown"
        user_agent = request.headers.get("User-Agent", "")

        # Skip health checks (too noisy)
        if path == "/health":
            return await call_next(request)

        logger.info(
            f"{method} {path}",
            extra={
                "http.method": method,
                "http.url": path,
                "http.url_details.query_string": query_params,
                "http.client_ip": client_ip,
                "http.request_id": request.headers.get("X-Request-ID", ""),
                "event_type": "http_request_start",
            }
        )

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                f"{method} {path} 500 - {str(e)}",
                extra={
                    "http.method": method,
                    "http.url": path,
                    "http.status_code": 500,
                    "http.client_ip": client_ip,
                    "duration_ms": round(duration_ms, 2),
                    "error.message": str(e),
                    "error.type": type(e).__name__,
                    "event_type": "http_request_error",
                },
                exc_info=True
            )
            raise

        status_code = response.status_code
        duration_ms = (time.time() - start_time) * 1000

        logger.info(
            f"{method} {path} {status_code}",
            extra={
                "http.method": method,
                "http.url": path,
                "http.status_code": status_code,
                "http.client_ip": client_ip,
                "duration_ms": round(duration_ms, 2),
                "event_type": "http_request_complete",
            }
        )

        if status_code in SECURITY_EVENT_STATUS_CODES:
            logger.warning(
                f"SECURITY EVENT: {method} {request.url} {status_code} ip={client_ip} "
                f"user_agent={user_agent!r} query={query_params!r}",
                extra={
                    "http.method": method,
                    "http.url": str(request.url),
                    "http.status_code": status_code,
                    "http.client_ip": client_ip,
                    "http.useragent": user_agent,
                    "http.url_details.query_string": query_params,
                    "event_type": "security_event",
                }
            )

        return response
