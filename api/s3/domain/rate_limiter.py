import hashlib
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from settings.config import get_settings

logger = logging.getLogger(__name__)


@dataclass
class RateLimitResult:
    allowed: bool
    remaining_uploads: int
    reset_time: int  # epoch millis


@dataclass
class _Window:
    count: int
    reset_time: int


def _now_millis() -> int:
    return int(time.time() * 1000)


def client_fingerprint(ip: Optional[str], user_agent: Optional[str]) -> str:
    return hashlib.sha256(f"{ip or ''}{user_agent or ''}".encode("utf-8")).hexdigest()


class UploadRateLimiter:
    """Fixed-window upload counter keyed by client fingerprint."""

    def __init__(self, limit: int = 10, window_seconds: int = 60, clock: Callable[[], int] = _now_millis):
        self.limit = limit
        self.window_ms = window_seconds * 1000
        self._clock = clock
        self._windows: Dict[str, _Window] = {}
        self._lock = threading.Lock()

    def check_rate_limit(self, client_id: str) -> RateLimitResult:
        now = self._clock()
        with self._lock:
            window = self._windows.get(client_id)

            if window is None or now > window.reset_time:
                window = _Window(count=1, reset_time=now + self.window_ms)
                self._windows[client_id] = window
                return RateLimitResult(
                    allowed=True,
                    remaining_uploads=self.limit - 1,
                    reset_time=window.reset_time
                )

            if window.count >= self.limit:
                return RateLimitResult(allowed=False, remaining_uploads=0, reset_time=window.reset_time)

            window.count += 1
            return RateLimitResult(
                allowed=True,
                remaining_uploads=self.limit - window.count,
                reset_time=window.reset_time
            )

    def retry_after_seconds(self, result: RateLimitResult) -> int:
        return max(0, -(-(result.reset_time - self._clock()) // 1000))

    def cleanup(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [client_id for client_id, window in self._windows.items() if now > window.reset_time]
            for client_id in expired:
                del self._windows[client_id]

        if expired:
            logger.debug(f"Dropped {len(expired)} expired upload rate-limit windows")
        return len(expired)

    def __len__(self) -> int:
        return len(self._windows)


_rate_limiter: Optional[UploadRateLimiter] = None


def get_upload_rate_limiter() -> UploadRateLimiter:
    global _rate_limiter
    if _rate_limiter is None:
        settings = get_settings()
        _rate_limiter = UploadRateLimiter(
            limit=settings.upload_rate_limit,
            window_seconds=settings.upload_rate_window_seconds
        )
    return _rate_limiter
