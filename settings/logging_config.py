import logging
import sys
from logging.handlers import RotatingFileHandler

from settings.config import get_settings

_configured = False


def setup_logging():
    """Attach console (and optional rotating file) handlers to the root logger."""
    global _configured
    if _configured:
        return

    settings = get_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    formatter = logging.Formatter(settings.log_format)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if settings.log_file:
        # Max 2MB per file, keep one backup
        file_handler = RotatingFileHandler(
            settings.log_file, maxBytes=2 * 1024 * 1024, backupCount=1, encoding='utf-8'
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # uvicorn.access goes through the root handlers only
    uvicorn_access_logger = logging.getLogger("uvicorn.access")
    uvicorn_access_logger.setLevel(logging.INFO)
    uvicorn_access_logger.handlers = []
    uvicorn_access_logger.propagate = True

    _configured = True
    root_logger.info(f"Logging configured for {settings.app_name} ({settings.environment})")
