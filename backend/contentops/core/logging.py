import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional

from contentops.core.config import Settings, settings as default_settings

LOG_LINE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%H:%M:%S"


def _build_handlers(settings: Settings) -> list:
    stream = logging.StreamHandler(sys.stdout)
    stream.setFormatter(logging.Formatter(LOG_LINE_FORMAT, datefmt=LOG_DATE_FORMAT))
    handlers = [stream]

    if settings.LOG_FILE:
        log_path = Path(settings.LOG_FILE)
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise RuntimeError(f"Failed to create log directory at {log_path.parent}: {exc}") from exc

        file_handler = logging.handlers.RotatingFileHandler(
            log_path,
            encoding="utf-8",
            maxBytes=settings.LOG_MAX_BYTES,
            backupCount=settings.LOG_BACKUP_COUNT,
        )
        file_handler.setFormatter(logging.Formatter(LOG_LINE_FORMAT))
        handlers.append(file_handler)

    return handlers


def setup_logging(settings: Optional[Settings] = None) -> None:
    """Route the application and uvicorn loggers through one set of handlers."""
    settings = settings or default_settings
    handlers = _build_handlers(settings)
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    for logger_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        log = logging.getLogger(logger_name)
        log.handlers = list(handlers)
        log.propagate = False

    logging.basicConfig(level=level, handlers=handlers, force=True)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
