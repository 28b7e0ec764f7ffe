"""
Centralized logging configuration.

Sets up:
- Console handler (INFO level)
- Rotating file handler for app.log (DEBUG level)
- Separate file handler for errors.log (ERROR level)

Every record carries the id of the job being processed (``-`` outside a
job) so pipeline events can be grepped per job.
"""

import contextlib
import logging
import logging.config
from contextvars import ContextVar
from typing import Iterator, Optional

from configs.config import get_config

cfg = get_config()

_current_job_id: ContextVar[Optional[str]] = ContextVar(
    "current_job_id", default=None
)


class JobContextFilter(logging.Filter):
    """Attach ``job_id`` to each record from the active job context."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.job_id = _current_job_id.get() or "-"
        return True


@contextlib.contextmanager
def job_context(job_id: str) -> Iterator[None]:
    """Tag every log record emitted inside the block with ``job_id``."""
    token = _current_job_id.set(job_id)
    try:
        yield
    finally:
        _current_job_id.reset(token)


def setup_logging() -> None:
    """Configure logging once at application startup."""
    logging_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "job_context": {"()": JobContextFilter},
        },
        "formatters": {
            "default": {
                "format": (
                    "%(asctime)s - %(name)s - %(levelname)s - "
                    "[job=%(job_id)s] %(message)s"
                ),
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": "INFO",
                "formatter": "default",
                "filters": ["job_context"],
            },
            "app_log_handler": {
                "class": "logging.handlers.RotatingFileHandler",
                "level": "DEBUG",
                "formatter": "default",
                "filters": ["job_context"],
                "filename": cfg.LOG_FILE_APP,
                "maxBytes": cfg.LOG_MAX_BYTES,
                "backupCount": cfg.LOG_BACKUP_COUNT,
                "encoding": "utf8",
            },
            "error_log_handler": {
                "class": "logging.FileHandler",
                "level": "ERROR",
                "formatter": "default",
                "filters": ["job_context"],
                "filename": cfg.LOG_FILE_ERRORS,
                "encoding": "utf8",
            },
        },
        "loggers": {
            # boto3/botocore are chatty at DEBUG
            "botocore": {"level": "WARNING"},
            "boto3": {"level": "WARNING"},
            "httpx": {"level": "WARNING"},
        },
        "root": {
            "level": "DEBUG",
            "handlers": ["console", "app_log_handler", "error_log_handler"],
        },
    }

    logging.config.dictConfig(logging_config)
    logging.info("Logging configured successfully.")
