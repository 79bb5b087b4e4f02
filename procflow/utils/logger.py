"""JSON logging for procflow

Every record carries the request's correlation id (when one is bound) and
whichever process fields the caller passed through ``extra``.
"""
import json
import logging
import os
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, Optional

from ..config.settings import settings


correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

LOG_FILE = "procflow.log"
ERROR_LOG_FILE = "procflow-error.log"
MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5


class JsonFormatter(logging.Formatter):
    """One JSON object per line"""

    # Only these extras are emitted; anything else passed in extra is dropped
    EXTRA_FIELDS = (
        "process_id", "workflow_name", "workflow_version", "action",
        "actor_id", "status", "state", "error_code",
    )

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        correlation_id = correlation_id_var.get()
        if correlation_id:
            entry["correlation_id"] = correlation_id

        entry.update({
            name: getattr(record, name)
            for name in self.EXTRA_FIELDS
            if hasattr(record, name)
        })

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def _rotating_handler(path: str, formatter: logging.Formatter, level: int = logging.NOTSET) -> RotatingFileHandler:
    handler = RotatingFileHandler(path, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUPS, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(level: Optional[str] = None) -> None:
    """
    Install JSON handlers on the root logger

    Writes to stdout, LOGS_PATH/procflow.log and (ERROR and above)
    LOGS_PATH/procflow-error.log. Calling it again replaces the handlers.
    """
    os.makedirs(settings.logs_path, exist_ok=True)
    formatter = JsonFormatter()

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, (level or settings.log_level).upper()))
    root_logger.handlers.clear()

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    root_logger.addHandler(console)
    root_logger.addHandler(_rotating_handler(os.path.join(settings.logs_path, LOG_FILE), formatter))
    root_logger.addHandler(
        _rotating_handler(os.path.join(settings.logs_path, ERROR_LOG_FILE), formatter, logging.ERROR)
    )

    for noisy, noisy_level in (("uvicorn.access", logging.WARNING), ("pymongo", logging.WARNING)):
        logging.getLogger(noisy).setLevel(noisy_level)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def set_correlation_id(correlation_id: str) -> None:
    correlation_id_var.set(correlation_id)


def get_correlation_id() -> Optional[str]:
    return correlation_id_var.get()
