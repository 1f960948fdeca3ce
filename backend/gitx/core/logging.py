"""
Logging setup for the indexer and the Celery worker.

LOG_FORMAT selects the output:
- text: one readable line per record, prefixed with the correlation id
- json: one object per line carrying every TracingContext field
"""

import json
import logging
import sys
from typing import Any, Dict, Optional

from gitx.core.tracing import TracingContext


class JSONFormatter(logging.Formatter):
    """
    Formatter that outputs JSON strings with tracing context.

    Automatically includes correlation_id, cycle_id, repo_id, etc. from
    TracingContext so a whole indexing cycle can be filtered at once.
    """

    def format(self, record: logging.LogRecord) -> str:
        ctx = TracingContext.get()

        log_record: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "module": record.module,
            "line": record.lineno,
            "thread": record.threadName,
            **ctx,
        }

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_record)


class TextFormatter(logging.Formatter):
    """Human-readable formatter that prefixes the correlation id when set."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        prefix = TracingContext.get_log_prefix()
        return f"{prefix} {message}" if prefix else message


def setup_logging(log_format: Optional[str] = None, level: Optional[str] = None) -> None:
    """
    Setup logging for the process.

    Arguments default to the LOG_FORMAT / LOG_LEVEL settings:
    - "json": Structured JSON for production
    - "text" (default): Human-readable for development
    """
    from gitx.config import settings

    root_logger = logging.getLogger()

    # Avoid adding multiple handlers
    if root_logger.handlers:
        return

    root_logger.setLevel((level or settings.LOG_LEVEL).upper())

    handler = logging.StreamHandler(sys.stdout)

    if (log_format or settings.LOG_FORMAT).lower() == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            TextFormatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )

    root_logger.addHandler(handler)

    # Set lower level for noisy libraries
    logging.getLogger("git").setLevel(logging.WARNING)
    logging.getLogger("pymongo").setLevel(logging.WARNING)
