"""Structured JSON logging with correlation and actor IDs."""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from .context import get_actor_id, get_correlation_id


class JsonFormatter(logging.Formatter):
    """JSON formatter that includes request context."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        correlation_id = get_correlation_id()
        if correlation_id:
            log_obj["correlationId"] = correlation_id

        actor_id = get_actor_id()
        if actor_id:
            log_obj["actorId"] = actor_id

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra_fields"):
            log_obj.update(record.extra_fields)

        return json.dumps(log_obj, default=str)


def configure_logging(level: int = logging.INFO) -> None:
    """Route the ``bedbook`` logger hierarchy through the JSON formatter.

    Domain modules log via ``logging.getLogger(__name__)``; attaching the
    handler to the package root makes their records come out as JSON too.
    """
    root = logging.getLogger("bedbook")
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JsonFormatter())
        root.addHandler(handler)
        root.setLevel(level)
        root.propagate = False


def get_logger(name: str) -> logging.Logger:
    """Get a logger configured for JSON output."""
    if name == "bedbook" or name.startswith("bedbook."):
        # Package loggers inherit the root handler
        configure_logging()
        return logging.getLogger(name)

    logger = logging.getLogger(name)

    # Only configure if no handlers (avoid duplicate handlers)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JsonFormatter())
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
        logger.propagate = False

    return logger
