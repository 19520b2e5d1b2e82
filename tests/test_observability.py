"""Tests for structured logging and request context."""

import json
import logging

from bedbook.observability.context import (
    generate_correlation_id,
    get_actor_id,
    get_correlation_id,
    reset_correlation_id,
    set_actor_id,
    set_correlation_id,
)
from bedbook.observability.logging import JsonFormatter, get_logger


def _record(msg: str = "hello", **extra) -> logging.LogRecord:
    record = logging.LogRecord("bedbook.test", logging.INFO, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestCorrelationContext:
    def test_set_and_reset(self):
        cid = generate_correlation_id()
        token = set_correlation_id(cid)
        try:
            assert get_correlation_id() == cid
        finally:
            reset_correlation_id(token)
        assert get_correlation_id() != cid


class TestJsonFormatter:
    def test_basic_fields(self):
        data = json.loads(JsonFormatter().format(_record()))
        assert data["level"] == "INFO"
        assert data["logger"] == "bedbook.test"
        assert data["message"] == "hello"

    def test_includes_correlation_id(self):
        token = set_correlation_id("cid-123")
        try:
            data = json.loads(JsonFormatter().format(_record()))
        finally:
            reset_correlation_id(token)
        assert data["correlationId"] == "cid-123"

    def test_includes_actor_id(self):
        token = set_actor_id("admin-1")
        try:
            data = json.loads(JsonFormatter().format(_record()))
        finally:
            from bedbook.observability.context import actor_id_var

            actor_id_var.reset(token)
        assert data["actorId"] == "admin-1"
        assert get_actor_id() == ""

    def test_extra_fields_merged(self):
        record = _record(extra_fields={"booking_code": "BK-20240105-001"})
        data = json.loads(JsonFormatter().format(record))
        assert data["booking_code"] == "BK-20240105-001"


class TestGetLogger:
    def test_package_loggers_share_root_handler(self):
        logger = get_logger("bedbook.services.booking_service")
        root = logging.getLogger("bedbook")
        assert logger.handlers == []
        assert any(isinstance(h.formatter, JsonFormatter) for h in root.handlers)

    def test_foreign_logger_configured_once(self):
        logger = get_logger("thirdparty.module")
        get_logger("thirdparty.module")
        assert len(logger.handlers) == 1
