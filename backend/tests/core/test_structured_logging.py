"""Tests for JSON log records and correlation IDs."""

import json
import logging

from mediahub.core.logging import (
    CorrelationIdFilter,
    StructuredFormatter,
    correlation_scope,
    get_correlation_id,
)


def make_record(message: str = "tier done", exc_info=None, **extra) -> logging.LogRecord:
    record = logging.LogRecord("mediahub.test", logging.ERROR, __file__, 10, message, None, exc_info)
    for key, value in extra.items():
        setattr(record, key, value)
    CorrelationIdFilter().filter(record)
    return record


class TestStructuredFormatter:

    def test_record_carries_scope_id_and_context(self) -> None:
        with correlation_scope("media-42"):
            record = make_record(quality="720p", path=object())

        payload = json.loads(StructuredFormatter().format(record))

        assert payload["correlation_id"] == "media-42"
        assert payload["message"] == "tier done"
        assert payload["extra"]["quality"] == "720p"
        assert isinstance(payload["extra"]["path"], str)
        assert "exception" not in payload

    def test_exception_with_and_without_stack(self) -> None:
        try:
            raise RuntimeError("encoder crashed")
        except RuntimeError as e:
            exc_info = (type(e), e, e.__traceback__)

        full = json.loads(StructuredFormatter().format(make_record(exc_info=exc_info)))
        short = json.loads(
            StructuredFormatter(include_stack_trace=False).format(make_record(exc_info=exc_info))
        )

        assert full["exception"]["type"] == "RuntimeError"
        assert any("encoder crashed" in line for line in full["exception"]["stack_trace"])
        assert short["exception"] == {"type": "RuntimeError", "message": "encoder crashed"}

    def test_scope_restores_previous_id(self) -> None:
        outer = get_correlation_id()

        with correlation_scope("media-1"):
            assert get_correlation_id() == "media-1"

        assert get_correlation_id() == outer
