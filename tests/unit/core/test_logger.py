"""
Unit tests for core.logger module.

Tests:
- format_kv_pairs() quoting, escaping and truncation
- StructuredFormatter line layout
- JsonFormatter objects built from structured fields
- Logger key=value and JSON modes
- bind() context propagation
- setup_logging() root handler installation
"""

import json
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager

import pytest

from relayquery.core import (
    JsonFormatter,
    Logger,
    StructuredFormatter,
    format_kv_pairs,
    setup_logging,
)


@contextmanager
def _isolated_root_logger() -> Iterator[logging.Logger]:
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    try:
        yield root
    finally:
        root.handlers[:] = handlers
        root.setLevel(level)


class TestFormatKvPairs:
    """Key-value pairs formatting and escaping."""

    def test_simple(self) -> None:
        assert format_kv_pairs({"relay": "wss://a.example"}) == " relay=wss://a.example"
        assert format_kv_pairs({"count": 3}) == " count=3"

    def test_with_spaces(self) -> None:
        assert format_kv_pairs({"error": "timed out"}) == ' error="timed out"'

    def test_with_equals(self) -> None:
        assert format_kv_pairs({"key": "a=b"}) == ' key="a=b"'

    def test_with_double_quotes(self) -> None:
        assert format_kv_pairs({"key": 'say "hi"'}) == ' key="say \\"hi\\""'

    def test_newline_escaped(self) -> None:
        assert format_kv_pairs({"key": "a\nb"}) == ' key="a\\nb"'

    def test_empty_value(self) -> None:
        assert format_kv_pairs({"key": ""}) == ' key=""'

    def test_empty_dict(self) -> None:
        assert format_kv_pairs({}) == ""

    def test_truncation(self) -> None:
        result = format_kv_pairs({"key": "x" * 1500}, max_value_length=1000)
        assert "truncated 500 chars" in result

    def test_no_truncation(self) -> None:
        result = format_kv_pairs({"key": "x" * 1500}, max_value_length=None)
        assert "truncated" not in result

    def test_custom_prefix(self) -> None:
        assert format_kv_pairs({"key": "val"}, prefix="") == "key=val"


class TestStructuredFormatter:
    """StructuredFormatter line layout."""

    def _record(self, **extra: object) -> logging.LogRecord:
        record = logging.LogRecord("relayquery.test", logging.INFO, "", 0, "hello", (), None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_plain_record(self) -> None:
        assert StructuredFormatter().format(self._record()) == "info relayquery.test hello"

    def test_structured_fields(self) -> None:
        record = self._record(structured_kv={"relays": 2})
        assert StructuredFormatter().format(record) == "info relayquery.test hello relays=2"

    def test_exception_block(self) -> None:
        try:
            raise ValueError("boom")
        except ValueError:
            record = logging.LogRecord("x", logging.ERROR, "", 0, "failed", (), sys.exc_info())
        line = StructuredFormatter().format(record)
        assert line.startswith("error x failed\n")
        assert "ValueError: boom" in line


class TestJsonFormatter:
    """JsonFormatter output."""

    def _record(
        self, msg: str = "hello", exc_info: object = None, **extra: object
    ) -> logging.LogRecord:
        record = logging.LogRecord(
            "relayquery.test", logging.WARNING, "", 0, msg, (), exc_info  # type: ignore[arg-type]
        )
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_structured_fields_become_keys(self) -> None:
        line = JsonFormatter().format(
            self._record(structured_kv={"relay": "wss://a", "count": 2})
        )
        payload = json.loads(line)
        assert payload["level"] == "warning"
        assert payload["logger"] == "relayquery.test"
        assert payload["message"] == "hello"
        assert (payload["relay"], payload["count"]) == ("wss://a", 2)
        assert "timestamp" in payload

    def test_plain_record(self) -> None:
        payload = json.loads(JsonFormatter().format(self._record()))
        assert payload["message"] == "hello"

    def test_non_serializable_field(self) -> None:
        line = JsonFormatter().format(self._record(structured_kv={"error": ValueError("bad")}))
        assert json.loads(line)["error"] == "bad"

    def test_pre_rendered_json_passed_through(self) -> None:
        rendered = json.dumps({"message": "m", "relay": "wss://a"})
        line = JsonFormatter().format(self._record(rendered, structured_json=True))
        assert json.loads(line) == {"message": "m", "relay": "wss://a"}

    def test_exception_field(self) -> None:
        try:
            raise ValueError("boom")
        except ValueError:
            record = self._record(exc_info=sys.exc_info())
        payload = json.loads(JsonFormatter().format(record))
        assert "ValueError: boom" in payload["exception"]


class TestLogger:
    """Logger key=value mode."""

    def test_name(self) -> None:
        assert Logger("relayquery.test").name == "relayquery.test"

    def test_fields_attached(self, caplog: pytest.LogCaptureFixture) -> None:
        caplog.set_level(logging.DEBUG)
        Logger("relayquery.test").info("query_started", relays=3)
        record = caplog.records[-1]
        assert record.getMessage() == "query_started"
        assert record.structured_kv == {"relays": 3}  # type: ignore[attr-defined]

    @pytest.mark.parametrize(
        ("method", "level"),
        [
            ("debug", logging.DEBUG),
            ("info", logging.INFO),
            ("warning", logging.WARNING),
            ("error", logging.ERROR),
        ],
    )
    def test_levels(self, caplog: pytest.LogCaptureFixture, method: str, level: int) -> None:
        caplog.set_level(logging.DEBUG)
        getattr(Logger("relayquery.test"), method)("msg")
        assert caplog.records[-1].levelno == level

    def test_disabled_level_skipped(self, caplog: pytest.LogCaptureFixture) -> None:
        caplog.set_level(logging.WARNING, logger="relayquery.quiet")
        logger = Logger("relayquery.quiet")
        assert not logger.is_enabled_for(logging.DEBUG)
        logger.debug("hidden")
        assert not [r for r in caplog.records if r.name == "relayquery.quiet"]

    def test_exception_includes_traceback(self, caplog: pytest.LogCaptureFixture) -> None:
        caplog.set_level(logging.DEBUG)
        try:
            raise RuntimeError("crash")
        except RuntimeError:
            Logger("relayquery.test").exception("session_crashed")
        assert caplog.records[-1].exc_info is not None

    def test_value_truncated(self, caplog: pytest.LogCaptureFixture) -> None:
        caplog.set_level(logging.DEBUG)
        Logger("relayquery.test", max_value_length=10).info("m", content="y" * 50)
        assert "truncated" in caplog.records[-1].structured_kv["content"]  # type: ignore[attr-defined]


class TestJsonMode:
    """Logger JSON mode."""

    def test_payload(self, caplog: pytest.LogCaptureFixture) -> None:
        caplog.set_level(logging.DEBUG)
        Logger("relayquery.test", json_output=True).warning("callback_failed", relay="wss://a")
        payload = json.loads(caplog.records[-1].getMessage())
        assert payload["level"] == "warning"
        assert payload["logger"] == "relayquery.test"
        assert payload["message"] == "callback_failed"
        assert payload["relay"] == "wss://a"
        assert "timestamp" in payload

    def test_non_serializable_value(self, caplog: pytest.LogCaptureFixture) -> None:
        caplog.set_level(logging.DEBUG)
        Logger("relayquery.test", json_output=True).info("m", error=ValueError("bad"))
        assert json.loads(caplog.records[-1].getMessage())["error"] == "bad"


class TestBind:
    """bind() context propagation."""

    def test_context_prepended(self, caplog: pytest.LogCaptureFixture) -> None:
        caplog.set_level(logging.DEBUG)
        logger = Logger("relayquery.test").bind(sub_id="sub-1")
        logger.info("m", relay="wss://a")
        assert caplog.records[-1].structured_kv == {  # type: ignore[attr-defined]
            "sub_id": "sub-1",
            "relay": "wss://a",
        }

    def test_nested_bind_and_override(self, caplog: pytest.LogCaptureFixture) -> None:
        caplog.set_level(logging.DEBUG)
        logger = Logger("relayquery.test").bind(a=1, b=2).bind(b=3)
        logger.info("m")
        assert caplog.records[-1].structured_kv == {"a": 1, "b": 3}  # type: ignore[attr-defined]

    def test_parent_unchanged(self) -> None:
        parent = Logger("relayquery.test")
        parent.bind(a=1)
        assert parent._context == {}

    def test_keeps_mode(self) -> None:
        child = Logger("relayquery.test", json_output=True).bind(a=1)
        assert child._json_output is True
        assert child.name == "relayquery.test"


class TestSetupLogging:
    """setup_logging() root configuration."""

    def test_key_value_mode(self) -> None:
        with _isolated_root_logger() as root:
            setup_logging("debug")
            assert root.level == logging.DEBUG
            assert len(root.handlers) == 1
            assert isinstance(root.handlers[0].formatter, StructuredFormatter)

    def test_json_mode(self) -> None:
        with _isolated_root_logger() as root:
            setup_logging("WARNING", json_output=True)
            assert root.level == logging.WARNING
            assert isinstance(root.handlers[0].formatter, JsonFormatter)

    def test_json_mode_keeps_logger_fields(self, capsys: pytest.CaptureFixture[str]) -> None:
        with _isolated_root_logger():
            setup_logging("INFO", json_output=True)
            Logger("relayquery.test").bind(sub_id="sub-1").info("query_started", relays=3)
        payload = json.loads(capsys.readouterr().err)
        assert payload["message"] == "query_started"
        assert (payload["sub_id"], payload["relays"]) == ("sub-1", 3)
