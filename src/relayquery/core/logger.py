"""
Structured logging with key=value and JSON output support.

Wraps the standard library ``logging`` module so query code can attach
context as keyword arguments::

    logger.info("query_completed", relays=3, records=17, elapsed_s=0.42)
    # info relayquery.query query_completed relays=3 records=17 elapsed_s=0.42

Two output formats are supported: human-readable key=value pairs (default)
and one JSON object per line (``json_output=True``).
[Logger.bind()][relayquery.core.logger.Logger.bind] returns a child logger
that repeats fixed context (such as the subscription id) on every line.

[StructuredFormatter][relayquery.core.logger.StructuredFormatter] (or
[JsonFormatter][relayquery.core.logger.JsonFormatter] for JSON lines) is
installed on the root handler by
[setup_logging()][relayquery.core.logger.setup_logging] so that plain
``logging.getLogger()`` calls from the utils layer share the same layout.
"""

from __future__ import annotations

import datetime
import json
import logging
import sys
from typing import Any, ClassVar


_TRUNCATION_MARK = "...<truncated {} chars>"


def _truncate(value: Any, max_length: int | None) -> Any:
    if not max_length:
        return value
    s = str(value)
    if len(s) <= max_length:
        return value
    return s[:max_length] + _TRUNCATION_MARK.format(len(s) - max_length)


def format_kv_pairs(
    kwargs: dict[str, Any],
    max_value_length: int | None = 1000,
    prefix: str = " ",
) -> str:
    """Format a dictionary as space-separated key=value pairs.

    Values longer than ``max_value_length`` are truncated. Empty values and
    values containing whitespace, ``=`` or quotes are double-quoted with
    backslash escaping.

    Returns:
        e.g. ``' relay=wss://a.example error="timed out"'``, or ``""`` if
        *kwargs* is empty.
    """
    if not kwargs:
        return ""

    parts = []
    for key, value in kwargs.items():
        s = str(_truncate(value, max_value_length))
        if not s or any(c in s for c in " \t\n=\"'"):
            escaped = s.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
            parts.append(f'{key}="{escaped}"')
        else:
            parts.append(f"{key}={s}")
    return prefix + " ".join(parts)


class StructuredFormatter(logging.Formatter):
    """Formats every log record as ``level name message key=value...``.

    Structured fields are read from the ``structured_kv`` extra attached by
    [Logger][relayquery.core.logger.Logger]; records without it are emitted
    with the same prefix and no trailing pairs.
    """

    def format(self, record: logging.LogRecord) -> str:
        line = f"{record.levelname.lower()} {record.name} {record.getMessage()}"
        line += format_kv_pairs(getattr(record, "structured_kv", {}))
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def _json_payload(
    level: str, name: str, msg: str, fields: dict[str, Any], timestamp: datetime.datetime
) -> dict[str, Any]:
    return {
        "timestamp": timestamp.isoformat(),
        "level": level,
        "logger": name,
        "message": msg,
        **fields,
    }


class JsonFormatter(logging.Formatter):
    """Formats every log record as one JSON object.

    The ``structured_kv`` extra attached by
    [Logger][relayquery.core.logger.Logger] becomes top-level keys. Records
    already rendered by a ``json_output=True`` logger are passed through.
    """

    def format(self, record: logging.LogRecord) -> str:
        if getattr(record, "structured_json", False):
            payload = json.loads(record.getMessage())
        else:
            payload = _json_payload(
                record.levelname.lower(),
                record.name,
                record.getMessage(),
                getattr(record, "structured_kv", {}),
                datetime.datetime.fromtimestamp(record.created, datetime.UTC),
            )
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class Logger:
    """Structured logger that appends keyword arguments as extra fields.

    Examples:
        ```python
        logger = Logger("relayquery.query").bind(sub_id="sub-1a2b3c4d")
        logger.debug("frame_dropped", relay="wss://a.example", reason="bad_json")
        # debug relayquery.query frame_dropped sub_id=sub-1a2b3c4d relay=... reason=bad_json
        ```
    """

    _DEFAULT_MAX_VALUE_LENGTH: ClassVar[int] = 1000

    def __init__(
        self,
        name: str,
        *,
        json_output: bool = False,
        max_value_length: int | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize a structured logger.

        Args:
            name: Name passed to ``logging.getLogger``.
            json_output: Emit one JSON object per record instead of key=value.
            max_value_length: Per-value truncation limit (default 1000).
            context: Fields prepended to every record's keyword arguments.
        """
        self._logger = logging.getLogger(name)
        self._json_output = json_output
        self._max_value_length = (
            self._DEFAULT_MAX_VALUE_LENGTH if max_value_length is None else max_value_length
        )
        self._context: dict[str, Any] = dict(context or {})

    @property
    def name(self) -> str:
        return self._logger.name

    def bind(self, **context: Any) -> Logger:
        """Return a child logger that adds *context* to every record."""
        return Logger(
            self._logger.name,
            json_output=self._json_output,
            max_value_length=self._max_value_length,
            context={**self._context, **context},
        )

    def is_enabled_for(self, level: int) -> bool:
        return self._logger.isEnabledFor(level)

    def _log(self, level: int, msg: str, kwargs: dict[str, Any], *, exc_info: bool = False) -> None:
        if not self._logger.isEnabledFor(level):
            return
        fields = {
            k: _truncate(v, self._max_value_length)
            for k, v in {**self._context, **kwargs}.items()
        }
        if self._json_output:
            payload = _json_payload(
                logging.getLevelName(level).lower(),
                self._logger.name,
                msg,
                fields,
                datetime.datetime.now(datetime.UTC),
            )
            self._logger.log(
                level,
                json.dumps(payload, default=str),
                extra={"structured_json": True},
                exc_info=exc_info,
            )
        else:
            self._logger.log(level, msg, extra={"structured_kv": fields}, exc_info=exc_info)

    def debug(self, msg: str, **kwargs: Any) -> None:
        self._log(logging.DEBUG, msg, kwargs)

    def info(self, msg: str, **kwargs: Any) -> None:
        self._log(logging.INFO, msg, kwargs)

    def warning(self, msg: str, **kwargs: Any) -> None:
        self._log(logging.WARNING, msg, kwargs)

    def error(self, msg: str, **kwargs: Any) -> None:
        self._log(logging.ERROR, msg, kwargs)

    def exception(self, msg: str, **kwargs: Any) -> None:
        """Log at ERROR with the active exception's traceback."""
        self._log(logging.ERROR, msg, kwargs, exc_info=True)


def setup_logging(level: str = "INFO", *, json_output: bool = False) -> None:
    """Configure the root logger to write to stderr.

    The handler uses
    [StructuredFormatter][relayquery.core.logger.StructuredFormatter] in
    key=value mode and [JsonFormatter][relayquery.core.logger.JsonFormatter]
    in JSON mode, so every ``Logger`` follows the CLI's ``--json-logs`` choice
    without being rebuilt.
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter() if json_output else StructuredFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level.upper())
