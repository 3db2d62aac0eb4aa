"""Shared validation helpers for frozen dataclass models.

Private module, not part of the public API. Used by ``__post_init__``
methods in sibling model modules so that invalid instances never escape
their constructor.
"""

from __future__ import annotations

import re
from typing import Any

from .constants import HEX_ID_LENGTH


_HEX_ID_RE = re.compile(rf"[0-9a-f]{{{HEX_ID_LENGTH}}}")


def validate_int(value: Any, name: str, *, minimum: int | None = None) -> None:
    """Raise if *value* is not an ``int`` (``bool`` excluded) or is below *minimum*."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an int, got {type(value).__name__}")
    if minimum is not None and value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}")


def validate_str_no_null(value: Any, name: str) -> None:
    """Raise if *value* is not a ``str`` or contains null bytes."""
    if not isinstance(value, str):
        raise TypeError(f"{name} must be a str, got {type(value).__name__}")
    if "\x00" in value:
        raise ValueError(f"{name} contains null bytes")


def validate_str_not_empty(value: Any, name: str) -> None:
    """Raise if *value* is not a non-empty ``str`` without null bytes."""
    validate_str_no_null(value, name)
    if not value.strip():
        raise ValueError(f"{name} must not be empty")


def is_hex_id(value: Any) -> bool:
    """Return True if *value* is a 64-character lowercase hex string."""
    return isinstance(value, str) and _HEX_ID_RE.fullmatch(value) is not None


def validate_hex_id(value: Any, name: str) -> None:
    """Raise ``ValueError`` if *value* is not a 64-character lowercase hex string."""
    if not is_hex_id(value):
        raise ValueError(f"{name} must be {HEX_ID_LENGTH} lowercase hex characters: {value!r}")
