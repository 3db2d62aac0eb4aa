"""
Immutable NIP-01 subscription filter.

A single [Filter][relayquery.models.filter.Filter] is built per query and
serialized identically for every relay session. All invariants are checked
in ``__post_init__``; the user-facing parsing and error reporting live in
[relayquery.services.query.filters][relayquery.services.query.filters].
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from ._validation import validate_hex_id, validate_int, validate_str_not_empty
from .constants import MAX_AUTHORS


_TAG_NAME_RE = re.compile(r"[a-z]")


@dataclass(frozen=True, slots=True)
class TagFilter:
    """Single-letter tag constraint, serialized as ``"#<name>": [value]``.

    Raises:
        ValueError: If ``name`` is not exactly one lowercase letter or
            ``value`` is empty.
    """

    name: str
    value: str

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not _TAG_NAME_RE.fullmatch(self.name):
            raise ValueError(f"tag name must be a single lowercase letter: {self.name!r}")
        validate_str_not_empty(self.value, "tag value")


@dataclass(frozen=True, slots=True)
class Filter:
    """Query descriptor sent in the ``REQ`` frame.

    Attributes:
        kinds: Event kinds to match (non-empty, each >= 0).
        limit: Maximum number of records requested per relay (> 0).
        authors: Deduplicated author pubkeys (hex), at most
            [MAX_AUTHORS][relayquery.models.constants.MAX_AUTHORS], or ``None``.
        tag: Optional [TagFilter][relayquery.models.filter.TagFilter].
        since: Inclusive lower bound on ``created_at``.
        until: Inclusive upper bound on ``created_at``.
        search: NIP-50 full-text search term.

    Raises:
        ValueError: If any invariant is violated.
        TypeError: If a numeric field is not an ``int``.

    Examples:
        ```python
        f = Filter(kinds=(1,), limit=20, tag=TagFilter("t", "nostr"))
        f.to_wire()   # {'kinds': [1], 'limit': 20, '#t': ['nostr']}
        ```
    """

    kinds: tuple[int, ...]
    limit: int
    authors: tuple[str, ...] | None = None
    tag: TagFilter | None = None
    since: int | None = None
    until: int | None = None
    search: str | None = None

    def __post_init__(self) -> None:
        if not self.kinds:
            raise ValueError("kinds must not be empty")
        for kind in self.kinds:
            validate_int(kind, "kind", minimum=0)
        validate_int(self.limit, "limit", minimum=1)

        if self.authors is not None:
            if not self.authors:
                raise ValueError("authors must be None or non-empty")
            if len(self.authors) > MAX_AUTHORS:
                raise ValueError(f"at most {MAX_AUTHORS} authors allowed, got {len(self.authors)}")
            if len(set(self.authors)) != len(self.authors):
                raise ValueError("authors must not contain duplicates")
            for author in self.authors:
                validate_hex_id(author, "author")

        for name in ("since", "until"):
            value = getattr(self, name)
            if value is not None:
                validate_int(value, name, minimum=0)
        if self.since is not None and self.until is not None and self.since > self.until:
            raise ValueError(f"since ({self.since}) must not be after until ({self.until})")

        if self.search is not None:
            validate_str_not_empty(self.search, "search")

    def to_wire(self) -> dict[str, Any]:
        """Return the JSON object placed in ``["REQ", sub_id, <filter>]``.

        Optional fields are omitted rather than sent as ``null``.
        """
        wire: dict[str, Any] = {"kinds": list(self.kinds)}
        if self.search is not None:
            wire["search"] = self.search
        if self.authors:
            wire["authors"] = list(self.authors)
        if self.tag is not None:
            wire[f"#{self.tag.name}"] = [self.tag.value]
        if self.since is not None:
            wire["since"] = self.since
        if self.until is not None:
            wire["until"] = self.until
        wire["limit"] = self.limit
        return wire
