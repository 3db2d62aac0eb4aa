"""Validation of raw query inputs and construction of the wire filter.

Every function here accepts the loosely-typed values a form or command line
produces (strings with stray whitespace, comma- or newline-separated lists)
and either returns a validated value or raises
[InvalidInputError][relayquery.core.exceptions.InvalidInputError] with a
reason fit for the person who typed it. No function performs I/O.

See Also:
    [Filter][relayquery.models.filter.Filter]: The value these builders return.
    [QueryEngine][relayquery.services.query.service.QueryEngine]: Calls the
        builders before opening any connection.

Examples:
    ```python
    relays = parse_relays("wss://relay.damus.io, wss://nos.lol")
    f = build_filter(parse_kind("1"), author="npub10elfcs...", tag=("t", "nostr"))
    f.to_wire()
    # {'kinds': [1], 'authors': ['7e7e9c42...'], '#t': ['nostr'], 'limit': 20}
    ```
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from datetime import datetime

from relayquery.core.exceptions import InvalidInputError
from relayquery.models.constants import MAX_AUTHORS, MAX_RELAYS, EventKind
from relayquery.models.filter import Filter, TagFilter
from relayquery.models.relay import Relay
from relayquery.utils.bech32 import Bech32Error
from relayquery.utils.keys import InvalidIdentifierError, is_hex_pubkey, npub_to_hex


DEFAULT_QUERY_LIMIT = 20
DEFAULT_SEARCH_LIMIT = 50

_RELAY_SPLIT_RE = re.compile(r"[\n,]")
_AUTHOR_SPLIT_RE = re.compile(r"[\s,]+")
_TAG_NAME_RE = re.compile(r"[a-z]")

TimeBound = int | datetime | str | None
TagInput = TagFilter | tuple[str | None, str | None] | None


def _dedupe(items: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(items))


def _is_digits(s: str) -> bool:
    # ASCII only: str.isdigit() also accepts superscripts and other scripts' digits
    return s.isascii() and s.isdigit()


# ---------------------------------------------------------------------------
# Authors
# ---------------------------------------------------------------------------


def parse_author(token: str | None) -> str | None:
    """Parse one author as 64-hex or ``npub``.

    Returns:
        Lowercase hex, or ``None`` for an empty token.

    Raises:
        InvalidInputError: If the token is neither form.
    """
    if token is None:
        return None
    s = token.strip()
    if not s:
        return None
    if s.startswith("npub1"):
        try:
            return npub_to_hex(s)
        except (Bech32Error, InvalidIdentifierError) as e:
            raise InvalidInputError(f"invalid npub {s!r}: {e}") from e
    if is_hex_pubkey(s):
        return s.lower()
    raise InvalidInputError(f"author must be an npub or 64 hex characters, got {s!r}")


def parse_authors(value: str | Iterable[str] | None) -> tuple[str, ...] | None:
    """Parse a whitespace/comma separated author list for search mode.

    Every token is converted with
    [parse_author()][relayquery.services.query.filters.parse_author], so one
    invalid token fails the whole list. The distinct keys, in input order,
    are then capped at [MAX_AUTHORS][relayquery.models.constants.MAX_AUTHORS].

    Returns:
        A tuple of lowercase hex keys, or ``None`` if there are no tokens.
    """
    if value is None:
        return None
    tokens = _AUTHOR_SPLIT_RE.split(value) if isinstance(value, str) else list(value)
    tokens = _dedupe(t.strip() for t in tokens if t and t.strip())

    authors: list[str] = []
    for token in tokens:
        author = parse_author(token)
        if author is not None and author not in authors:
            authors.append(author)
    return tuple(authors[:MAX_AUTHORS]) or None


# ---------------------------------------------------------------------------
# Kind and tag
# ---------------------------------------------------------------------------


def parse_kind(value: int | str) -> int:
    """Parse an event kind as a non-negative integer.

    Raises:
        InvalidInputError: For ``bool``, negatives, non-integers, or text
            that is not a run of digits.
    """
    if isinstance(value, bool):
        raise InvalidInputError("kind must be a non-negative integer, got a bool")
    if isinstance(value, int):
        kind = int(value)
    elif isinstance(value, str) and _is_digits(value.strip()):
        kind = int(value.strip())
    else:
        raise InvalidInputError(f"kind must be a non-negative integer, got {value!r}")
    if kind < 0:
        raise InvalidInputError(f"kind must be a non-negative integer, got {kind}")
    return kind


def parse_tag_filter(name: str | None, value: str | None) -> TagFilter | None:
    """Parse a single-letter tag constraint.

    Both parts are stripped. Both empty means no constraint; exactly one
    empty is rejected.

    Raises:
        InvalidInputError: If only one part is given or the name is not one
            lowercase letter.
    """
    name = (name or "").strip()
    value = (value or "").strip()
    if not name and not value:
        return None
    if not name or not value:
        raise InvalidInputError("tag name and tag value must be given together")
    if not _TAG_NAME_RE.fullmatch(name):
        raise InvalidInputError(f"tag name must be a single lowercase letter (e.g. g), got {name!r}")
    return TagFilter(name=name, value=value)


# ---------------------------------------------------------------------------
# Relays
# ---------------------------------------------------------------------------


def parse_relays(value: str | Iterable[str | Relay]) -> tuple[Relay, ...]:
    """Parse 1 to [MAX_RELAYS][relayquery.models.constants.MAX_RELAYS] relay URLs.

    Text is split on newlines and commas; entries are stripped, blanks are
    dropped, and duplicates are removed keeping first occurrence.

    Raises:
        InvalidInputError: If an entry is not a valid ``wss://`` URL, or the
            count is outside ``1..MAX_RELAYS``.
    """
    if isinstance(value, str):
        entries: Iterable[str | Relay] = _RELAY_SPLIT_RE.split(value)
    else:
        entries = value

    urls = _dedupe(
        entry.url if isinstance(entry, Relay) else str(entry).strip() for entry in entries
    )
    urls = [u for u in urls if u]

    relays: list[Relay] = []
    for url in urls:
        try:
            relays.append(Relay(url))
        except ValueError as e:
            raise InvalidInputError(f"invalid relay URL {url!r}: {e}") from e

    if not relays:
        raise InvalidInputError("at least one relay is required")
    if len(relays) > MAX_RELAYS:
        raise InvalidInputError(f"at most {MAX_RELAYS} relays are allowed, got {len(relays)}")
    return tuple(relays)


# ---------------------------------------------------------------------------
# Time bounds
# ---------------------------------------------------------------------------


def _parse_time(value: TimeBound, name: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise InvalidInputError(f"{name} must be a timestamp, got a bool")
    if isinstance(value, int):
        ts = value
    elif isinstance(value, datetime):
        # naive datetimes are local time
        ts = int(value.timestamp())
    elif isinstance(value, str):
        s = value.strip()
        if not s:
            return None
        if _is_digits(s):
            ts = int(s)
        else:
            try:
                ts = int(datetime.fromisoformat(s).timestamp())
            except ValueError as e:
                raise InvalidInputError(f"{name} is not an ISO-8601 date/time: {s!r}") from e
    else:
        raise InvalidInputError(f"{name} must be a timestamp, datetime or ISO string")
    if ts < 0:
        raise InvalidInputError(f"{name} must not be before the Unix epoch")
    return ts


def parse_time_bounds(since: TimeBound, until: TimeBound) -> tuple[int | None, int | None]:
    """Parse optional ``since``/``until`` bounds into Unix seconds.

    Raises:
        InvalidInputError: If a bound is unparseable or ``since > until``.
    """
    since_ts = _parse_time(since, "since")
    until_ts = _parse_time(until, "until")
    if since_ts is not None and until_ts is not None and since_ts > until_ts:
        raise InvalidInputError("since must not be after until")
    return since_ts, until_ts


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def _parse_limit(limit: int) -> int:
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        raise InvalidInputError(f"limit must be a positive integer, got {limit!r}")
    return limit


def _coerce_tag(tag: TagInput) -> TagFilter | None:
    if tag is None or isinstance(tag, TagFilter):
        return tag
    name, value = tag
    return parse_tag_filter(name, value)


def build_filter(
    kind: int | str = EventKind.TEXT_NOTE,
    author: str | None = None,
    tag: TagInput = None,
    limit: int = DEFAULT_QUERY_LIMIT,
) -> Filter:
    """Build the single-author query filter.

    Args:
        kind: Event kind (int or digit string).
        author: Optional author as hex or ``npub``.
        tag: Optional [TagFilter][relayquery.models.filter.TagFilter] or
            raw ``(name, value)`` pair.
        limit: Records requested per relay.

    Raises:
        InvalidInputError: If any input is invalid.
    """
    parsed_kind = parse_kind(kind)
    parsed_limit = _parse_limit(limit)
    parsed_author = parse_author(author)
    parsed_tag = _coerce_tag(tag)
    try:
        return Filter(
            kinds=(parsed_kind,),
            limit=parsed_limit,
            authors=(parsed_author,) if parsed_author else None,
            tag=parsed_tag,
        )
    except (ValueError, TypeError) as e:
        raise InvalidInputError(str(e)) from e


def build_search_filter(
    search: str,
    authors: str | Iterable[str] | None = None,
    since: TimeBound = None,
    until: TimeBound = None,
    limit: int = DEFAULT_SEARCH_LIMIT,
    kind: int | str = EventKind.TEXT_NOTE,
) -> Filter:
    """Build a NIP-50 full-text search filter.

    Raises:
        InvalidInputError: If the search term is blank or any other input is
            invalid.
    """
    if not isinstance(search, str) or not search.strip():
        raise InvalidInputError("search term must not be empty")
    parsed_kind = parse_kind(kind)
    parsed_limit = _parse_limit(limit)
    parsed_authors = parse_authors(authors)
    since_ts, until_ts = parse_time_bounds(since, until)
    try:
        return Filter(
            kinds=(parsed_kind,),
            limit=parsed_limit,
            authors=parsed_authors,
            since=since_ts,
            until=until_ts,
            search=search.strip(),
        )
    except (ValueError, TypeError) as e:
        raise InvalidInputError(str(e)) from e
