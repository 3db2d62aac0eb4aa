"""
Immutable Nostr record (event) as received from a relay.

Relays are untrusted and the engine does not verify signatures, so
[Record.from_payload()][relayquery.models.record.Record.from_payload] is
deliberately lenient: the only hard requirement is a string ``id``, which is
the deduplication key. Optional fields with the wrong type fall back to
neutral defaults instead of rejecting the whole record.

See Also:
    [RelaySession][relayquery.services.query.session.RelaySession]: Builds
        records from inbound ``EVENT`` frames.
    [Aggregator][relayquery.services.query.aggregator.Aggregator]:
        Deduplicates records by ``id`` and orders them by ``created_at``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from ._validation import validate_int, validate_str_not_empty


@dataclass(frozen=True, slots=True)
class Record:
    """One Nostr event.

    Attributes:
        id: 64-hex content-derived identity (not re-verified).
        pubkey: Author public key as hex.
        created_at: Unix timestamp in seconds (``0`` when the relay sent none).
        kind: Event kind.
        content: Raw content string.
        tags: Tag arrays as nested tuples.
        sig: Schnorr signature hex, empty when missing.

    Examples:
        ```python
        record = Record.from_payload({"id": "ab" * 32, "created_at": 10, "kind": 1})
        record.created_at   # 10
        record.to_dict()["tags"]   # []
        ```
    """

    id: str
    pubkey: str = ""
    created_at: int = 0
    kind: int = 0
    content: str = ""
    tags: tuple[tuple[str, ...], ...] = field(default=())
    sig: str = ""

    def __post_init__(self) -> None:
        validate_str_not_empty(self.id, "id")
        validate_int(self.created_at, "created_at")
        validate_int(self.kind, "kind")

    @classmethod
    def from_payload(cls, payload: Any) -> Record | None:
        """Build a record from an ``EVENT`` frame payload.

        Args:
            payload: The third element of an ``["EVENT", sub_id, payload]`` frame.

        Returns:
            A [Record][relayquery.models.record.Record], or ``None`` if the
            payload is not a mapping with a non-empty string ``id``.
        """
        if not isinstance(payload, Mapping):
            return None
        record_id = payload.get("id")
        if not isinstance(record_id, str) or not record_id.strip() or "\x00" in record_id:
            return None

        return cls(
            id=record_id,
            pubkey=_str_or_empty(payload.get("pubkey")),
            created_at=_int_or_zero(payload.get("created_at")),
            kind=_int_or_zero(payload.get("kind")),
            content=_str_or_empty(payload.get("content")),
            tags=_tags(payload.get("tags")),
            sig=_str_or_empty(payload.get("sig")),
        )

    def tag_values(self, name: str) -> list[str]:
        """Return the first value of every tag named *name*, in order."""
        return [tag[1] for tag in self.tags if len(tag) >= 2 and tag[0] == name]

    def to_dict(self) -> dict[str, Any]:
        """Return the NIP-01 JSON object form of this record."""
        return {
            "id": self.id,
            "pubkey": self.pubkey,
            "created_at": self.created_at,
            "kind": self.kind,
            "tags": [list(tag) for tag in self.tags],
            "content": self.content,
            "sig": self.sig,
        }


def _str_or_empty(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _int_or_zero(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        return 0
    return value


def _tags(value: Any) -> tuple[tuple[str, ...], ...]:
    if not isinstance(value, list):
        return ()
    return tuple(
        tuple(item for item in tag if isinstance(item, str)) for tag in value if isinstance(tag, list)
    )
