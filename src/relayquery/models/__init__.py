"""Pure frozen dataclasses with zero I/O for relays, records, and filters.

The models layer is the foundation of the package. It depends only on the
standard library and ``rfc3986``. Every model uses
``@dataclass(frozen=True, slots=True)`` and performs all validation in
``__post_init__`` so invalid instances never escape the constructor.

Attributes:
    Relay: Validated ``wss://`` relay endpoint.
    Record: Lenient, immutable view of one Nostr event received from a relay.
    Filter: Immutable NIP-01 subscription filter with its wire form.
    TagFilter: Single-letter tag constraint embedded in a Filter.
    ProgressEvent: Observability notification emitted while a query runs.
    ProgressKind: Enumeration of progress notification kinds.
    SessionState: Per-relay session state machine states.
    EventKind: Well-known event kinds (metadata, text note, contacts).
"""

from .constants import HEX_ID_LENGTH, MAX_AUTHORS, MAX_RELAYS, EventKind
from .filter import Filter, TagFilter
from .progress import ProgressEvent, ProgressKind, SessionState
from .record import Record
from .relay import Relay


__all__ = [
    "HEX_ID_LENGTH",
    "MAX_AUTHORS",
    "MAX_RELAYS",
    "EventKind",
    "Filter",
    "ProgressEvent",
    "ProgressKind",
    "Record",
    "Relay",
    "SessionState",
    "TagFilter",
]
