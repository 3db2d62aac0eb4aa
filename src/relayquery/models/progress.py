"""Session lifecycle states and the progress events reported to callers.

See Also:
    [RelaySession][relayquery.services.query.session.RelaySession]: Drives
        the [SessionState][relayquery.models.progress.SessionState] machine.
    [Aggregator][relayquery.services.query.aggregator.Aggregator]: Emits
        [ProgressEvent][relayquery.models.progress.ProgressEvent] instances
        to the ``on_progress`` callback.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class SessionState(StrEnum):
    """Per-relay, per-query session state.

    Transitions are ``CONNECTING -> SUBSCRIBED -> STREAMING -> DONE``; any
    state may jump straight to ``DONE`` (connect failure, ``EOSE``, close).
    """

    CONNECTING = "connecting"
    SUBSCRIBED = "subscribed"
    STREAMING = "streaming"
    DONE = "done"


class ProgressKind(StrEnum):
    """Kind of a [ProgressEvent][relayquery.models.progress.ProgressEvent].

    Attributes:
        OPENED: Transport open, ``REQ`` sent.
        RECORD_RECEIVED: A well-formed ``EVENT`` arrived.
        STREAM_EXHAUSTED: The relay sent ``EOSE`` (normal completion).
        FAILED: Connect or transport error. May be followed by ``CLOSED``.
        CLOSED: The relay dropped the connection without ``EOSE``.
    """

    OPENED = "opened"
    RECORD_RECEIVED = "record-received"
    STREAM_EXHAUSTED = "stream-exhausted"
    FAILED = "failed"
    CLOSED = "closed"

    @property
    def is_terminal(self) -> bool:
        """Whether this kind marks the relay as done for the query."""
        return self in _TERMINAL_KINDS


_TERMINAL_KINDS = frozenset(
    {ProgressKind.STREAM_EXHAUSTED, ProgressKind.FAILED, ProgressKind.CLOSED}
)


@dataclass(frozen=True, slots=True)
class ProgressEvent:
    """Observability notification for one relay of a running query.

    Attributes:
        kind: What happened.
        relay: The relay URL it happened on.
        count: Distinct records collected so far (``RECORD_RECEIVED`` only).
        error: Failure description (``FAILED`` only).
    """

    kind: ProgressKind
    relay: str
    count: int | None = None
    error: str | None = None
