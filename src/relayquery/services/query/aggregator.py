"""Fan-out / fan-in of one query across several relays.

The [Aggregator][relayquery.services.query.aggregator.Aggregator] spawns one
[RelaySession][relayquery.services.query.session.RelaySession] task per
relay and is the only consumer of their shared queue, so every mutation of
the record map and the done-set is serialized through one loop.

The query ends on whichever comes first:

* every relay is done (``EOSE``, failure, or close) -- the fast path;
* the global timeout fires -- sessions still running are cancelled.

Both paths leave the same ``asyncio.timeout`` scope, so the result is
finalized exactly once. Sockets are closed afterwards in a background task
(see [wait_closed()][relayquery.services.query.aggregator.Aggregator.wait_closed]),
so closing never adds to the time budget. Relay failures never raise; an
empty result is a valid result.
"""

from __future__ import annotations

import asyncio
import json
import secrets
import time
from collections.abc import Callable, Coroutine, Sequence
from typing import TYPE_CHECKING, Any

from relayquery.core.logger import Logger
from relayquery.core.metrics import RECORDS_RECEIVED, SESSION_OUTCOMES
from relayquery.models.progress import ProgressEvent, ProgressKind, SessionState
from relayquery.services.query.session import RelaySession, SessionMessage
from relayquery.utils.transport import DEFAULT_CLOSE_TIMEOUT


if TYPE_CHECKING:
    from relayquery.models.filter import Filter
    from relayquery.models.record import Record
    from relayquery.models.relay import Relay
    from relayquery.utils.transport import WebSocketTransport


ProgressCallback = Callable[[ProgressEvent], None]

_logger = Logger("relayquery.query")

_OUTCOMES = {
    ProgressKind.STREAM_EXHAUSTED: "exhausted",
    ProgressKind.CLOSED: "closed",
    ProgressKind.FAILED: "failed",
}

# The event loop keeps only weak references to tasks.
_background: set[asyncio.Task[None]] = set()


def _detach(coro: Coroutine[Any, Any, None]) -> asyncio.Task[None]:
    task = asyncio.create_task(coro)
    _background.add(task)
    task.add_done_callback(_background.discard)
    return task


def new_subscription_id() -> str:
    """Return a fresh ``sub-`` id with 8 random hex characters."""
    return "sub-" + secrets.token_hex(4)


def finalize(records: dict[str, Record], limit: int) -> list[Record]:
    """Order records newest first and keep at most *limit*.

    ``sorted`` is stable, so records with equal ``created_at`` keep the
    order in which their id was first inserted.
    """
    ordered = sorted(records.values(), key=lambda r: r.created_at, reverse=True)
    return ordered[:limit]


class Aggregator:
    """Run one filter against several relays and merge the answers.

    Args:
        relays: Distinct relays to query.
        event_filter: Filter sent unchanged to every relay.
        limit: Maximum number of records returned.
        timeout: Global time budget in seconds.
        transport: Opens the websockets; must already be entered.
        on_progress: Optional synchronous observer, called once per session
            message. Exceptions it raises are logged and ignored.
        close_timeout: Grace period in seconds for sockets to close in the
            background after the result is final.
        record_metrics: Record Prometheus session outcomes and record counts.
        subscription_id: Override the random subscription id.

    Examples:
        ```python
        async with WebSocketTransport() as transport:
            records = await Aggregator(
                relays, build_filter(1), limit=20, timeout=10.0, transport=transport
            ).run()
        ```
    """

    def __init__(
        self,
        relays: Sequence[Relay],
        event_filter: Filter,
        *,
        limit: int,
        timeout: float,  # noqa: ASYNC109
        transport: WebSocketTransport,
        on_progress: ProgressCallback | None = None,
        close_timeout: float = DEFAULT_CLOSE_TIMEOUT,
        record_metrics: bool = False,
        subscription_id: str | None = None,
    ) -> None:
        self._relays = tuple(relays)
        self._filter = event_filter
        self._limit = limit
        self._timeout = timeout
        self._transport = transport
        self._on_progress = on_progress
        self._close_timeout = close_timeout
        self._record_metrics = record_metrics
        self._subscription_id = subscription_id or new_subscription_id()
        self._logger = _logger.bind(sub_id=self._subscription_id)

        self._records: dict[str, Record] = {}
        self._done: set[str] = set()
        self._closing: asyncio.Task[None] | None = None

    @property
    def subscription_id(self) -> str:
        return self._subscription_id

    @property
    def request_frame(self) -> str:
        """The serialized ``REQ`` frame shared by every session."""
        return json.dumps(
            ["REQ", self._subscription_id, self._filter.to_wire()], separators=(",", ":")
        )

    async def run(self) -> list[Record]:
        """Query every relay and return the merged, ordered, truncated records.

        Sockets are closed in the background once the result is final, so a
        relay that ignores the close handshake never delays the return. Await
        [wait_closed()][relayquery.services.query.aggregator.Aggregator.wait_closed]
        to know when they are gone.
        """
        self._records = {}
        self._done = set()
        queue: asyncio.Queue[SessionMessage] = asyncio.Queue()
        request_frame = self.request_frame
        sessions = [
            RelaySession(
                relay,
                self._subscription_id,
                request_frame,
                queue,
                self._transport,
                close_timeout=self._close_timeout,
                logger=self._logger,
            )
            for relay in self._relays
        ]

        self._logger.info(
            "query_started",
            relays=len(sessions),
            limit=self._limit,
            timeout_s=self._timeout,
        )
        start = time.monotonic()
        tasks = [asyncio.create_task(session.run()) for session in sessions]
        timed_out = False

        try:
            async with asyncio.timeout(self._timeout):
                await self._consume(queue)
        except TimeoutError:
            timed_out = True
            pending = [s for s in sessions if s.state != SessionState.DONE]
            self._logger.info(
                "query_timeout",
                pending=len(pending),
                done=len(self._done),
                records=len(self._records),
            )
            if self._record_metrics:
                SESSION_OUTCOMES.labels(outcome="timeout").inc(len(pending))
            for session, task in zip(sessions, tasks, strict=True):
                if session.state != SessionState.DONE:
                    task.cancel()
        except BaseException:
            for task in tasks:
                task.cancel()
            raise
        finally:
            self._closing = _detach(self._cleanup(tasks))

        result = finalize(self._records, self._limit)
        self._logger.info(
            "query_completed",
            records=len(result),
            distinct=len(self._records),
            done=len(self._done),
            timed_out=timed_out,
            elapsed_s=round(time.monotonic() - start, 3),
        )
        return result

    async def wait_closed(self) -> None:
        """Wait until every socket of the last run is closed or abandoned."""
        if self._closing is not None:
            await self._closing

    async def _consume(self, queue: asyncio.Queue[SessionMessage]) -> None:
        expected = {relay.url for relay in self._relays}
        while not expected <= self._done:
            message = await queue.get()
            self._apply(message)

    def _apply(self, message: SessionMessage) -> None:
        count: int | None = None
        if message.kind == ProgressKind.RECORD_RECEIVED and message.record is not None:
            # last copy of a duplicate id wins
            self._records[message.record.id] = message.record
            count = len(self._records)
            if self._record_metrics:
                RECORDS_RECEIVED.inc()
        elif message.kind.is_terminal and message.relay not in self._done:
            self._done.add(message.relay)
            if self._record_metrics:
                SESSION_OUTCOMES.labels(outcome=_OUTCOMES[message.kind]).inc()
            if message.kind == ProgressKind.FAILED:
                self._logger.info("session_failed", relay=message.relay, error=message.error)

        self._notify(
            ProgressEvent(
                kind=message.kind,
                relay=message.relay,
                count=count,
                error=str(message.error) if message.error is not None else None,
            )
        )

    def _notify(self, event: ProgressEvent) -> None:
        if self._on_progress is None:
            return
        try:
            self._on_progress(event)
        except Exception as e:  # noqa: BLE001
            self._logger.warning(
                "progress_callback_failed", kind=event.kind, relay=event.relay, error=str(e)
            )

    async def _cleanup(self, tasks: list[asyncio.Task[None]]) -> None:
        """Let sessions finish closing, then cancel and reap any stragglers."""
        running = [t for t in tasks if not t.done()]
        if running:
            _, still_running = await asyncio.wait(running, timeout=self._close_timeout)
            for task in still_running:
                task.cancel()
        results = await asyncio.gather(*tasks, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                self._logger.error(
                    "session_crashed", error=str(result), error_type=type(result).__name__
                )
