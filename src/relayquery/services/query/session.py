"""Per-relay subscription session.

A [RelaySession][relayquery.services.query.session.RelaySession] owns one
websocket for one query. It connects, sends the ``REQ`` frame exactly once,
classifies inbound frames, and reports everything it observes as
[SessionMessage][relayquery.services.query.session.SessionMessage] values on
the shared aggregation queue. It never touches the record map or the
done-set; those belong to the
[Aggregator][relayquery.services.query.aggregator.Aggregator].

State machine:

```text
CONNECTING --open--> SUBSCRIBED --EVENT--> STREAMING
    |                    |                     |
    +---- connect fail --+------ EOSE / close -+--> DONE
```

Every exit path (normal return, exception, cancellation) closes the
websocket, bounded by ``close_timeout``.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import aiohttp

from relayquery.core.exceptions import ConnectivityError, RelayTimeoutError
from relayquery.core.logger import Logger
from relayquery.models.progress import ProgressKind, SessionState
from relayquery.models.record import Record
from relayquery.utils.transport import DEFAULT_CLOSE_TIMEOUT, close_websocket


if TYPE_CHECKING:
    from relayquery.models.relay import Relay
    from relayquery.utils.transport import WebSocketTransport


_logger = Logger("relayquery.session")


@dataclass(frozen=True, slots=True)
class SessionMessage:
    """One observation reported by a session to the aggregator.

    Attributes:
        kind: What happened.
        relay: URL of the reporting relay.
        record: The parsed record (``RECORD_RECEIVED`` only).
        error: The classified failure (``FAILED`` only).
    """

    kind: ProgressKind
    relay: str
    record: Record | None = None
    error: ConnectivityError | None = None


def classify_error(relay: Relay, error: BaseException) -> ConnectivityError:
    """Wrap a transport exception in the connectivity hierarchy."""
    detail = str(error) or type(error).__name__
    if isinstance(error, TimeoutError):
        return RelayTimeoutError(f"{relay.url}: {detail}")
    return ConnectivityError(f"{relay.url}: {detail}")


class RelaySession:
    """Subscription lifecycle for one relay within one query.

    Args:
        relay: The relay to connect to.
        subscription_id: Shared subscription id of the query.
        request_frame: The serialized ``["REQ", sub_id, filter]`` frame.
        queue: Aggregation queue; the session only ever puts on it.
        transport: Opens the websocket (see
            [WebSocketTransport][relayquery.utils.transport.WebSocketTransport]).
        close_timeout: Upper bound in seconds for the close handshake.
        logger: Logger to report frame drops and failures on.
    """

    def __init__(
        self,
        relay: Relay,
        subscription_id: str,
        request_frame: str,
        queue: asyncio.Queue[SessionMessage],
        transport: WebSocketTransport,
        *,
        close_timeout: float = DEFAULT_CLOSE_TIMEOUT,
        logger: Logger | None = None,
    ) -> None:
        self._relay = relay
        self._subscription_id = subscription_id
        self._request_frame = request_frame
        self._queue = queue
        self._transport = transport
        self._close_timeout = close_timeout
        self._logger = (logger or _logger).bind(relay=relay.url)
        self._state = SessionState.CONNECTING

    @property
    def relay(self) -> Relay:
        return self._relay

    @property
    def state(self) -> SessionState:
        return self._state

    def _emit(
        self,
        kind: ProgressKind,
        *,
        record: Record | None = None,
        error: ConnectivityError | None = None,
    ) -> None:
        self._queue.put_nowait(
            SessionMessage(kind=kind, relay=self._relay.url, record=record, error=error)
        )

    def _fail(self, error: BaseException) -> None:
        classified = classify_error(self._relay, error)
        self._logger.debug("session_failed", error=str(classified), state=self._state)
        self._emit(ProgressKind.FAILED, error=classified)

    async def run(self) -> None:
        """Connect, subscribe, and stream until ``EOSE``, close, or cancellation."""
        ws: aiohttp.ClientWebSocketResponse | None = None
        try:
            try:
                ws = await self._transport.connect(self._relay.url)
            except (aiohttp.ClientError, OSError) as e:
                self._state = SessionState.DONE
                self._fail(e)
                return

            try:
                await ws.send_str(self._request_frame)
            except (aiohttp.ClientError, OSError) as e:
                self._state = SessionState.DONE
                self._fail(e)
                return

            self._state = SessionState.SUBSCRIBED
            self._logger.debug("session_opened")
            self._emit(ProgressKind.OPENED)

            await self._stream(ws)
        finally:
            if ws is not None:
                await close_websocket(ws, self._close_timeout)

    async def _stream(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        try:
            async for msg in ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    exhausted = self._handle_frame(msg.data)
                elif msg.type == aiohttp.WSMsgType.BINARY:
                    try:
                        exhausted = self._handle_frame(msg.data.decode("utf-8"))
                    except UnicodeDecodeError:
                        self._drop("bad_utf8")
                        continue
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    self._fail(ws.exception() or ConnectionError("websocket error"))
                    continue
                else:
                    continue
                if exhausted:
                    return
        except (aiohttp.ClientError, OSError) as e:
            self._fail(e)

        if self._state != SessionState.DONE:
            self._state = SessionState.DONE
            self._logger.debug("session_closed")
            self._emit(ProgressKind.CLOSED)

    def _drop(self, reason: str, **kwargs: Any) -> None:
        self._logger.debug("frame_dropped", reason=reason, **kwargs)

    def _handle_frame(self, raw: str) -> bool:
        """Process one inbound text frame.

        Returns:
            ``True`` once ``EOSE`` for this subscription has been seen.
        """
        try:
            frame = json.loads(raw)
        except (ValueError, RecursionError):
            # RecursionError: nesting deeper than the decoder allows
            self._drop("bad_json")
            return False

        if not isinstance(frame, list) or len(frame) < 2:
            self._drop("not_a_frame")
            return False
        if frame[1] != self._subscription_id:
            self._drop("foreign_subscription")
            return False

        frame_type = frame[0]
        if frame_type == "EVENT":
            record = Record.from_payload(frame[2]) if len(frame) > 2 else None
            if record is None:
                self._drop("bad_event")
                return False
            if self._state == SessionState.SUBSCRIBED:
                self._state = SessionState.STREAMING
            self._emit(ProgressKind.RECORD_RECEIVED, record=record)
            return False

        if frame_type == "EOSE":
            self._state = SessionState.DONE
            self._logger.debug("session_exhausted")
            self._emit(ProgressKind.STREAM_EXHAUSTED)
            return True

        # NOTICE, CLOSED, AUTH, OK ... are not part of a read-only query
        return False
