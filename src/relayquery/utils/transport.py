"""aiohttp websocket transport for relay sessions.

[WebSocketTransport][relayquery.utils.transport.WebSocketTransport] owns one
``aiohttp.ClientSession`` for the lifetime of a query and opens one websocket
per relay. Connections can be routed through a SOCKS5 proxy via
``aiohttp_socks`` and can optionally skip certificate verification for
relays with self-signed or expired certificates.

All connect failures (DNS, TCP, TLS, HTTP upgrade, timeout) are re-raised as
``OSError`` carrying the relay URL, so callers need a single ``except`` arm.
Timeouts use the ``TimeoutError`` subclass so they can still be told apart.

See Also:
    [RelaySession][relayquery.services.query.session.RelaySession]: The only
        consumer of [connect()][relayquery.utils.transport.WebSocketTransport.connect].

Examples:
    ```python
    async with WebSocketTransport(connect_timeout=5.0) as transport:
        ws = await transport.connect("wss://relay.damus.io")
        await ws.send_str('["REQ","sub-1",{"kinds":[1],"limit":1}]')
        await close_websocket(ws, timeout=2.0)
    ```
"""

from __future__ import annotations

import asyncio
import logging
import ssl
from typing import TYPE_CHECKING, Final

import aiohttp
from aiohttp_socks import ProxyConnector


if TYPE_CHECKING:
    from types import TracebackType


DEFAULT_CONNECT_TIMEOUT: Final[float] = 10.0
DEFAULT_CLOSE_TIMEOUT: Final[float] = 2.0


logger = logging.getLogger("utils.transport")


class WebSocketTransport:
    """Async context manager that opens relay websockets over one client session.

    Args:
        connect_timeout: Upper bound in seconds for the TCP, TLS and HTTP
            upgrade handshake of each connection.
        proxy_url: Optional SOCKS5 proxy URL (e.g. ``socks5://tor:9050``).
        allow_insecure: Disable certificate verification.
    """

    def __init__(
        self,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        proxy_url: str | None = None,
        *,
        allow_insecure: bool = False,
    ) -> None:
        self._connect_timeout = connect_timeout
        self._proxy_url = proxy_url
        self._allow_insecure = allow_insecure
        self._session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> WebSocketTransport:
        ssl_context = ssl.create_default_context()
        if self._allow_insecure:
            ssl_context.check_hostname = False
            ssl_context.verify_mode = ssl.CERT_NONE

        connector: aiohttp.BaseConnector
        if self._proxy_url:
            connector = ProxyConnector.from_url(self._proxy_url, ssl=ssl_context)
        else:
            connector = aiohttp.TCPConnector(ssl=ssl_context)

        self._session = aiohttp.ClientSession(connector=connector)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def connect(self, url: str) -> aiohttp.ClientWebSocketResponse:
        """Open a websocket to *url*.

        Raises:
            RuntimeError: If called outside ``async with``.
            TimeoutError: If the handshake exceeds ``connect_timeout``.
            OSError: On any other connection failure.
            asyncio.CancelledError: If cancelled.
        """
        if self._session is None:
            raise RuntimeError("WebSocketTransport must be used as an async context manager")

        try:
            async with asyncio.timeout(self._connect_timeout):
                return await self._session.ws_connect(url, autoping=True)
        except TimeoutError:
            logger.debug("ws_connect_timeout url=%s timeout_s=%s", url, self._connect_timeout)
            raise TimeoutError(f"Connection timeout: {url}") from None
        except aiohttp.ClientError as e:
            logger.debug("ws_connect_failed url=%s error=%s", url, str(e))
            raise OSError(f"Connection failed: {url}: {e}") from e
        except (ssl.SSLError, OSError) as e:
            logger.debug("ws_connect_error url=%s error=%s", url, str(e))
            raise OSError(f"Connection failed: {url}: {e}") from e


async def close_websocket(
    ws: aiohttp.ClientWebSocketResponse, timeout: float = DEFAULT_CLOSE_TIMEOUT  # noqa: ASYNC109
) -> None:
    """Close *ws* best-effort, giving up after *timeout* seconds.

    Close failures are logged at debug level and never raised.
    """
    if ws.closed:
        return
    # aiohttp can raise ClientError, ServerDisconnectedError, etc. during close
    try:
        await asyncio.wait_for(ws.close(), timeout=timeout)
    except (TimeoutError, aiohttp.ClientError, OSError) as e:
        logger.debug("ws_close_failed error=%s", str(e) or type(e).__name__)
