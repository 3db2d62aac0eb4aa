"""Query engine entry points.

[QueryEngine][relayquery.services.query.service.QueryEngine] validates raw
inputs with [relayquery.services.query.filters][relayquery.services.query.filters],
opens a [WebSocketTransport][relayquery.utils.transport.WebSocketTransport]
per call, and runs an
[Aggregator][relayquery.services.query.aggregator.Aggregator]. The transport
is released in the background once the result is final; await
[QueryEngine.wait_closed()][relayquery.services.query.service.QueryEngine.wait_closed]
before shutting the event loop down.

Two modes are supported:

* ``query`` -- one kind, an optional author and an optional single-letter
  tag (defaults: 20 records, 10 s).
* ``search`` -- NIP-50 full-text search with optional authors and time
  bounds (defaults: 50 records, 12 s).

Validation errors are raised before any connection is opened. Relay
failures are never raised; the call returns whatever arrived in time.

Examples:
    ```python
    records = await query_relays(["wss://relay.damus.io"], author="npub1...", kind=1)

    engine = QueryEngine.from_yaml("relayquery.yaml")
    hits = await engine.search(None, "bitcoin", since="2024-01-01T00:00")
    ```
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Iterable
from contextlib import AbstractAsyncContextManager, AsyncExitStack
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from relayquery.core.exceptions import ConfigurationError, InvalidInputError
from relayquery.core.logger import Logger
from relayquery.core.metrics import QUERY_COUNTER, QUERY_DURATION_SECONDS
from relayquery.core.yaml import load_yaml
from relayquery.models.constants import EventKind
from relayquery.models.relay import Relay
from relayquery.utils.transport import WebSocketTransport

from .aggregator import Aggregator, ProgressCallback
from .configs import QueryConfig
from .filters import (
    TagInput,
    TimeBound,
    build_filter,
    build_search_filter,
    parse_relays,
)


if TYPE_CHECKING:
    from pathlib import Path

    from relayquery.models.filter import Filter
    from relayquery.models.record import Record


TransportFactory = Callable[[], AbstractAsyncContextManager[WebSocketTransport]]
RelaysInput = str | Iterable[str | Relay] | None


class QueryEngine:
    """Reusable, stateless front end for multi-relay queries.

    Each call gets its own transport and aggregator, so concurrent calls on
    one engine share nothing but configuration.

    Args:
        config: Engine configuration (defaults apply when omitted).
        transport_factory: Zero-argument callable returning an async context
            manager that yields a transport. Defaults to a
            [WebSocketTransport][relayquery.utils.transport.WebSocketTransport]
            built from ``config.transport``.
    """

    def __init__(
        self,
        config: QueryConfig | None = None,
        *,
        transport_factory: TransportFactory | None = None,
    ) -> None:
        self._config = config or QueryConfig()
        self._transport_factory = transport_factory or self._default_transport
        self._logger = Logger("relayquery.engine")
        self._teardowns: set[asyncio.Task[None]] = set()

    @classmethod
    def from_yaml(cls, config_path: str | Path, **kwargs: Any) -> QueryEngine:
        """Create an engine from a YAML configuration file.

        Raises:
            FileNotFoundError: If the file does not exist.
            ConfigurationError: If the YAML or its values are invalid.
        """
        return cls.from_dict(load_yaml(config_path), **kwargs)

    @classmethod
    def from_dict(cls, data: dict[str, Any], **kwargs: Any) -> QueryEngine:
        """Create an engine from a configuration dictionary.

        Raises:
            ConfigurationError: If *data* does not validate as
                [QueryConfig][relayquery.services.query.configs.QueryConfig].
        """
        try:
            config = QueryConfig(**data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid query configuration: {e}") from e
        return cls(config=config, **kwargs)

    @property
    def config(self) -> QueryConfig:
        return self._config

    def _default_transport(self) -> WebSocketTransport:
        return WebSocketTransport(
            connect_timeout=self._config.timeouts.connect,
            proxy_url=self._config.transport.proxy_url,
            allow_insecure=self._config.transport.allow_insecure,
        )

    def resolve_relays(self, relays: RelaysInput) -> tuple[Relay, ...]:
        """Parse *relays*, falling back to ``config.relays`` when ``None``."""
        if relays is None:
            if not self._config.relays:
                raise InvalidInputError("no relays given and none configured")
            relays = self._config.relays
        return parse_relays(relays)

    @staticmethod
    def _resolve_timeout(timeout: float | None, default: float) -> float:
        if timeout is None:
            return default
        if isinstance(timeout, bool) or not isinstance(timeout, int | float) or timeout <= 0:
            raise InvalidInputError(f"timeout must be a positive number of seconds, got {timeout!r}")
        return float(timeout)

    async def query(
        self,
        relays: RelaysInput,
        author: str | None = None,
        kind: int | str = EventKind.TEXT_NOTE,
        tag: TagInput = None,
        *,
        limit: int | None = None,
        timeout: float | None = None,  # noqa: ASYNC109
        on_progress: ProgressCallback | None = None,
    ) -> list[Record]:
        """Fetch up to *limit* records of one kind, optionally by author and tag.

        Raises:
            InvalidInputError: If any input is invalid (before any I/O).
        """
        parsed_relays = self.resolve_relays(relays)
        event_filter = build_filter(
            kind,
            author=author,
            tag=tag,
            limit=self._config.limits.query if limit is None else limit,
        )
        budget = self._resolve_timeout(timeout, self._config.timeouts.query)
        return await self._execute("query", parsed_relays, event_filter, budget, on_progress)

    async def search(
        self,
        relays: RelaysInput,
        search: str,
        *,
        authors: str | Iterable[str] | None = None,
        since: TimeBound = None,
        until: TimeBound = None,
        kind: int | str = EventKind.TEXT_NOTE,
        limit: int | None = None,
        timeout: float | None = None,  # noqa: ASYNC109
        on_progress: ProgressCallback | None = None,
    ) -> list[Record]:
        """Run a NIP-50 full-text search.

        Raises:
            InvalidInputError: If any input is invalid (before any I/O).
        """
        parsed_relays = self.resolve_relays(relays)
        event_filter = build_search_filter(
            search,
            authors=authors,
            since=since,
            until=until,
            limit=self._config.limits.search if limit is None else limit,
            kind=kind,
        )
        budget = self._resolve_timeout(timeout, self._config.timeouts.search)
        return await self._execute("search", parsed_relays, event_filter, budget, on_progress)

    async def _execute(
        self,
        mode: str,
        relays: tuple[Relay, ...],
        event_filter: Filter,
        timeout: float,  # noqa: ASYNC109
        on_progress: ProgressCallback | None,
    ) -> list[Record]:
        metrics_enabled = self._config.metrics.enabled
        start = time.monotonic()
        stack = AsyncExitStack()
        transport = await stack.enter_async_context(self._transport_factory())
        aggregator: Aggregator | None = None
        try:
            aggregator = Aggregator(
                relays,
                event_filter,
                limit=event_filter.limit,
                timeout=timeout,
                transport=transport,
                on_progress=on_progress,
                close_timeout=self._config.timeouts.close,
                record_metrics=metrics_enabled,
            )
            self._logger.debug(
                "query_dispatched",
                mode=mode,
                sub_id=aggregator.subscription_id,
                relays=",".join(r.url for r in relays),
            )
            records = await aggregator.run()
        finally:
            self._release(aggregator, stack)

        if metrics_enabled:
            QUERY_COUNTER.labels(mode=mode).inc()
            QUERY_DURATION_SECONDS.labels(mode=mode).observe(time.monotonic() - start)
        return records

    def _release(self, aggregator: Aggregator | None, stack: AsyncExitStack) -> None:
        """Exit the transport once the aggregator's sockets are closed, in the background."""

        async def release() -> None:
            try:
                if aggregator is not None:
                    await aggregator.wait_closed()
            finally:
                await stack.aclose()

        task = asyncio.create_task(release())
        self._teardowns.add(task)
        task.add_done_callback(self._teardowns.discard)

    async def wait_closed(self) -> None:
        """Wait until the sockets and transports of finished calls are released.

        Calls return as soon as their result is final; this is for callers
        that want a clean shutdown, such as the CLI before the loop closes.
        """
        pending = list(self._teardowns)
        if not pending:
            return
        for result in await asyncio.gather(*pending, return_exceptions=True):
            if isinstance(result, Exception):
                self._logger.warning(
                    "transport_release_failed", error=str(result), error_type=type(result).__name__
                )


_default_engine: QueryEngine | None = None


def _engine() -> QueryEngine:
    global _default_engine  # noqa: PLW0603
    if _default_engine is None:
        _default_engine = QueryEngine()
    return _default_engine


async def query_relays(
    relays: RelaysInput,
    author: str | None = None,
    kind: int | str = EventKind.TEXT_NOTE,
    tag: TagInput = None,
    *,
    limit: int | None = None,
    timeout: float | None = None,  # noqa: ASYNC109
    on_progress: ProgressCallback | None = None,
) -> list[Record]:
    """[QueryEngine.query()][relayquery.services.query.service.QueryEngine.query] with default configuration."""
    return await _engine().query(
        relays, author, kind, tag, limit=limit, timeout=timeout, on_progress=on_progress
    )


async def query_by_search(
    relays: RelaysInput,
    search: str,
    *,
    authors: str | Iterable[str] | None = None,
    since: TimeBound = None,
    until: TimeBound = None,
    limit: int | None = None,
    timeout: float | None = None,  # noqa: ASYNC109
    on_progress: ProgressCallback | None = None,
) -> list[Record]:
    """[QueryEngine.search()][relayquery.services.query.service.QueryEngine.search] with default configuration."""
    return await _engine().search(
        relays,
        search,
        authors=authors,
        since=since,
        until=until,
        limit=limit,
        timeout=timeout,
        on_progress=on_progress,
    )
