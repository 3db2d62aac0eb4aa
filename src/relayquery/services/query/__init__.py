"""Multi-relay query engine.

Attributes:
    QueryEngine: Validates inputs and runs queries across relays.
        See [QueryEngine][relayquery.services.query.service.QueryEngine].
    QueryConfig: Pydantic configuration (timeouts, limits, transport, metrics).
    Aggregator: Single-consumer fan-in of relay sessions.
    RelaySession: One relay's subscription lifecycle.
    query_relays: Single-author query with default configuration.
    query_by_search: NIP-50 search with default configuration.
"""

from .aggregator import Aggregator, ProgressCallback, finalize, new_subscription_id
from .configs import LimitsConfig, QueryConfig, TimeoutsConfig, TransportConfig
from .filters import (
    build_filter,
    build_search_filter,
    parse_author,
    parse_authors,
    parse_kind,
    parse_relays,
    parse_tag_filter,
    parse_time_bounds,
)
from .service import QueryEngine, query_by_search, query_relays
from .session import RelaySession, SessionMessage


__all__ = [
    "Aggregator",
    "LimitsConfig",
    "ProgressCallback",
    "QueryConfig",
    "QueryEngine",
    "RelaySession",
    "SessionMessage",
    "TimeoutsConfig",
    "TransportConfig",
    "build_filter",
    "build_search_filter",
    "finalize",
    "new_subscription_id",
    "parse_author",
    "parse_authors",
    "parse_kind",
    "parse_relays",
    "parse_tag_filter",
    "parse_time_bounds",
    "query_by_search",
    "query_relays",
]
