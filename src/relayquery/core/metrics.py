"""
Prometheus metrics for query execution.

Defines module-level metric objects (singletons, thread-safe) shared by every
[QueryEngine][relayquery.services.query.service.QueryEngine] in the process.
Recording is gated on ``MetricsConfig.enabled`` so that library callers who
do not scrape metrics pay nothing beyond the import.

Architecture:
    QUERY_COUNTER:            Queries run, by mode (query/search).
    QUERY_DURATION_SECONDS:   Histogram of end-to-end query latency.
    SESSION_OUTCOMES:         Relay session endings, by outcome.
    RECORDS_RECEIVED:         Well-formed records received (before dedup).
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram
from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class MetricsConfig(BaseModel):
    """Whether query metrics are recorded."""

    enabled: bool = Field(default=False, description="Enable metrics collection")


# ---------------------------------------------------------------------------
# Query Metrics
# ---------------------------------------------------------------------------

QUERY_COUNTER = Counter(
    "relayquery_queries",
    "Queries executed",
    ["mode"],
)

# Buckets span the fast path (sub-second) up to the largest sane timeout
QUERY_DURATION_SECONDS = Histogram(
    "relayquery_query_duration_seconds",
    "End-to-end query duration in seconds",
    ["mode"],
    buckets=(0.1, 0.25, 0.5, 1, 2, 5, 10, 15, 30, 60),
)

# outcome: exhausted, closed, failed, timeout
SESSION_OUTCOMES = Counter(
    "relayquery_session_outcomes",
    "Relay session endings by outcome",
    ["outcome"],
)

RECORDS_RECEIVED = Counter(
    "relayquery_records_received",
    "Well-formed records received from relays (before deduplication)",
)
