"""Core layer: exceptions, structured logging, metrics, and YAML loading.

Sits in the middle of the diamond DAG -- depends only on
``relayquery.models`` and is depended upon by ``relayquery.services``.

Attributes:
    RelayQueryError: Root of the exception hierarchy.
        See [relayquery.core.exceptions][relayquery.core.exceptions].
    Logger: Structured logger supporting key=value and JSON output modes.
        See [Logger][relayquery.core.logger.Logger].
    MetricsConfig: Toggle for Prometheus metric recording.
        See [MetricsConfig][relayquery.core.metrics.MetricsConfig].
    load_yaml: Safe YAML loading with ``yaml.safe_load()``.
        See [load_yaml()][relayquery.core.yaml.load_yaml].
"""

from .exceptions import (
    ConfigurationError,
    ConnectivityError,
    InvalidInputError,
    RelayQueryError,
    RelayTimeoutError,
)
from .logger import JsonFormatter, Logger, StructuredFormatter, format_kv_pairs, setup_logging
from .metrics import (
    QUERY_COUNTER,
    QUERY_DURATION_SECONDS,
    RECORDS_RECEIVED,
    SESSION_OUTCOMES,
    MetricsConfig,
)
from .yaml import load_yaml


__all__ = [
    "QUERY_COUNTER",
    "QUERY_DURATION_SECONDS",
    "RECORDS_RECEIVED",
    "SESSION_OUTCOMES",
    "ConfigurationError",
    "ConnectivityError",
    "InvalidInputError",
    "JsonFormatter",
    "Logger",
    "MetricsConfig",
    "RelayQueryError",
    "RelayTimeoutError",
    "StructuredFormatter",
    "format_kv_pairs",
    "load_yaml",
    "setup_logging",
]
