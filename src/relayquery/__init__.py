r"""relayquery -- Multi-relay Nostr event query engine.

Sends one subscription to up to five relays at once, merges their answers
into a deduplicated, newest-first result, and returns within a fixed time
budget no matter how slow or broken individual relays are.

Architecture follows a **diamond DAG** dependency structure where imports
flow strictly downward:

```text
              services         Query engine, followings loader
             /        \
          core        utils    Errors, logging, metrics / codec, transport
             \        /
              models           Pure frozen dataclasses (zero I/O)
```

Attributes:
    models: Relay, Record, Filter, progress events. Zero I/O.
    utils: bech32 codec, key helpers, aiohttp websocket transport.
    core: Exceptions, structured logging, metrics, YAML loading.
    services: Filter builder, relay session, aggregator, query engine,
        followings loader.

Note:
    Top-level imports (``from relayquery import QueryEngine``) use lazy
    loading and resolve on first access.
"""

import importlib
from importlib.metadata import version as _get_version


__version__ = _get_version("relayquery")

__all__ = [
    "Filter",
    "FollowingsLoader",
    "InvalidInputError",
    "Logger",
    "ProgressEvent",
    "ProgressKind",
    "QueryConfig",
    "QueryEngine",
    "Record",
    "Relay",
    "RelayQueryError",
    "decode_identifier",
    "encode_identifier",
    "query_by_search",
    "query_relays",
]

_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    "InvalidInputError": ("relayquery.core", "InvalidInputError"),
    "Logger": ("relayquery.core", "Logger"),
    "RelayQueryError": ("relayquery.core", "RelayQueryError"),
    "Filter": ("relayquery.models", "Filter"),
    "ProgressEvent": ("relayquery.models", "ProgressEvent"),
    "ProgressKind": ("relayquery.models", "ProgressKind"),
    "Record": ("relayquery.models", "Record"),
    "Relay": ("relayquery.models", "Relay"),
    "decode_identifier": ("relayquery.utils.keys", "decode_identifier"),
    "encode_identifier": ("relayquery.utils.keys", "encode_identifier"),
    "FollowingsLoader": ("relayquery.services", "FollowingsLoader"),
    "QueryConfig": ("relayquery.services", "QueryConfig"),
    "QueryEngine": ("relayquery.services", "QueryEngine"),
    "query_by_search": ("relayquery.services", "query_by_search"),
    "query_relays": ("relayquery.services", "query_relays"),
}


def __getattr__(name: str) -> object:
    if name in _LAZY_IMPORTS:
        module_path, attr_name = _LAZY_IMPORTS[name]
        module = importlib.import_module(module_path)
        value = getattr(module, attr_name)
        globals()[name] = value  # Cache for subsequent access
        return value
    raise AttributeError(f"module 'relayquery' has no attribute {name!r}")


def __dir__() -> list[str]:
    return __all__
