"""Query orchestration on top of the models, utils, and core layers.

Services are the top layer of the diamond DAG.

```text
filters -> Aggregator -> RelaySession x N -> WebSocketTransport
                 ^
          QueryEngine <- FollowingsLoader
```

Attributes:
    query: Filter builder, relay session, aggregator, and the
        [QueryEngine][relayquery.services.query.service.QueryEngine] entry point.
    followings: Follow-list and profile loader built on the engine.

Examples:
    ```python
    from relayquery.services import QueryEngine

    engine = QueryEngine()
    records = await engine.query("wss://relay.damus.io", kind=1, tag=("t", "nostr"))
    ```
"""

from .followings import FollowingsLoader, Profile
from .query import QueryConfig, QueryEngine, query_by_search, query_relays


__all__ = [
    "FollowingsLoader",
    "Profile",
    "QueryConfig",
    "QueryEngine",
    "query_by_search",
    "query_relays",
]
