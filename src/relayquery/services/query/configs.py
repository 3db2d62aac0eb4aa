"""Query engine configuration models.

All durations are in seconds. Every section has defaults, so partial YAML
overrides are allowed (e.g. setting only ``timeouts.search: 20``).

See Also:
    [QueryEngine][relayquery.services.query.service.QueryEngine]: The engine
        that consumes these configurations.
    [load_yaml()][relayquery.core.yaml.load_yaml]: Loads the YAML file passed
        to [QueryEngine.from_yaml()][relayquery.services.query.service.QueryEngine.from_yaml].

Examples:
    ```yaml
    timeouts:
      query: 8.0
      close: 1.0
    limits:
      search: 100
    transport:
      proxy_url: socks5://tor:9050
    relays:
      - wss://relay.damus.io
      - wss://nos.lol
    ```
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from relayquery.core.metrics import MetricsConfig
from relayquery.models.constants import MAX_RELAYS
from relayquery.models.relay import Relay


class TimeoutsConfig(BaseModel):
    """Time budgets in seconds.

    ``query`` and ``search`` are the global per-call budgets for the two
    modes; ``connect`` bounds each relay's websocket handshake; ``close``
    bounds the best-effort close of each socket after the result is final.
    """

    query: float = Field(default=10.0, gt=0.0, le=300.0)
    search: float = Field(default=12.0, gt=0.0, le=300.0)
    connect: float = Field(default=10.0, gt=0.0, le=120.0)
    close: float = Field(default=2.0, ge=0.0, le=30.0)


class LimitsConfig(BaseModel):
    """Default result sizes when the caller does not pass ``limit``."""

    query: int = Field(default=20, ge=1, le=5000)
    search: int = Field(default=50, ge=1, le=5000)


class TransportConfig(BaseModel):
    """Websocket transport options.

    See Also:
        [WebSocketTransport][relayquery.utils.transport.WebSocketTransport]:
            Receives these values.
    """

    proxy_url: str | None = Field(default=None, description="SOCKS5 proxy URL")
    allow_insecure: bool = Field(default=False, description="Skip TLS certificate checks")


class QueryConfig(BaseModel):
    """Top-level configuration for [QueryEngine][relayquery.services.query.service.QueryEngine].

    ``relays`` is an optional default relay list used by the CLI and the
    followings loader when no relays are passed explicitly.
    """

    timeouts: TimeoutsConfig = Field(default_factory=TimeoutsConfig)
    limits: LimitsConfig = Field(default_factory=LimitsConfig)
    transport: TransportConfig = Field(default_factory=TransportConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)
    relays: list[str] | None = Field(default=None, description="Default relay URLs")

    @field_validator("relays", mode="after")
    @classmethod
    def validate_relays(cls, v: list[str] | None) -> list[str] | None:
        """Validate that every default relay is a ``wss://`` URL and the count is 1..5."""
        if v is None:
            return v
        if not 1 <= len(v) <= MAX_RELAYS:
            raise ValueError(f"relays must list 1 to {MAX_RELAYS} URLs, got {len(v)}")
        return [Relay(url).url for url in v]
