"""In-memory mapping whose entries expire a fixed time after insertion."""

from __future__ import annotations

import time
from collections.abc import Callable, Hashable
from typing import Generic, TypeVar


_V = TypeVar("_V")


class TtlCache(Generic[_V]):
    """Key/value cache with a per-entry time-to-live.

    Expired entries are dropped lazily on access. The clock is injectable so
    expiry can be tested without sleeping.

    Args:
        ttl: Lifetime of each entry in seconds.
        clock: Monotonic time source in seconds.

    Examples:
        ```python
        cache: TtlCache[list[str]] = TtlCache(ttl=86400)
        cache.set(("ab" * 32, "3f2a"), ["cd" * 32])
        cache.get(("ab" * 32, "3f2a"))   # ['cdcd...'] until a day has passed
        ```
    """

    def __init__(self, ttl: float, clock: Callable[[], float] = time.monotonic) -> None:
        if ttl <= 0:
            raise ValueError(f"ttl must be positive, got {ttl}")
        self._ttl = ttl
        self._clock = clock
        self._entries: dict[Hashable, tuple[float, _V]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: Hashable) -> _V | None:
        """Return the live value for *key*, or ``None`` if absent or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, value = entry
        if self._clock() - stored_at > self._ttl:
            del self._entries[key]
            return None
        return value

    def set(self, key: Hashable, value: _V) -> None:
        self._entries[key] = (self._clock(), value)

    def clear(self) -> None:
        self._entries.clear()
