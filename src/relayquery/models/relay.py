"""
Validated secure-websocket relay endpoint.

A relay is an opaque connection target: its identity is the URL string the
caller supplied (whitespace stripped). Construction only verifies that the
string is a syntactically valid ``wss://`` URI with a host, using RFC 3986
parsing, so that invalid endpoints are rejected before any network activity.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar

from rfc3986 import uri_reference
from rfc3986.exceptions import UnpermittedComponentError, ValidationError
from rfc3986.validators import Validator


@dataclass(frozen=True, slots=True)
class Relay:
    """Immutable representation of one relay endpoint.

    Attributes:
        url: The stripped endpoint URL. Two relays are equal when their
            ``url`` strings are equal.
        host: Hostname component, kept for logging.

    Raises:
        ValueError: If the URL is empty, contains whitespace or null bytes,
            uses a scheme other than ``wss``, or lacks a valid host.

    Examples:
        ```python
        relay = Relay("  wss://relay.damus.io ")
        relay.url    # 'wss://relay.damus.io'
        relay.host   # 'relay.damus.io'
        Relay("ws://relay.damus.io")   # ValueError: must be wss
        ```
    """

    raw_url: str = field(repr=False, compare=False)
    url: str = field(init=False)
    host: str = field(init=False, compare=False)

    _SCHEME: ClassVar[str] = "wss"

    def __post_init__(self) -> None:
        """Validate the raw URL and populate the computed fields.

        Raises:
            ValueError: If the URL is not a valid secure-websocket URI.
        """
        if not isinstance(self.raw_url, str):
            raise TypeError(f"Relay URL must be a str, got {type(self.raw_url).__name__}")
        if "\x00" in self.raw_url:
            raise ValueError("Relay URL contains null bytes")

        url = self.raw_url.strip()
        if not url:
            raise ValueError("Relay URL must not be empty")
        if any(c.isspace() for c in url):
            raise ValueError(f"Relay URL must not contain whitespace: {url!r}")

        host = self._validate(url)

        # Bypass frozen restriction to set computed fields
        object.__setattr__(self, "url", url)
        object.__setattr__(self, "host", host)

    @classmethod
    def _validate(cls, url: str) -> str:
        """Check the URI structure and return its host.

        Raises:
            ValueError: If the scheme is not ``wss`` or the URI is invalid.
        """
        uri = uri_reference(url).normalize()

        validator = (
            Validator()
            .require_presence_of("scheme", "host")
            .allow_schemes(cls._SCHEME)
            .check_validity_of("scheme", "host", "port", "path")
        )

        try:
            validator.validate(uri)
        except UnpermittedComponentError:
            raise ValueError(f"Invalid relay URL {url!r}: scheme must be {cls._SCHEME}") from None
        except ValidationError as e:
            raise ValueError(f"Invalid relay URL {url!r}: {e}") from None

        host = (uri.host or "").strip("[]")
        if not host:
            raise ValueError(f"Invalid relay URL {url!r}: missing host")
        return host

    def __str__(self) -> str:
        return self.url
