"""
Unit tests for models.relay module.

Tests:
- Construction and stripping of the raw URL
- Rejection of non-wss schemes, missing hosts, whitespace and null bytes
- Equality and hashing by stripped URL
- Immutability
"""

from dataclasses import FrozenInstanceError

import pytest

from relayquery.models import Relay


class TestRelayConstruction:
    """Relay construction and computed fields."""

    def test_valid_url(self) -> None:
        """A plain wss URL is accepted as-is."""
        relay = Relay("wss://relay.damus.io")
        assert relay.url == "wss://relay.damus.io"
        assert relay.host == "relay.damus.io"

    def test_strips_surrounding_whitespace(self) -> None:
        """Leading and trailing whitespace is removed."""
        assert Relay("  wss://nos.lol \n").url == "wss://nos.lol"

    def test_port_and_path_preserved(self) -> None:
        """Port and path are kept in the URL."""
        relay = Relay("wss://relay.example.com:8443/nostr")
        assert relay.url == "wss://relay.example.com:8443/nostr"
        assert relay.host == "relay.example.com"

    def test_str_is_url(self) -> None:
        """str() returns the URL."""
        assert str(Relay("wss://nos.lol")) == "wss://nos.lol"


class TestRelayValidation:
    """Relay rejects invalid endpoints."""

    @pytest.mark.parametrize(
        "url",
        [
            "ws://relay.damus.io",
            "https://relay.damus.io",
            "relay.damus.io",
            "wss://",
            "",
            "   ",
            "wss://relay .damus.io",
        ],
    )
    def test_rejected(self, url: str) -> None:
        """Non-wss, hostless, empty and whitespace-containing URLs are rejected."""
        with pytest.raises(ValueError):
            Relay(url)

    def test_null_byte(self) -> None:
        """Null bytes are rejected."""
        with pytest.raises(ValueError, match="null"):
            Relay("wss://relay.damus.io\x00")

    def test_non_string(self) -> None:
        """Non-string input raises TypeError."""
        with pytest.raises(TypeError):
            Relay(123)  # type: ignore[arg-type]


class TestRelayIdentity:
    """Equality, hashing and immutability."""

    def test_equal_after_strip(self) -> None:
        """Relays equal when their stripped URLs are equal."""
        assert Relay(" wss://nos.lol") == Relay("wss://nos.lol")
        assert len({Relay(" wss://nos.lol"), Relay("wss://nos.lol")}) == 1

    def test_different_urls_differ(self) -> None:
        assert Relay("wss://nos.lol") != Relay("wss://nos.lol/")

    def test_frozen(self) -> None:
        relay = Relay("wss://nos.lol")
        with pytest.raises(FrozenInstanceError):
            relay.url = "wss://other.example"  # type: ignore[misc]
