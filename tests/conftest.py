"""
Pytest configuration and shared fixtures for relayquery tests.

Provides:
- Websocket/transport doubles (registered from ``fixtures.websocket``)
- Canonical key vectors and relay/record samples
"""

import logging

import pytest

from relayquery.models import Record, Relay


pytest_plugins = ["fixtures.websocket"]


# ============================================================================
# Logging Configuration
# ============================================================================


@pytest.fixture(scope="session", autouse=True)
def setup_logging() -> None:
    """Configure logging for tests."""
    logging.basicConfig(level=logging.DEBUG)


# ============================================================================
# Key Vectors
# ============================================================================

NPUB_HEX = "7e7e9c42a91bfef19fa929e5fda1b72e0ebc1a4c1141673e2794234d86addf4e"
NPUB = "npub10elfcs4fr0l0r8af98jlmgdh9c8tcxjvz9qkw038js35mp4dma8qzvjptg"
NSEC_HEX = "67dea2ed018072d675f5415ecfaed7d2597555e202d85b3d65ea4e58d2d92ffa"  # pragma: allowlist secret
NSEC = "nsec1vl029mgpspedva04g90vltkh6fvh240zqtv9k0t9af8935ke9laqsnlfe5"  # pragma: allowlist secret


@pytest.fixture
def npub_vector() -> tuple[str, str]:
    """(hex, npub) pair from NIP-19."""
    return NPUB_HEX, NPUB


@pytest.fixture
def nsec_vector() -> tuple[str, str]:
    """(hex, nsec) pair from NIP-19."""
    return NSEC_HEX, NSEC


# ============================================================================
# Sample Data Fixtures
# ============================================================================


@pytest.fixture
def relay() -> Relay:
    """Standard wss:// relay."""
    return Relay("wss://relay.example.com")


@pytest.fixture
def sample_record() -> Record:
    """Kind-1 record with one hashtag."""
    return Record(
        id="a" * 64,
        pubkey="b" * 64,
        created_at=1700000000,
        kind=1,
        content="gm",
        tags=(("t", "nostr"),),
        sig="e" * 128,
    )
