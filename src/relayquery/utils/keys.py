"""Nostr public-key identifier helpers.

Converts between 64-character hex public keys and their NIP-19 bech32
forms, and normalizes user-supplied identifiers (hex with optional ``0x``
prefix, any case, or ``npub``) into canonical lowercase hex.

Note:
    Codec failures raised by [bech32][relayquery.utils.bech32] propagate
    unchanged. Every error raised here is a ``ValueError`` subclass so callers
    that only care about "bad input" can catch one type.

See Also:
    [relayquery.services.query.filters][relayquery.services.query.filters]:
        Wraps these errors into ``InvalidInputError`` for query inputs.

Examples:
    ```python
    hex_to_npub("7e7e9c42a91bfef19fa929e5fda1b72e0ebc1a4c1141673e2794234d86addf4e")
    # 'npub10elfcs4fr0l0r8af98jlmgdh9c8tcxjvz9qkw038js35mp4dma8qzvjptg'
    normalize_pubkey("0x7E7E9C42...")   # lowercase hex
    ```
"""

from __future__ import annotations

import re
from typing import Final

from . import bech32


NPUB_PREFIX: Final[str] = "npub"
KEY_LENGTH: Final[int] = 32

_HEX64_RE = re.compile(r"[0-9a-fA-F]{64}")


class InvalidIdentifierError(ValueError):
    """The input decoded correctly but is not the expected kind of identifier."""


def is_hex_pubkey(value: str) -> bool:
    """Return ``True`` if *value* is exactly 64 hex digits (any case)."""
    return isinstance(value, str) and bool(_HEX64_RE.fullmatch(value))


def encode_identifier(prefix: str, data: bytes) -> str:
    """Encode raw bytes under a bech32 prefix."""
    return bech32.encode(prefix, bech32.to_words(data))


def decode_identifier(value: str) -> tuple[str, str]:
    """Decode a 32-byte bech32 identifier of any prefix.

    Returns:
        ``(prefix, hex)`` with the payload as lowercase hex.

    Raises:
        MalformedIdentifierError: If the string is not valid bech32.
        InvalidBitGroupingError: If the payload padding is invalid.
        InvalidIdentifierError: If the payload is not 32 bytes.
    """
    prefix, words = bech32.decode(value)
    data = bech32.from_words(words)
    if len(data) != KEY_LENGTH:
        raise InvalidIdentifierError(f"expected {KEY_LENGTH}-byte payload, got {len(data)}")
    return prefix, data.hex()


def hex_to_npub(hex_key: str) -> str:
    """Encode a 64-hex public key as ``npub1...``.

    Raises:
        InvalidIdentifierError: If *hex_key* is not 64 hex characters.
    """
    if not is_hex_pubkey(hex_key):
        raise InvalidIdentifierError(f"expected 64 hex characters, got {hex_key!r}")
    return encode_identifier(NPUB_PREFIX, bytes.fromhex(hex_key))


def npub_to_hex(value: str) -> str:
    """Decode an ``npub1...`` string to lowercase hex.

    Raises:
        InvalidIdentifierError: If the prefix is not ``npub`` or the payload
            is not 32 bytes.
    """
    prefix, hex_key = decode_identifier(value)
    if prefix != NPUB_PREFIX:
        raise InvalidIdentifierError(f"expected {NPUB_PREFIX} prefix, got {prefix!r}")
    return hex_key


def normalize_pubkey(value: str) -> str:
    """Normalize a user-supplied public key to lowercase hex.

    Accepts 64 hex characters in any case with an optional ``0x`` prefix, or
    an ``npub``. Surrounding whitespace is ignored.

    Raises:
        InvalidIdentifierError: If the value is neither form.
    """
    if not isinstance(value, str):
        raise InvalidIdentifierError(f"expected str, got {type(value).__name__}")
    candidate = value.strip()
    if candidate[:2] in ("0x", "0X"):
        candidate = candidate[2:]
    if is_hex_pubkey(candidate):
        return candidate.lower()
    if candidate.lower().startswith(NPUB_PREFIX + "1"):
        try:
            return npub_to_hex(candidate)
        except bech32.Bech32Error as e:
            raise InvalidIdentifierError(f"invalid npub: {e}") from e
    raise InvalidIdentifierError(f"not a hex public key or npub: {value!r}")
