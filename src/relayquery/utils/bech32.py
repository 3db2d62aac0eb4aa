"""BIP-173 bech32 codec for Nostr identifiers.

Encodes and decodes the checksummed human-readable form of binary payloads
(``npub1...``, ``nsec1...``, ``note1...``). The codec operates on 5-bit
"words"; [to_words][relayquery.utils.bech32.to_words] and
[from_words][relayquery.utils.bech32.from_words] convert to and from bytes.

Note:
    BIP-173 caps addresses at 90 characters. NIP-19 TLV identifiers
    (``nprofile``, ``nevent``) exceed that, so no length cap is applied.

See Also:
    [relayquery.utils.keys][relayquery.utils.keys]: Public-key helpers built
        on this codec.

Examples:
    ```python
    prefix, words = decode("npub10elfcs4fr0l0r8af98jlmgdh9c8tcxjvz9qkw038js35mp4dma8qzvjptg")
    from_words(words).hex()   # '7e7e9c42...'
    encode(prefix, words)     # round-trips to the same string
    ```
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Final


CHARSET: Final[str] = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
CHECKSUM_LENGTH: Final[int] = 6

_CHARSET_REV: Final[dict[str, int]] = {c: i for i, c in enumerate(CHARSET)}
_GENERATORS: Final[tuple[int, ...]] = (
    0x3B6A57B2,
    0x26508E6D,
    0x1EA119FA,
    0x3D4233DD,
    0x2A1462B3,
)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class Bech32Error(ValueError):
    """Base class for bech32 codec failures."""


class MalformedIdentifierError(Bech32Error):
    """The string is not a well-formed, correctly checksummed bech32 value."""


class InvalidBitGroupingError(Bech32Error):
    """A value does not fit its bit width, or padding is invalid."""


# ---------------------------------------------------------------------------
# Checksum
# ---------------------------------------------------------------------------


def _polymod(values: Iterable[int]) -> int:
    chk = 1
    for value in values:
        top = chk >> 25
        chk = ((chk & 0x1FFFFFF) << 5) ^ value
        for i, gen in enumerate(_GENERATORS):
            if (top >> i) & 1:
                chk ^= gen
    return chk


def _hrp_expand(prefix: str) -> list[int]:
    return [ord(c) >> 5 for c in prefix] + [0] + [ord(c) & 31 for c in prefix]


def _create_checksum(prefix: str, words: Sequence[int]) -> list[int]:
    polymod = _polymod([*_hrp_expand(prefix), *words, 0, 0, 0, 0, 0, 0]) ^ 1
    return [(polymod >> 5 * (5 - i)) & 31 for i in range(CHECKSUM_LENGTH)]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def decode(value: str) -> tuple[str, list[int]]:
    """Decode a bech32 string into its prefix and data words.

    Upper-case input is accepted and lowercased; mixed case is rejected.

    Args:
        value: The bech32 string.

    Returns:
        ``(prefix, words)`` with the prefix lowercased and the 6 checksum
        symbols removed from ``words``.

    Raises:
        MalformedIdentifierError: If the input is not a string, mixes case,
            lacks a valid separator, is too short, contains a character
            outside the charset, or fails the checksum.
    """
    if not isinstance(value, str):
        raise MalformedIdentifierError(f"expected str, got {type(value).__name__}")
    if value.lower() != value and value.upper() != value:
        raise MalformedIdentifierError("mixed-case identifier")
    value = value.lower()

    pos = value.rfind("1")
    if pos < 1:
        raise MalformedIdentifierError("missing prefix separator")
    if len(value) - pos - 1 < CHECKSUM_LENGTH:
        raise MalformedIdentifierError("data part too short")

    prefix = value[:pos]
    if any(ord(c) < 33 or ord(c) > 126 for c in prefix):
        raise MalformedIdentifierError("invalid character in prefix")

    data: list[int] = []
    for c in value[pos + 1 :]:
        word = _CHARSET_REV.get(c)
        if word is None:
            raise MalformedIdentifierError(f"invalid character {c!r}")
        data.append(word)

    if _polymod(_hrp_expand(prefix) + data) != 1:
        raise MalformedIdentifierError("invalid checksum")

    return prefix, data[:-CHECKSUM_LENGTH]


def encode(prefix: str, words: Sequence[int]) -> str:
    """Encode a prefix and 5-bit words into a checksummed bech32 string.

    Raises:
        InvalidBitGroupingError: If any word is outside ``0..31``.
        MalformedIdentifierError: If the prefix is empty.
    """
    if not prefix:
        raise MalformedIdentifierError("prefix must not be empty")
    prefix = prefix.lower()
    for word in words:
        if not 0 <= word < 32:
            raise InvalidBitGroupingError(f"word out of range: {word}")
    checksum = _create_checksum(prefix, words)
    return prefix + "1" + "".join(CHARSET[w] for w in (*words, *checksum))


def convert_bits(data: Iterable[int], from_bits: int, to_bits: int, *, pad: bool) -> list[int]:
    """Regroup a sequence of ``from_bits``-wide values into ``to_bits``-wide values.

    Args:
        data: Input values, each in ``0 .. 2**from_bits - 1``.
        from_bits: Input group width.
        to_bits: Output group width.
        pad: Zero-pad the final group when ``True``. When ``False``, leftover
            bits must be fewer than ``from_bits`` and all zero.

    Raises:
        InvalidBitGroupingError: On an out-of-range input or invalid padding.
    """
    acc = 0
    bits = 0
    result: list[int] = []
    maxv = (1 << to_bits) - 1
    for value in data:
        if value < 0 or value >> from_bits:
            raise InvalidBitGroupingError(f"value {value} does not fit in {from_bits} bits")
        acc = (acc << from_bits) | value
        bits += from_bits
        while bits >= to_bits:
            bits -= to_bits
            result.append((acc >> bits) & maxv)
    if pad:
        if bits:
            result.append((acc << (to_bits - bits)) & maxv)
    elif bits >= from_bits:
        raise InvalidBitGroupingError("excess padding")
    elif (acc << (to_bits - bits)) & maxv:
        raise InvalidBitGroupingError("non-zero padding")
    return result


def to_words(data: bytes) -> list[int]:
    """Convert bytes to 5-bit words, zero-padding the last group."""
    return convert_bits(data, 8, 5, pad=True)


def from_words(words: Sequence[int]) -> bytes:
    """Convert 5-bit words back to bytes, rejecting invalid padding."""
    return bytes(convert_bits(words, 5, 8, pad=False))
