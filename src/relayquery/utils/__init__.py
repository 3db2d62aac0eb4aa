"""bech32 codec, public-key identifier helpers, and websocket transport.

The utils layer sits in the middle of the diamond DAG, depending only on
[relayquery.models][relayquery.models] and third-party libraries. It is
consumed by [relayquery.services][relayquery.services].

Attributes:
    bech32: BIP-173 encode/decode, checksum, and 8/5-bit regrouping.
    keys: hex <-> ``npub`` conversion, generic 32-byte identifier codec,
        and user-input public-key normalization.
    transport: aiohttp websocket transport with optional SOCKS5 proxy and
        bounded best-effort close.

Note:
    The utils layer has **zero** imports from ``relayquery.core`` or
    ``relayquery.services``. Its errors are plain ``ValueError`` /
    ``OSError`` subclasses for that reason.
"""
