"""Shared constants for the models layer.

Defines the event kinds the query engine knows by name and the hard bounds
enforced on query inputs. Placing them here keeps the filter builder, the
relay model, and the CLI in agreement without circular imports.

See Also:
    [Filter][relayquery.models.filter.Filter]: Enforces
        [MAX_AUTHORS][relayquery.models.constants.MAX_AUTHORS].
    [parse_relays][relayquery.services.query.filters.parse_relays]: Enforces
        [MAX_RELAYS][relayquery.models.constants.MAX_RELAYS].
"""

from __future__ import annotations

from enum import IntEnum


class EventKind(IntEnum):
    """Well-known Nostr event kinds used by the engine and its collaborators.

    Attributes:
        SET_METADATA: Kind 0 -- user profile metadata (NIP-01). Fetched by
            the [FollowingsLoader][relayquery.services.followings.FollowingsLoader].
        TEXT_NOTE: Kind 1 -- short text note (NIP-01). Default kind for
            both query modes.
        CONTACTS: Kind 3 -- follow list (NIP-02).
    """

    SET_METADATA = 0
    TEXT_NOTE = 1
    CONTACTS = 3


# Upper bound on distinct relays per query (one session each)
MAX_RELAYS = 5

# Relays commonly reject filters with more authors than this
MAX_AUTHORS = 40

# Lowercase hex length of a 32-byte id or public key
HEX_ID_LENGTH = 64
