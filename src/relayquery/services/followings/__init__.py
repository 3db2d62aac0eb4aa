"""Follow-list and profile loader with in-memory TTL caching.

Attributes:
    FollowingsLoader: Resolves an account's follows to display profiles.
    Profile: Display metadata parsed from a kind-0 record.
    TtlCache: Mapping with per-entry expiry and an injectable clock.
    extract_follows: Distinct ``p``-tag keys of a kind-3 record.
    parse_profile: Lenient kind-0 content parser.
"""

from .cache import TtlCache
from .loader import FollowingsLoader, Profile, extract_follows, parse_profile, relay_set_key


__all__ = [
    "FollowingsLoader",
    "Profile",
    "TtlCache",
    "extract_follows",
    "parse_profile",
    "relay_set_key",
]
