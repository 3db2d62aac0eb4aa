"""Follow-list and profile loading on top of the query engine.

Given a public key, [FollowingsLoader][relayquery.services.followings.loader.FollowingsLoader]
fetches the latest contact list (kind 3), takes the distinct ``p``-tag keys,
and resolves up to ``max_profiles`` of them to display metadata (kind 0).
Both lookups are cached in memory with a one-day TTL by default.

See Also:
    [QueryEngine.query()][relayquery.services.query.service.QueryEngine.query]:
        Issues every lookup made here.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any

from relayquery.core.exceptions import InvalidInputError
from relayquery.core.logger import Logger
from relayquery.models.constants import EventKind
from relayquery.utils.keys import (
    InvalidIdentifierError,
    hex_to_npub,
    is_hex_pubkey,
    normalize_pubkey,
)

from .cache import TtlCache


if TYPE_CHECKING:
    from relayquery.models.record import Record
    from relayquery.models.relay import Relay
    from relayquery.services.query.service import QueryEngine, RelaysInput


DEFAULT_TTL = 86400.0
DEFAULT_MAX_PROFILES = 50
FOLLOW_LIST_TIMEOUT = 10.0
PROFILE_TIMEOUT = 6.0


@dataclass(frozen=True, slots=True)
class Profile:
    """Display metadata for one public key.

    Attributes:
        pubkey: Lowercase hex public key.
        display: ``display_name`` (stripped), or ``""``.
        nick: ``name`` (stripped), or ``""``.
        picture: Avatar URL, or ``""``.
    """

    pubkey: str
    display: str = ""
    nick: str = ""
    picture: str = ""

    @property
    def label(self) -> str:
        """Best human-readable name: display name, then nick, then a placeholder."""
        return self.display or self.nick or "(no name)"

    @property
    def npub(self) -> str | None:
        return hex_to_npub(self.pubkey) if is_hex_pubkey(self.pubkey) else None

    def to_dict(self) -> dict[str, Any]:
        return {**asdict(self), "npub": self.npub, "label": self.label}


def extract_follows(record: Record | None) -> list[str]:
    """Return the distinct ``p``-tag values of a contact-list record, in order."""
    if record is None:
        return []
    return list(dict.fromkeys(value for value in record.tag_values("p") if value))


def _clean(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def parse_profile(pubkey: str, record: Record | None) -> Profile:
    """Build a [Profile][relayquery.services.followings.loader.Profile] from a kind-0 record.

    Missing records, undecodable JSON, and non-string fields all yield
    empty values rather than errors.
    """
    if record is None:
        return Profile(pubkey=pubkey)
    try:
        content = json.loads(record.content)
    except ValueError:
        return Profile(pubkey=pubkey)
    if not isinstance(content, dict):
        return Profile(pubkey=pubkey)
    picture = content.get("picture")
    return Profile(
        pubkey=pubkey,
        display=_clean(content.get("display_name")),
        nick=_clean(content.get("name")),
        picture=picture if isinstance(picture, str) else "",
    )


def relay_set_key(relays: tuple[Relay, ...]) -> str:
    """Short stable digest of an ordered relay list, used in cache keys."""
    joined = ",".join(relay.url for relay in relays)
    return hashlib.blake2b(joined.encode("utf-8"), digest_size=8).hexdigest()


class FollowingsLoader:
    """Load the profiles a public key follows.

    Args:
        engine: Engine used for every lookup.
        follow_ttl: Lifetime in seconds of cached follow lists.
        profile_ttl: Lifetime in seconds of cached profiles.
        max_profiles: Maximum number of follows resolved to profiles.
        concurrency: Maximum profile lookups in flight at once.
    """

    def __init__(
        self,
        engine: QueryEngine,
        *,
        follow_ttl: float = DEFAULT_TTL,
        profile_ttl: float = DEFAULT_TTL,
        max_profiles: int = DEFAULT_MAX_PROFILES,
        concurrency: int = 5,
    ) -> None:
        self._engine = engine
        self._follows: TtlCache[list[str]] = TtlCache(follow_ttl)
        self._profiles: TtlCache[Profile] = TtlCache(profile_ttl)
        self._max_profiles = max_profiles
        self._concurrency = concurrency
        self._logger = Logger("relayquery.followings")

    async def follows(self, pubkey: str, relays: tuple[Relay, ...]) -> list[str]:
        """Return the follow list of *pubkey*, from cache when fresh."""
        key = (pubkey, relay_set_key(relays))
        cached = self._follows.get(key)
        if cached is not None:
            return cached

        records = await self._engine.query(
            relays, author=pubkey, kind=EventKind.CONTACTS, limit=1, timeout=FOLLOW_LIST_TIMEOUT
        )
        follows = extract_follows(records[0] if records else None)
        self._follows.set(key, follows)
        return follows

    async def profile(self, pubkey: str, relays: tuple[Relay, ...]) -> Profile:
        """Return the profile of *pubkey*, from cache when fresh.

        A key that cannot be queried yields an empty profile.
        """
        cached = self._profiles.get(pubkey)
        if cached is not None:
            return cached

        try:
            records = await self._engine.query(
                relays,
                author=pubkey,
                kind=EventKind.SET_METADATA,
                limit=1,
                timeout=PROFILE_TIMEOUT,
            )
        except InvalidInputError as e:
            self._logger.debug("profile_skipped", pubkey=pubkey, error=str(e))
            records = []
        profile = parse_profile(pubkey, records[0] if records else None)
        self._profiles.set(pubkey, profile)
        return profile

    async def load(self, pubkey: str, relays: RelaysInput = None) -> list[Profile]:
        """Resolve the first ``max_profiles`` follows of *pubkey* to profiles.

        Args:
            pubkey: Account key as hex (optionally ``0x``-prefixed, any case)
                or ``npub``.
            relays: Relays to ask; ``None`` uses the engine's configured relays.

        Raises:
            InvalidInputError: If *pubkey* or *relays* are invalid.
        """
        try:
            source = normalize_pubkey(pubkey)
        except InvalidIdentifierError as e:
            raise InvalidInputError(str(e)) from e
        parsed_relays = self._engine.resolve_relays(relays)

        follows = await self.follows(source, parsed_relays)
        selected = follows[: self._max_profiles]
        self._logger.info(
            "followings_loading", pubkey=source, follows=len(follows), profiles=len(selected)
        )

        semaphore = asyncio.Semaphore(self._concurrency)

        async def bounded(hex_key: str) -> Profile:
            async with semaphore:
                return await self.profile(hex_key, parsed_relays)

        profiles = await asyncio.gather(*(bounded(hex_key) for hex_key in selected))
        self._logger.info("followings_loaded", pubkey=source, profiles=len(profiles))
        return list(profiles)
