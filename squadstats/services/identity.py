# services/identity.py – Riot ID → puuid, mis en cache 24h

from __future__ import annotations

import logging
from typing import Callable

from squadstats.models.cache_state import CacheEntry, PersistedState, PUUID_TTL_MS, now_ms
from squadstats.riot.client import ResolutionError, RiotClient

log = logging.getLogger(__name__)


class IdentityResolver:
    """Resolves ``gameName#tagLine`` to a puuid, reading and writing the player cache."""

    def __init__(self, client: RiotClient, state: PersistedState, region: str = "na1",
                 clock: Callable[[], int] = now_ms):
        self.client = client
        self.state = state
        self.region = region
        self.clock = clock

    async def resolve(self, game_name: str, tag_line: str) -> str:
        key = f"{game_name}#{tag_line}"
        record = self.state.player(key)
        existing = record.puuid_entry
        if existing is not None and existing.is_fresh(PUUID_TTL_MS, self.clock()):
            return existing.data

        # RateLimitError / RequestFailedError remontent tels quels, sans écriture
        acct = await self.client.get_account_by_riot_id(self.region, game_name, tag_line)
        puuid = acct.get("puuid") if isinstance(acct, dict) else None
        if not puuid or not isinstance(puuid, str):
            raise ResolutionError(f"No puuid for {key}")

        record.puuid_entry = CacheEntry(puuid, self.clock())
        log.debug(f"Resolved {key} -> {puuid[:8]}…")
        return puuid
