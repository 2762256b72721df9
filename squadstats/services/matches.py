# services/matches.py – ids des parties récentes + détail de match (cache 30 min)

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List

from squadstats.models.cache_state import CacheEntry, PersistedState, MATCH_DETAIL_TTL_MS, now_ms
from squadstats.riot.client import MalformedResponseError, RiotClient

log = logging.getLogger(__name__)


class MatchFetcher:
    """
    Match-V5 access on top of the shared match cache.

    The id list is always fetched (one call per invocation); match details are
    keyed by match id and shared by every roster member who played the game.
    """

    def __init__(self, client: RiotClient, state: PersistedState, region: str = "na1",
                 clock: Callable[[], int] = now_ms):
        self.client = client
        self.state = state
        self.region = region
        self.clock = clock

    async def list_recent_match_ids(self, puuid: str, count: int) -> List[str]:
        """Ranked match ids, most recent first. *count* is clamped by the caller."""
        ids = await self.client.get_match_ids(self.region, puuid, count)
        if not isinstance(ids, list):
            raise MalformedResponseError("Match ids response was not an array")
        return ids

    async def get_match_detail(self, match_id: str) -> Dict[str, Any]:
        entry = self.state.matches.get(match_id)
        if entry is not None and entry.is_fresh(MATCH_DETAIL_TTL_MS, self.clock()):
            log.debug(f"Match cache hit {match_id}")
            return entry.data

        match = await self.client.get_match_by_id(self.region, match_id)
        self.state.matches[match_id] = CacheEntry(match, self.clock())
        return match
