# squadstats/services/pipeline.py
# ============================================================================
# Pipeline séquentiel du leaderboard : cache → puuid → matchs → résumé.
# Un seul appel Riot en vol à la fois ; un 429 arrête le run mais garde
# tout ce qui a déjà été récupéré.
# ============================================================================

from __future__ import annotations

import enum
import logging
import math
from typing import Any, Callable, List, Optional, Sequence

from squadstats.db.cache_store import CacheStore
from squadstats.models.cache_state import (
    PlayerCacheRecord, SummaryEntry, SUMMARY_TTL_MS, now_ms,
)
from squadstats.models.summary import (
    LeaderboardResponse, NO_CACHE_ERROR, PlayerResult, SERVED_CACHED_ERROR, Summary,
)
from squadstats.riot.client import RateLimitError, RiotAPIError, RiotClient
from squadstats.roster import FriendDescriptor
from squadstats.services.aggregator import summarize
from squadstats.services.identity import IdentityResolver
from squadstats.services.matches import MatchFetcher
from squadstats.services.pacing import Pacer

DEFAULT_COUNT = 5
MAX_COUNT = 8

log = logging.getLogger(__name__)


class RunStatus(enum.Enum):
    IDLE = "idle"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ABORTED = "aborted"


def clamp_count(raw: Any, default: int = DEFAULT_COUNT, maximum: int = MAX_COUNT) -> int:
    """Requested match count forced into ``[1, maximum]``; garbage means *default*."""
    try:
        value = float(raw) if raw is not None else float(default)
    except (TypeError, ValueError):
        value = float(default)
    if not math.isfinite(value):
        value = float(default)
    return int(max(1, min(maximum, value)))


def sort_results(results: Sequence[PlayerResult]) -> List[PlayerResult]:
    """Hard errors last, then winrate desc, then games desc. Stable otherwise."""
    return sorted(
        results,
        key=lambda r: (r.has_hard_error, -r.summary.winrate, -r.summary.games),
    )


class PipelineOrchestrator:
    """Runs the roster once and returns the sorted leaderboard."""

    def __init__(
        self,
        client: RiotClient,
        store: CacheStore,
        roster: Sequence[FriendDescriptor],
        *,
        region: str = "na1",
        pacer: Optional[Pacer] = None,
        clock: Callable[[], int] = now_ms,
        max_count: int = MAX_COUNT,
        default_count: int = DEFAULT_COUNT,
    ):
        self.client = client
        self.store = store
        self.roster = list(roster)
        self.region = region
        self.pacer = pacer or Pacer()
        self.clock = clock
        self.max_count = max_count
        self.default_count = default_count
        self.status = RunStatus.IDLE
        self.position = 0

    async def run(self, count: Any = None) -> LeaderboardResponse:
        count = clamp_count(count, self.default_count, self.max_count)
        self.status = RunStatus.PROCESSING

        state = await self.store.load()
        resolver = IdentityResolver(self.client, state, self.region, self.clock)
        fetcher = MatchFetcher(self.client, state, self.region, self.clock)

        response = LeaderboardResponse(updated_at=self.clock(), count=count)
        results: List[PlayerResult] = []

        for index, friend in enumerate(self.roster):
            self.position = index
            record = state.player(friend.riot_id)

            cached = record.summary_entry
            if cached is not None and cached.matches(SUMMARY_TTL_MS, self.clock(), count):
                log.debug(f"Summary cache hit for {friend.riot_id}")
                results.append(PlayerResult.from_cache(friend, cached.data, cached.requested_count))
                continue

            try:
                summary = await self._refresh(friend, count, resolver, fetcher)
            except RateLimitError as e:
                response.rate_limited = True
                response.retry_after_seconds = e.retry_after
                results.append(self._degraded(friend, record, count))
                log.warning(
                    f"Rate limited on {friend.riot_id} (retry-after={e.retry_after}), "
                    f"skipping the {len(self.roster) - self.position - 1} remaining players"
                )
                self.status = RunStatus.ABORTED
                break
            except RiotAPIError as e:
                log.warning(f"Failed to refresh {friend.riot_id}: {e}")
                results.append(PlayerResult.failed(friend, count, str(e)))
            else:
                record.summary_entry = SummaryEntry(summary, self.clock(), requested_count=count)
                results.append(PlayerResult.fresh(friend, summary, count))
                log.info(f"Refreshed {friend.riot_id}: {summary.games} games, {summary.winrate}% WR")

            await self.pacer.wait()

        # Sauvegarde même après un abort : le progrès partiel est conservé
        await self.store.save(state)
        if self.status is RunStatus.PROCESSING:
            self.status = RunStatus.COMPLETED

        response.updated_at = self.clock()
        response.results = sort_results(results)
        return response

    async def _refresh(self, friend: FriendDescriptor, count: int,
                       resolver: IdentityResolver, fetcher: MatchFetcher) -> Summary:
        puuid = await resolver.resolve(friend.game_name, friend.tag_line)
        match_ids = await fetcher.list_recent_match_ids(puuid, count)

        matches = []
        for match_id in match_ids:
            matches.append(await fetcher.get_match_detail(match_id))

        return summarize(puuid, matches)

    @staticmethod
    def _degraded(friend: FriendDescriptor, record: PlayerCacheRecord, count: int) -> PlayerResult:
        """Row served while throttled: any cached summary, whatever its age."""
        entry = record.summary_entry
        if entry is not None:
            return PlayerResult.from_cache(friend, entry.data, entry.requested_count,
                                           error=SERVED_CACHED_ERROR)
        return PlayerResult.failed(friend, count, NO_CACHE_ERROR)

