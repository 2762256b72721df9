# squadstats/models/summary.py
# ============================================================================
# Résumé statistique d'un joueur + ligne de résultat du leaderboard
# ============================================================================

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from squadstats.roster import FriendDescriptor

NO_CHAMPION = "—"

SERVED_CACHED_ERROR = "RATE LIMITED (served cached)"
NO_CACHE_ERROR = "429 Too Many Requests (no cache yet)"


def iso_from_millis(millis: Optional[int]) -> Optional[str]:
    """Render epoch millis like JavaScript's ``toISOString``."""
    if not millis:
        return None
    stamp = dt.datetime.fromtimestamp(millis / 1000, tz=dt.timezone.utc)
    return stamp.strftime("%Y-%m-%dT%H:%M:%S.") + f"{int(millis) % 1000:03d}Z"


@dataclass
class Summary:
    """Derived per-player snapshot over the requested recent matches."""

    games: int = 0
    wins: int = 0
    winrate: float = 0
    avg_kills: float = 0
    avg_deaths: float = 0
    avg_assists: float = 0
    most_played_champion: str = NO_CHAMPION
    last_game_start_millis: Optional[int] = None

    @classmethod
    def empty(cls) -> "Summary":
        return cls()

    @property
    def last_game_start_iso(self) -> Optional[str]:
        return iso_from_millis(self.last_game_start_millis)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "games": self.games,
            "wins": self.wins,
            "winrate": self.winrate,
            "avgKills": self.avg_kills,
            "avgDeaths": self.avg_deaths,
            "avgAssists": self.avg_assists,
            "mostPlayedChampion": self.most_played_champion,
            "lastGameStartMillis": self.last_game_start_millis,
            "lastGameStartISO": self.last_game_start_iso,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Summary":
        return cls(
            games=int(data.get("games", 0)),
            wins=int(data.get("wins", 0)),
            winrate=data.get("winrate", 0),
            avg_kills=data.get("avgKills", 0),
            avg_deaths=data.get("avgDeaths", 0),
            avg_assists=data.get("avgAssists", 0),
            most_played_champion=data.get("mostPlayedChampion") or NO_CHAMPION,
            last_game_start_millis=data.get("lastGameStartMillis"),
        )


@dataclass
class PlayerResult:
    """One leaderboard row. Built explicitly, never by merging dicts."""

    player: str
    riot_id: str
    summary: Summary
    count: int
    cached: bool = False
    error: Optional[str] = None

    @classmethod
    def fresh(cls, friend: FriendDescriptor, summary: Summary, count: int) -> "PlayerResult":
        return cls(friend.label, friend.riot_id, summary, count, cached=False)

    @classmethod
    def from_cache(cls, friend: FriendDescriptor, summary: Summary, count: int,
                   error: Optional[str] = None) -> "PlayerResult":
        return cls(friend.label, friend.riot_id, summary, count, cached=True, error=error)

    @classmethod
    def failed(cls, friend: FriendDescriptor, count: int, error: str) -> "PlayerResult":
        return cls(friend.label, friend.riot_id, Summary.empty(), count, cached=False, error=error)

    @property
    def has_hard_error(self) -> bool:
        """True for real failures; a served-from-cache warning does not count."""
        return self.error is not None and self.error != SERVED_CACHED_ERROR

    def to_dict(self) -> Dict[str, Any]:
        row: Dict[str, Any] = {"player": self.player, "riotId": self.riot_id}
        row.update(self.summary.to_dict())
        row["count"] = self.count
        row["cached"] = self.cached
        row["error"] = self.error
        return row


@dataclass
class LeaderboardResponse:
    """Aggregate answer of one pipeline run."""

    updated_at: int
    count: int
    rate_limited: bool = False
    retry_after_seconds: Optional[float] = None
    results: List[PlayerResult] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "updatedAt": self.updated_at,
            "count": self.count,
            "rateLimited": self.rate_limited,
            "retryAfterSeconds": self.retry_after_seconds,
            "results": [r.to_dict() for r in self.results],
        }
