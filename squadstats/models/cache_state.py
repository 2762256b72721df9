# squadstats/models/cache_state.py
# ============================================================================
# État persistant du cache : joueurs (puuid + résumé) et matchs partagés.
# Lu une fois en début de run, écrit une fois à la fin.
# ============================================================================

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Generic, Optional, TypeVar

from squadstats.models.summary import Summary

T = TypeVar("T")

# TTL par namespace (millisecondes)
PUUID_TTL_MS = 24 * 60 * 60 * 1000
SUMMARY_TTL_MS = 5 * 60 * 1000
MATCH_DETAIL_TTL_MS = 30 * 60 * 1000

log = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class CacheEntry(Generic[T]):
    """A cached value and the epoch-millis timestamp it was stored at."""
    data: T
    updated_at: int

    def is_fresh(self, ttl_ms: int, now: int) -> bool:
        return now - self.updated_at < ttl_ms


@dataclass
class SummaryEntry(CacheEntry[Summary]):
    """Summary cache slot; only valid for the match count it was built with."""
    requested_count: int = 0

    def matches(self, ttl_ms: int, now: int, count: int) -> bool:
        return self.is_fresh(ttl_ms, now) and self.requested_count == count


@dataclass
class PlayerCacheRecord:
    puuid_entry: Optional[CacheEntry[str]] = None
    summary_entry: Optional[SummaryEntry] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        if self.puuid_entry is not None:
            out["puuidEntry"] = {
                "puuid": self.puuid_entry.data,
                "updatedAt": self.puuid_entry.updated_at,
            }
        if self.summary_entry is not None:
            out["summaryEntry"] = {
                "data": self.summary_entry.data.to_dict(),
                "updatedAt": self.summary_entry.updated_at,
                "count": self.summary_entry.requested_count,
            }
        return out

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "PlayerCacheRecord":
        record = cls()
        puuid = raw.get("puuidEntry")
        if isinstance(puuid, dict) and puuid.get("puuid"):
            record.puuid_entry = CacheEntry(puuid["puuid"], int(puuid["updatedAt"]))
        summary = raw.get("summaryEntry")
        if isinstance(summary, dict) and isinstance(summary.get("data"), dict):
            record.summary_entry = SummaryEntry(
                Summary.from_dict(summary["data"]),
                int(summary["updatedAt"]),
                requested_count=int(summary.get("count", 0)),
            )
        return record


@dataclass
class PersistedState:
    """Whole cache blob: ``{players: {riotId: ...}, matches: {matchId: ...}}``."""

    players: Dict[str, PlayerCacheRecord] = field(default_factory=dict)
    matches: Dict[str, CacheEntry[Any]] = field(default_factory=dict)

    def player(self, riot_id: str) -> PlayerCacheRecord:
        """Record for *riot_id*, created empty on first access."""
        return self.players.setdefault(riot_id, PlayerCacheRecord())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "players": {key: rec.to_dict() for key, rec in self.players.items()},
            "matches": {
                mid: {"data": entry.data, "updatedAt": entry.updated_at}
                for mid, entry in self.matches.items()
            },
        }

    @classmethod
    def from_dict(cls, raw: Any) -> "PersistedState":
        """Tolerant decode: wrong-shaped sections or entries are dropped."""
        state = cls()
        if not isinstance(raw, dict):
            return state

        players = raw.get("players")
        if isinstance(players, dict):
            for key, rec in players.items():
                if not isinstance(rec, dict):
                    continue
                try:
                    state.players[key] = PlayerCacheRecord.from_dict(rec)
                except (KeyError, TypeError, ValueError) as e:
                    log.debug(f"Dropping malformed player cache entry {key}: {e}")

        matches = raw.get("matches")
        if isinstance(matches, dict):
            for mid, entry in matches.items():
                if not isinstance(entry, dict) or "updatedAt" not in entry:
                    continue
                try:
                    state.matches[mid] = CacheEntry(entry.get("data"), int(entry["updatedAt"]))
                except (TypeError, ValueError) as e:
                    log.debug(f"Dropping malformed match cache entry {mid}: {e}")

        return state
