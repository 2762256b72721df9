# squadstats/services/aggregator.py
# ============================================================================
# Agrégation des matchs d'un joueur → Summary (winrate, KDA moyen, champion)
# ============================================================================

from __future__ import annotations

import math
from collections import Counter
from typing import Any, Iterable, Optional

from squadstats.models.summary import NO_CHAMPION, Summary

UNKNOWN_CHAMPION = "Unknown"


def round_half_up(value: float) -> int:
    """Same rounding as JavaScript's ``Math.round`` (halves go up)."""
    return math.floor(value + 0.5)


def _num(value: Any) -> float:
    """Numeric stat or 0 for missing/garbage values."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0


def _find_participant(match: Any, puuid: str) -> Optional[dict]:
    info = match.get("info") if isinstance(match, dict) else None
    if not isinstance(info, dict):
        return None
    participants = info.get("participants")
    if not isinstance(participants, list):
        return None
    for p in participants:
        if isinstance(p, dict) and p.get("puuid") == puuid:
            return p
    return None


def most_played(tally: Counter) -> str:
    """
    Champion with the highest count.

    Ties go to the champion first inserted in the tally, i.e. the one seen
    first in most-recent-match-first order.
    """
    best, best_count = NO_CHAMPION, 0
    for champ, count in tally.items():
        if count > best_count:
            best, best_count = champ, count
    return best


def summarize(puuid: str, matches: Iterable[Any]) -> Summary:
    """
    Reduce *matches* (most recent first) into a Summary for *puuid*.

    Matches with an unexpected shape, or where *puuid* did not play, are
    skipped silently.
    """
    games = wins = 0
    k_sum = d_sum = a_sum = 0.0
    tally: Counter = Counter()
    last_start: Optional[int] = None

    for match in matches:
        p = _find_participant(match, puuid)
        if p is None:
            continue

        games += 1
        if p.get("win"):
            wins += 1

        k_sum += _num(p.get("kills"))
        d_sum += _num(p.get("deaths"))
        a_sum += _num(p.get("assists"))

        tally[p.get("championName") or UNKNOWN_CHAMPION] += 1

        ts = match["info"].get("gameStartTimestamp")
        if isinstance(ts, (int, float)) and not isinstance(ts, bool) and ts:
            if last_start is None or ts > last_start:
                last_start = int(ts)

    if games == 0:
        return Summary.empty()

    return Summary(
        games=games,
        wins=wins,
        winrate=round_half_up(wins / games * 1000) / 10,
        avg_kills=round_half_up(k_sum / games * 10) / 10,
        avg_deaths=round_half_up(d_sum / games * 10) / 10,
        avg_assists=round_half_up(a_sum / games * 10) / 10,
        most_played_champion=most_played(tally),
        last_game_start_millis=last_start,
    )
