"""Tests for the sequential leaderboard pipeline."""

import pytest
from unittest.mock import AsyncMock, patch

from squadstats.db.cache_store import MemoryCacheStore
from squadstats.models.cache_state import SUMMARY_TTL_MS
from squadstats.models.summary import (
    NO_CACHE_ERROR, SERVED_CACHED_ERROR, PlayerResult, Summary,
)
from squadstats.roster import FriendDescriptor
from squadstats.services.pacing import NoopPacer, Pacer
from squadstats.services.pipeline import (
    PipelineOrchestrator, RunStatus, clamp_count, sort_results,
)

from helpers import FakeRiotClient, match, participant

NOW = 1_800_000_000_000

ROSTER = [
    FriendDescriptor("Alpha", "Alpha", "NA1"),
    FriendDescriptor("Bravo", "Bravo", "NA1"),
    FriendDescriptor("Charlie", "Charlie", "NA1"),
    FriendDescriptor("Delta", "Delta", "NA1"),
]


def clock():
    return NOW


def build_client(**kwargs) -> FakeRiotClient:
    """Alpha wins 2/2, Bravo 1/2, Charlie 0/2, Delta 2/2 on a shared match M0."""
    accounts = {f.game_name: f"puuid-{f.game_name.lower()}" for f in ROSTER}
    match_ids = {
        "puuid-alpha": ["M0", "A1"],
        "puuid-bravo": ["B2", "B1"],
        "puuid-charlie": ["C2", "C1"],
        "puuid-delta": ["M0", "D1"],
    }
    matches = {
        "M0": match(participant("puuid-alpha", win=True, kills=4, champion="Ahri"),
                    participant("puuid-delta", win=True, kills=1, champion="Leona"), start=NOW - 1000),
        "A1": match(participant("puuid-alpha", win=True, kills=6, champion="Zed")),
        "B2": match(participant("puuid-bravo", win=True, champion="Jinx")),
        "B1": match(participant("puuid-bravo", win=False, champion="Jinx")),
        "C2": match(participant("puuid-charlie", win=False, champion="Garen")),
        "C1": match(participant("puuid-charlie", win=False, champion="Garen")),
        "D1": match(participant("puuid-delta", win=True, champion="Leona")),
    }
    return FakeRiotClient(accounts, match_ids, matches, **kwargs)


def cached_summary_blob(riot_id, summary, count=5, updated_at=NOW):
    return {
        "players": {
            riot_id: {"summaryEntry": {"data": summary.to_dict(), "updatedAt": updated_at, "count": count}}
        },
        "matches": {},
    }


def make_pipeline(client, store=None, roster=ROSTER, pacer=None):
    return PipelineOrchestrator(
        client, store or MemoryCacheStore(), roster,
        pacer=pacer or NoopPacer(), clock=clock,
    )


@pytest.mark.asyncio
class TestPipelineRun:
    """Full run over the roster."""

    async def test_fresh_run_fetches_and_sorts(self):
        client = build_client()
        store = MemoryCacheStore()

        report = await make_pipeline(client, store).run(5)

        assert report.count == 5
        assert report.rate_limited is False
        assert report.retry_after_seconds is None
        # Alpha 100%/2, Delta 100%/2 (stable), Bravo 50%, Charlie 0%
        assert [r.player for r in report.results] == ["Alpha", "Delta", "Bravo", "Charlie"]
        assert all(not r.cached and r.error is None for r in report.results)
        alpha = report.results[0]
        assert alpha.summary.avg_kills == 5.0
        assert alpha.summary.last_game_start_millis == NOW - 1000
        assert store.loads == 1 and store.saves == 1

    async def test_shared_match_fetched_once(self):
        client = build_client()

        await make_pipeline(client).run(5)

        assert client.calls.count(("match", "M0")) == 1

    async def test_match_details_fetched_in_id_order(self):
        client = build_client()

        await make_pipeline(client, roster=ROSTER[:1]).run(5)

        assert client.calls == [("account", "Alpha"), ("ids", "puuid-alpha", 5),
                                ("match", "M0"), ("match", "A1")]

    async def test_fresh_summary_reused_without_network(self):
        summary = Summary(games=5, wins=4, winrate=80.0, most_played_champion="Kindred")
        store = MemoryCacheStore(cached_summary_blob("Alpha#NA1", summary, count=5,
                                                     updated_at=NOW - SUMMARY_TTL_MS + 1))
        client = build_client()
        pacer = NoopPacer()

        report = await make_pipeline(client, store, roster=ROSTER[:1], pacer=pacer).run(5)

        assert client.calls == []
        assert pacer.calls == 0
        row = report.results[0]
        assert row.cached is True and row.error is None
        assert row.summary.winrate == 80.0

    async def test_count_mismatch_forces_refetch(self):
        summary = Summary(games=5, wins=4, winrate=80.0)
        store = MemoryCacheStore(cached_summary_blob("Alpha#NA1", summary, count=5))
        client = build_client()

        report = await make_pipeline(client, store, roster=ROSTER[:1]).run(8)

        assert ("account", "Alpha") in client.calls
        assert report.results[0].cached is False
        assert store.data["players"]["Alpha#NA1"]["summaryEntry"]["count"] == 8

    async def test_stale_summary_forces_refetch(self):
        summary = Summary(games=5, wins=4, winrate=80.0)
        store = MemoryCacheStore(cached_summary_blob("Alpha#NA1", summary, updated_at=NOW - SUMMARY_TTL_MS))
        client = build_client()

        report = await make_pipeline(client, store, roster=ROSTER[:1]).run(5)

        assert report.results[0].cached is False
        assert report.results[0].summary.winrate == 100.0

    async def test_rate_limit_on_third_player_aborts_with_zero_row(self):
        client = build_client(rate_limit_on={"Charlie": 17})
        store = MemoryCacheStore()
        pipeline = make_pipeline(client, store)

        report = await pipeline.run(5)

        assert report.rate_limited is True
        assert report.retry_after_seconds == 17
        assert pipeline.status is RunStatus.ABORTED
        assert [r.player for r in report.results] == ["Alpha", "Bravo", "Charlie"]
        charlie = report.results[-1]
        assert charlie.error == NO_CACHE_ERROR
        assert charlie.cached is False
        assert charlie.summary.games == 0
        assert ("account", "Delta") not in client.calls
        # partial progress is still persisted
        assert store.saves == 1
        assert "summaryEntry" in store.data["players"]["Alpha#NA1"]
        assert "summaryEntry" in store.data["players"]["Bravo#NA1"]

    async def test_rate_limit_serves_stale_cached_summary(self):
        old = Summary(games=3, wins=3, winrate=100.0, most_played_champion="Garen")
        store = MemoryCacheStore(cached_summary_blob("Charlie#NA1", old, count=2,
                                                     updated_at=NOW - 10 * SUMMARY_TTL_MS))
        client = build_client(rate_limit_on={"Charlie": None})

        report = await make_pipeline(client, store).run(5)

        assert report.rate_limited is True
        assert report.retry_after_seconds is None
        charlie = next(r for r in report.results if r.player == "Charlie")
        assert charlie.cached is True
        assert charlie.error == SERVED_CACHED_ERROR
        assert charlie.summary.winrate == 100.0
        assert charlie.count == 2
        # served-cached rows are not hard errors: 100% sorts first
        assert report.results[0].player == "Charlie"
        assert len(report.results) == 3

    async def test_rate_limit_on_match_detail_keeps_partial_refresh(self):
        # Bravo lists B2, B1: B2 is fetched, then B1 is throttled
        client = build_client(rate_limit_on_match={"B1": 30})
        store = MemoryCacheStore()
        pipeline = make_pipeline(client, store)

        report = await pipeline.run(5)

        assert pipeline.status is RunStatus.ABORTED
        assert report.rate_limited is True
        assert report.retry_after_seconds == 30
        assert [r.player for r in report.results] == ["Alpha", "Bravo"]
        bravo = report.results[-1]
        assert bravo.error == NO_CACHE_ERROR
        assert bravo.summary.games == 0
        assert ("account", "Charlie") not in client.calls
        assert ("account", "Delta") not in client.calls
        # puuid and the already fetched match survive for the next run
        assert store.saves == 1
        assert "B2" in store.data["matches"]
        assert "B1" not in store.data["matches"]
        assert store.data["players"]["Bravo#NA1"]["puuidEntry"]["puuid"] == "puuid-bravo"
        assert "summaryEntry" not in store.data["players"]["Bravo#NA1"]

    async def test_rate_limit_on_match_detail_serves_stale_summary(self):
        old = Summary(games=4, wins=1, winrate=25.0, most_played_champion="Jinx")
        store = MemoryCacheStore(cached_summary_blob("Bravo#NA1", old, count=4,
                                                     updated_at=NOW - 2 * SUMMARY_TTL_MS))
        client = build_client(rate_limit_on_match={"B1": None})

        report = await make_pipeline(client, store).run(5)

        bravo = next(r for r in report.results if r.player == "Bravo")
        assert bravo.cached is True
        assert bravo.error == SERVED_CACHED_ERROR
        assert bravo.summary.winrate == 25.0
        assert bravo.count == 4
        # the stale summary is kept as is, the new puuid and match are added
        bravo_record = store.data["players"]["Bravo#NA1"]
        assert bravo_record["summaryEntry"]["updatedAt"] == NOW - 2 * SUMMARY_TTL_MS
        assert bravo_record["puuidEntry"]["puuid"] == "puuid-bravo"
        assert "B2" in store.data["matches"]

    async def test_other_errors_are_recorded_and_pipeline_continues(self):
        client = build_client(fail_on={"Bravo": "500 Internal Server Error boom"})

        report = await make_pipeline(client).run(5)

        assert report.rate_limited is False
        assert len(report.results) == 4
        assert report.results[-1].player == "Bravo"
        assert report.results[-1].error == "500 Internal Server Error boom"
        assert report.results[-1].summary.games == 0

    async def test_unresolvable_player_is_a_soft_failure(self):
        client = build_client()
        del client.accounts["Bravo"]

        report = await make_pipeline(client).run(5)

        bravo = report.results[-1]
        assert bravo.player == "Bravo"
        assert bravo.error == "No puuid for Bravo#NA1"

    async def test_pacing_skips_cache_hits_and_throttle_abort(self):
        summary = Summary(games=1, wins=1, winrate=100.0)
        store = MemoryCacheStore(cached_summary_blob("Alpha#NA1", summary))
        client = build_client(fail_on={"Bravo": "boom"}, rate_limit_on={"Delta": 5})
        pacer = NoopPacer()

        await make_pipeline(client, store, pacer=pacer).run(5)

        # Alpha cached: no delay; Bravo error: delay; Charlie ok: delay; Delta 429: no delay
        assert pacer.calls == 2

    async def test_status_completed_after_full_pass(self):
        pipeline = make_pipeline(build_client())
        assert pipeline.status is RunStatus.IDLE

        await pipeline.run()

        assert pipeline.status is RunStatus.COMPLETED

    async def test_response_shape(self):
        report = await make_pipeline(build_client(), roster=ROSTER[:1]).run("3")
        body = report.to_dict()

        assert set(body) == {"updatedAt", "count", "rateLimited", "retryAfterSeconds", "results"}
        assert body["updatedAt"] == NOW
        assert body["count"] == 3
        row = body["results"][0]
        assert row["player"] == "Alpha"
        assert row["riotId"] == "Alpha#NA1"
        assert row["mostPlayedChampion"] in {"Ahri", "Zed"}
        assert row["cached"] is False and row["error"] is None


class TestClampCount:

    def test_defaults_and_bounds(self):
        assert clamp_count(None) == 5
        assert clamp_count("abc") == 5
        assert clamp_count("nan") == 5
        assert clamp_count(0) == 1
        assert clamp_count(-4) == 1
        assert clamp_count(20) == 8
        assert clamp_count("7") == 7
        assert clamp_count(3.9) == 3


def row(name, winrate, games, error=None):
    return PlayerResult(name, f"{name}#X", Summary(games=games, winrate=winrate), 5, error=error)


class TestSortResults:

    def test_winrate_then_games(self):
        rows = [row("a", 40, 10), row("b", 70, 5), row("c", 70, 8)]
        assert [r.player for r in sort_results(rows)] == ["c", "b", "a"]

    def test_hard_errors_sort_last(self):
        rows = [row("err", 90, 10, error="500 boom"), row("a", 10, 1), row("cached", 50, 3, SERVED_CACHED_ERROR)]
        assert [r.player for r in sort_results(rows)] == ["cached", "a", "err"]

    def test_stable_for_equal_keys(self):
        rows = [row("x", 50, 2), row("y", 50, 2), row("z", 50, 2)]
        assert [r.player for r in sort_results(rows)] == ["x", "y", "z"]


@pytest.mark.asyncio
class TestPacer:

    async def test_sleeps_configured_delay(self):
        with patch("asyncio.sleep", new_callable=AsyncMock) as sleep:
            await Pacer(0.9).wait()
        sleep.assert_awaited_once_with(0.9)

    async def test_zero_delay_never_sleeps(self):
        with patch("asyncio.sleep", new_callable=AsyncMock) as sleep:
            await Pacer(0).wait()
        sleep.assert_not_called()
