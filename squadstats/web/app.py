# squadstats/web/app.py
# Leaderboard Match-V5 des amis — FastAPI
# Lancement :
#   python -m uvicorn squadstats.web.app:app --host 0.0.0.0 --port 3000

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, Optional

from fastapi import Depends, FastAPI, Query
from fastapi.responses import JSONResponse

from squadstats.config import Settings, settings
from squadstats.db.cache_store import CacheStore, build_cache_store
from squadstats.logging_config import setup_logging
from squadstats.models.summary import LeaderboardResponse
from squadstats.riot.client import RiotClient
from squadstats.roster import load_roster
from squadstats.services.pacing import Pacer
from squadstats.services.pipeline import PipelineOrchestrator

APP_TITLE = "SquadStats — Match Leaderboard"

log = logging.getLogger(__name__)

START_TIME = time.time()

# Un seul run à la fois par process : le blob de cache est lu puis réécrit en entier
_RUN_LOCK = asyncio.Lock()

# Store partagé par toutes les requêtes (un seul pool Redis par process)
_STORE: Optional[CacheStore] = None

Runner = Callable[[Any], Awaitable[LeaderboardResponse]]


def get_settings() -> Settings:
    return settings


def get_cache_store(cfg: Settings = Depends(get_settings)) -> CacheStore:
    """Process-wide cache store, built on first use."""
    global _STORE
    if _STORE is None:
        _STORE = build_cache_store(cfg)
        log.info(f"Cache backend: {cfg.CACHE_BACKEND}")
    return _STORE


async def close_cache_store() -> None:
    global _STORE
    store, _STORE = _STORE, None
    if store is not None:
        await store.aclose()


def get_runner(cfg: Settings = Depends(get_settings),
               store: CacheStore = Depends(get_cache_store)) -> Runner:
    """Runs the pipeline against the real Riot API and the shared cache store."""

    async def run(count: Any) -> LeaderboardResponse:
        async with RiotClient(cfg.RIOT_API_KEY) as client:
            orchestrator = PipelineOrchestrator(
                client,
                store,
                load_roster(cfg.ROSTER_FILE),
                region=cfg.DEFAULT_REGION,
                pacer=Pacer(cfg.PER_PLAYER_DELAY_MS / 1000),
                max_count=cfg.MAX_COUNT,
                default_count=cfg.DEFAULT_COUNT,
            )
            return await orchestrator.run(count)

    return run


@asynccontextmanager
async def lifespan(_app: FastAPI):
    setup_logging(settings.LOG_LEVEL)
    log.info("RIOT_API_KEY: %s", "Loaded" if settings.RIOT_API_KEY else "Missing")
    yield
    await close_cache_store()


app = FastAPI(title=APP_TITLE, lifespan=lifespan)


@app.get("/health")
async def health_check() -> JSONResponse:
    """
    Basic health check endpoint.

    Returns:
        JSON with status and uptime information
    """
    uptime = int(time.time() - START_TIME)
    return JSONResponse({
        "status": "healthy",
        "uptime_seconds": uptime,
        "service": "squadstats"
    })


@app.get("/api/match-leaderboard")
async def match_leaderboard(
    count: Optional[str] = Query(None, description="Nombre de parties classées par joueur (1-8)"),
    cfg: Settings = Depends(get_settings),
    runner: Runner = Depends(get_runner),
):
    if not cfg.RIOT_API_KEY:
        return JSONResponse({"error": "Missing RIOT_API_KEY"}, status_code=400)

    async with _RUN_LOCK:
        report = await runner(count)

    return JSONResponse(report.to_dict())


def main() -> None:
    import uvicorn
    setup_logging(settings.LOG_LEVEL)
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    main()
