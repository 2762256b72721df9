# cache_store.py – persistance du blob de cache (fichier JSON ou clé Redis)

from __future__ import annotations

import abc
import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Optional

import redis.asyncio as aioredis
import redis.exceptions as _redis_exc

from squadstats.models.cache_state import PersistedState

log = logging.getLogger(__name__)


class CacheStore(abc.ABC):
    """
    Load/save of the whole PersistedState.

    ``load`` never raises: any read or decode failure yields an empty state.
    ``save`` overwrites the blob in full, without locking.
    """

    @abc.abstractmethod
    async def load(self) -> PersistedState:
        ...

    @abc.abstractmethod
    async def save(self, state: PersistedState) -> None:
        ...

    async def aclose(self) -> None:
        """Release backend connections. Nothing to do by default."""


class JsonFileCacheStore(CacheStore):
    """Blob stored as one pretty-printed JSON file."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    async def load(self) -> PersistedState:
        try:
            text = await asyncio.to_thread(self.path.read_text, encoding="utf-8")
            raw = json.loads(text)
        except FileNotFoundError:
            log.info(f"No cache file at {self.path}, starting empty")
            return PersistedState()
        except (OSError, ValueError) as e:
            log.warning(f"Unreadable cache file {self.path}, starting empty: {e}")
            return PersistedState()
        return PersistedState.from_dict(raw)

    async def save(self, state: PersistedState) -> None:
        payload = json.dumps(state.to_dict(), indent=2, ensure_ascii=False)
        await asyncio.to_thread(self._write, payload)

    def _write(self, payload: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(payload, encoding="utf-8")


class RedisCacheStore(CacheStore):
    """Blob stored as a single JSON string under one Redis key."""

    def __init__(self, url: str = "redis://localhost:6379/0", key: str = "squadstats:cache",
                 client: Optional[Any] = None):
        self.key = key
        self.redis = client or aioredis.from_url(url, encoding="utf-8", decode_responses=True)

    async def load(self) -> PersistedState:
        try:
            raw = await self.redis.get(self.key)
        except _redis_exc.RedisError as e:
            log.warning(f"Redis read failed for {self.key}, starting empty: {e}")
            return PersistedState()
        if not raw:
            return PersistedState()
        try:
            return PersistedState.from_dict(json.loads(raw))
        except ValueError as e:
            log.warning(f"Corrupt cache blob in {self.key}, starting empty: {e}")
            return PersistedState()

    async def save(self, state: PersistedState) -> None:
        await self.redis.set(self.key, json.dumps(state.to_dict(), ensure_ascii=False))

    async def aclose(self) -> None:
        await self.redis.aclose()


class MemoryCacheStore(CacheStore):
    """Keeps the serialized blob in memory; round-trips through JSON like the real stores."""

    def __init__(self, initial: Optional[dict] = None):
        self.blob: Optional[str] = json.dumps(initial) if initial is not None else None
        self.loads = 0
        self.saves = 0

    async def load(self) -> PersistedState:
        self.loads += 1
        if self.blob is None:
            return PersistedState()
        return PersistedState.from_dict(json.loads(self.blob))

    async def save(self, state: PersistedState) -> None:
        self.saves += 1
        self.blob = json.dumps(state.to_dict())

    @property
    def data(self) -> Optional[dict]:
        return json.loads(self.blob) if self.blob is not None else None


def build_cache_store(cfg) -> CacheStore:
    """Store selected by ``CACHE_BACKEND`` ("file" or "redis")."""
    if cfg.CACHE_BACKEND == "redis":
        return RedisCacheStore(cfg.REDIS_URL, cfg.REDIS_CACHE_KEY)
    return JsonFileCacheStore(cfg.CACHE_FILE)
