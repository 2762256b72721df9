# riot/client.py

import asyncio
import json
import logging
import math
from typing import Any, Dict, Optional
from urllib.parse import quote

import aiohttp

# Mapping plateforme → région globale pour /match-v5 et /account-v1
REGION_GROUPS = {
    "euw1": "europe", "eun1": "europe", "ru": "europe", "tr1": "europe",
    "kr": "asia",   "jp1": "asia",
    "na1": "americas", "br1": "americas", "la1": "americas", "la2": "americas"
}

# Longueur max du message d'erreur remonté au client
MAX_ERROR_MESSAGE = 200

log = logging.getLogger(__name__)


class RiotAPIError(Exception):
    """Base exception for Riot API errors."""
    pass


class RateLimitError(RiotAPIError):
    """Raised on HTTP 429. Carries the Retry-After hint in seconds, if any."""

    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after


class RequestFailedError(RiotAPIError):
    """Non-success status, embedded error body, or transport failure."""

    def __init__(self, status: Optional[int], message: str):
        super().__init__(message)
        self.status = status


class ResolutionError(RiotAPIError):
    """Account lookup answered without a usable puuid."""
    pass


class MalformedResponseError(RiotAPIError):
    """Response body does not have the expected shape."""
    pass


def region_group(region: str) -> str:
    return REGION_GROUPS.get(region.lower(), "americas")


def _parse_retry_after(raw: Optional[str]) -> Optional[float]:
    if raw is None:
        return None
    try:
        value = float(raw)
    except ValueError:
        return None
    if not math.isfinite(value) or value < 0:
        return None
    return int(value) if value.is_integer() else value


def _parse_body(text: str) -> Any:
    """JSON body, or the raw text under ``raw`` when it is not JSON."""
    if not text:
        return None
    try:
        return json.loads(text)
    except ValueError:
        return {"raw": text}


def _embedded_status_message(data: Any) -> Optional[str]:
    if isinstance(data, dict) and isinstance(data.get("status"), dict):
        return data["status"].get("message")
    return None


class RiotClient:
    """Async Riot API client that surfaces throttling instead of retrying."""

    def __init__(self, api_key: str):
        self.api_key = api_key
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"X-Riot-Token": self.api_key, "Accept": "application/json"},
                timeout=aiohttp.ClientTimeout(total=10)
            )
        return self._session

    async def close(self):
        """Close the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self):
        """Context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        await self.close()

    async def fetch(self, url: str) -> Any:
        """
        Make a single authenticated GET request and classify the response.

        Args:
            url: The full URL to request

        Returns:
            Parsed JSON body (or ``{"raw": text}`` for a non-JSON body)

        Raises:
            RateLimitError: On HTTP 429, with the Retry-After hint
            RequestFailedError: On any other failure, including network errors
        """
        session = await self._get_session()

        try:
            async with session.get(url) as resp:
                # Corps non UTF-8 (page d'erreur d'un proxy) : remplacé, jamais fatal
                text = (await resp.read()).decode("utf-8", errors="replace")
                status = resp.status
                reason = resp.reason or ""
                retry_header = resp.headers.get("Retry-After")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            log.warning(f"Network error on {url}: {e!r}")
            raise RequestFailedError(None, f"network error: {e!r}"[:MAX_ERROR_MESSAGE]) from e

        data = _parse_body(text)

        if status == 429:
            retry_after = _parse_retry_after(retry_header)
            msg = _embedded_status_message(data) or "rate limit exceeded"
            log.warning(f"429 Rate limited on {url} (retry-after={retry_after})")
            raise RateLimitError(f"429 Too Many Requests {msg}", retry_after=retry_after)

        embedded = _embedded_status_message(data)
        has_status = isinstance(data, dict) and bool(data.get("status"))
        if not 200 <= status < 300 or has_status:
            msg = embedded or json.dumps(data)[:MAX_ERROR_MESSAGE]
            raise RequestFailedError(status, f"{status} {reason} {msg}".strip()[:MAX_ERROR_MESSAGE])

        return data

    async def get_account_by_riot_id(self, region: str, game_name: str, tag_line: str) -> Any:
        """
        Get account by Riot ID (game name + tag).
        Account-V1: GET /riot/account/v1/accounts/by-riot-id/{gameName}/{tagLine}
        Routed via region group (americas/europe/asia).
        """
        url = (
            f"https://{region_group(region)}.api.riotgames.com"
            f"/riot/account/v1/accounts/by-riot-id/{quote(game_name, safe='')}/{quote(tag_line, safe='')}"
        )
        return await self.fetch(url)

    async def get_match_ids(self, region: str, puuid: str, count: int = 5, queue: str = "ranked") -> Any:
        """Get the most recent match IDs for a player, newest first."""
        url = (
            f"https://{region_group(region)}.api.riotgames.com"
            f"/lol/match/v5/matches/by-puuid/{quote(puuid, safe='')}/ids"
            f"?start=0&count={count}&type={queue}"
        )
        return await self.fetch(url)

    async def get_match_by_id(self, region: str, match_id: str) -> Optional[Dict[str, Any]]:
        """Get detailed match information by match ID."""
        url = f"https://{region_group(region)}.api.riotgames.com/lol/match/v5/matches/{quote(match_id, safe='')}"
        return await self.fetch(url)
