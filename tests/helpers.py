"""Shared builders for match payloads and a scripted Riot client."""

from typing import Dict, List, Optional

from squadstats.riot.client import RateLimitError, RequestFailedError


def participant(puuid, win=True, kills=0, deaths=0, assists=0, champion="Ahri"):
    return {
        "puuid": puuid, "win": win, "kills": kills, "deaths": deaths,
        "assists": assists, "championName": champion,
    }


def match(*participants, start=None):
    info = {"participants": list(participants)}
    if start is not None:
        info["gameStartTimestamp"] = start
    return {"info": info}


class FakeRiotClient:
    """
    Scripted stand-in for RiotClient exposing the three endpoints the
    pipeline uses. ``rate_limit_on`` maps a game name to the Retry-After
    value to raise on its account lookup; ``rate_limit_on_match`` does the
    same for a match id on the detail endpoint.
    """

    def __init__(self, accounts: Dict[str, str], match_ids: Dict[str, List[str]],
                 matches: Dict[str, dict], rate_limit_on: Optional[Dict[str, Optional[int]]] = None,
                 fail_on: Optional[Dict[str, str]] = None,
                 rate_limit_on_match: Optional[Dict[str, Optional[int]]] = None):
        self.accounts = accounts
        self.match_ids = match_ids
        self.matches = matches
        self.rate_limit_on = rate_limit_on or {}
        self.fail_on = fail_on or {}
        self.rate_limit_on_match = rate_limit_on_match or {}
        self.calls: List[tuple] = []

    async def get_account_by_riot_id(self, region, game_name, tag_line):
        self.calls.append(("account", game_name))
        if game_name in self.rate_limit_on:
            raise RateLimitError("429 Too Many Requests rate limit exceeded",
                                 retry_after=self.rate_limit_on[game_name])
        if game_name in self.fail_on:
            raise RequestFailedError(500, self.fail_on[game_name])
        puuid = self.accounts.get(game_name)
        return {"puuid": puuid} if puuid else {}

    async def get_match_ids(self, region, puuid, count=5, queue="ranked"):
        self.calls.append(("ids", puuid, count))
        return self.match_ids.get(puuid, [])[:count]

    async def get_match_by_id(self, region, match_id):
        self.calls.append(("match", match_id))
        if match_id in self.rate_limit_on_match:
            raise RateLimitError("429 Too Many Requests rate limit exceeded",
                                 retry_after=self.rate_limit_on_match[match_id])
        return self.matches[match_id]
