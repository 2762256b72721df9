# roster.py – Liste statique des amis suivis (Riot ID)

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional


@dataclass(frozen=True)
class FriendDescriptor:
    """Roster entry: display label plus the two-part Riot ID."""
    label: str
    game_name: str
    tag_line: str

    @property
    def riot_id(self) -> str:
        return f"{self.game_name}#{self.tag_line}"

    @classmethod
    def from_dict(cls, data: dict) -> "FriendDescriptor":
        game_name = data["gameName"]
        return cls(
            label=data.get("label") or game_name,
            game_name=game_name,
            tag_line=data["tagLine"],
        )


DEFAULT_ROSTER: List[FriendDescriptor] = [
    FriendDescriptor("Nouology", "Nouology", "11111"),
    FriendDescriptor("Kindred", "Kindred", "1v9"),
    FriendDescriptor("콩순이", "콩순이", "SLEEP"),
    FriendDescriptor("Pzzangs Child", "Pzzangs Child", "YASUO"),
    FriendDescriptor("bussking69", "bussking69", "rek"),
    FriendDescriptor("Chill Guy", "Chill Guy", "Yang"),
    FriendDescriptor("electrophoresis", "electrophoresis", "gel"),
    FriendDescriptor("ZaZa Pack", "ZaZa Pack", "NA1"),
    FriendDescriptor("Deesalia", "Deesalia", "NA1"),
    FriendDescriptor("mega bner", "mega bner", "111"),
    FriendDescriptor("IW1llEatB00ty", "IW1llEatB00ty", "CAre"),
]


def load_roster(path: Optional[str] = None) -> List[FriendDescriptor]:
    """Read ``[{label, gameName, tagLine}, ...]`` from *path*, or the built-in roster."""
    if not path:
        return list(DEFAULT_ROSTER)
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    return [FriendDescriptor.from_dict(item) for item in raw]
