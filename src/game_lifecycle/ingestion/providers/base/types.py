from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from game_lifecycle.db.enums import LeagueEnum

Json = dict[str, Any]


@dataclass(frozen=True)
class RawEvent:
    """
    One provider event in canonical shape, before status normalization.
    Adapters emit these no matter how the provider nests its payload.
    """
    league: LeagueEnum
    provider: str
    external_game_id: str
    starts_at: datetime
    status_raw: str | None
    home_team: str
    away_team: str
    home_score: int | None = None
    away_score: int | None = None
    payload: Json = field(default_factory=dict, repr=False, compare=False)
