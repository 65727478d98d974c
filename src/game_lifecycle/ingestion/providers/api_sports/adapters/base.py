from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any

from game_lifecycle.db.enums import LeagueEnum, ProviderEnum
from game_lifecycle.ingestion.leagues import LeagueConfig, season_for_date
from game_lifecycle.ingestion.providers.api_sports.client import ApiSportsClient
from game_lifecycle.ingestion.providers.base.errors import (
    FetchFailed,
    ProviderCapabilityError,
    ProviderMappingError,
    ProviderRequestError,
    ProviderResponseError,
)
from game_lifecycle.ingestion.providers.base.types import RawEvent

logger = logging.getLogger(__name__)

ApiItem = dict[str, Any]


def as_dict(value: Any) -> ApiItem:
    return value if isinstance(value, dict) else {}


def parse_score(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    return None


def parse_status(value: Any) -> str | None:
    """`status.short`, falling back to `status.long`; plain strings pass through."""
    if isinstance(value, str):
        return value.strip() or None
    status = as_dict(value)
    for k in ("short", "long"):
        v = status.get(k)
        if isinstance(v, str) and v.strip():
            return v.strip()
    return None


def team_name(item: ApiItem, side: str) -> str:
    team = as_dict(as_dict(item.get("teams")).get(side))
    name = team.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ProviderMappingError(f"Missing teams.{side}.name", context={"teams": item.get("teams")})
    return name.strip()


def side_score(scores: Any, side: str) -> int | None:
    """Score under `<side>.total` or directly under `<side>`."""
    v = as_dict(scores).get(side)
    if isinstance(v, dict):
        return parse_score(v.get("total"))
    return parse_score(v)


@dataclass
class ApiSportsAdapter:
    """
    Date-scoped game fetch for one API-Sports league.

    Subclasses only map one response item into a RawEvent; request shape, error
    mapping and dropping of malformed items live here.
    """

    client: ApiSportsClient
    league_config: LeagueConfig
    provider_key: str = ProviderEnum.API_SPORTS.value

    def close(self) -> None:
        self.client.close()

    def fetch(self, league: LeagueEnum, on_date: date) -> list[RawEvent]:
        cfg = self.league_config
        if league != cfg.league:
            raise ProviderCapabilityError(
                f"Adapter is for league={cfg.league.value}, got {league}"
            )

        params = {
            "date": on_date.isoformat(),
            "league": cfg.provider_league_id,
            "season": str(season_for_date(league, on_date)),
        }
        try:
            items = self.client.get_response_items(cfg.games_path, params=params)
        except (ProviderRequestError, ProviderResponseError) as e:
            raise FetchFailed(league.value, on_date, e) from e

        events: list[RawEvent] = []
        for item in items:
            try:
                events.append(self.to_raw_event(item))
            except (ProviderMappingError, ValueError) as e:
                logger.warning("%s %s: dropping malformed item: %s", league.value, on_date, e)

        logger.debug("%s %s: %d items, %d events", league.value, on_date, len(items), len(events))
        return events

    def to_raw_event(self, item: ApiItem) -> RawEvent:
        raise NotImplementedError
