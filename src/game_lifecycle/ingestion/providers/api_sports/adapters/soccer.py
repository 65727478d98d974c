from __future__ import annotations

from dataclasses import dataclass

from game_lifecycle.ingestion.dates import parse_api_sports_game_datetime
from game_lifecycle.ingestion.providers.api_sports.adapters.base import (
    ApiItem,
    ApiSportsAdapter,
    as_dict,
    parse_status,
    side_score,
    team_name,
)
from game_lifecycle.ingestion.providers.base.errors import ProviderMappingError
from game_lifecycle.ingestion.providers.base.types import RawEvent


@dataclass
class ApiSportsSoccerAdapter(ApiSportsAdapter):
    """API-Sports football v3 `/fixtures` dialect."""

    def to_raw_event(self, item: ApiItem) -> RawEvent:
        fixture = as_dict(item.get("fixture"))

        fixture_id = fixture.get("id")
        if fixture_id is None or isinstance(fixture_id, bool):
            raise ProviderMappingError("Missing fixture.id", context={"keys": sorted(item)})
        external_id = str(fixture_id)

        # `goals` is the running score; `score.fulltime` only once the match is over.
        goals = item.get("goals")
        fulltime = as_dict(item.get("score")).get("fulltime")
        home_score = side_score(goals, "home")
        away_score = side_score(goals, "away")
        if home_score is None:
            home_score = side_score(fulltime, "home")
        if away_score is None:
            away_score = side_score(fulltime, "away")

        return RawEvent(
            league=self.league_config.league,
            provider=self.provider_key,
            external_game_id=external_id,
            starts_at=parse_api_sports_game_datetime(fixture, provider_game_id=external_id),
            status_raw=parse_status(fixture.get("status")),
            home_team=team_name(item, "home"),
            away_team=team_name(item, "away"),
            home_score=home_score,
            away_score=away_score,
            payload=item,
        )
