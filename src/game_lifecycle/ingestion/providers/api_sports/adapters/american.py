from __future__ import annotations

from dataclasses import dataclass

from game_lifecycle.ingestion.dates import parse_api_sports_game_datetime
from game_lifecycle.ingestion.providers.api_sports.adapters.base import (
    ApiItem,
    ApiSportsAdapter,
    parse_status,
    side_score,
    team_name,
)
from game_lifecycle.ingestion.providers.base.errors import ProviderMappingError
from game_lifecycle.ingestion.providers.base.types import RawEvent


@dataclass
class ApiSportsAmericanAdapter(ApiSportsAdapter):
    """
    API-Sports `/games` dialect (american-football, basketball, hockey, baseball).

    Game fields are either nested under `game` or sit at the top level.
    """

    def to_raw_event(self, item: ApiItem) -> RawEvent:
        game = item.get("game") if isinstance(item.get("game"), dict) else item

        game_id = game.get("id")
        if game_id is None or isinstance(game_id, bool):
            raise ProviderMappingError("Missing game id", context={"keys": sorted(item)})
        external_id = str(game_id)

        starts_at = parse_api_sports_game_datetime(game.get("date"), provider_game_id=external_id)
        scores = item.get("scores")

        return RawEvent(
            league=self.league_config.league,
            provider=self.provider_key,
            external_game_id=external_id,
            starts_at=starts_at,
            status_raw=parse_status(game.get("status")),
            home_team=team_name(item, "home"),
            away_team=team_name(item, "away"),
            home_score=side_score(scores, "home"),
            away_score=side_score(scores, "away"),
            payload=item,
        )
