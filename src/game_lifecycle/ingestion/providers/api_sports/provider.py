from __future__ import annotations

from collections.abc import Iterable

from game_lifecycle.core.config import Settings
from game_lifecycle.db.enums import LeagueEnum, ProviderEnum
from game_lifecycle.ingestion.leagues import (
    ApiSportsSport,
    LeagueConfig,
    PayloadDialect,
    get_league_config,
)
from game_lifecycle.ingestion.providers.api_sports.adapters.american import (
    ApiSportsAmericanAdapter,
)
from game_lifecycle.ingestion.providers.api_sports.adapters.base import ApiSportsAdapter
from game_lifecycle.ingestion.providers.api_sports.adapters.soccer import ApiSportsSoccerAdapter
from game_lifecycle.ingestion.providers.api_sports.client import (
    ApiSportsClient,
    ApiSportsRateLimiter,
)
from game_lifecycle.ingestion.providers.base.client import BaseHttpClient
from game_lifecycle.ingestion.providers.base.rate_limit import TokenBucket
from game_lifecycle.ingestion.providers.base.registry import AdapterKey, AdapterRegistry

_ADAPTERS_BY_DIALECT: dict[PayloadDialect, type[ApiSportsAdapter]] = {
    PayloadDialect.AMERICAN: ApiSportsAmericanAdapter,
    PayloadDialect.SOCCER: ApiSportsSoccerAdapter,
}


def _get_base_url(settings: Settings, sport: ApiSportsSport) -> str:
    return {
        ApiSportsSport.AMERICAN_FOOTBALL: settings.api_sports_american_football_base_url,
        ApiSportsSport.BASKETBALL: settings.api_sports_basketball_base_url,
        ApiSportsSport.HOCKEY: settings.api_sports_hockey_base_url,
        ApiSportsSport.BASEBALL: settings.api_sports_baseball_base_url,
        ApiSportsSport.FOOTBALL: settings.api_sports_football_base_url,
    }[sport]


def register_api_sports_adapters(
    registry: AdapterRegistry,
    *,
    settings: Settings,
    api_key: str,
    leagues: Iterable[LeagueEnum] | None = None,
) -> None:
    # One bucket per API key: every sport host draws from the same account quota.
    bucket = TokenBucket(
        rate_per_minute=settings.api_sports_requests_per_minute,
        capacity=settings.api_sports_burst,
    )

    def make_factory(cfg: LeagueConfig):
        base_url = _get_base_url(settings, cfg.sport)
        adapter_cls = _ADAPTERS_BY_DIALECT[cfg.dialect]

        def factory() -> ApiSportsAdapter:
            client = ApiSportsClient(
                http=BaseHttpClient(base_url=base_url),
                api_key=api_key,
                rate_limiter=ApiSportsRateLimiter(bucket=bucket),
            )
            return adapter_cls(client=client, league_config=cfg)

        return factory

    for league in leagues or settings.enabled_leagues:
        cfg = get_league_config(league)
        registry.register(
            AdapterKey(provider=ProviderEnum.API_SPORTS.value, league_key=cfg.league.value),
            factory=make_factory(cfg),
        )
