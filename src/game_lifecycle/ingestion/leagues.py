"""Per-league provider configuration and season numbering.

Everything league-specific that the pipeline needs lives in ``LEAGUE_CONFIGS``; code
elsewhere looks leagues up here instead of branching on league names.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import StrEnum

from game_lifecycle.db.enums import LeagueEnum, ProviderEnum


class ApiSportsSport(StrEnum):
    AMERICAN_FOOTBALL = "american_football"
    BASKETBALL = "basketball"
    HOCKEY = "hockey"
    BASEBALL = "baseball"
    FOOTBALL = "football"  # soccer


class PayloadDialect(StrEnum):
    AMERICAN = "american"
    SOCCER = "soccer"


@dataclass(frozen=True)
class LeagueConfig:
    league: LeagueEnum
    display_name: str
    provider: ProviderEnum
    sport: ApiSportsSport
    provider_league_id: str
    games_path: str
    dialect: PayloadDialect
    # Dates in months before this one belong to the previous year's season.
    # 1 means the season equals the calendar year.
    season_rollover_month: int = 1


LEAGUE_CONFIGS: dict[LeagueEnum, LeagueConfig] = {
    LeagueEnum.NFL: LeagueConfig(
        league=LeagueEnum.NFL,
        display_name="NFL",
        provider=ProviderEnum.API_SPORTS,
        sport=ApiSportsSport.AMERICAN_FOOTBALL,
        provider_league_id="1",
        games_path="/games",
        dialect=PayloadDialect.AMERICAN,
        season_rollover_month=3,  # Sep-Feb
    ),
    LeagueEnum.NBA: LeagueConfig(
        league=LeagueEnum.NBA,
        display_name="NBA",
        provider=ProviderEnum.API_SPORTS,
        sport=ApiSportsSport.BASKETBALL,
        provider_league_id="12",
        games_path="/games",
        dialect=PayloadDialect.AMERICAN,
        season_rollover_month=7,  # Oct-Jun
    ),
    LeagueEnum.NHL: LeagueConfig(
        league=LeagueEnum.NHL,
        display_name="NHL",
        provider=ProviderEnum.API_SPORTS,
        sport=ApiSportsSport.HOCKEY,
        provider_league_id="57",
        games_path="/games",
        dialect=PayloadDialect.AMERICAN,
        season_rollover_month=7,  # Oct-Jun
    ),
    LeagueEnum.MLB: LeagueConfig(
        league=LeagueEnum.MLB,
        display_name="MLB",
        provider=ProviderEnum.API_SPORTS,
        sport=ApiSportsSport.BASEBALL,
        provider_league_id="1",
        games_path="/games",
        dialect=PayloadDialect.AMERICAN,
    ),
    LeagueEnum.SOCCER: LeagueConfig(
        league=LeagueEnum.SOCCER,
        display_name="Soccer (Premier League)",
        provider=ProviderEnum.API_SPORTS,
        sport=ApiSportsSport.FOOTBALL,
        provider_league_id="39",
        games_path="/fixtures",
        dialect=PayloadDialect.SOCCER,
    ),
}


def get_league_config(league: LeagueEnum | str) -> LeagueConfig:
    try:
        key = league if isinstance(league, LeagueEnum) else LeagueEnum(league.strip().upper())
        return LEAGUE_CONFIGS[key]
    except (KeyError, ValueError) as e:
        raise ValueError(f"Unsupported league: {league}") from e


def season_for_date(league: LeagueEnum | str, d: date | datetime) -> int:
    """Season year a calendar date belongs to, e.g. NFL 2026-02-01 -> 2025."""

    cfg = get_league_config(league)
    if d.month < cfg.season_rollover_month:
        return d.year - 1
    return d.year
