from __future__ import annotations

from datetime import UTC, date, datetime

import pytest

from game_lifecycle.db.enums import LeagueEnum
from game_lifecycle.ingestion.dates import dates_in_window, parse_api_sports_game_datetime
from game_lifecycle.ingestion.leagues import PayloadDialect, get_league_config, season_for_date
from game_lifecycle.ingestion.placeholders import is_real_game, is_real_team_name


def test_nfl_season_rolls_over_in_march() -> None:
    assert season_for_date(LeagueEnum.NFL, date(2026, 2, 1)) == 2025
    assert season_for_date(LeagueEnum.NFL, date(2025, 9, 10)) == 2025
    assert season_for_date(LeagueEnum.NFL, date(2026, 3, 1)) == 2026


def test_basketball_and_hockey_seasons_roll_over_in_july() -> None:
    assert season_for_date(LeagueEnum.NBA, date(2026, 4, 15)) == 2025
    assert season_for_date(LeagueEnum.NHL, date(2025, 10, 8)) == 2025


def test_calendar_year_leagues() -> None:
    assert season_for_date(LeagueEnum.MLB, date(2025, 4, 1)) == 2025
    assert season_for_date(LeagueEnum.SOCCER, date(2026, 1, 10)) == 2026


def test_league_config_lookup() -> None:
    cfg = get_league_config("soccer")
    assert cfg.games_path == "/fixtures"
    assert cfg.dialect == PayloadDialect.SOCCER
    assert get_league_config(LeagueEnum.NFL).provider_league_id == "1"
    with pytest.raises(ValueError):
        get_league_config("CFL")


@pytest.mark.parametrize(
    "name",
    ["AFC", "NFC", "TBD", "tba", "All-Stars", "Pro Bowl", "Team 1", "Team 12", "Home", "West", "X", ""],
)
def test_placeholder_team_names_are_rejected(name: str) -> None:
    assert not is_real_team_name(name)


def test_real_games_pass_the_filter() -> None:
    assert is_real_game("Philadelphia Eagles", "Dallas Cowboys")
    assert is_real_game("West Ham United", "Chelsea")
    assert not is_real_game("AFC", "NFC")
    assert not is_real_game("Boston Celtics", None)


def test_parse_api_sports_dates() -> None:
    expected = datetime(2025, 10, 12, 17, 0, tzinfo=UTC)
    assert parse_api_sports_game_datetime({"timestamp": 1760288400}, provider_game_id="1") == expected
    assert (
        parse_api_sports_game_datetime(
            {"date": "2025-10-12", "time": "17:00"}, provider_game_id="1"
        )
        == expected
    )
    assert parse_api_sports_game_datetime("2025-10-12T17:00:00Z", provider_game_id="1") == expected
    with pytest.raises(ValueError):
        parse_api_sports_game_datetime(None, provider_game_id="1")


def test_dates_in_window_covers_every_touched_day() -> None:
    start = datetime(2025, 10, 11, 8, 0, tzinfo=UTC)
    end = datetime(2025, 10, 14, 8, 0, tzinfo=UTC)
    assert dates_in_window(start, end) == [
        date(2025, 10, 11),
        date(2025, 10, 12),
        date(2025, 10, 13),
        date(2025, 10, 14),
    ]
