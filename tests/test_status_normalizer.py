from __future__ import annotations

from datetime import UTC, datetime

import pytest

from game_lifecycle.db.enums import GameStatusEnum, LeagueEnum, WinnerSideEnum
from game_lifecycle.ingestion.providers.base.types import RawEvent
from game_lifecycle.lifecycle.errors import NormalizationError
from game_lifecycle.lifecycle.status import (
    can_transition,
    determine_winner,
    is_terminal,
    normalize_status,
    status_rank,
)
from game_lifecycle.lifecycle.store import build_observation

NOW = datetime(2025, 10, 12, 20, 0, tzinfo=UTC)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("NS", GameStatusEnum.SCHEDULED),
        ("Not Started", GameStatusEnum.SCHEDULED),
        ("scheduled", GameStatusEnum.SCHEDULED),
        ("TBD", GameStatusEnum.SCHEDULED),
        ("1H", GameStatusEnum.LIVE),
        ("2H", GameStatusEnum.LIVE),
        ("HT", GameStatusEnum.LIVE),
        ("Second Half", GameStatusEnum.LIVE),
        ("Q3", GameStatusEnum.LIVE),
        ("OT", GameStatusEnum.LIVE),
        ("P2", GameStatusEnum.LIVE),
        ("IN7", GameStatusEnum.LIVE),
        ("In Progress", GameStatusEnum.LIVE),
        ("FT", GameStatusEnum.FINAL),
        ("AOT", GameStatusEnum.FINAL),
        ("AET", GameStatusEnum.FINAL),
        ("PEN", GameStatusEnum.FINAL),
        ("Final", GameStatusEnum.FINAL),
        ("F/OT", GameStatusEnum.FINAL),
        ("Match Finished", GameStatusEnum.FINAL),
        ("Cancelled", GameStatusEnum.CANCELED),
        ("CANC", GameStatusEnum.CANCELED),
        ("Abandoned", GameStatusEnum.CANCELED),
        ("Postponed", GameStatusEnum.POSTPONED),
        ("PST", GameStatusEnum.POSTPONED),
        ("Suspended", GameStatusEnum.POSTPONED),
        ("Gremlins On Field", GameStatusEnum.UNKNOWN),
    ],
)
def test_normalize_status_table(raw: str, expected: GameStatusEnum) -> None:
    assert normalize_status("api_sports", raw) == expected


def test_normalize_status_is_case_insensitive() -> None:
    assert normalize_status("api_sports", "ft") == GameStatusEnum.FINAL
    assert normalize_status("api_sports", "  2h ") == GameStatusEnum.LIVE


def test_unrecognized_status_with_score_after_start_is_live() -> None:
    status = normalize_status(
        "api_sports",
        "Mystery",
        home_score=3,
        away_score=0,
        starts_at=datetime(2025, 10, 12, 18, 0, tzinfo=UTC),
        now=NOW,
    )
    assert status == GameStatusEnum.LIVE


def test_interrupted_game_with_a_score_stays_postponed() -> None:
    status = normalize_status(
        "api_sports",
        "INT",
        home_score=1,
        away_score=0,
        starts_at=datetime(2025, 10, 12, 18, 0, tzinfo=UTC),
        now=NOW,
    )
    assert status == GameStatusEnum.POSTPONED
    # Play resuming shows up as a result, never as a return to LIVE.
    assert not can_transition(GameStatusEnum.POSTPONED, GameStatusEnum.LIVE)
    assert can_transition(GameStatusEnum.POSTPONED, GameStatusEnum.FINAL)


def test_determine_winner() -> None:
    assert determine_winner(3, 1) == WinnerSideEnum.HOME
    assert determine_winner(1, 3) == WinnerSideEnum.AWAY
    assert determine_winner(24, 24) == WinnerSideEnum.DRAW
    with pytest.raises(NormalizationError):
        determine_winner(None, 3)


def _event(status: str, home: int | None, away: int | None) -> RawEvent:
    return RawEvent(
        league=LeagueEnum.NFL,
        provider="api_sports",
        external_game_id="17281",
        starts_at=datetime(2025, 10, 12, 17, 0, tzinfo=UTC),
        status_raw=status,
        home_team="Philadelphia Eagles",
        away_team="Cincinnati Bengals",
        home_score=home,
        away_score=away,
    )


def test_final_tie_observation_is_a_draw() -> None:
    obs = build_observation(_event("FT", 24, 24), now=NOW)
    assert obs.status_norm == GameStatusEnum.FINAL
    assert obs.winner_side == WinnerSideEnum.DRAW
    assert obs.season == 2025


def test_cancelled_observation_has_no_winner() -> None:
    obs = build_observation(_event("Cancelled", None, None), now=NOW)
    assert obs.status_norm == GameStatusEnum.CANCELED
    assert obs.winner_side is None


def test_final_without_score_is_rejected() -> None:
    with pytest.raises(NormalizationError):
        build_observation(_event("FT", 10, None), now=NOW)


def test_rank_and_terminal_helpers() -> None:
    assert status_rank(GameStatusEnum.SCHEDULED) == status_rank(GameStatusEnum.UNKNOWN)
    assert status_rank(GameStatusEnum.LIVE) > status_rank(GameStatusEnum.SCHEDULED)
    assert is_terminal(GameStatusEnum.FINAL)
    assert is_terminal(GameStatusEnum.POSTPONED)
    assert not is_terminal(GameStatusEnum.LIVE)


def test_transitions_never_regress() -> None:
    assert can_transition(GameStatusEnum.SCHEDULED, GameStatusEnum.LIVE)
    assert not can_transition(GameStatusEnum.LIVE, GameStatusEnum.SCHEDULED)
    assert not can_transition(GameStatusEnum.LIVE, GameStatusEnum.UNKNOWN)
    assert not can_transition(GameStatusEnum.FINAL, GameStatusEnum.LIVE)
    assert not can_transition(GameStatusEnum.FINAL, GameStatusEnum.CANCELED)
    assert not can_transition(GameStatusEnum.CANCELED, GameStatusEnum.SCHEDULED)
    assert can_transition(GameStatusEnum.POSTPONED, GameStatusEnum.FINAL)
    assert can_transition(GameStatusEnum.POSTPONED, GameStatusEnum.CANCELED)
    assert can_transition(GameStatusEnum.UNKNOWN, GameStatusEnum.SCHEDULED)
