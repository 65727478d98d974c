from __future__ import annotations

from datetime import date, timedelta

from game_lifecycle.db.enums import LeagueEnum
from game_lifecycle.lifecycle.results import StageResult
from game_lifecycle.lifecycle.stages.context import StageContext, ingest_dates


def backfill_dates(today: date, days: int) -> list[date]:
    """The `days` dates before `today`, oldest first."""

    return [today - timedelta(days=days - i) for i in range(days)]


def run_backfill(ctx: StageContext, league: LeagueEnum, on_date: date) -> StageResult:
    result = StageResult(stage="backfill", league=league.value, on_date=on_date.isoformat())
    ingest_dates(ctx, league, [on_date], result)
    return result
