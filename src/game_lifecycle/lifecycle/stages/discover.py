from __future__ import annotations

from game_lifecycle.db.enums import LeagueEnum
from game_lifecycle.ingestion.dates import dates_in_window, rolling_window
from game_lifecycle.lifecycle.results import StageResult
from game_lifecycle.lifecycle.stages.context import StageContext, ingest_dates


def run_discover(ctx: StageContext, league: LeagueEnum) -> StageResult:
    """Upsert every event the provider lists for the dates around now."""

    result = StageResult(stage="discover", league=league.value)
    start, end = rolling_window(
        ctx.clock(),
        hours_back=ctx.settings.window_hours_back,
        hours_forward=ctx.settings.window_hours_forward,
    )
    ingest_dates(ctx, league, dates_in_window(start, end), result)
    return result
