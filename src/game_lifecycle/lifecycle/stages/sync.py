from __future__ import annotations

from game_lifecycle.db.enums import LeagueEnum
from game_lifecycle.db.repos.core.game_repo import GameRepository
from game_lifecycle.ingestion.dates import rolling_window
from game_lifecycle.lifecycle.results import StageResult
from game_lifecycle.lifecycle.stages.context import StageContext, ingest_dates


def run_sync(ctx: StageContext, league: LeagueEnum) -> StageResult:
    """Refresh games that are live or could become live soon.

    Only stored games are updated; new events on the same dates are left to discover.
    """
    result = StageResult(stage="sync", league=league.value)
    start, end = rolling_window(
        ctx.clock(),
        hours_back=ctx.settings.window_hours_back,
        hours_forward=ctx.settings.window_hours_forward,
    )
    candidates = GameRepository(ctx.session).sync_candidates(
        league, window_start=start, window_end=end, limit=ctx.settings.sync_max_games
    )
    result.bump("candidates", len(candidates))
    if not candidates:
        return result

    dates = sorted({g.starts_at.date() for g in candidates})
    ingest_dates(
        ctx, league, dates, result, only_ids={g.external_game_id for g in candidates}
    )
    return result
