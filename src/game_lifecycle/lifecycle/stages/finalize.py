from __future__ import annotations

import logging
from datetime import timedelta

from game_lifecycle.db.enums import GameStatusEnum, LeagueEnum
from game_lifecycle.db.repos.core.game_repo import GameRepository
from game_lifecycle.lifecycle.results import StageResult
from game_lifecycle.lifecycle.stages.context import StageContext, enqueue_games, ingest_dates

logger = logging.getLogger(__name__)


def run_finalize(ctx: StageContext, league: LeagueEnum) -> StageResult:
    """Close out games that should have ended by now.

    Candidates are re-fetched first; whatever terminal status the provider reports
    wins. A game still LIVE well past its start, with both scores known, is forced
    FINAL from the stored score. UNKNOWN games are left alone and counted as stale.
    FINAL games that never reached the settlement queue are queued last.
    """
    result = StageResult(stage="finalize", league=league.value)
    now = ctx.clock()
    games = GameRepository(ctx.session)
    store = ctx.store()

    candidates = games.finalize_candidates(
        league,
        started_before=now - timedelta(hours=ctx.settings.finalize_stuck_hours),
        limit=ctx.settings.finalize_max_games,
    )
    result.bump("candidates", len(candidates))

    if candidates:
        dates = sorted({g.starts_at.date() for g in candidates})
        ingest_dates(
            ctx, league, dates, result, only_ids={g.external_game_id for g in candidates}
        )
        if result.cancelled:
            return result

    force_before = now - timedelta(hours=ctx.settings.finalize_force_after_hours)
    forced = []
    for game in candidates:
        status = game.status_norm
        if status in (GameStatusEnum.FINAL, GameStatusEnum.CANCELED, GameStatusEnum.POSTPONED):
            continue
        if status == GameStatusEnum.UNKNOWN:
            result.bump("stale_unknown")
            continue
        if (
            status == GameStatusEnum.LIVE
            and game.starts_at < force_before
            and game.home_score is not None
            and game.away_score is not None
        ):
            if not store.force_final(game, now=now):
                result.bump("concurrent_updates")
                continue
            logger.warning(
                "Forced FINAL for %s:%s at %s-%s (started %s)",
                league.value,
                game.external_game_id,
                game.home_score,
                game.away_score,
                game.starts_at.isoformat(),
            )
            forced.append(game)
            continue
        result.bump("pending")

    games.touch_synced((g.id for g in candidates), now)
    result.bump("forced_final", len(forced))
    enqueue_games(ctx, forced, result)

    orphans = games.orphaned_finals(league, limit=ctx.settings.finalize_max_games)
    if orphans:
        before = result.counts["enqueued"]
        enqueue_games(ctx, orphans, result)
        result.bump("orphans_enqueued", result.counts["enqueued"] - before)

    ctx.session.commit()
    return result
