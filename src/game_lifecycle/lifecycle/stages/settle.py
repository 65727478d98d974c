from __future__ import annotations

import logging
from datetime import timedelta

from game_lifecycle.db.enums import SettlementStatusEnum
from game_lifecycle.lifecycle.errors import format_failure_reason
from game_lifecycle.lifecycle.results import StageResult
from game_lifecycle.lifecycle.settlement import SettlementQueue, settlement_payload
from game_lifecycle.lifecycle.stages.context import StageContext

logger = logging.getLogger(__name__)


def run_settle(ctx: StageContext) -> StageResult:
    """Hand due queue items to the settlement worker, one committed item at a time."""

    result = StageResult(stage="settle")
    if ctx.worker is None:
        raise RuntimeError("run_settle requires a settlement worker")

    queue = SettlementQueue(ctx.session, clock=ctx.clock)
    requeued = queue.requeue_stale(older_than=timedelta(minutes=ctx.settings.lock_ttl_minutes))
    result.bump("requeued_stale", requeued)
    ctx.session.commit()

    for _ in range(ctx.settings.settle_max_items):
        if ctx.cancel_requested():
            result.cancelled = True
            break

        item = queue.claim_next(ctx.worker_id)
        if item is None:
            break
        ctx.session.commit()
        result.bump("claimed")

        if item.game.settled_at is not None:
            queue.mark_skipped(item, "already_settled")
            ctx.session.commit()
            result.bump("skipped")
            continue

        try:
            ctx.worker.settle(settlement_payload(item))
        except Exception as e:
            reason = format_failure_reason(e)
            status = queue.mark_failed(
                item,
                reason,
                max_attempts=ctx.settings.settle_max_attempts,
                backoff_s=ctx.settings.settle_retry_backoff_s,
            )
            ctx.session.commit()
            logger.warning(
                "Settlement of %s:%s failed (attempt %d, now %s): %s",
                item.league.value,
                item.external_game_id,
                item.attempts,
                status.value,
                reason,
            )
            result.bump("failed" if status == SettlementStatusEnum.FAILED else "retried")
            result.add_error(f"settle {item.league.value}:{item.external_game_id}: {reason}")
            continue

        queue.mark_done(item)
        ctx.session.commit()
        result.bump("settled")

    return result
