from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from game_lifecycle.core.config import Settings
from game_lifecycle.db.enums import JobNameEnum
from game_lifecycle.db.models.lifecycle.job_cursor import JobCursor
from game_lifecycle.db.repos.core.game_repo import GameRepository
from game_lifecycle.db.repos.lifecycle.job_run_repo import JobRunRepository
from game_lifecycle.db.repos.lifecycle.settlement_queue_repo import SettlementQueueRepository
from game_lifecycle.ingestion.dates import utcnow
from game_lifecycle.lifecycle.locks import JobLockManager


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def build_status_report(
    session_factory: sessionmaker[Session],
    locks: JobLockManager,
    settings: Settings,
    *,
    clock: Callable[[], datetime] = utcnow,
) -> dict[str, Any]:
    """Read-only snapshot of locks, last runs, queue, cursors and stale UNKNOWN games.

    A lock store that cannot be read is reported as `locks: null`, not raised.
    """
    now = clock()

    lock_rows = locks.list_locks()
    lock_view = (
        None
        if lock_rows is None
        else [
            {
                "key": lk.key,
                "locked_by": lk.locked_by,
                "locked_at": _iso(lk.locked_at),
                "expires_at": _iso(lk.expires_at),
                "expired": lk.is_expired(now),
                "cancel_requested": lk.cancel_requested,
            }
            for lk in lock_rows
        ]
    )

    with session_factory() as session:
        runs = JobRunRepository(session)
        last_runs: dict[str, Any] = {}
        for job in JobNameEnum:
            if job == JobNameEnum.FULL:
                continue
            run = runs.latest(job.value)
            last_runs[job.value] = (
                None
                if run is None
                else {
                    "id": run.id,
                    "status": run.status.value,
                    "run_type": run.run_type.value,
                    "started_at": _iso(run.started_at),
                    "finished_at": _iso(run.finished_at),
                    "duration_ms": run.duration_ms,
                    "error": run.error,
                }
            )

        cursors = {
            c.job_name: {"step": c.step, "league_index": c.league_index, "day_index": c.day_index}
            for c in session.execute(select(JobCursor)).scalars()
        }

        stuck = GameRepository(session).stuck_unknown(
            since_before=now - timedelta(hours=settings.unknown_status_alert_hours)
        )
        stuck_view = [
            {
                "league": g.league.value,
                "external_game_id": g.external_game_id,
                "status_raw": g.status_raw,
                "unknown_since": _iso(g.unknown_status_since),
            }
            for g in stuck
        ]

        queue = SettlementQueueRepository(session).status_counts()

    return {
        "generated_at": now.isoformat(),
        "locks": lock_view,
        "last_runs": last_runs,
        "queue": queue,
        "cursors": cursors,
        "stuck_unknown": stuck_view,
    }
