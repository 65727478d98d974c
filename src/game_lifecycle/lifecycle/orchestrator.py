from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import date, datetime, timedelta

from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker

from game_lifecycle.core.config import Settings
from game_lifecycle.core.config import settings as default_settings
from game_lifecycle.db.enums import JobNameEnum, JobRunStatusEnum, LeagueEnum, RunTypeEnum
from game_lifecycle.db.repos.lifecycle.job_cursor_repo import JobCursorRepository
from game_lifecycle.ingestion.dates import utcnow
from game_lifecycle.ingestion.leagues import get_league_config
from game_lifecycle.ingestion.providers.base.errors import ProviderCapabilityError
from game_lifecycle.ingestion.providers.base.registry import AdapterRegistry
from game_lifecycle.lifecycle.cursor import (
    JOB_STEPS,
    BatchCursor,
    advance,
    first_cursor,
    validate_cursor,
)
from game_lifecycle.lifecycle.errors import (
    ConfigurationError,
    InvalidCursorError,
    LockStoreUnavailable,
    format_failure_reason,
)
from game_lifecycle.lifecycle.job_runs import JobRunRecorder
from game_lifecycle.lifecycle.locks import JobLockManager
from game_lifecycle.lifecycle.results import StageResult, cap_errors
from game_lifecycle.lifecycle.settlement import SettlementWorker
from game_lifecycle.lifecycle.stages.backfill import backfill_dates, run_backfill
from game_lifecycle.lifecycle.stages.context import StageContext
from game_lifecycle.lifecycle.stages.discover import run_discover
from game_lifecycle.lifecycle.stages.finalize import run_finalize
from game_lifecycle.lifecycle.stages.settle import run_settle
from game_lifecycle.lifecycle.stages.sync import run_sync
from game_lifecycle.lifecycle.trigger import CursorModel, TriggerRequest, TriggerResponse

logger = logging.getLogger(__name__)

_LEAGUE_STAGES = {
    "discover": run_discover,
    "sync": run_sync,
    "finalize": run_finalize,
}


def lock_key_for_step(step: str) -> str:
    return step


class _LockCheckIn:
    """Called by a stage between units of work: renews its lock and says whether to stop."""

    def __init__(self, locks: JobLockManager, key: str, ttl: timedelta) -> None:
        self.locks = locks
        self.key = key
        self.ttl = ttl
        self.lost = False

    def should_stop(self) -> bool:
        if not self.locks.extend(self.key, self.ttl):
            self.lost = True
            logger.error("Lock %s is no longer held by %s; stopping", self.key, self.locks.owner)
            return True
        return self.locks.is_cancel_requested(self.key)


class LifecycleOrchestrator:
    """Runs lifecycle jobs as resumable batches.

    One batch is one unit of work: a stage for one league, one (league, date) for
    backfill, or one settlement queue drain. Each batch holds its stage's lock, records
    a JobRun, and advances the job's persisted cursor when it completes.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        registry: AdapterRegistry,
        *,
        settings: Settings = default_settings,
        worker: SettlementWorker | None = None,
        lock_manager: JobLockManager | None = None,
        clock: Callable[[], datetime] = utcnow,
        worker_id: str | None = None,
    ) -> None:
        self._session_factory = session_factory
        self.registry = registry
        self.settings = settings
        self.worker = worker
        self._clock = clock
        self.locks = lock_manager or JobLockManager(
            session_factory, owner=worker_id or settings.worker_id, clock=clock
        )
        self.runs = JobRunRecorder(session_factory, clock=clock)

    # -----------------------------
    # Entry point
    # -----------------------------

    def trigger(self, request: TriggerRequest) -> TriggerResponse:
        started = time.monotonic()
        job = request.job
        leagues = self._resolve_leagues(request.leagues)
        days = self._backfill_days(job, request.days)
        day_count = len(days) if job == JobNameEnum.BACKFILL else None

        self._preflight(job, leagues)
        cleaned = self.locks.cleanup_expired()
        if cleaned:
            logger.info("Removed %d expired job locks", cleaned)

        cursor: BatchCursor | None = self._starting_cursor(
            job, request.cursor, league_count=len(leagues), day_count=day_count
        )

        results: list[StageResult] = []
        skipped = False
        cancelled = False
        crashed = False
        reason: str | None = None

        batches = 0
        while cursor is not None and batches < request.max_batches:
            batches += 1
            result = self._run_batch(job, cursor, leagues, days, request.run_type)
            results.append(result)

            if result.crashed:
                # Recorded, then skipped: the cursor moves past the failing unit.
                crashed = True
                reason = reason or result.reason
            elif result.cancelled:
                cancelled = True
                reason = result.reason or f"{job.value} cancelled by operator"
                break
            elif result.skipped and job != JobNameEnum.FULL:
                skipped = True
                reason = result.reason
                break

            cursor = advance(job, cursor, league_count=len(leagues), day_count=day_count)
            self._save_cursor(job, cursor)

        errors: list[str] = []
        for r in results:
            errors.extend(r.errors)

        has_more = cursor is not None
        return TriggerResponse(
            success=not crashed,
            job=job,
            duration_ms=int((time.monotonic() - started) * 1000),
            skipped=skipped,
            reason=reason,
            results=[r.to_dict() for r in results],
            errors=cap_errors(errors, self.settings.max_reported_errors),
            has_more=has_more,
            next_cursor=CursorModel.from_cursor(cursor) if cursor is not None else None,
            cancelled=cancelled,
        )

    def request_cancel(self, job: JobNameEnum) -> list[str]:
        """Flag every running step of `job` to stop. Returns the lock keys flagged."""

        flagged = []
        for step in JOB_STEPS[job]:
            key = lock_key_for_step(step)
            if self.locks.request_cancel(key):
                flagged.append(key)
        return flagged

    # -----------------------------
    # Batches
    # -----------------------------

    def _run_batch(
        self,
        job: JobNameEnum,
        cursor: BatchCursor,
        leagues: list[LeagueEnum],
        days: list[date],
        run_type: RunTypeEnum,
    ) -> StageResult:
        step = cursor.step
        key = lock_key_for_step(step)
        ttl_minutes = (
            self.settings.backfill_lock_ttl_minutes
            if step == "backfill"
            else self.settings.lock_ttl_minutes
        )

        ttl = timedelta(minutes=ttl_minutes)
        lock = self.locks.acquire(key, ttl, meta={"job": job.value, **cursor.to_dict()})
        if not lock.acquired:
            holder = lock.existing_lock.locked_by if lock.existing_lock else "another worker"
            logger.info("Skipping %s: lock held by %s", step, holder)
            return StageResult(stage=step, skipped=True, reason=f"{key} is locked by {holder}")

        check_in = _LockCheckIn(self.locks, key, ttl)
        try:
            run_id = self.runs.start(step, run_type)
            session = self._session_factory()
            try:
                ctx = StageContext(
                    session=session,
                    settings=self.settings,
                    registry=self.registry,
                    clock=self._clock,
                    cancel_requested=check_in.should_stop,
                    worker=self.worker,
                    worker_id=self.locks.owner,
                )
                result = self._dispatch(ctx, cursor, leagues, days)
            except (ConfigurationError, LockStoreUnavailable) as e:
                session.rollback()
                self.runs.finish(run_id, JobRunStatusEnum.ERROR, error=format_failure_reason(e))
                raise
            except Exception as e:
                session.rollback()
                reason = format_failure_reason(e)
                logger.exception("Stage %s crashed", step)
                self.runs.finish(run_id, JobRunStatusEnum.ERROR, error=reason)
                return StageResult(
                    stage=step,
                    league=self._league_label(step, cursor, leagues),
                    crashed=True,
                    reason=reason,
                    errors=[f"{step}: {reason}"],
                )
            finally:
                session.close()

            if check_in.lost:
                result.reason = f"{key} lock was lost"
            self.runs.finish(run_id, JobRunStatusEnum.OK, counts=result.to_dict())
            logger.info("%s %s: %s", step, result.league or "", dict(result.counts))
            return result
        finally:
            self.locks.release(key)

    def _dispatch(
        self,
        ctx: StageContext,
        cursor: BatchCursor,
        leagues: list[LeagueEnum],
        days: list[date],
    ) -> StageResult:
        if cursor.step == "settle":
            return run_settle(ctx)
        league = leagues[cursor.league_index]
        if cursor.step == "backfill":
            return run_backfill(ctx, league, days[cursor.day_index])
        return _LEAGUE_STAGES[cursor.step](ctx, league)

    @staticmethod
    def _league_label(step: str, cursor: BatchCursor, leagues: list[LeagueEnum]) -> str | None:
        if step == "settle":
            return None
        return leagues[cursor.league_index].value

    # -----------------------------
    # Setup
    # -----------------------------

    def _resolve_leagues(self, requested: list[LeagueEnum] | None) -> list[LeagueEnum]:
        leagues = list(dict.fromkeys(requested or self.settings.enabled_leagues))
        if not leagues:
            raise ConfigurationError("No leagues enabled")
        return leagues

    def _backfill_days(self, job: JobNameEnum, days: int | None) -> list[date]:
        if job != JobNameEnum.BACKFILL:
            return []
        return backfill_dates(self._clock().date(), days or self.settings.backfill_default_days)

    def _preflight(self, job: JobNameEnum, leagues: list[LeagueEnum]) -> None:
        """Fail before any work when the run cannot possibly succeed."""

        try:
            with self._session_factory() as session:
                session.execute(text("SELECT 1"))
        except OperationalError as e:
            raise ConfigurationError(f"Database unreachable: {e}") from e

        steps = JOB_STEPS[job]
        if any(s != "settle" for s in steps):
            for league in leagues:
                cfg = get_league_config(league)
                try:
                    self.registry.get(provider=cfg.provider.value, league_key=cfg.league.value)
                except ProviderCapabilityError as e:
                    raise ConfigurationError(str(e)) from e

        if "settle" in steps and self.worker is None:
            raise ConfigurationError(
                "No settlement worker configured; set SETTLEMENT_WEBHOOK_URL."
            )

    def _starting_cursor(
        self,
        job: JobNameEnum,
        supplied: CursorModel | None,
        *,
        league_count: int,
        day_count: int | None,
    ) -> BatchCursor:
        if supplied is not None:
            return validate_cursor(
                job, supplied.to_cursor(), league_count=league_count, day_count=day_count
            )

        persisted = self._load_cursor(job)
        if persisted is None:
            return first_cursor(job)
        try:
            return validate_cursor(job, persisted, league_count=league_count, day_count=day_count)
        except InvalidCursorError as e:
            # League/day lists changed since it was saved.
            logger.warning("Discarding stale %s cursor: %s", job.value, e)
            return first_cursor(job)

    # -----------------------------
    # Cursor persistence
    # -----------------------------

    def _load_cursor(self, job: JobNameEnum) -> BatchCursor | None:
        with self._session_factory() as session:
            row = JobCursorRepository(session).get(job.value)
            if row is None:
                return None
            return BatchCursor(step=row.step, league_index=row.league_index, day_index=row.day_index)

    def _save_cursor(self, job: JobNameEnum, cursor: BatchCursor | None) -> None:
        with self._session_factory() as session, session.begin():
            repo = JobCursorRepository(session)
            if cursor is None:
                repo.clear(job.value)
            else:
                repo.save(
                    job.value,
                    step=cursor.step,
                    league_index=cursor.league_index,
                    day_index=cursor.day_index,
                )
