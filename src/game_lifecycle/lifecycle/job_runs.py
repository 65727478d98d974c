from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session, sessionmaker

from game_lifecycle.db.enums import JobRunStatusEnum, RunTypeEnum
from game_lifecycle.db.models.lifecycle.job_run import JobRun
from game_lifecycle.db.repos.lifecycle.job_run_repo import JobRunRepository
from game_lifecycle.ingestion.dates import utcnow


class JobRunRecorder:
    """Audit rows for stage runs, written in their own transactions.

    A run row must survive the rollback of the work it describes.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock

    def start(self, job_name: str, run_type: RunTypeEnum) -> int:
        with self._session_factory() as session, session.begin():
            run = JobRunRepository(session).add(
                JobRun(
                    job_name=job_name,
                    run_type=run_type,
                    status=JobRunStatusEnum.RUNNING,
                    started_at=self._clock(),
                )
            )
            return run.id

    def finish(
        self,
        run_id: int,
        status: JobRunStatusEnum,
        *,
        counts: dict[str, Any] | None = None,
        error: str | None = None,
    ) -> None:
        with self._session_factory() as session, session.begin():
            repo = JobRunRepository(session)
            run = repo.get(run_id)
            if run is None or run.finished_at is not None:
                return
            finished_at = self._clock()
            repo.patch(
                run,
                {
                    "status": status,
                    "finished_at": finished_at,
                    "duration_ms": int((finished_at - run.started_at).total_seconds() * 1000),
                    "counts": counts,
                    "error": error,
                },
            )
