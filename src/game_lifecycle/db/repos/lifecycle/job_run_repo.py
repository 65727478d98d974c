from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from game_lifecycle.db.models.lifecycle.job_run import JobRun
from game_lifecycle.db.repos.base import BaseRepository


class JobRunRepository(BaseRepository[JobRun]):
    def __init__(self, session: Session) -> None:
        super().__init__(session=session, model=JobRun)

    def latest(self, job_name: str) -> JobRun | None:
        stmt = (
            select(JobRun)
            .where(JobRun.job_name == job_name)
            .order_by(JobRun.started_at.desc(), JobRun.id.desc())
            .limit(1)
        )
        return self.session.execute(stmt).scalars().first()

