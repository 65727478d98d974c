from __future__ import annotations

from sqlalchemy.orm import Session

from game_lifecycle.db.models.lifecycle.job_cursor import JobCursor
from game_lifecycle.db.repos.base import BaseRepository


class JobCursorRepository(BaseRepository[JobCursor]):
    def __init__(self, session: Session) -> None:
        super().__init__(session=session, model=JobCursor)

    def save(self, job_name: str, *, step: str, league_index: int, day_index: int = 0) -> JobCursor:
        row = self.get(job_name)
        if row is None:
            return self.add(
                JobCursor(
                    job_name=job_name, step=step, league_index=league_index, day_index=day_index
                )
            )
        return self.patch(row, {"step": step, "league_index": league_index, "day_index": day_index})

    def clear(self, job_name: str) -> None:
        row = self.get(job_name)
        if row is not None:
            self.delete(row)
