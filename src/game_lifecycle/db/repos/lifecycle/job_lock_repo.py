from __future__ import annotations

from datetime import datetime

from sqlalchemy import delete, update
from sqlalchemy.orm import Session

from game_lifecycle.db.models.lifecycle.job_lock import JobLock
from game_lifecycle.db.repos.base import BaseRepository


class JobLockRepository(BaseRepository[JobLock]):
    def __init__(self, session: Session) -> None:
        super().__init__(session=session, model=JobLock)

    def delete_expired(self, now: datetime, *, key: str | None = None) -> int:
        stmt = delete(JobLock).where(JobLock.expires_at < now)
        if key is not None:
            stmt = stmt.where(JobLock.key == key)
        result = self.session.execute(stmt)
        return int(result.rowcount or 0)

    def delete_owned(self, key: str, locked_by: str) -> int:
        result = self.session.execute(
            delete(JobLock).where(JobLock.key == key, JobLock.locked_by == locked_by)
        )
        return int(result.rowcount or 0)

    def delete_key(self, key: str) -> int:
        result = self.session.execute(delete(JobLock).where(JobLock.key == key))
        return int(result.rowcount or 0)

    def extend(self, key: str, expires_at: datetime, *, locked_by: str | None = None) -> int:
        stmt = update(JobLock).where(JobLock.key == key).values(expires_at=expires_at)
        if locked_by is not None:
            stmt = stmt.where(JobLock.locked_by == locked_by)
        result = self.session.execute(stmt)
        return int(result.rowcount or 0)

    def set_cancel_requested(self, key: str) -> int:
        result = self.session.execute(
            update(JobLock).where(JobLock.key == key).values(cancel_requested=True)
        )
        return int(result.rowcount or 0)
