"""Named TTL locks in the `job_locks` table.

A lock is a row keyed by stage name; the primary key makes a second holder impossible.
Every operation runs in its own short transaction so a lock is visible to other
processes as soon as it is taken, independent of the caller's unit of work.
"""

from __future__ import annotations

import logging
import os
import socket
import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session, sessionmaker

from game_lifecycle.db.models.lifecycle.job_lock import JobLock
from game_lifecycle.db.repos.lifecycle.job_lock_repo import JobLockRepository
from game_lifecycle.ingestion.dates import utcnow
from game_lifecycle.lifecycle.errors import LockStoreUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LockInfo:
    key: str
    locked_by: str
    locked_at: datetime
    expires_at: datetime
    cancel_requested: bool
    meta: dict[str, Any] | None = None

    @classmethod
    def from_row(cls, row: JobLock) -> LockInfo:
        return cls(
            key=row.key,
            locked_by=row.locked_by,
            locked_at=row.locked_at,
            expires_at=row.expires_at,
            cancel_requested=bool(row.cancel_requested),
            meta=dict(row.meta) if row.meta else None,
        )

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at


@dataclass(frozen=True)
class LockResult:
    key: str
    acquired: bool
    existing_lock: LockInfo | None = None


def default_owner() -> str:
    return f"{socket.gethostname()}:{os.getpid()}:{uuid.uuid4().hex[:8]}"


class JobLockManager:
    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        owner: str | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session_factory = session_factory
        self.owner = owner or default_owner()
        self._clock = clock

    @contextmanager
    def _session(self, action: str) -> Iterator[Session]:
        try:
            with self._session_factory() as session:
                yield session
        except OperationalError as e:
            raise LockStoreUnavailable(f"Lock store unavailable during {action}: {e}") from e

    def acquire(
        self, key: str, ttl: timedelta, *, meta: dict[str, Any] | None = None
    ) -> LockResult:
        """Take `key` for `ttl`. Never blocks; a held lock comes back as acquired=False."""

        now = self._clock()
        with self._session("acquire") as session:
            repo = JobLockRepository(session)
            with session.begin():
                cleared = repo.delete_expired(now, key=key)
            if cleared:
                logger.info("Cleared expired lock %s", key)

            try:
                with session.begin():
                    repo.add(
                        JobLock(
                            key=key,
                            locked_by=self.owner,
                            locked_at=now,
                            expires_at=now + ttl,
                            cancel_requested=False,
                            meta=meta,
                        )
                    )
            except IntegrityError:
                existing = session.execute(select(JobLock).where(JobLock.key == key)).scalar()
                info = LockInfo.from_row(existing) if existing is not None else None
                logger.info(
                    "Lock %s held by %s until %s",
                    key,
                    info.locked_by if info else "?",
                    info.expires_at.isoformat() if info else "?",
                )
                return LockResult(key=key, acquired=False, existing_lock=info)

        logger.debug("Acquired lock %s as %s (ttl=%s)", key, self.owner, ttl)
        return LockResult(key=key, acquired=True)

    def release(self, key: str) -> bool:
        """Release `key` if this manager holds it."""

        with self._session("release") as session, session.begin():
            released = JobLockRepository(session).delete_owned(key, self.owner) > 0
        if not released:
            logger.warning("Lock %s was not held by %s at release", key, self.owner)
        return released

    def extend(self, key: str, ttl: timedelta, *, force: bool = False) -> bool:
        """Push expiry to now + ttl. Only our own lock unless `force`."""

        expires_at = self._clock() + ttl
        owner = None if force else self.owner
        with self._session("extend") as session, session.begin():
            return JobLockRepository(session).extend(key, expires_at, locked_by=owner) > 0

    def force_release(self, key: str) -> bool:
        with self._session("force_release") as session, session.begin():
            deleted = JobLockRepository(session).delete_key(key) > 0
        if deleted:
            logger.warning("Force-released lock %s", key)
        return deleted

    def cleanup_expired(self) -> int:
        now = self._clock()
        with self._session("cleanup") as session, session.begin():
            return JobLockRepository(session).delete_expired(now)

    def request_cancel(self, key: str) -> bool:
        """Flag the current holder of `key` to stop. False when nothing holds it."""

        with self._session("request_cancel") as session, session.begin():
            return JobLockRepository(session).set_cancel_requested(key) > 0

    def is_cancel_requested(self, key: str) -> bool:
        with self._session("is_cancel_requested") as session:
            row = session.get(JobLock, key)
            return bool(row is not None and row.locked_by == self.owner and row.cancel_requested)

    def get(self, key: str) -> LockInfo | None:
        with self._session("get") as session:
            row = session.get(JobLock, key)
            return LockInfo.from_row(row) if row is not None else None

    def list_locks(self) -> list[LockInfo] | None:
        """All lock rows, or None when the lock store cannot be read."""

        try:
            with self._session("list_locks") as session:
                rows = session.execute(select(JobLock).order_by(JobLock.key)).scalars().all()
                return [LockInfo.from_row(r) for r in rows]
        except LockStoreUnavailable as e:
            logger.error("%s", e)
            return None
