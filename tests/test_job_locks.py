from __future__ import annotations

from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
import sqlalchemy as sa
from sqlalchemy.orm import Session, sessionmaker

from game_lifecycle.db.base import Base
from game_lifecycle.db.engine import create_session_factory
from game_lifecycle.lifecycle.errors import LockStoreUnavailable
from game_lifecycle.lifecycle.locks import JobLockManager

NOW = datetime(2025, 10, 12, 20, 0, tzinfo=UTC)
TTL = timedelta(minutes=5)


def _make_session_factory(tmp_path: Path) -> sessionmaker[Session]:
    engine = sa.create_engine(f"sqlite+pysqlite:///{tmp_path / 'locks.db'}", future=True)
    import game_lifecycle.db.models  # noqa: F401

    Base.metadata.create_all(engine)
    return create_session_factory(engine)


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def test_only_one_holder_at_a_time(tmp_path: Path) -> None:
    sf = _make_session_factory(tmp_path)
    clock = FakeClock(NOW)
    a = JobLockManager(sf, owner="worker-a", clock=clock)
    b = JobLockManager(sf, owner="worker-b", clock=clock)

    assert a.acquire("sync", TTL, meta={"league": "NFL"}).acquired
    contended = b.acquire("sync", TTL)
    assert not contended.acquired
    assert contended.existing_lock is not None
    assert contended.existing_lock.locked_by == "worker-a"
    assert contended.existing_lock.expires_at == NOW + TTL

    # Different keys do not interfere.
    assert b.acquire("discover", TTL).acquired

    info = a.get("sync")
    assert info is not None and info.meta == {"league": "NFL"}


def test_expired_lock_can_be_taken_over(tmp_path: Path) -> None:
    sf = _make_session_factory(tmp_path)
    clock = FakeClock(NOW)
    a = JobLockManager(sf, owner="worker-a", clock=clock)
    b = JobLockManager(sf, owner="worker-b", clock=clock)

    assert a.acquire("finalize", TTL).acquired
    clock.now = NOW + TTL + timedelta(seconds=1)
    assert b.acquire("finalize", TTL).acquired
    assert b.get("finalize").locked_by == "worker-b"

    # The previous holder can no longer release it.
    assert a.release("finalize") is False
    assert b.get("finalize") is not None


def test_release_only_by_owner(tmp_path: Path) -> None:
    sf = _make_session_factory(tmp_path)
    a = JobLockManager(sf, owner="worker-a", clock=lambda: NOW)
    b = JobLockManager(sf, owner="worker-b", clock=lambda: NOW)

    a.acquire("settle", TTL)
    assert b.release("settle") is False
    assert a.get("settle") is not None
    assert a.release("settle") is True
    assert a.get("settle") is None
    assert b.acquire("settle", TTL).acquired


def test_extend_and_force(tmp_path: Path) -> None:
    sf = _make_session_factory(tmp_path)
    clock = FakeClock(NOW)
    a = JobLockManager(sf, owner="worker-a", clock=clock)
    ops = JobLockManager(sf, owner="operator", clock=clock)

    a.acquire("backfill", TTL)
    clock.now = NOW + timedelta(minutes=3)
    assert a.extend("backfill", TTL) is True
    assert a.get("backfill").expires_at == NOW + timedelta(minutes=8)

    assert ops.extend("backfill", timedelta(hours=1)) is False
    assert ops.extend("backfill", timedelta(hours=1), force=True) is True
    assert ops.get("backfill").expires_at == clock.now + timedelta(hours=1)

    assert ops.force_release("backfill") is True
    assert ops.force_release("backfill") is False


def test_cleanup_expired(tmp_path: Path) -> None:
    sf = _make_session_factory(tmp_path)
    clock = FakeClock(NOW)
    mgr = JobLockManager(sf, owner="w", clock=clock)
    mgr.acquire("discover", TTL)
    mgr.acquire("sync", timedelta(hours=1))

    clock.now = NOW + timedelta(minutes=10)
    assert mgr.cleanup_expired() == 1
    assert [lk.key for lk in mgr.list_locks()] == ["sync"]


def test_cancel_is_seen_only_by_the_holder(tmp_path: Path) -> None:
    sf = _make_session_factory(tmp_path)
    holder = JobLockManager(sf, owner="worker-a", clock=lambda: NOW)
    ops = JobLockManager(sf, owner="operator", clock=lambda: NOW)

    assert ops.request_cancel("sync") is False

    holder.acquire("sync", TTL)
    assert holder.is_cancel_requested("sync") is False
    assert ops.request_cancel("sync") is True
    assert holder.is_cancel_requested("sync") is True
    assert ops.is_cancel_requested("sync") is False

    # The flag dies with the lock.
    holder.release("sync")
    holder.acquire("sync", TTL)
    assert holder.is_cancel_requested("sync") is False


def test_unreachable_store_fails_closed_for_writes_and_open_for_listing(tmp_path: Path) -> None:
    engine = sa.create_engine(
        f"sqlite+pysqlite:///{tmp_path / 'missing' / 'locks.db'}", future=True
    )
    mgr = JobLockManager(create_session_factory(engine), owner="w", clock=lambda: NOW)

    with pytest.raises(LockStoreUnavailable):
        mgr.acquire("sync", TTL)
    assert mgr.list_locks() is None
