from __future__ import annotations

import pytest

from game_lifecycle.db.enums import JobNameEnum
from game_lifecycle.lifecycle.cursor import BatchCursor, advance, first_cursor, validate_cursor
from game_lifecycle.lifecycle.errors import InvalidCursorError
from game_lifecycle.lifecycle.stages.backfill import backfill_dates
from game_lifecycle.lifecycle.trigger import CursorModel, TriggerRequest, TriggerResponse


def _walk(job: JobNameEnum, *, leagues: int, days: int | None = None) -> list[BatchCursor]:
    out = []
    cursor: BatchCursor | None = first_cursor(job)
    while cursor is not None:
        out.append(cursor)
        cursor = advance(job, cursor, league_count=leagues, day_count=days)
    return out


def test_single_stage_job_walks_leagues() -> None:
    steps = _walk(JobNameEnum.SYNC, leagues=3)
    assert steps == [BatchCursor("sync", 0), BatchCursor("sync", 1), BatchCursor("sync", 2)]


def test_full_job_chains_stages_and_settles_once() -> None:
    steps = _walk(JobNameEnum.FULL, leagues=2)
    assert [(c.step, c.league_index) for c in steps] == [
        ("discover", 0),
        ("discover", 1),
        ("sync", 0),
        ("sync", 1),
        ("finalize", 0),
        ("finalize", 1),
        ("settle", 0),
    ]


def test_backfill_walks_every_league_for_each_day() -> None:
    steps = _walk(JobNameEnum.BACKFILL, leagues=2, days=2)
    assert [(c.league_index, c.day_index) for c in steps] == [(0, 0), (1, 0), (0, 1), (1, 1)]


@pytest.mark.parametrize(
    ("job", "cursor", "days"),
    [
        (JobNameEnum.DISCOVER, BatchCursor("sync", 0), None),
        (JobNameEnum.DISCOVER, BatchCursor("discover", 5), None),
        (JobNameEnum.SETTLE, BatchCursor("settle", 1), None),
        (JobNameEnum.SYNC, BatchCursor("sync", 0, 2), None),
        (JobNameEnum.BACKFILL, BatchCursor("backfill", 0, 30), 30),
    ],
)
def test_invalid_cursors_are_rejected(job, cursor, days) -> None:
    with pytest.raises(InvalidCursorError):
        validate_cursor(job, cursor, league_count=5, day_count=days)


def test_backfill_dates_are_oldest_first_and_exclude_today() -> None:
    from datetime import date

    assert backfill_dates(date(2025, 3, 2), 3) == [
        date(2025, 2, 27),
        date(2025, 2, 28),
        date(2025, 3, 1),
    ]


def test_trigger_models() -> None:
    req = TriggerRequest.model_validate(
        {"job": "backfill", "days": 7, "cursor": {"step": "backfill", "league_index": 1, "day_index": 3}}
    )
    assert req.cursor.to_cursor() == BatchCursor("backfill", 1, 3)
    with pytest.raises(ValueError):
        TriggerRequest.model_validate({"job": "sync", "max_batches": 0})
    with pytest.raises(ValueError):
        TriggerRequest.model_validate({"job": "sync", "unexpected": True})

    resp = TriggerResponse(
        success=True,
        job=JobNameEnum.SYNC,
        duration_ms=5,
        has_more=True,
        next_cursor=CursorModel.from_cursor(BatchCursor("sync", 2)),
    )
    body = resp.model_dump(by_alias=True)
    assert body["hasMore"] is True
    assert body["nextCursor"] == {"step": "sync", "league_index": 2, "day_index": 0}
