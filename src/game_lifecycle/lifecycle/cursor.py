from __future__ import annotations

from dataclasses import dataclass

from game_lifecycle.db.enums import JobNameEnum
from game_lifecycle.lifecycle.errors import InvalidCursorError

# Steps each job walks, in order. `full` chains the four lifecycle stages.
JOB_STEPS: dict[JobNameEnum, tuple[str, ...]] = {
    JobNameEnum.DISCOVER: ("discover",),
    JobNameEnum.SYNC: ("sync",),
    JobNameEnum.FINALIZE: ("finalize",),
    JobNameEnum.SETTLE: ("settle",),
    JobNameEnum.FULL: ("discover", "sync", "finalize", "settle"),
    JobNameEnum.BACKFILL: ("backfill",),
}

# Settle drains one global queue instead of walking leagues.
_LEAGUE_AGNOSTIC_STEPS = frozenset({"settle"})


@dataclass(frozen=True)
class BatchCursor:
    step: str
    league_index: int = 0
    day_index: int = 0

    def to_dict(self) -> dict[str, int | str]:
        return {"step": self.step, "league_index": self.league_index, "day_index": self.day_index}


def units_for_step(step: str, league_count: int) -> int:
    return 1 if step in _LEAGUE_AGNOSTIC_STEPS else league_count


def first_cursor(job: JobNameEnum) -> BatchCursor:
    return BatchCursor(step=JOB_STEPS[job][0])


def validate_cursor(
    job: JobNameEnum,
    cursor: BatchCursor,
    *,
    league_count: int,
    day_count: int | None = None,
) -> BatchCursor:
    steps = JOB_STEPS[job]
    if cursor.step not in steps:
        raise InvalidCursorError(f"Step {cursor.step!r} is not part of job {job.value!r} {steps}")

    units = units_for_step(cursor.step, league_count)
    if not 0 <= cursor.league_index < units:
        raise InvalidCursorError(
            f"league_index {cursor.league_index} out of range for step {cursor.step!r} "
            f"({units} units)"
        )

    if job == JobNameEnum.BACKFILL:
        if day_count is None or not 0 <= cursor.day_index < day_count:
            raise InvalidCursorError(f"day_index {cursor.day_index} out of range ({day_count} days)")
    elif cursor.day_index != 0:
        raise InvalidCursorError(f"day_index is only valid for backfill, got {cursor.day_index}")

    return cursor


def advance(
    job: JobNameEnum,
    cursor: BatchCursor,
    *,
    league_count: int,
    day_count: int | None = None,
) -> BatchCursor | None:
    """The cursor after `cursor`'s unit completes, or None when the pass is done."""

    if job == JobNameEnum.BACKFILL:
        # Leagues inner, days outer: each day is finished for every league in turn.
        if cursor.league_index + 1 < league_count:
            return BatchCursor(cursor.step, cursor.league_index + 1, cursor.day_index)
        if day_count is not None and cursor.day_index + 1 < day_count:
            return BatchCursor(cursor.step, 0, cursor.day_index + 1)
        return None

    if cursor.league_index + 1 < units_for_step(cursor.step, league_count):
        return BatchCursor(cursor.step, cursor.league_index + 1)

    steps = JOB_STEPS[job]
    idx = steps.index(cursor.step)
    if idx + 1 < len(steps):
        return BatchCursor(steps[idx + 1], 0)
    return None
