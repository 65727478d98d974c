from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from game_lifecycle.db.enums import JobNameEnum, LeagueEnum, RunTypeEnum
from game_lifecycle.lifecycle.cursor import BatchCursor


class CursorModel(BaseModel):
    step: str
    league_index: int = Field(default=0, ge=0)
    day_index: int = Field(default=0, ge=0)

    def to_cursor(self) -> BatchCursor:
        return BatchCursor(step=self.step, league_index=self.league_index, day_index=self.day_index)

    @classmethod
    def from_cursor(cls, cursor: BatchCursor) -> CursorModel:
        return cls(step=cursor.step, league_index=cursor.league_index, day_index=cursor.day_index)


class TriggerRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    job: JobNameEnum
    leagues: list[LeagueEnum] | None = None
    cursor: CursorModel | None = None
    max_batches: int = Field(default=1, ge=1, le=100)
    days: int | None = Field(default=None, ge=1, le=366)
    run_type: RunTypeEnum = RunTypeEnum.SCHEDULED


class TriggerResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    job: JobNameEnum
    duration_ms: int
    skipped: bool = False
    reason: str | None = None
    results: list[dict[str, Any]] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    has_more: bool = Field(default=False, alias="hasMore")
    next_cursor: CursorModel | None = Field(default=None, alias="nextCursor")
    cancelled: bool = False

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)
