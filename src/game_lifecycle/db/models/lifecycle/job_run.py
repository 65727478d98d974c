from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from game_lifecycle.db.base import Base, str_enum
from game_lifecycle.db.enums import JobRunStatusEnum, RunTypeEnum


class JobRun(Base):
    __tablename__ = "job_runs"

    id: Mapped[int] = mapped_column(primary_key=True)

    job_name: Mapped[str] = mapped_column(String, nullable=False)
    run_type: Mapped[RunTypeEnum] = mapped_column(
        str_enum(RunTypeEnum, "runtypeenum"), nullable=False, default=RunTypeEnum.SCHEDULED
    )
    status: Mapped[JobRunStatusEnum] = mapped_column(
        str_enum(JobRunStatusEnum, "jobrunstatusenum"), nullable=False
    )

    started_at: Mapped[datetime] = mapped_column(nullable=False)
    finished_at: Mapped[datetime | None] = mapped_column(nullable=True)
    duration_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)

    counts: Mapped[dict[str, Any] | None] = mapped_column(
        JSON().with_variant(JSONB, "postgresql"), nullable=True
    )
    error: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("ix_job_runs_job_started", "job_name", "started_at"),
        Index("ix_job_runs_status", "status"),
    )
