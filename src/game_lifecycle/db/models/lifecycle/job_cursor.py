from __future__ import annotations

from datetime import datetime

from sqlalchemy import Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from game_lifecycle.db.base import Base, UTCDateTime


class JobCursor(Base):
    """Persisted resume position of a batch-and-resume job."""

    __tablename__ = "job_cursors"

    job_name: Mapped[str] = mapped_column(String(64), primary_key=True)
    step: Mapped[str] = mapped_column(String(64), nullable=False)
    league_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    day_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), server_default=func.now(), onupdate=func.now(), nullable=False
    )
