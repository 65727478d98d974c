from __future__ import annotations

from datetime import datetime

from sqlalchemy import ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from game_lifecycle.db.base import Base, TimestampMixin, str_enum
from game_lifecycle.db.enums import LeagueEnum, SettlementStatusEnum, WinnerSideEnum


class SettlementQueueItem(Base, TimestampMixin):
    __tablename__ = "settlement_queue"

    id: Mapped[int] = mapped_column(primary_key=True)

    game_id: Mapped[int] = mapped_column(
        ForeignKey("games.id", ondelete="CASCADE"), nullable=False
    )
    league: Mapped[LeagueEnum] = mapped_column(str_enum(LeagueEnum, "leagueenum"), nullable=False)
    external_game_id: Mapped[str] = mapped_column(String, nullable=False)
    provider: Mapped[str] = mapped_column(String, nullable=False)

    status: Mapped[SettlementStatusEnum] = mapped_column(
        str_enum(SettlementStatusEnum, "settlementstatusenum"),
        nullable=False,
        default=SettlementStatusEnum.QUEUED,
    )
    outcome: Mapped[WinnerSideEnum | None] = mapped_column(
        str_enum(WinnerSideEnum, "winnersideenum"), nullable=True
    )
    reason: Mapped[str | None] = mapped_column(String, nullable=True)

    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    next_attempt_at: Mapped[datetime] = mapped_column(nullable=False)
    locked_by: Mapped[str | None] = mapped_column(String, nullable=True)
    locked_at: Mapped[datetime | None] = mapped_column(nullable=True)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    game: Mapped[Game] = relationship()

    __table_args__ = (
        # Resolves concurrent enqueue races: the loser hits this constraint.
        UniqueConstraint("game_id", name="uq_settlement_queue_game_id"),
        Index("ix_settlement_queue_status_next_attempt", "status", "next_attempt_at"),
    )


from game_lifecycle.db.models.core.game import Game  # noqa: E402
