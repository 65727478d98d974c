from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, Index, Integer, String, UniqueConstraint, false, text
from sqlalchemy.orm import Mapped, mapped_column

from game_lifecycle.db.base import Base, TimestampMixin, str_enum
from game_lifecycle.db.enums import GameStatusEnum, LeagueEnum, WinnerSideEnum


class Game(Base, TimestampMixin):
    __tablename__ = "games"

    id: Mapped[int] = mapped_column(primary_key=True)

    league: Mapped[LeagueEnum] = mapped_column(str_enum(LeagueEnum, "leagueenum"), nullable=False)
    external_game_id: Mapped[str] = mapped_column(String, nullable=False)
    # Informational only; switching providers for a league must not duplicate rows.
    provider: Mapped[str] = mapped_column(
        String, nullable=False, server_default=text("'api_sports'")
    )
    season: Mapped[int] = mapped_column(Integer, nullable=False)

    starts_at: Mapped[datetime] = mapped_column(nullable=False)

    status_raw: Mapped[str | None] = mapped_column(String, nullable=True)
    status_norm: Mapped[GameStatusEnum] = mapped_column(
        str_enum(GameStatusEnum, "gamestatusenum"),
        nullable=False,
        default=GameStatusEnum.SCHEDULED,
    )
    unknown_status_since: Mapped[datetime | None] = mapped_column(nullable=True)

    # Display names, not foreign keys: providers rename and rebrand teams.
    home_team: Mapped[str] = mapped_column(String, nullable=False)
    away_team: Mapped[str] = mapped_column(String, nullable=False)

    home_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    away_score: Mapped[int | None] = mapped_column(Integer, nullable=True)

    winner_side: Mapped[WinnerSideEnum | None] = mapped_column(
        str_enum(WinnerSideEnum, "winnersideenum"), nullable=True
    )
    forced_final: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    finalized_at: Mapped[datetime | None] = mapped_column(nullable=True)
    settled_at: Mapped[datetime | None] = mapped_column(nullable=True)
    last_synced_at: Mapped[datetime | None] = mapped_column(nullable=True)

    __table_args__ = (
        UniqueConstraint("league", "external_game_id", name="uq_games_league_external_game_id"),
        Index("ix_games_league_starts_at", "league", "starts_at"),
        Index("ix_games_status_norm", "status_norm"),
        Index("ix_games_finalized_at", "finalized_at"),
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"Game(id={self.id!r}, league={self.league.value}, "
            f"external_game_id={self.external_game_id!r}, status_norm={self.status_norm.value})"
        )
