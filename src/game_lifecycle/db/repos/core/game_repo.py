from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any

from sqlalchemy import and_, case, or_, select, update
from sqlalchemy.orm import Session

from game_lifecycle.db.enums import TERMINAL_STATUSES, GameStatusEnum, LeagueEnum
from game_lifecycle.db.models.core.game import Game
from game_lifecycle.db.models.lifecycle.settlement_queue_item import SettlementQueueItem
from game_lifecycle.db.repos.base import BaseRepository


class GameRepository(BaseRepository[Game]):
    def __init__(self, session: Session) -> None:
        super().__init__(session=session, model=Game)

    def get_by_key(self, league: LeagueEnum, external_game_id: str) -> Game | None:
        return self.first_where(Game.league == league, Game.external_game_id == external_game_id)

    def map_by_external_ids(
        self, league: LeagueEnum, external_game_ids: Iterable[str]
    ) -> dict[str, Game]:
        ids = sorted(set(external_game_ids))
        if not ids:
            return {}
        stmt = select(Game).where(Game.league == league, Game.external_game_id.in_(ids))
        return {g.external_game_id: g for g in self.session.execute(stmt).scalars()}

    def sync_candidates(
        self,
        league: LeagueEnum,
        *,
        window_start: datetime,
        window_end: datetime,
        limit: int,
    ) -> list[Game]:
        """LIVE games plus non-terminal games inside the rolling window, soonest first."""

        return self.list_where(
            Game.league == league,
            or_(
                Game.status_norm == GameStatusEnum.LIVE,
                and_(
                    Game.starts_at >= window_start,
                    Game.starts_at <= window_end,
                    Game.status_norm.not_in(list(TERMINAL_STATUSES)),
                ),
            ),
            order_by=(Game.starts_at, Game.id),
            limit=limit,
        )

    def finalize_candidates(
        self, league: LeagueEnum, *, started_before: datetime, limit: int
    ) -> list[Game]:
        """Games long past their start that were never finalized.

        LIVE games come first since only they can be forced FINAL. The rest rotate by
        `last_synced_at`, which Finalize stamps on every candidate it checks, so games
        the provider no longer returns cannot crowd out newer ones.
        """

        return self.list_where(
            Game.league == league,
            Game.starts_at < started_before,
            Game.finalized_at.is_(None),
            Game.status_norm.not_in((GameStatusEnum.CANCELED, GameStatusEnum.POSTPONED)),
            order_by=(
                case((Game.status_norm == GameStatusEnum.LIVE, 0), else_=1),
                Game.last_synced_at.asc().nulls_first(),
                Game.starts_at,
                Game.id,
            ),
            limit=limit,
        )

    def orphaned_finals(self, league: LeagueEnum, *, limit: int) -> list[Game]:
        """FINAL, unsettled games that have no settlement queue row."""

        queued = select(SettlementQueueItem.game_id)
        return self.list_where(
            Game.league == league,
            Game.status_norm == GameStatusEnum.FINAL,
            Game.settled_at.is_(None),
            Game.id.not_in(queued),
            order_by=(Game.finalized_at, Game.id),
            limit=limit,
        )

    def stuck_unknown(self, *, since_before: datetime, limit: int = 50) -> list[Game]:
        return self.list_where(
            Game.unknown_status_since.is_not(None),
            Game.unknown_status_since < since_before,
            order_by=(Game.unknown_status_since,),
            limit=limit,
        )

    def update_if_status(
        self,
        game_id: int,
        expected_status: GameStatusEnum,
        values: Mapping[str, Any],
        *,
        expected_scores: tuple[int | None, int | None] | None = None,
    ) -> bool:
        """Write `values` only while the row still has the status (and scores) the caller read.

        Setting `finalized_at` additionally requires it to be unset, so it is written once.
        """
        stmt = update(Game).where(Game.id == game_id, Game.status_norm == expected_status)
        if "finalized_at" in values:
            stmt = stmt.where(Game.finalized_at.is_(None))
        if expected_scores is not None:
            home, away = expected_scores
            stmt = stmt.where(Game.home_score == home, Game.away_score == away)
        result = self.session.execute(
            stmt.values(**values).execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def touch_synced(self, game_ids: Iterable[int], now: datetime) -> int:
        ids = sorted(set(game_ids))
        if not ids:
            return 0
        result = self.session.execute(
            update(Game)
            .where(Game.id.in_(ids))
            .values(last_synced_at=now)
            .execution_options(synchronize_session=False)
        )
        return int(result.rowcount or 0)
