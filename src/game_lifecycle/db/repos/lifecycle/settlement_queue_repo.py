from __future__ import annotations

from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from game_lifecycle.db.enums import LeagueEnum, SettlementStatusEnum
from game_lifecycle.db.models.lifecycle.settlement_queue_item import SettlementQueueItem
from game_lifecycle.db.repos.base import BaseRepository


class SettlementQueueRepository(BaseRepository[SettlementQueueItem]):
    def __init__(self, session: Session) -> None:
        super().__init__(session=session, model=SettlementQueueItem)

    def for_game(self, game_id: int) -> SettlementQueueItem | None:
        return self.first_where(SettlementQueueItem.game_id == game_id)

    def due(self, now: datetime, *, limit: int) -> list[SettlementQueueItem]:
        return self.list_where(
            SettlementQueueItem.status == SettlementStatusEnum.QUEUED,
            SettlementQueueItem.next_attempt_at <= now,
            SettlementQueueItem.locked_by.is_(None),
            order_by=(SettlementQueueItem.created_at, SettlementQueueItem.id),
            limit=limit,
        )

    def status_counts(self) -> dict[str, int]:
        stmt = select(SettlementQueueItem.status, func.count()).group_by(
            SettlementQueueItem.status
        )
        counts = {s.value: 0 for s in SettlementStatusEnum}
        for status, n in self.session.execute(stmt).all():
            counts[status.value] = int(n)
        counts["total"] = sum(counts.values())
        return counts

    def browse(
        self,
        *,
        statuses: list[SettlementStatusEnum] | None = None,
        league: LeagueEnum | None = None,
        limit: int = 50,
    ) -> list[SettlementQueueItem]:
        predicates = []
        if statuses:
            predicates.append(SettlementQueueItem.status.in_(statuses))
        if league is not None:
            predicates.append(SettlementQueueItem.league == league)
        return self.list_where(
            *predicates,
            order_by=(SettlementQueueItem.created_at.desc(), SettlementQueueItem.id.desc()),
            limit=limit,
        )
