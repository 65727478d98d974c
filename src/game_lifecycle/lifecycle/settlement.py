from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import StrEnum
from typing import Any, Protocol

import httpx
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from game_lifecycle.db.enums import GameStatusEnum, LeagueEnum, SettlementStatusEnum
from game_lifecycle.db.models.core.game import Game
from game_lifecycle.db.models.lifecycle.settlement_queue_item import SettlementQueueItem
from game_lifecycle.db.repos.lifecycle.settlement_queue_repo import SettlementQueueRepository
from game_lifecycle.ingestion.dates import utcnow
from game_lifecycle.ingestion.providers.base.client import BaseHttpClient

logger = logging.getLogger(__name__)


class EnqueueOutcome(StrEnum):
    ENQUEUED = "enqueued"
    ALREADY_QUEUED = "already_queued"
    # A queued cancellation replaced by the game's final result.
    UPGRADED = "upgraded"
    ALREADY_SETTLED = "already_settled"
    NOT_FINAL = "not_final"


def enqueue_if_needed(
    session: Session,
    game: Game,
    *,
    include_canceled: bool = False,
    now: datetime | None = None,
) -> EnqueueOutcome:
    """Queue a concluded game for settlement, at most once per game.

    The unique constraint on `settlement_queue.game_id` settles races between
    concurrent stages; losing that race is ALREADY_QUEUED, not an error.
    """
    if game.settled_at is not None:
        return EnqueueOutcome.ALREADY_SETTLED

    if game.status_norm == GameStatusEnum.FINAL:
        reason = "forced_final" if game.forced_final else "final"
    elif game.status_norm == GameStatusEnum.CANCELED and include_canceled:
        reason = "canceled"
    else:
        return EnqueueOutcome.NOT_FINAL

    repo = SettlementQueueRepository(session)
    if game.id is None:
        session.flush()
    existing = repo.for_game(game.id)
    if existing is not None:
        if existing.reason == "canceled" and reason != "canceled":
            return _upgrade_canceled_item(session, existing, game, reason)
        return EnqueueOutcome.ALREADY_QUEUED

    item = SettlementQueueItem(
        game_id=game.id,
        league=game.league,
        external_game_id=game.external_game_id,
        provider=game.provider,
        status=SettlementStatusEnum.QUEUED,
        outcome=game.winner_side,
        reason=reason,
        attempts=0,
        next_attempt_at=now or utcnow(),
    )
    try:
        with session.begin_nested():
            repo.add(item)
    except IntegrityError:
        logger.info(
            "Settlement row for %s:%s created concurrently",
            game.league.value,
            game.external_game_id,
        )
        return EnqueueOutcome.ALREADY_QUEUED

    logger.info(
        "Enqueued %s:%s for settlement (%s, outcome=%s)",
        game.league.value,
        game.external_game_id,
        reason,
        game.winner_side.value if game.winner_side else None,
    )
    return EnqueueOutcome.ENQUEUED


def _upgrade_canceled_item(
    session: Session, item: SettlementQueueItem, game: Game, reason: str
) -> EnqueueOutcome:
    """A canceled game was played after all: settle the result, not the cancellation.

    Only an item no worker has claimed yet can be rewritten.
    """
    result = session.execute(
        update(SettlementQueueItem)
        .where(
            SettlementQueueItem.id == item.id,
            SettlementQueueItem.status == SettlementStatusEnum.QUEUED,
            SettlementQueueItem.reason == "canceled",
        )
        .values(outcome=game.winner_side, reason=reason)
        .execution_options(synchronize_session=False)
    )
    session.refresh(item)
    if result.rowcount == 1:
        logger.info(
            "Settlement of %s:%s switched from cancellation to %s (outcome=%s)",
            game.league.value,
            game.external_game_id,
            reason,
            game.winner_side.value if game.winner_side else None,
        )
        return EnqueueOutcome.UPGRADED

    logger.warning(
        "%s:%s finished after its cancellation was claimed for settlement (queue status %s)",
        game.league.value,
        game.external_game_id,
        item.status.value,
    )
    return EnqueueOutcome.ALREADY_QUEUED


def settlement_payload(item: SettlementQueueItem) -> dict[str, Any]:
    game = item.game
    return {
        "queue_id": item.id,
        "game_id": item.game_id,
        "league": item.league.value,
        "provider": item.provider,
        "external_game_id": item.external_game_id,
        "reason": item.reason,
        "outcome": item.outcome.value if item.outcome else None,
        "home_team": game.home_team,
        "away_team": game.away_team,
        "home_score": game.home_score,
        "away_score": game.away_score,
        "status": game.status_norm.value,
        "forced_final": game.forced_final,
        "finalized_at": game.finalized_at.isoformat() if game.finalized_at else None,
        "attempt": item.attempts,
    }


class SettlementWorker(Protocol):
    """Downstream settlement. Raises on failure; returning means the game is settled."""

    def settle(self, payload: Mapping[str, Any]) -> None: ...


@dataclass
class HttpSettlementWorker:
    """POSTs each settlement payload to a webhook."""

    url: str
    token: str | None = None
    timeout_s: float = 30.0
    transport: httpx.BaseTransport | None = None

    def __post_init__(self) -> None:
        u = httpx.URL(self.url)
        self._path = u.raw_path.decode("ascii")
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        self._http = BaseHttpClient(
            base_url=f"{u.scheme}://{u.netloc.decode('ascii')}",
            timeout_s=self.timeout_s,
            headers=headers,
            transport=self.transport,
        )

    def settle(self, payload: Mapping[str, Any]) -> None:
        self._http.post_json(self._path, json=payload)

    def close(self) -> None:
        self._http.close()


class SettlementQueue:
    """Claiming and completing queue items. Callers own the transaction."""

    def __init__(self, session: Session, *, clock: Callable[[], datetime] = utcnow) -> None:
        self.session = session
        self.items = SettlementQueueRepository(session)
        self._clock = clock

    def claim_next(self, worker_id: str) -> SettlementQueueItem | None:
        """Move the oldest due QUEUED item to PROCESSING for `worker_id`."""

        now = self._clock()
        for candidate in self.items.due(now, limit=5):
            # Conditional update: only one worker can flip a given row.
            result = self.session.execute(
                update(SettlementQueueItem)
                .where(
                    SettlementQueueItem.id == candidate.id,
                    SettlementQueueItem.status == SettlementStatusEnum.QUEUED,
                )
                .values(
                    status=SettlementStatusEnum.PROCESSING,
                    locked_by=worker_id,
                    locked_at=now,
                    attempts=SettlementQueueItem.attempts + 1,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 1:
                self.session.refresh(candidate)
                return candidate
        return None

    def mark_done(self, item: SettlementQueueItem) -> None:
        now = self._clock()
        item.status = SettlementStatusEnum.DONE
        item.locked_by = None
        item.locked_at = None
        item.last_error = None
        item.game.settled_at = now
        self.session.flush()

    def mark_failed(
        self,
        item: SettlementQueueItem,
        error: str,
        *,
        max_attempts: int,
        backoff_s: int,
    ) -> SettlementStatusEnum:
        """Re-queue with exponential backoff, or FAILED once attempts run out."""

        item.last_error = error
        item.locked_by = None
        item.locked_at = None
        if item.attempts >= max_attempts:
            item.status = SettlementStatusEnum.FAILED
        else:
            delay = backoff_s * (2 ** max(0, item.attempts - 1))
            item.status = SettlementStatusEnum.QUEUED
            item.next_attempt_at = self._clock() + timedelta(seconds=delay)
        self.session.flush()
        return item.status

    def mark_skipped(self, item: SettlementQueueItem, reason: str) -> None:
        item.status = SettlementStatusEnum.SKIPPED
        item.reason = reason
        item.locked_by = None
        item.locked_at = None
        self.session.flush()

    def requeue_stale(self, *, older_than: timedelta) -> int:
        """Return PROCESSING items abandoned by a crashed worker to the queue."""

        cutoff = self._clock() - older_than
        result = self.session.execute(
            update(SettlementQueueItem)
            .where(
                SettlementQueueItem.status == SettlementStatusEnum.PROCESSING,
                SettlementQueueItem.locked_at < cutoff,
            )
            .values(status=SettlementStatusEnum.QUEUED, locked_by=None, locked_at=None)
            .execution_options(synchronize_session=False)
        )
        return int(result.rowcount or 0)

    def queue_stats(self) -> dict[str, int]:
        return self.items.status_counts()

    def list_items(
        self,
        *,
        statuses: list[SettlementStatusEnum] | None = None,
        league: LeagueEnum | None = None,
        limit: int = 50,
    ) -> list[SettlementQueueItem]:
        return self.items.browse(statuses=statuses, league=league, limit=limit)
