from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import date, datetime

from sqlalchemy.orm import Session

from game_lifecycle.core.config import Settings
from game_lifecycle.db.enums import LeagueEnum
from game_lifecycle.db.models.core.game import Game
from game_lifecycle.ingestion.leagues import get_league_config
from game_lifecycle.ingestion.placeholders import is_real_game
from game_lifecycle.ingestion.providers.base.adapter import ProviderAdapter
from game_lifecycle.ingestion.providers.base.errors import FetchFailed
from game_lifecycle.ingestion.providers.base.registry import AdapterRegistry
from game_lifecycle.lifecycle.results import StageResult
from game_lifecycle.lifecycle.settlement import (
    EnqueueOutcome,
    SettlementWorker,
    enqueue_if_needed,
)
from game_lifecycle.lifecycle.store import GameStore, observations_from_events

logger = logging.getLogger(__name__)


@dataclass
class StageContext:
    """Everything a stage needs for one unit of work."""

    session: Session
    settings: Settings
    registry: AdapterRegistry
    clock: Callable[[], datetime]
    cancel_requested: Callable[[], bool]
    worker: SettlementWorker | None = None
    worker_id: str = "lifecycle"

    def adapter_for(self, league: LeagueEnum) -> ProviderAdapter:
        cfg = get_league_config(league)
        return self.registry.get(provider=cfg.provider.value, league_key=cfg.league.value)

    def store(self) -> GameStore:
        return GameStore(
            self.session,
            batch_size=self.settings.upsert_batch_size,
            store_payloads=self.settings.store_ingested_payloads,
            clock=self.clock,
        )


def enqueue_games(ctx: StageContext, games: Iterable[Game], result: StageResult) -> None:
    now = ctx.clock()
    for game in games:
        outcome = enqueue_if_needed(
            ctx.session,
            game,
            include_canceled=ctx.settings.settle_canceled_games,
            now=now,
        )
        if outcome == EnqueueOutcome.ENQUEUED:
            result.bump("enqueued")
        elif outcome == EnqueueOutcome.UPGRADED:
            result.bump("upgraded_to_final")
        elif outcome == EnqueueOutcome.ALREADY_QUEUED:
            result.bump("already_queued")


def ingest_dates(
    ctx: StageContext,
    league: LeagueEnum,
    dates: Iterable[date],
    result: StageResult,
    *,
    only_ids: set[str] | None = None,
) -> None:
    """Fetch, normalize, filter and upsert one league's events date by date.

    Each date is committed on its own; a failed fetch skips that date only. When
    `only_ids` is given, events for other games on the same date are ignored.
    """
    adapter = ctx.adapter_for(league)
    store = ctx.store()

    for on_date in dates:
        if ctx.cancel_requested():
            logger.info("%s %s: cancellation requested", result.stage, league.value)
            result.cancelled = True
            return

        try:
            events = adapter.fetch(league, on_date)
        except FetchFailed as e:
            logger.warning("%s: fetch failed: %s", result.stage, e)
            result.bump("fetch_errors")
            result.add_error(f"fetch {e}")
            continue

        result.bump("dates")
        result.bump("fetched", len(events))
        if only_ids is not None:
            events = [e for e in events if e.external_game_id in only_ids]

        real = [e for e in events if is_real_game(e.home_team, e.away_team)]
        result.bump("filtered", len(events) - len(real))

        observations, dropped = observations_from_events(real, now=ctx.clock())
        result.bump("dropped", len(dropped))

        upsert = store.upsert_many(observations)
        result.bump("inserted", upsert.inserted)
        result.bump("updated", upsert.updated)
        result.bump("finalized", len(upsert.finalized))
        result.bump("score_conflicts", upsert.score_conflicts)
        result.bump("upsert_errors", len(upsert.errors))
        for err in upsert.errors:
            result.add_error(
                f"upsert {league.value} {on_date.isoformat()} chunk {err.chunk_index}: {err.reason}"
            )

        enqueue_games(ctx, [*upsert.finalized, *upsert.canceled], result)
        ctx.session.commit()
