from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from game_lifecycle.db.enums import GameStatusEnum, LeagueEnum, WinnerSideEnum
from game_lifecycle.db.models.core.game import Game
from game_lifecycle.db.models.ingestion.ingested_payload import IngestedPayload
from game_lifecycle.db.repos.core.game_repo import GameRepository
from game_lifecycle.ingestion.dates import utcnow
from game_lifecycle.ingestion.leagues import season_for_date
from game_lifecycle.ingestion.providers.base.types import RawEvent
from game_lifecycle.lifecycle.errors import NormalizationError, format_failure_reason
from game_lifecycle.lifecycle.status import can_transition, determine_winner, normalize_status

logger = logging.getLogger(__name__)

DEFAULT_UPSERT_BATCH_SIZE = 100


@dataclass(frozen=True)
class GameObservation:
    """A RawEvent after status normalization; what the store merges into `games`."""

    league: LeagueEnum
    external_game_id: str
    provider: str
    season: int
    starts_at: datetime
    status_raw: str | None
    status_norm: GameStatusEnum
    home_team: str
    away_team: str
    home_score: int | None
    away_score: int | None
    winner_side: WinnerSideEnum | None
    payload: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @property
    def key(self) -> tuple[LeagueEnum, str]:
        return (self.league, self.external_game_id)


def build_observation(event: RawEvent, *, now: datetime | None = None) -> GameObservation:
    """Normalize one RawEvent. Raises NormalizationError when it cannot be stored."""

    status = normalize_status(
        event.provider,
        event.status_raw,
        home_score=event.home_score,
        away_score=event.away_score,
        starts_at=event.starts_at,
        now=now,
    )

    winner = None
    if status == GameStatusEnum.FINAL:
        # Raises on a missing score; a FINAL without a result is unusable downstream.
        winner = determine_winner(event.home_score, event.away_score)

    return GameObservation(
        league=event.league,
        external_game_id=event.external_game_id,
        provider=event.provider,
        season=season_for_date(event.league, event.starts_at),
        starts_at=event.starts_at,
        status_raw=event.status_raw,
        status_norm=status,
        home_team=event.home_team,
        away_team=event.away_team,
        home_score=event.home_score,
        away_score=event.away_score,
        winner_side=winner,
        payload=event.payload,
    )


@dataclass(frozen=True)
class UpsertError:
    chunk_index: int
    keys: tuple[str, ...]
    reason: str


@dataclass
class UpsertResult:
    inserted: int = 0
    updated: int = 0
    errors: list[UpsertError] = field(default_factory=list)
    # Games whose stored status became FINAL or CANCELED during this call.
    finalized: list[Game] = field(default_factory=list)
    canceled: list[Game] = field(default_factory=list)
    score_conflicts: int = 0

    def merge(self, other: UpsertResult) -> None:
        self.inserted += other.inserted
        self.updated += other.updated
        self.errors.extend(other.errors)
        self.finalized.extend(other.finalized)
        self.canceled.extend(other.canceled)
        self.score_conflicts += other.score_conflicts


def _chunks(items: Sequence[GameObservation], size: int) -> Iterable[Sequence[GameObservation]]:
    for i in range(0, len(items), size):
        yield items[i : i + size]


class GameStore:
    """Idempotent upsert of observations into `games`, keyed by (league, external_game_id)."""

    def __init__(
        self,
        session: Session,
        *,
        batch_size: int = DEFAULT_UPSERT_BATCH_SIZE,
        store_payloads: bool = False,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self.session = session
        self.games = GameRepository(session)
        self.batch_size = batch_size
        self.store_payloads = store_payloads
        self._clock = clock

    def upsert_many(self, observations: Iterable[GameObservation]) -> UpsertResult:
        # Last observation wins when a batch repeats a key.
        deduped: dict[tuple[LeagueEnum, str], GameObservation] = {}
        for obs in observations:
            deduped[obs.key] = obs
        items = list(deduped.values())

        result = UpsertResult()
        for idx, chunk in enumerate(_chunks(items, self.batch_size)):
            try:
                with self.session.begin_nested():
                    chunk_result = self._upsert_chunk(chunk)
            except SQLAlchemyError as e:
                reason = format_failure_reason(e)
                logger.error("Upsert chunk %d (%d games) failed: %s", idx, len(chunk), reason)
                result.errors.append(
                    UpsertError(
                        chunk_index=idx,
                        keys=tuple(f"{o.league.value}:{o.external_game_id}" for o in chunk),
                        reason=reason,
                    )
                )
                continue
            result.merge(chunk_result)
        return result

    def _upsert_chunk(self, chunk: Sequence[GameObservation]) -> UpsertResult:
        now = self._clock()
        result = UpsertResult()

        by_league: dict[LeagueEnum, list[GameObservation]] = {}
        for obs in chunk:
            by_league.setdefault(obs.league, []).append(obs)

        for league, league_obs in by_league.items():
            existing = self.games.map_by_external_ids(
                league, (o.external_game_id for o in league_obs)
            )
            for obs in league_obs:
                game = existing.get(obs.external_game_id)
                if game is None:
                    game = self._insert(obs, now)
                    result.inserted += 1
                    if game.status_norm == GameStatusEnum.FINAL:
                        result.finalized.append(game)
                    elif game.status_norm == GameStatusEnum.CANCELED:
                        result.canceled.append(game)
                else:
                    before = game.status_norm
                    newly_final, conflict = self._merge(game, obs, now)
                    result.updated += 1
                    result.score_conflicts += int(conflict)
                    if newly_final:
                        result.finalized.append(game)
                    elif game.status_norm == GameStatusEnum.CANCELED and before != game.status_norm:
                        result.canceled.append(game)

                if self.store_payloads and obs.payload:
                    self.session.add(
                        IngestedPayload(
                            provider=obs.provider,
                            entity_type="game",
                            entity_key=f"{obs.league.value}:{obs.external_game_id}",
                            fetched_at=now,
                            payload_json=obs.payload,
                        )
                    )

        self.session.flush()
        return result

    def _insert(self, obs: GameObservation, now: datetime) -> Game:
        is_final = obs.status_norm == GameStatusEnum.FINAL
        game = Game(
            league=obs.league,
            external_game_id=obs.external_game_id,
            provider=obs.provider,
            season=obs.season,
            starts_at=obs.starts_at,
            status_raw=obs.status_raw,
            status_norm=obs.status_norm,
            unknown_status_since=now if obs.status_norm == GameStatusEnum.UNKNOWN else None,
            home_team=obs.home_team,
            away_team=obs.away_team,
            home_score=obs.home_score,
            away_score=obs.away_score,
            winner_side=obs.winner_side if is_final else None,
            forced_final=False,
            finalized_at=now if is_final else None,
            last_synced_at=now,
        )
        self.games.add(game, flush=False)
        return game

    def _merge(self, game: Game, obs: GameObservation, now: datetime) -> tuple[bool, bool]:
        """Apply one observation to a stored game. Returns (newly_final, score_conflict).

        Status, score and schedule changes go through a conditional UPDATE on the status
        this session last read. When another run moved the row first, the game is
        reloaded and the observation is applied once more against the fresh row.
        """
        game.provider = obs.provider
        game.home_team = obs.home_team
        game.away_team = obs.away_team
        game.last_synced_at = now

        for _ in range(2):
            changes, newly_final, conflict = self._plan_merge(game, obs, now)
            if not changes or self._apply(game, changes):
                return newly_final, conflict
            logger.info(
                "%s:%s changed concurrently; re-reading",
                game.league.value,
                game.external_game_id,
            )
            self.session.refresh(game)

        logger.warning(
            "Skipped update of %s:%s after repeated concurrent changes",
            game.league.value,
            game.external_game_id,
        )
        return False, False

    def _plan_merge(
        self, game: Game, obs: GameObservation, now: datetime
    ) -> tuple[dict[str, Any], bool, bool]:
        was_final = game.status_norm == GameStatusEnum.FINAL
        changes: dict[str, Any] = {}

        def _set(name: str, value: Any) -> None:
            if getattr(game, name) != value:
                changes[name] = value

        if not was_final:
            # Reschedules move the start; a finished game's start is history.
            _set("starts_at", obs.starts_at)
            _set("season", obs.season)

        if can_transition(game.status_norm, obs.status_norm):
            _set("status_raw", obs.status_raw)
            if obs.status_norm == GameStatusEnum.UNKNOWN:
                if game.unknown_status_since is None:
                    changes["unknown_status_since"] = now
            else:
                _set("unknown_status_since", None)

            if obs.status_norm == GameStatusEnum.FINAL and not was_final:
                changes.update(
                    status_norm=GameStatusEnum.FINAL,
                    home_score=obs.home_score,
                    away_score=obs.away_score,
                    winner_side=obs.winner_side,
                    finalized_at=now,
                )
                return changes, True, False

            _set("status_norm", obs.status_norm)
        else:
            logger.debug(
                "Ignoring status regression %s -> %s for %s:%s",
                game.status_norm.value,
                obs.status_norm.value,
                game.league.value,
                game.external_game_id,
            )

        if was_final:
            conflict = _scores_differ(game, obs)
            if conflict:
                logger.warning(
                    "Score change after final for %s:%s: stored %s-%s, provider %s-%s; not applied",
                    game.league.value,
                    game.external_game_id,
                    game.home_score,
                    game.away_score,
                    obs.home_score,
                    obs.away_score,
                )
            return changes, False, conflict

        if obs.home_score is not None:
            _set("home_score", obs.home_score)
        if obs.away_score is not None:
            _set("away_score", obs.away_score)
        return changes, False, False

    def _apply(
        self,
        game: Game,
        changes: dict[str, Any],
        *,
        expected_scores: tuple[int | None, int | None] | None = None,
    ) -> bool:
        self.session.flush()
        applied = self.games.update_if_status(
            game.id, game.status_norm, changes, expected_scores=expected_scores
        )
        if applied:
            for name, value in changes.items():
                set_committed_value(game, name, value)
        return applied

    def force_final(self, game: Game, *, now: datetime | None = None) -> bool:
        """Mark a stalled LIVE game FINAL from its stored scores.

        Returns False, with the game reloaded, when another run changed its status or
        score since it was read.
        """
        if game.status_norm == GameStatusEnum.FINAL:
            return False
        changes = {
            "status_norm": GameStatusEnum.FINAL,
            "winner_side": determine_winner(game.home_score, game.away_score),
            "forced_final": True,
            "unknown_status_since": None,
            "finalized_at": now or self._clock(),
        }
        if self._apply(game, changes, expected_scores=(game.home_score, game.away_score)):
            return True

        logger.info(
            "Not forcing %s:%s FINAL: it changed concurrently",
            game.league.value,
            game.external_game_id,
        )
        self.session.refresh(game)
        return False


def _scores_differ(game: Game, obs: GameObservation) -> bool:
    if obs.home_score is None or obs.away_score is None:
        return False
    return (game.home_score, game.away_score) != (obs.home_score, obs.away_score)


def observations_from_events(
    events: Iterable[RawEvent], *, now: datetime | None = None
) -> tuple[list[GameObservation], list[tuple[RawEvent, NormalizationError]]]:
    """Normalize a batch; events that cannot be normalized are returned separately."""

    observations: list[GameObservation] = []
    dropped: list[tuple[RawEvent, NormalizationError]] = []
    for event in events:
        try:
            observations.append(build_observation(event, now=now))
        except NormalizationError as e:
            logger.warning(
                "Dropping %s:%s: %s", event.league.value, event.external_game_id, e
            )
            dropped.append((event, e))
    return observations, dropped
