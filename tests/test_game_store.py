from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, datetime, timedelta
from pathlib import Path

import sqlalchemy as sa
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from game_lifecycle.db.base import Base
from game_lifecycle.db.engine import create_session_factory
from game_lifecycle.db.enums import GameStatusEnum, LeagueEnum, WinnerSideEnum
from game_lifecycle.db.models.core.game import Game
from game_lifecycle.db.models.ingestion.ingested_payload import IngestedPayload
from game_lifecycle.db.repos.core.game_repo import GameRepository
from game_lifecycle.ingestion.providers.base.types import RawEvent
from game_lifecycle.lifecycle.store import (
    GameObservation,
    GameStore,
    UpsertResult,
    build_observation,
    observations_from_events,
)

NOW = datetime(2025, 10, 12, 20, 0, tzinfo=UTC)
KICKOFF = datetime(2025, 10, 12, 17, 0, tzinfo=UTC)


def _make_session() -> Session:
    engine = sa.create_engine("sqlite+pysqlite:///:memory:", future=True)
    import game_lifecycle.db.models  # noqa: F401

    Base.metadata.create_all(engine)
    return Session(engine)


def _event(
    status: str,
    home: int | None = None,
    away: int | None = None,
    *,
    ext_id: str = "17281",
    league: LeagueEnum = LeagueEnum.NFL,
    starts_at: datetime = KICKOFF,
) -> RawEvent:
    return RawEvent(
        league=league,
        provider="api_sports",
        external_game_id=ext_id,
        starts_at=starts_at,
        status_raw=status,
        home_team="Philadelphia Eagles",
        away_team="Cincinnati Bengals",
        home_score=home,
        away_score=away,
        payload={"id": ext_id, "status": status},
    )


def _obs(*args, **kwargs) -> GameObservation:
    return build_observation(_event(*args, **kwargs), now=NOW)


def _store(session: Session, clock=lambda: NOW, **kwargs) -> GameStore:
    return GameStore(session, clock=clock, **kwargs)


def _only_game(session: Session) -> Game:
    return session.execute(select(Game)).scalar_one()


def test_upsert_is_idempotent() -> None:
    session = _make_session()
    store = _store(session)

    first = store.upsert_many([_obs("NS")])
    session.commit()
    second = store.upsert_many([_obs("NS")])
    session.commit()

    assert (first.inserted, first.updated) == (1, 0)
    assert (second.inserted, second.updated) == (0, 1)
    assert session.execute(select(func.count()).select_from(Game)).scalar_one() == 1
    game = _only_game(session)
    assert game.status_norm == GameStatusEnum.SCHEDULED
    assert game.season == 2025


def test_duplicate_keys_in_one_batch_keep_the_last_observation() -> None:
    session = _make_session()
    result = _store(session).upsert_many([_obs("NS"), _obs("Q1", 7, 0)])
    session.commit()

    assert result.inserted == 1
    game = _only_game(session)
    assert game.status_norm == GameStatusEnum.LIVE
    assert (game.home_score, game.away_score) == (7, 0)


def test_live_game_does_not_regress_to_scheduled() -> None:
    session = _make_session()
    store = _store(session)
    store.upsert_many([_obs("Q2", 14, 3)])
    store.upsert_many([_obs("NS")])
    session.commit()

    game = _only_game(session)
    assert game.status_norm == GameStatusEnum.LIVE
    assert game.status_raw == "Q2"
    assert (game.home_score, game.away_score) == (14, 3)


def test_final_is_sticky_and_finalized_at_never_moves() -> None:
    session = _make_session()
    clock = {"now": NOW}
    store = _store(session, clock=lambda: clock["now"])

    first = store.upsert_many([_obs("FT", 31, 17)])
    session.commit()
    assert [g.external_game_id for g in first.finalized] == ["17281"]

    clock["now"] = NOW + timedelta(hours=2)
    again = store.upsert_many([_obs("FT", 31, 17), _obs("Q4", 31, 17, ext_id="other")])
    store.upsert_many([_obs("Q4", 28, 17)])
    session.commit()

    assert again.finalized == []
    game = GameRepository(session).get_by_key(LeagueEnum.NFL, "17281")
    assert game is not None
    assert game.status_norm == GameStatusEnum.FINAL
    assert game.winner_side == WinnerSideEnum.HOME
    assert game.finalized_at == NOW
    assert (game.home_score, game.away_score) == (31, 17)


def test_score_change_after_final_is_counted_not_applied() -> None:
    session = _make_session()
    store = _store(session)
    store.upsert_many([_obs("FT", 31, 17)])
    result = store.upsert_many([_obs("AOT", 31, 24)])
    session.commit()

    assert result.score_conflicts == 1
    game = _only_game(session)
    assert (game.home_score, game.away_score) == (31, 17)
    assert game.winner_side == WinnerSideEnum.HOME


def test_postponed_game_can_still_finish() -> None:
    session = _make_session()
    store = _store(session)
    store.upsert_many([_obs("PST")])
    result = store.upsert_many([_obs("FT", 2, 2)])
    session.commit()

    assert len(result.finalized) == 1
    game = _only_game(session)
    assert game.status_norm == GameStatusEnum.FINAL
    assert game.winner_side == WinnerSideEnum.DRAW


def test_cancellation_is_reported_once() -> None:
    session = _make_session()
    store = _store(session)
    store.upsert_many([_obs("NS")])
    first = store.upsert_many([_obs("Cancelled")])
    second = store.upsert_many([_obs("Cancelled")])
    session.commit()

    assert len(first.canceled) == 1
    assert second.canceled == []
    assert _only_game(session).winner_side is None


def test_unknown_status_tracks_since_and_clears() -> None:
    session = _make_session()
    clock = {"now": NOW}
    store = _store(session, clock=lambda: clock["now"])

    store.upsert_many([_obs("Gremlins")])
    clock["now"] = NOW + timedelta(hours=1)
    store.upsert_many([_obs("Gremlins")])
    session.commit()
    game = _only_game(session)
    assert game.status_norm == GameStatusEnum.UNKNOWN
    assert game.unknown_status_since == NOW

    store.upsert_many([_obs("Q1", 0, 0)])
    session.commit()
    assert game.status_norm == GameStatusEnum.LIVE
    assert game.unknown_status_since is None


def test_force_final_uses_stored_scores() -> None:
    session = _make_session()
    store = _store(session)
    store.upsert_many([_obs("Q4", 10, 20)])
    game = _only_game(session)

    assert store.force_final(game, now=NOW) is True
    session.commit()

    assert game.status_norm == GameStatusEnum.FINAL
    assert game.forced_final is True
    assert game.winner_side == WinnerSideEnum.AWAY
    assert game.finalized_at == NOW


def test_failed_chunk_does_not_block_other_chunks() -> None:
    class FlakyStore(GameStore):
        def _upsert_chunk(self, chunk: Sequence[GameObservation]) -> UpsertResult:
            if chunk[0].external_game_id == "g0":
                raise IntegrityError("INSERT INTO games", {}, Exception("constraint failed"))
            return super()._upsert_chunk(chunk)

    session = _make_session()
    store = FlakyStore(session, batch_size=2, clock=lambda: NOW)
    result = store.upsert_many([_obs("NS", ext_id=f"g{i}") for i in range(4)])
    session.commit()

    assert result.inserted == 2
    assert len(result.errors) == 1
    assert result.errors[0].chunk_index == 0
    assert result.errors[0].keys == ("NFL:g0", "NFL:g1")
    ids = set(session.execute(select(Game.external_game_id)).scalars())
    assert ids == {"g2", "g3"}


def test_payload_archive_is_optional() -> None:
    session = _make_session()
    _store(session).upsert_many([_obs("NS")])
    _store(session, store_payloads=True).upsert_many([_obs("NS")])
    session.commit()

    rows = session.execute(select(IngestedPayload)).scalars().all()
    assert len(rows) == 1
    assert rows[0].entity_key == "NFL:17281"
    assert rows[0].payload_json["status"] == "NS"


def test_events_without_a_final_score_are_dropped() -> None:
    observations, dropped = observations_from_events(
        [_event("FT", 21, None), _event("NS", ext_id="ok")], now=NOW
    )
    assert [o.external_game_id for o in observations] == ["ok"]
    assert len(dropped) == 1


def _make_session_factory(tmp_path: Path) -> sessionmaker[Session]:
    engine = sa.create_engine(f"sqlite+pysqlite:///{tmp_path / 'games.db'}", future=True)
    import game_lifecycle.db.models  # noqa: F401

    Base.metadata.create_all(engine)
    return create_session_factory(engine)


def _seed_live_game(sf: sessionmaker[Session]) -> None:
    with sf() as session:
        _store(session).upsert_many([_obs("Q4", 10, 7)])
        session.commit()


def _provider_final_from_another_run(sf: sessionmaker[Session], at: datetime) -> None:
    with sf() as session:
        _store(session, clock=lambda: at).upsert_many([_obs("FT", 10, 14)])
        session.commit()


def test_force_final_yields_to_a_final_written_by_another_session(tmp_path: Path) -> None:
    sf = _make_session_factory(tmp_path)
    _seed_live_game(sf)
    synced_at = NOW - timedelta(minutes=10)

    with sf() as finalize_session:
        stale = _only_game(finalize_session)
        assert stale.status_norm == GameStatusEnum.LIVE

        _provider_final_from_another_run(sf, synced_at)

        assert _store(finalize_session).force_final(stale, now=NOW) is False
        finalize_session.commit()
        assert stale.status_norm == GameStatusEnum.FINAL

    with sf() as session:
        game = _only_game(session)
        assert game.finalized_at == synced_at
        assert (game.home_score, game.away_score) == (10, 14)
        assert game.winner_side == WinnerSideEnum.AWAY
        assert game.forced_final is False


def test_force_final_does_not_use_a_score_that_moved(tmp_path: Path) -> None:
    sf = _make_session_factory(tmp_path)
    _seed_live_game(sf)

    with sf() as finalize_session:
        stale = _only_game(finalize_session)

        with sf() as sync_session:
            _store(sync_session).upsert_many([_obs("Q4", 10, 14)])
            sync_session.commit()

        assert _store(finalize_session).force_final(stale, now=NOW) is False
        finalize_session.commit()

    with sf() as session:
        game = _only_game(session)
        assert game.status_norm == GameStatusEnum.LIVE
        assert game.finalized_at is None
        assert (game.home_score, game.away_score) == (10, 14)


def test_stale_session_cannot_overwrite_a_newer_final(tmp_path: Path) -> None:
    sf = _make_session_factory(tmp_path)
    _seed_live_game(sf)
    synced_at = NOW - timedelta(minutes=10)

    with sf() as sync_session:
        stale = _only_game(sync_session)
        _provider_final_from_another_run(sf, synced_at)

        # A lagging feed still shows the game in progress.
        result = _store(sync_session).upsert_many([_obs("OT", 10, 10)])
        sync_session.commit()

        assert result.errors == []
        assert result.finalized == []
        assert result.score_conflicts == 1
        assert stale.status_norm == GameStatusEnum.FINAL

    with sf() as session:
        game = _only_game(session)
        assert game.status_norm == GameStatusEnum.FINAL
        assert game.finalized_at == synced_at
        assert (game.home_score, game.away_score) == (10, 14)


def test_interrupted_game_keeps_scoring_until_it_finishes() -> None:
    session = _make_session()
    store = _store(session)
    store.upsert_many([_obs("Q2", 7, 3)])
    store.upsert_many([_obs("INT", 7, 3)])
    store.upsert_many([_obs("Q3", 14, 3)])
    session.commit()

    game = _only_game(session)
    assert game.status_norm == GameStatusEnum.POSTPONED
    assert (game.home_score, game.away_score) == (14, 3)

    result = store.upsert_many([_obs("FT", 21, 3)])
    session.commit()
    assert len(result.finalized) == 1
    assert _only_game(session).winner_side == WinnerSideEnum.HOME
