from __future__ import annotations

import json
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from typing import Any

import typer
from sqlalchemy.orm import Session, sessionmaker

from game_lifecycle.core.config import settings
from game_lifecycle.db import DatabaseConfig, create_db_engine, create_session_factory
from game_lifecycle.db.enums import JobNameEnum, LeagueEnum
from game_lifecycle.ingestion.providers.api_sports.provider import register_api_sports_adapters
from game_lifecycle.ingestion.providers.base.registry import AdapterRegistry
from game_lifecycle.lifecycle.cursor import JOB_STEPS
from game_lifecycle.lifecycle.errors import ConfigurationError
from game_lifecycle.lifecycle.locks import JobLockManager
from game_lifecycle.lifecycle.orchestrator import LifecycleOrchestrator
from game_lifecycle.lifecycle.settlement import HttpSettlementWorker


def get_session_factory() -> sessionmaker[Session]:
    engine = create_db_engine(
        DatabaseConfig(database_url=settings.database_url, echo=settings.db_echo)
    )
    return create_session_factory(engine)


@contextmanager
def session_scope() -> Iterator[Session]:
    """
    Context-managed DB session for CLI commands.
    Ensures proper close and rolls back on exception.
    """
    SessionLocal = get_session_factory()
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_lock_manager(session_factory: sessionmaker[Session] | None = None) -> JobLockManager:
    return JobLockManager(session_factory or get_session_factory(), owner=settings.worker_id)


def build_registry(leagues: Iterable[LeagueEnum] | None) -> AdapterRegistry:
    try:
        api_key = settings.require_api_sports_key()
    except RuntimeError as e:
        raise ConfigurationError(str(e)) from e
    registry = AdapterRegistry()
    register_api_sports_adapters(registry, settings=settings, api_key=api_key, leagues=leagues)
    return registry


def build_worker() -> HttpSettlementWorker | None:
    if not settings.settlement_webhook_url:
        return None
    return HttpSettlementWorker(
        url=settings.require_settlement_webhook_url(),
        token=settings.settlement_webhook_token,
    )


def build_orchestrator(
    job: JobNameEnum, leagues: list[LeagueEnum] | None
) -> LifecycleOrchestrator:
    needs_provider = any(step != "settle" for step in JOB_STEPS[job])
    registry = build_registry(leagues) if needs_provider else AdapterRegistry()
    return LifecycleOrchestrator(
        get_session_factory(),
        registry,
        settings=settings,
        worker=build_worker(),
        worker_id=settings.worker_id,
    )


def echo_json(data: Any) -> None:
    typer.echo(json.dumps(data, indent=2, default=str))
