"""Alembic environment for the game-lifecycle schema.

Covers games, job_locks, job_runs, job_cursors, settlement_queue and
ingested_payloads. Production runs on Postgres; local runs and tests use SQLite,
which needs batch mode for ALTERs.
"""

from __future__ import annotations

import os
from logging.config import fileConfig
from pathlib import Path
from typing import Any, Literal

from alembic import context
from alembic.autogenerate.api import AutogenContext
from alembic.operations.ops import MigrationScript
from dotenv import load_dotenv
from sqlalchemy import engine_from_config, pool
from sqlalchemy.dialects import postgresql

import game_lifecycle.db.models  # noqa: F401
from game_lifecycle.db.base import Base, UTCDateTime

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

DEFAULT_DATABASE_URL = "sqlite+pysqlite:///./game_lifecycle.db"


def get_database_url() -> str:
    # Same DATABASE_URL the CLI reads through Settings.
    env_path = Path(__file__).resolve().parents[1] / ".env"
    if env_path.exists():
        load_dotenv(env_path, override=False)

    return os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)


def render_item(
    type_: str,
    obj: Any,
    autogen_context: AutogenContext,
) -> str | Literal[False]:
    # payload_json / job_runs.counts / job_locks.meta are JSONB on Postgres.
    if type_ == "type" and isinstance(obj, postgresql.JSONB):
        return "postgresql.JSONB()"
    # UTCDateTime is a Python-side decorator; the column itself is timestamptz.
    if type_ == "type" and isinstance(obj, UTCDateTime):
        return "sa.DateTime(timezone=True)"

    return False


def process_revision_directives(context, revision, directives) -> None:
    script = directives[0]
    if not isinstance(script, MigrationScript):
        return

    if getattr(config.cmd_opts, "autogenerate", False) and script.upgrade_ops.is_empty():
        directives[:] = []
        return

    script.imports.add("from sqlalchemy.dialects import postgresql")


def _configure_kwargs(url: str) -> dict[str, Any]:
    return {
        "target_metadata": Base.metadata,
        "compare_type": True,
        "render_item": render_item,
        "process_revision_directives": process_revision_directives,
        "render_as_batch": url.startswith("sqlite"),
    }


def run_migrations_offline() -> None:
    url = get_database_url()
    context.configure(
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_configure_kwargs(url),
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    url = get_database_url()
    configuration = config.get_section(config.config_ini_section) or {}
    configuration["sqlalchemy.url"] = url

    connectable = engine_from_config(
        configuration,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
        future=True,
    )

    with connectable.connect() as connection:
        context.configure(connection=connection, **_configure_kwargs(url))

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
