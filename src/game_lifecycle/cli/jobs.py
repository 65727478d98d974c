from __future__ import annotations

import typer

from game_lifecycle.cli.common import (
    build_orchestrator,
    echo_json,
    get_lock_manager,
    get_session_factory,
)
from game_lifecycle.core.config import settings
from game_lifecycle.db.enums import JobNameEnum, LeagueEnum, RunTypeEnum
from game_lifecycle.ingestion.providers.base.registry import AdapterRegistry
from game_lifecycle.lifecycle.errors import InvalidCursorError, LifecycleError
from game_lifecycle.lifecycle.orchestrator import LifecycleOrchestrator
from game_lifecycle.lifecycle.status_report import build_status_report
from game_lifecycle.lifecycle.trigger import CursorModel, TriggerRequest, TriggerResponse


def _trigger(request: TriggerRequest) -> TriggerResponse:
    try:
        orchestrator = build_orchestrator(request.job, request.leagues)
        try:
            return orchestrator.trigger(request)
        finally:
            orchestrator.registry.close()
    except InvalidCursorError as e:
        typer.echo(f"Invalid cursor: {e}", err=True)
        raise typer.Exit(code=2) from e
    except LifecycleError as e:
        typer.echo(f"{e.__class__.__name__}: {e}", err=True)
        raise typer.Exit(code=1) from e


def _emit(response: TriggerResponse) -> None:
    typer.echo(response.to_json())
    if not response.success:
        raise typer.Exit(code=1)


def run_cmd(
    job: JobNameEnum = typer.Argument(..., help="discover | sync | finalize | settle | full"),
    leagues: list[LeagueEnum] | None = typer.Option(
        None, "--league", "-l", help="Restrict to these leagues (repeatable)."
    ),
    max_batches: int = typer.Option(1, "--max-batches", min=1, help="Units of work to run."),
    cursor_step: str | None = typer.Option(None, "--cursor-step", help="Resume at this step."),
    cursor_league_index: int = typer.Option(0, "--cursor-league-index", min=0),
    run_type: RunTypeEnum = typer.Option(RunTypeEnum.SCHEDULED, "--run-type"),
) -> None:
    """Run one or more batches of a lifecycle job and print the JSON response."""

    if job == JobNameEnum.BACKFILL:
        raise typer.BadParameter("use the `backfill` command", param_hint="JOB")

    cursor = (
        CursorModel(step=cursor_step, league_index=cursor_league_index)
        if cursor_step is not None
        else None
    )
    _emit(
        _trigger(
            TriggerRequest(
                job=job,
                leagues=leagues or None,
                cursor=cursor,
                max_batches=max_batches,
                run_type=run_type,
            )
        )
    )


def backfill_cmd(
    days: int = typer.Option(
        settings.backfill_default_days, "--days", min=1, help="How many past days to re-ingest."
    ),
    leagues: list[LeagueEnum] | None = typer.Option(None, "--league", "-l"),
    max_batches: int = typer.Option(1, "--max-batches", min=1),
    restart: bool = typer.Option(
        False, "--restart", help="Ignore saved progress and start from the oldest day."
    ),
) -> None:
    """Re-ingest past days, one (day, league) unit per batch, resuming saved progress."""

    cursor = CursorModel(step="backfill") if restart else None
    _emit(
        _trigger(
            TriggerRequest(
                job=JobNameEnum.BACKFILL,
                leagues=leagues or None,
                cursor=cursor,
                max_batches=max_batches,
                days=days,
                run_type=RunTypeEnum.MANUAL,
            )
        )
    )


def cancel_cmd(
    job: JobNameEnum = typer.Argument(..., help="Job whose running stage should stop."),
) -> None:
    """Ask a running job to stop after its current unit of work."""

    session_factory = get_session_factory()
    orchestrator = LifecycleOrchestrator(
        session_factory,
        AdapterRegistry(),
        settings=settings,
        lock_manager=get_lock_manager(session_factory),
    )
    try:
        flagged = orchestrator.request_cancel(job)
    except LifecycleError as e:
        typer.echo(f"{e.__class__.__name__}: {e}", err=True)
        raise typer.Exit(code=1) from e

    if not flagged:
        typer.echo(f"{job.value} is not running.")
        return
    typer.echo(f"Cancellation requested for: {', '.join(flagged)}")


def status_cmd() -> None:
    """Print locks, last runs, queue counts, cursors and games stuck in UNKNOWN."""

    session_factory = get_session_factory()
    echo_json(build_status_report(session_factory, get_lock_manager(session_factory), settings))
