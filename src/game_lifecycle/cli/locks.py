from __future__ import annotations

from datetime import timedelta

import typer

from game_lifecycle.cli.common import echo_json, get_lock_manager
from game_lifecycle.ingestion.dates import utcnow

app = typer.Typer(help="Inspect and manage job locks.")


@app.command("list")
def list_cmd() -> None:
    """List every lock row."""

    locks = get_lock_manager().list_locks()
    if locks is None:
        typer.echo("Lock store unavailable.", err=True)
        raise typer.Exit(code=1)

    now = utcnow()
    echo_json(
        [
            {
                "key": lk.key,
                "locked_by": lk.locked_by,
                "locked_at": lk.locked_at.isoformat(),
                "expires_at": lk.expires_at.isoformat(),
                "expired": lk.is_expired(now),
                "cancel_requested": lk.cancel_requested,
                "meta": lk.meta,
            }
            for lk in locks
        ]
    )


@app.command("cleanup")
def cleanup_cmd() -> None:
    """Delete expired locks."""

    removed = get_lock_manager().cleanup_expired()
    typer.echo(f"Removed {removed} expired lock(s).")


@app.command("release")
def release_cmd(
    key: str = typer.Argument(..., help="Lock key, e.g. discover."),
) -> None:
    """Force-release a lock regardless of holder."""

    if get_lock_manager().force_release(key):
        typer.echo(f"Released {key}.")
    else:
        typer.echo(f"No lock named {key}.")


@app.command("extend")
def extend_cmd(
    key: str = typer.Argument(..., help="Lock key, e.g. backfill."),
    minutes: int = typer.Option(30, "--minutes", min=1, help="New TTL from now."),
) -> None:
    """Push a lock's expiry out, regardless of holder."""

    if get_lock_manager().extend(key, timedelta(minutes=minutes), force=True):
        typer.echo(f"Extended {key} by {minutes} minute(s) from now.")
    else:
        typer.echo(f"No lock named {key}.")
