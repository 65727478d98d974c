from __future__ import annotations

import typer

from game_lifecycle.cli.common import echo_json, session_scope
from game_lifecycle.db.enums import LeagueEnum, SettlementStatusEnum
from game_lifecycle.lifecycle.settlement import SettlementQueue

app = typer.Typer(help="Inspect the settlement queue.")


@app.command("stats")
def stats_cmd() -> None:
    """Item counts per status."""

    with session_scope() as session:
        stats = SettlementQueue(session).queue_stats()
    echo_json(stats)


@app.command("list")
def list_cmd(
    status: list[SettlementStatusEnum] | None = typer.Option(
        None, "--status", "-s", help="Filter by status (repeatable)."
    ),
    league: LeagueEnum | None = typer.Option(None, "--league", "-l"),
    limit: int = typer.Option(50, "--limit", min=1, max=1000),
) -> None:
    """Most recent queue items first."""

    with session_scope() as session:
        items = SettlementQueue(session).list_items(
            statuses=status or None, league=league, limit=limit
        )
        rows = [
            {
                "id": i.id,
                "game_id": i.game_id,
                "league": i.league.value,
                "external_game_id": i.external_game_id,
                "status": i.status.value,
                "outcome": i.outcome.value if i.outcome else None,
                "reason": i.reason,
                "attempts": i.attempts,
                "next_attempt_at": i.next_attempt_at.isoformat(),
                "last_error": i.last_error,
            }
            for i in items
        ]
    echo_json(rows)
