from __future__ import annotations

import logging

import typer

from game_lifecycle.cli.jobs import backfill_cmd, cancel_cmd, run_cmd, status_cmd
from game_lifecycle.cli.locks import app as locks_app
from game_lifecycle.cli.queue import app as queue_app
from game_lifecycle.core.config import settings

app = typer.Typer(no_args_is_help=True)


@app.callback()
def main(
    log_level: str = typer.Option(
        settings.log_level, "--log-level", envvar="LOG_LEVEL", help="Python logging level."
    ),
) -> None:
    """Game lifecycle pipeline: discover, sync, finalize and settle games."""

    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


app.command("run")(run_cmd)
app.command("backfill")(backfill_cmd)
app.command("cancel")(cancel_cmd)
app.command("status")(status_cmd)
app.add_typer(locks_app, name="locks")
app.add_typer(queue_app, name="queue")
