"""Canonical game status mapping.

Every provider status string is mapped onto ``GameStatusEnum`` here and nowhere else.
Unrecognized strings map to UNKNOWN: they rank like SCHEDULED and are never promoted
to FINAL.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime

from game_lifecycle.db.enums import TERMINAL_STATUSES, GameStatusEnum, WinnerSideEnum
from game_lifecycle.ingestion.dates import utcnow
from game_lifecycle.lifecycle.errors import NormalizationError

logger = logging.getLogger(__name__)

_SCHEDULED = frozenset(
    {"ns", "not started", "scheduled", "tbd", "time to be defined", "upcoming", "pre", "prematch"}
)
_LIVE = frozenset(
    {
        # soccer
        "1h", "2h", "ht", "et", "bt", "p", "live", "halftime",
        # basketball / american football
        "q1", "q2", "q3", "q4", "ot",
        # hockey
        "p1", "p2", "p3", "pt",
        # baseball
        "ie",
        "in progress", "inprogress", "inp", "playing",
    }
)
_FINAL = frozenset(
    {
        "ft", "aet", "pen", "aot", "ap", "aw", "wo", "awd",
        "final", "f", "f/ot", "f/so", "finished", "match finished", "ended", "completed",
        "after over time", "after overtime", "after extra time", "after penalties",
    }
)
_CANCELED = frozenset(
    {"canc", "canceled", "cancelled", "abd", "abdn", "abandoned", "void", "voided"}
)
_POSTPONED = frozenset(
    {"pst", "ppd", "postponed", "delayed", "susp", "suspended", "int", "interrupted"}
)

_period_re = re.compile(r"^(q[1-4]|p[1-3]|in[1-9]|[12]h|ot\d*|et)$")

_KEYWORDS: tuple[tuple[tuple[str, ...], GameStatusEnum], ...] = (
    (("cancel", "abandon"), GameStatusEnum.CANCELED),
    (("postpon", "delay", "suspend"), GameStatusEnum.POSTPONED),
    (("final", "finished", "ended"), GameStatusEnum.FINAL),
    (("progress", "live", "playing", "half", "quarter", "period", "inning", "overtime"),
     GameStatusEnum.LIVE),
)

_RANK = {
    GameStatusEnum.SCHEDULED: 0,
    GameStatusEnum.UNKNOWN: 0,
    GameStatusEnum.LIVE: 1,
    GameStatusEnum.POSTPONED: 2,
    GameStatusEnum.CANCELED: 2,
    GameStatusEnum.FINAL: 2,
}


def normalize_status(
    provider: str,
    raw_status: str | None,
    *,
    home_score: int | None = None,
    away_score: int | None = None,
    starts_at: datetime | None = None,
    now: datetime | None = None,
) -> GameStatusEnum:
    if raw_status is None or not raw_status.strip():
        return GameStatusEnum.SCHEDULED

    status = raw_status.strip().lower()

    if status in _CANCELED:
        return GameStatusEnum.CANCELED
    if status in _POSTPONED:
        return GameStatusEnum.POSTPONED
    if status in _FINAL:
        return GameStatusEnum.FINAL
    if status in _LIVE or _period_re.match(status):
        return GameStatusEnum.LIVE
    if status in _SCHEDULED:
        return GameStatusEnum.SCHEDULED

    for needles, mapped in _KEYWORDS:
        if any(n in status for n in needles):
            return mapped

    # Unrecognized, but the game has started and someone has scored.
    if starts_at is not None and (home_score or away_score):
        if starts_at < (now or utcnow()):
            return GameStatusEnum.LIVE

    logger.warning("Unknown status %r from %s", raw_status, provider)
    return GameStatusEnum.UNKNOWN


def determine_winner(home_score: int | None, away_score: int | None) -> WinnerSideEnum:
    if home_score is None or away_score is None:
        raise NormalizationError(
            f"Cannot determine winner without both scores (home={home_score}, away={away_score})"
        )
    if home_score > away_score:
        return WinnerSideEnum.HOME
    if away_score > home_score:
        return WinnerSideEnum.AWAY
    return WinnerSideEnum.DRAW


def is_terminal(status: GameStatusEnum) -> bool:
    return status in TERMINAL_STATUSES


def status_rank(status: GameStatusEnum) -> int:
    return _RANK[status]


def can_transition(current: GameStatusEnum, incoming: GameStatusEnum) -> bool:
    """Whether a stored status may be replaced by a newly observed one.

    FINAL is permanent. A postponed or canceled game may still be played and finish,
    and a postponement may become a cancellation; nothing else leaves a terminal status.
    Below that, status only moves forward by rank.
    """
    if current == incoming:
        return True
    if current == GameStatusEnum.FINAL:
        return False
    if is_terminal(current):
        return incoming == GameStatusEnum.FINAL or (
            current == GameStatusEnum.POSTPONED and incoming == GameStatusEnum.CANCELED
        )
    return status_rank(incoming) >= status_rank(current)
