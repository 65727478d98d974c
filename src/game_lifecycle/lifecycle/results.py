from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Any


@dataclass
class StageResult:
    """Outcome of one unit of work (one stage, one league or queue drain)."""

    stage: str
    league: str | None = None
    on_date: str | None = None
    counts: Counter[str] = field(default_factory=Counter)
    errors: list[str] = field(default_factory=list)
    skipped: bool = False
    cancelled: bool = False
    crashed: bool = False
    reason: str | None = None

    def bump(self, key: str, n: int = 1) -> None:
        if n:
            self.counts[key] += n

    def add_error(self, message: str) -> None:
        self.errors.append(message)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"stage": self.stage, "counts": dict(self.counts)}
        if self.league is not None:
            out["league"] = self.league
        if self.on_date is not None:
            out["date"] = self.on_date
        if self.skipped:
            out["skipped"] = True
        if self.cancelled:
            out["cancelled"] = True
        if self.crashed:
            out["crashed"] = True
        if self.reason:
            out["reason"] = self.reason
        if self.errors:
            out["error_count"] = len(self.errors)
        return out


def cap_errors(errors: list[str], limit: int) -> list[str]:
    if len(errors) <= limit:
        return errors
    return [*errors[:limit], f"... {len(errors) - limit} more"]
