from __future__ import annotations

from datetime import UTC, date, datetime, timedelta
from typing import Any


def utcnow() -> datetime:
    return datetime.now(tz=UTC)


def parse_api_sports_game_datetime(value: Any, *, provider_game_id: str) -> datetime:
    """
    Parse an api-sports date field into tz-aware UTC datetime.

    Supports:
      - ISO string: "2025-09-07T20:20:00Z" / "+00:00"
      - Dict:
        {"timezone":"UTC","date":"YYYY-MM-DD","time":"HH:MM","timestamp": 123}
      - Soccer fixture dict: {"date": "2025-09-07T20:20:00+00:00", "timestamp": 123}
    """
    if isinstance(value, dict):
        ts = value.get("timestamp")
        if isinstance(ts, int | float) and not isinstance(ts, bool):
            return datetime.fromtimestamp(ts, tz=UTC)

        date_part = value.get("date")
        time_part = value.get("time")
        if isinstance(date_part, str) and "T" in date_part:
            return _parse_iso(date_part)

        time_part = time_part or "00:00"
        if not isinstance(date_part, str) or not isinstance(time_part, str):
            raise ValueError(
                f"Missing/invalid game date dict for provider_game_id={provider_game_id}: {value!r}"
            )

        # Treat as UTC; timestamp is preferred when present.
        return datetime.fromisoformat(f"{date_part}T{time_part}:00+00:00")

    if isinstance(value, str) and value.strip():
        return _parse_iso(value.strip())

    raise ValueError(f"Missing/invalid game date for provider_game_id={provider_game_id}: {value!r}")


def _parse_iso(value: str) -> datetime:
    dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def dates_in_window(start: datetime, end: datetime) -> list[date]:
    """Every UTC calendar date touched by [start, end], oldest first."""

    first = start.astimezone(UTC).date()
    last = end.astimezone(UTC).date()
    out: list[date] = []
    d = first
    while d <= last:
        out.append(d)
        d += timedelta(days=1)
    return out


def rolling_window(now: datetime, *, hours_back: int, hours_forward: int) -> tuple[datetime, datetime]:
    return now - timedelta(hours=hours_back), now + timedelta(hours=hours_forward)
