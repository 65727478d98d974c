from __future__ import annotations

from datetime import date
from typing import Protocol

from game_lifecycle.db.enums import LeagueEnum

from .types import RawEvent


class ProviderAdapter(Protocol):
    """
    Orchestration depends on this, not on any HTTP client.

    One implementation per provider payload dialect.
    """

    provider_key: str

    def fetch(self, league: LeagueEnum, on_date: date) -> list[RawEvent]:
        """
        Fetch every event of `league` on one UTC calendar date.

        Returns [] when the provider has no events for the date.
        Raises FetchFailed on transport/HTTP/JSON failures.
        """
        ...
