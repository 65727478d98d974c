from __future__ import annotations

from dataclasses import dataclass
from datetime import date


class ProviderError(RuntimeError):
    """Base exception for provider-related failures."""


class ProviderRequestError(ProviderError):
    """HTTP/network/transport layer failures (timeouts, connection errors, non-2xx, etc.)."""


class ProviderRateLimited(ProviderRequestError):
    """Provider throttled the request (e.g., HTTP 429)."""


class ProviderResponseError(ProviderError):
    """Provider returned a well-formed response indicating an application-level error."""


class ProviderCapabilityError(ProviderError):
    """No adapter supports the requested provider/league."""


@dataclass(frozen=True)
class ProviderMappingError(ProviderError):
    """Mapping/extraction failed due to unexpected schema or values."""
    message: str
    context: dict[str, object] | None = None

    def __str__(self) -> str:  # pragma: no cover
        if not self.context:
            return self.message
        return f"{self.message} | context={self.context}"


class FetchFailed(ProviderError):
    """Fetching one league's events for one date failed; callers skip that date."""

    def __init__(self, league: str, on_date: date, cause: BaseException) -> None:
        self.league = league
        self.on_date = on_date
        self.cause = cause
        super().__init__(f"{league} {on_date.isoformat()}: {cause.__class__.__name__}: {cause}")
