from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from game_lifecycle.ingestion.providers.base.client import BaseHttpClient
from game_lifecycle.ingestion.providers.base.errors import ProviderRateLimited, ProviderResponseError
from game_lifecycle.ingestion.providers.base.rate_limit import TokenBucket

logger = logging.getLogger(__name__)

MAX_RATE_LIMIT_RETRIES = 5


def _parse_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@dataclass
class ApiSportsRateLimiter:
    """Proactive throttling based on API-Sports rate limit headers.

    The provider returns per-minute limit/remaining headers; we use them to pace
    requests and avoid hitting HTTP 429 during ingestion. A shared TokenBucket, when
    given, caps the request rate across every sport host using the same key.
    """

    minute_limit_low_watermark: int = 2
    min_interval_s: float = 0.0
    last_request_monotonic: float | None = None
    bucket: TokenBucket | None = None

    _sleep: Any = field(default=time.sleep, repr=False)
    _monotonic: Any = field(default=time.monotonic, repr=False)

    def before_request(self) -> None:
        if self.bucket is not None:
            self.bucket.acquire()
        if self.min_interval_s <= 0.0:
            return
        now = float(self._monotonic())
        if self.last_request_monotonic is None:
            return
        elapsed = now - self.last_request_monotonic
        remaining = self.min_interval_s - elapsed
        if remaining > 0:
            self._sleep(remaining)

    def after_response(self, headers: Mapping[str, str]) -> None:
        # Update pacing based on plan limit.
        limit = _parse_int(headers.get("X-RateLimit-Limit"))
        remaining = _parse_int(headers.get("X-RateLimit-Remaining"))

        if limit and limit > 0:
            self.min_interval_s = max(self.min_interval_s, 60.0 / float(limit))

        # Near the end of the minute bucket (or another process shares the key).
        if remaining is not None and remaining <= self.minute_limit_low_watermark:
            # No reset header is sent; wait out a full minute when at/near zero.
            cooldown = 60.0 if remaining <= 1 else 10.0
            logger.info("api-sports minute quota low (remaining=%s); sleeping %.0fs", remaining, cooldown)
            self._sleep(cooldown)

        self.last_request_monotonic = float(self._monotonic())

    def backoff_after_429(self) -> None:
        self._sleep(60.0)


@dataclass
class ApiSportsClient:
    http: BaseHttpClient
    api_key: str
    rate_limiter: ApiSportsRateLimiter = field(default_factory=ApiSportsRateLimiter)

    def _headers(self) -> dict[str, str]:
        return {"x-apisports-key": self.api_key}

    def close(self) -> None:
        self.http.close()

    def get(self, path: str, params: Mapping[str, Any] | None = None) -> dict[str, Any]:
        # Basic retry on minute-bucket throttling.
        attempts = 0
        while True:
            attempts += 1
            self.rate_limiter.before_request()
            try:
                data, headers = self.http.get_json_with_headers(
                    path, params=params, headers=self._headers()
                )
                self.rate_limiter.after_response(headers)
                break
            except ProviderRateLimited:
                if attempts >= MAX_RATE_LIMIT_RETRIES:
                    raise
                logger.warning("api-sports HTTP 429 on %s (attempt %d); backing off", path, attempts)
                self.rate_limiter.backoff_after_429()

        # api-sports reports errors as a list or as a {field: message} object.
        errors = data.get("errors") or []
        if errors:
            raise ProviderResponseError(f"api-sports returned errors: {errors}")

        return data

    def get_response_items(
        self, path: str, params: Mapping[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        payload = self.get(path, params=params)
        items = payload.get("response")
        if items is None:
            return []
        if not isinstance(items, list):
            raise ProviderResponseError(f"Expected 'response' list, got: {type(items)}")
        return [i for i in items if isinstance(i, dict)]
