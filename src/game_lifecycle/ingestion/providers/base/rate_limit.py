from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Any


@dataclass
class TokenBucket:
    """Client-side token bucket shared by every adapter of one provider.

    ``rate_per_minute`` tokens refill continuously up to ``capacity``. ``acquire`` sleeps
    until a token is available instead of failing.
    """

    rate_per_minute: float
    capacity: int = 1

    _sleep: Any = field(default=time.sleep, repr=False)
    _monotonic: Any = field(default=time.monotonic, repr=False)

    def __post_init__(self) -> None:
        if self.rate_per_minute <= 0:
            raise ValueError("rate_per_minute must be > 0")
        if self.capacity < 1:
            raise ValueError("capacity must be >= 1")
        self._tokens = float(self.capacity)
        self._updated = float(self._monotonic())
        self._lock = threading.Lock()

    @property
    def _rate_per_second(self) -> float:
        return self.rate_per_minute / 60.0

    def _refill(self, now: float) -> None:
        elapsed = max(0.0, now - self._updated)
        self._tokens = min(float(self.capacity), self._tokens + elapsed * self._rate_per_second)
        self._updated = now

    def acquire(self) -> float:
        """Take one token, sleeping as needed. Returns the seconds slept."""
        with self._lock:
            self._refill(float(self._monotonic()))
            waited = 0.0
            if self._tokens < 1.0:
                waited = (1.0 - self._tokens) / self._rate_per_second
                self._sleep(waited)
                self._refill(float(self._monotonic()))
                # A fake clock may not advance; the sleep paid for the token either way.
                self._tokens = max(self._tokens, 1.0)
            self._tokens -= 1.0
            return waited
