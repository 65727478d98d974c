from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from .adapter import ProviderAdapter
from .errors import ProviderCapabilityError


@dataclass(frozen=True)
class AdapterKey:
    provider: str
    league_key: str


AdapterFactory = Callable[[], ProviderAdapter]


class AdapterRegistry:
    def __init__(self) -> None:
        self._factories: dict[AdapterKey, AdapterFactory] = {}
        self._instances: dict[AdapterKey, ProviderAdapter] = {}

    def register(self, key: AdapterKey, factory: AdapterFactory) -> None:
        if key in self._factories:
            raise ValueError(f"Duplicate adapter registration: {key}")
        self._factories[key] = factory

    def get(self, *, provider: str, league_key: str) -> ProviderAdapter:
        key = AdapterKey(provider=provider, league_key=league_key)

        # Adapters hold HTTP clients; build each once per registry.
        cached = self._instances.get(key)
        if cached is not None:
            return cached

        factory = self._factories.get(key)
        if factory is None:
            raise ProviderCapabilityError(
                f"No adapter registered for provider={provider} league_key={league_key}"
            )

        adapter = factory()
        self._instances[key] = adapter
        return adapter

    def close(self) -> None:
        for adapter in self._instances.values():
            close = getattr(adapter, "close", None)
            if callable(close):
                close()
        self._instances.clear()
