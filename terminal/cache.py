from typing import Awaitable, Callable, Dict, Iterable

import httpx
import structlog

from shared.events import EVENT_INVALIDATIONS
from .client import OrderApiError

logger = structlog.get_logger(__name__)

Fetcher = Callable[[], Awaitable[object]]


class QueryCache:
    """
    Named result sets with explicit invalidation.

    Consumers register a fetcher per result set; server events map to the
    sets they stale through EVENT_INVALIDATIONS, and refresh() re-fetches
    only what is stale.
    """

    def __init__(self, invalidations: Dict[str, Iterable[str]] = EVENT_INVALIDATIONS):
        self._invalidations = invalidations
        self._fetchers: Dict[str, Fetcher] = {}
        self._data: Dict[str, object] = {}
        self._stale: set[str] = set()

    def register(self, key: str, fetcher: Fetcher) -> None:
        self._fetchers[key] = fetcher
        self._stale.add(key)

    def get(self, key: str, default=None):
        return self._data.get(key, default)

    def set(self, key: str, value) -> None:
        self._data[key] = value
        self._stale.discard(key)

    def is_stale(self, key: str) -> bool:
        return key in self._stale or key not in self._data

    def invalidate(self, *keys: str) -> None:
        self._stale.update(keys)

    def invalidate_all(self) -> None:
        self._stale.update(self._fetchers)

    def apply_event(self, event: str) -> tuple:
        keys = tuple(self._invalidations.get(event, ()))
        self.invalidate(*keys)
        return keys

    async def refresh(self) -> list[str]:
        """Re-fetch every stale registered set. A failed fetch leaves its set stale."""
        refreshed = []
        for key, fetcher in self._fetchers.items():
            if not self.is_stale(key):
                continue
            try:
                self.set(key, await fetcher())
                refreshed.append(key)
            except (httpx.HTTPError, OrderApiError) as exc:
                logger.warning("cache_refresh_failed", key=key, error=str(exc))
        return refreshed
