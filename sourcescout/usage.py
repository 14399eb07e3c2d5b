"""Per-user search counters: monthly searches and daily Boss Mode runs."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Protocol

from .cache import CacheBackend

logger = logging.getLogger(__name__)

DAY_SECONDS = 24 * 60 * 60
MONTH_SECONDS = 31 * DAY_SECONDS


class UsageTracker(Protocol):
    def searches_this_month(self, user_id: str) -> int: ...

    def enhanced_searches_today(self, user_id: str) -> int: ...

    def record_search(self, user_id: str, enhanced: bool) -> int: ...


def _today() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d")


def _this_month() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m")


class CacheUsageTracker:
    """Counts searches per user in the shared cache backend.

    Plain searches are bucketed by UTC month, Boss Mode runs by UTC day.
    """

    def __init__(self, cache: CacheBackend) -> None:
        self._cache = cache

    @staticmethod
    def _key(user_id: str, kind: str, period: str) -> str:
        return f"usage:{kind}:{user_id}:{period}"

    def searches_this_month(self, user_id: str) -> int:
        return self._cache.get_int(self._key(user_id, "search", _this_month()))

    def enhanced_searches_today(self, user_id: str) -> int:
        return self._cache.get_int(self._key(user_id, "enhanced", _today()))

    def record_search(self, user_id: str, enhanced: bool) -> int:
        """Count one search and return the monthly total including it."""
        total = self._cache.incr(self._key(user_id, "search", _this_month()), MONTH_SECONDS)
        if enhanced:
            boss = self._cache.incr(self._key(user_id, "enhanced", _today()), DAY_SECONDS)
            logger.info("usage_recorded user=%s searches=%s enhanced=%s", user_id, total, boss)
        else:
            logger.debug("usage_recorded user=%s searches=%s", user_id, total)
        return total
