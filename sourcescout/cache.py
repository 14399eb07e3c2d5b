"""Caching helpers with Redis primary and in-memory fallback.

Besides search responses the same backend holds CJ Dropshipping tokens and
the daily enhanced-search counters, so it also exposes an atomic ``incr``.
"""
from __future__ import annotations

import hashlib
import json
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Protocol

import redis

from .config import settings

logger = logging.getLogger(__name__)


class CacheBackend(Protocol):
    def get(self, key: str) -> Optional[Dict[str, Any]]: ...

    def set(self, key: str, value: Dict[str, Any], ttl: int) -> None: ...

    def incr(self, key: str, ttl: int) -> int: ...

    def get_int(self, key: str) -> int: ...


@dataclass
class RedisCache:
    client: redis.Redis

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        try:
            data = self.client.get(key)
        except redis.RedisError as exc:  # pragma: no cover - protective
            logger.warning("Redis get failed: %s", exc)
            return None
        if not data:
            return None
        try:
            return json.loads(data)
        except json.JSONDecodeError:
            return None

    def set(self, key: str, value: Dict[str, Any], ttl: int) -> None:
        try:
            self.client.setex(key, ttl, json.dumps(value))
        except redis.RedisError as exc:  # pragma: no cover - protective
            logger.warning("Redis set failed: %s", exc)

    def incr(self, key: str, ttl: int) -> int:
        try:
            value = int(self.client.incr(key))
            if value == 1:
                self.client.expire(key, ttl)
            return value
        except redis.RedisError as exc:  # pragma: no cover - protective
            logger.warning("Redis incr failed: %s", exc)
            return 0

    def get_int(self, key: str) -> int:
        try:
            data = self.client.get(key)
        except redis.RedisError as exc:  # pragma: no cover - protective
            logger.warning("Redis get failed: %s", exc)
            return 0
        try:
            return int(data) if data else 0
        except ValueError:
            return 0


class InMemoryCache:
    def __init__(self) -> None:
        self._store: Dict[str, tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def _live(self, key: str) -> Any:
        value = self._store.get(key)
        if not value:
            return None
        expires_at, payload = value
        if expires_at < time.time():
            self._store.pop(key, None)
            return None
        return payload

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            payload = self._live(key)
            return payload if isinstance(payload, dict) else None

    def set(self, key: str, value: Dict[str, Any], ttl: int) -> None:
        with self._lock:
            self._store[key] = (time.time() + ttl, value)

    def incr(self, key: str, ttl: int) -> int:
        with self._lock:
            current = self._live(key)
            if isinstance(current, int):
                expires_at = self._store[key][0]
                self._store[key] = (expires_at, current + 1)
                return current + 1
            self._store[key] = (time.time() + ttl, 1)
            return 1

    def get_int(self, key: str) -> int:
        with self._lock:
            current = self._live(key)
            return current if isinstance(current, int) else 0


def hash_key(prefix: str, parts: Iterable[Any]) -> str:
    digest = hashlib.sha1("|".join(str(part) for part in parts).encode("utf-8")).hexdigest()
    return f"{prefix}:{digest}"


_cache: CacheBackend | None = None


def get_cache() -> CacheBackend:
    global _cache
    if _cache is not None:
        return _cache
    try:
        client = redis.Redis(host=settings.redis_host, port=settings.redis_port, decode_responses=False)
        client.ping()
        logger.info("Using Redis cache at %s:%s", settings.redis_host, settings.redis_port)
        _cache = RedisCache(client)
    except redis.RedisError:
        logger.warning("Redis not available, using in-memory cache")
        _cache = InMemoryCache()
    return _cache
