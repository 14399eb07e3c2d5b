"""Provider contracts and the shared HTTP plumbing behind them.

A provider wraps one sourcing site or API. Providers are long-lived: the
composition root opens them once and closes them on shutdown, while every
``search`` call issues its own request inside the provider's session.

Expected failures (transport errors, blocked pages, malformed payloads) are
logged and turned into an empty list here. Anything else propagates and is
caught by the orchestrator, which treats it the same way.
"""
from __future__ import annotations

import logging
from time import perf_counter
from typing import List, Optional, Protocol, runtime_checkable

import httpx

from .config import settings
from .errors import ProviderFailure
from .models import RawCandidate, SourceId

logger = logging.getLogger(__name__)


@runtime_checkable
class ProviderAdapter(Protocol):
    source_id: SourceId

    async def search(self, query: str, limit: int) -> List[RawCandidate]: ...

    async def open(self) -> None: ...

    async def close(self) -> None: ...


@runtime_checkable
class EnrichmentProvider(Protocol):
    source_id: SourceId

    def is_enabled(self) -> bool: ...

    async def scrape(self, query: str, limit: int) -> List[RawCandidate]: ...

    async def open(self) -> None: ...

    async def close(self) -> None: ...


class HttpProvider:
    """Base class owning an ``httpx.AsyncClient`` session.

    Subclasses set ``source_id`` and implement :meth:`_fetch`. Tests pass an
    ``httpx.MockTransport`` through ``transport``.
    """

    source_id: SourceId
    name: str = "provider"

    def __init__(
        self,
        *,
        timeout: float | None = None,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout = timeout if timeout is not None else settings.provider_timeout_seconds
        self._headers = headers or {}
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def open(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                headers=self._headers,
                transport=self._transport,
                follow_redirects=True,
                limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
            )
            logger.debug("session_opened source=%s", self.source_id.value)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.debug("session_closed source=%s", self.source_id.value)

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError(f"{self.name} used before open()")
        return self._client

    async def _fetch(self, query: str, limit: int) -> List[RawCandidate]:
        raise NotImplementedError

    async def _run(self, query: str, limit: int) -> List[RawCandidate]:
        if limit <= 0:
            return []
        await self.open()
        start = perf_counter()
        logger.info("provider_start source=%s name=%s q=%r limit=%s", self.source_id.value, self.name, query, limit)
        try:
            candidates = await self._fetch(query, limit)
        except (httpx.HTTPError, ProviderFailure, ValueError, KeyError) as exc:
            elapsed_ms = (perf_counter() - start) * 1000
            logger.warning(
                "provider_failed source=%s name=%s q=%r elapsed=%.2fms error=%s",
                self.source_id.value,
                self.name,
                query,
                elapsed_ms,
                exc,
            )
            return []
        elapsed_ms = (perf_counter() - start) * 1000
        logger.info(
            "provider_success source=%s name=%s q=%r count=%s elapsed=%.2fms",
            self.source_id.value,
            self.name,
            query,
            len(candidates),
            elapsed_ms,
        )
        return candidates[:limit]


class PrimaryProvider(HttpProvider):
    async def search(self, query: str, limit: int) -> List[RawCandidate]:
        return await self._run(query, limit)
