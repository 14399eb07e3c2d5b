"""Shared fakes for provider-facing tests."""
from __future__ import annotations

import asyncio
from typing import List

import pytest

from sourcescout.cache import InMemoryCache
from sourcescout.models import CandidateKind, RawCandidate, SourceId


class FakeProvider:
    def __init__(self, source_id: SourceId, candidates=None, error: Exception | None = None, delay: float = 0.0):
        self.source_id = source_id
        self.candidates: List[RawCandidate] = list(candidates or [])
        self.error = error
        self.delay = delay
        self.calls: List[tuple[str, int]] = []
        self.opened = False
        self.closed = False

    async def search(self, query: str, limit: int) -> List[RawCandidate]:
        self.calls.append((query, limit))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.candidates[:limit]

    async def open(self) -> None:
        self.opened = True

    async def close(self) -> None:
        self.closed = True


class FakeEnricher(FakeProvider):
    def __init__(self, source_id: SourceId, candidates=None, enabled: bool = True, **kwargs):
        super().__init__(source_id, candidates, **kwargs)
        self.enabled = enabled

    def is_enabled(self) -> bool:
        return self.enabled

    async def scrape(self, query: str, limit: int) -> List[RawCandidate]:
        return await self.search(query, limit)


def raw(title: str, source: SourceId = SourceId.ALIBABA, **fields) -> RawCandidate:
    return RawCandidate(title=title, source_id=source, **fields)


def ai_raw(title: str, source: SourceId = SourceId.ALIBABA, **fields) -> RawCandidate:
    return RawCandidate(title=title, source_id=source, kind=CandidateKind.AI, **fields)


@pytest.fixture
def memory_cache() -> InMemoryCache:
    return InMemoryCache()
