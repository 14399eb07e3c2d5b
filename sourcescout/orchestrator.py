"""Concurrent fan-out to primary and enrichment providers.

Every provider call runs as its own task under an orchestrator-level
deadline, so one hung site cannot stall the search. The join is
``asyncio.gather(..., return_exceptions=True)``: a provider that raises or
times out is logged and counts as zero results, and the others are kept.
Primary and enrichment passes run side by side, so wall time is roughly the
slower of the two.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from time import perf_counter
from typing import Awaitable, Callable, Dict, List, Mapping, Optional, Sequence

from .config import settings
from .models import Product, Provenance, RawCandidate, SourceId
from .normalizer import normalize_batch
from .providers import EnrichmentProvider, ProviderAdapter

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    IDLE = "idle"
    FAN_OUT_PRIMARY = "fan_out_primary"
    FAN_OUT_ENRICHMENT = "fan_out_enrichment"
    COLLECTING = "collecting"
    DONE = "done"


@dataclass
class ProviderRun:
    source: SourceId
    pathway: Provenance
    count: int = 0
    elapsed_ms: float = 0.0
    ok: bool = True
    error: Optional[str] = None


@dataclass
class AggregationResult:
    primary: Dict[SourceId, List[Product]] = field(default_factory=dict)
    enrichment: List[Product] = field(default_factory=list)
    runs: List[ProviderRun] = field(default_factory=list)
    primary_ms: float = 0.0
    enrichment_ms: Optional[float] = None
    enhanced: bool = False
    phases: List[Phase] = field(default_factory=lambda: [Phase.IDLE])

    def advance(self, phase: Phase) -> None:
        self.phases.append(phase)
        logger.debug("aggregation_phase phase=%s", phase.value)

    @property
    def primary_products(self) -> List[Product]:
        return [product for products in self.primary.values() for product in products]

    @property
    def failures(self) -> List[ProviderRun]:
        return [run for run in self.runs if not run.ok]


class AggregationOrchestrator:
    def __init__(
        self,
        providers: Mapping[SourceId, ProviderAdapter],
        enrichers: Mapping[SourceId, EnrichmentProvider] | None = None,
        *,
        limit: int | None = None,
        provider_deadline: float | None = None,
        enrichment_deadline: float | None = None,
    ) -> None:
        self._providers = dict(providers)
        self._enrichers = dict(enrichers or {})
        self._limit = limit if limit is not None else settings.provider_result_limit
        self._provider_deadline = (
            provider_deadline if provider_deadline is not None else settings.provider_deadline_seconds
        )
        self._enrichment_deadline = (
            enrichment_deadline if enrichment_deadline is not None else settings.enrichment_deadline_seconds
        )

    @property
    def providers(self) -> Dict[SourceId, ProviderAdapter]:
        return self._providers

    @property
    def enrichers(self) -> Dict[SourceId, EnrichmentProvider]:
        return self._enrichers

    def _sessions(self) -> list:
        return [*self._providers.values(), *self._enrichers.values()]

    async def open(self) -> None:
        await asyncio.gather(*(provider.open() for provider in self._sessions()))
        logger.info("providers_opened primary=%s enrichment=%s", len(self._providers), len(self._enrichers))

    async def close(self) -> None:
        outcomes = await asyncio.gather(*(provider.close() for provider in self._sessions()), return_exceptions=True)
        for outcome in outcomes:
            if isinstance(outcome, Exception):
                logger.warning("provider_close_failed error=%s", outcome)
        logger.info("providers_closed")

    def enrichment_available(self, sources: Sequence[SourceId]) -> List[SourceId]:
        return [source for source in sources if source in self._enrichers and self._enrichers[source].is_enabled()]

    async def _normalized(
        self,
        run: ProviderRun,
        call: Callable[[], Awaitable[List[RawCandidate]]],
        deadline: float,
    ) -> List[Product]:
        start = perf_counter()
        try:
            raw = await asyncio.wait_for(call(), timeout=deadline)
            if len(raw) > self._limit:
                logger.warning(
                    "provider_over_limit source=%s pathway=%s count=%s limit=%s",
                    run.source.value,
                    run.pathway.value,
                    len(raw),
                    self._limit,
                )
                raw = raw[: self._limit]
            return normalize_batch(raw, run.pathway)
        finally:
            run.elapsed_ms = (perf_counter() - start) * 1000

    async def _fan_out(
        self,
        query: str,
        calls: Dict[SourceId, Callable[[], Awaitable[List[RawCandidate]]]],
        pathway: Provenance,
        deadline: float,
    ) -> tuple[Dict[SourceId, List[Product]], List[ProviderRun]]:
        runs = [ProviderRun(source=source, pathway=pathway) for source in calls]
        outcomes = await asyncio.gather(
            *(self._normalized(run, calls[run.source], deadline) for run in runs),
            return_exceptions=True,
        )
        collected: Dict[SourceId, List[Product]] = {}
        for run, outcome in zip(runs, outcomes):
            if isinstance(outcome, asyncio.TimeoutError):
                run.ok, run.error = False, f"timeout after {deadline:.1f}s"
                logger.warning(
                    "provider_timeout source=%s pathway=%s q=%r deadline=%.1fs",
                    run.source.value,
                    pathway.value,
                    query,
                    deadline,
                )
                outcome = []
            elif isinstance(outcome, Exception):
                run.ok, run.error = False, f"{type(outcome).__name__}: {outcome}"
                logger.error(
                    "provider_error source=%s pathway=%s q=%r error=%s",
                    run.source.value,
                    pathway.value,
                    query,
                    run.error,
                    exc_info=outcome,
                )
                outcome = []
            elif isinstance(outcome, BaseException):
                raise outcome
            run.count = len(outcome)
            collected[run.source] = outcome
        return collected, runs

    async def _primary_pass(self, query: str, sources: Sequence[SourceId], result: AggregationResult) -> None:
        start = perf_counter()
        calls = {
            source: (lambda provider=self._providers[source]: provider.search(query, self._limit))
            for source in sources
        }
        result.primary, runs = await self._fan_out(query, calls, Provenance.PRIMARY, self._provider_deadline)
        result.runs.extend(runs)
        result.primary_ms = (perf_counter() - start) * 1000

    async def _enrichment_pass(self, query: str, sources: Sequence[SourceId], result: AggregationResult) -> None:
        start = perf_counter()
        calls = {
            source: (lambda enricher=self._enrichers[source]: enricher.scrape(query, self._limit))
            for source in sources
        }
        collected, runs = await self._fan_out(query, calls, Provenance.ENRICHMENT, self._enrichment_deadline)
        result.enrichment = [product for products in collected.values() for product in products]
        result.runs.extend(runs)
        result.enrichment_ms = (perf_counter() - start) * 1000

    async def aggregate(self, query: str, sources: Sequence[SourceId], enhanced: bool = False) -> AggregationResult:
        result = AggregationResult(enhanced=enhanced)
        primary_sources = [source for source in sources if source in self._providers]
        for source in sources:
            if source not in self._providers:
                logger.warning("provider_missing source=%s", source.value)

        passes = [self._primary_pass(query, primary_sources, result)]
        result.advance(Phase.FAN_OUT_PRIMARY)
        if enhanced:
            enrichment_sources = self.enrichment_available(sources)
            if enrichment_sources:
                passes.append(self._enrichment_pass(query, enrichment_sources, result))
                result.advance(Phase.FAN_OUT_ENRICHMENT)
            else:
                logger.info("enrichment_skipped q=%r reason=not_configured", query)

        result.advance(Phase.COLLECTING)
        await asyncio.gather(*passes)
        result.advance(Phase.DONE)

        logger.info(
            "aggregation: q=%r primary=%s enrichment=%s failures=%s primary_ms=%.2f enrichment_ms=%s",
            query,
            sum(len(products) for products in result.primary.values()),
            len(result.enrichment),
            [run.source.value for run in result.failures],
            result.primary_ms,
            f"{result.enrichment_ms:.2f}" if result.enrichment_ms is not None else "-",
        )
        return result
