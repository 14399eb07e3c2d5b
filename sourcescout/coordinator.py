"""Top-level search pipeline: aggregate, merge, shape."""
from __future__ import annotations

import logging
import secrets
import time
from time import perf_counter
from typing import Sequence

from .errors import TotalFailure
from .merge import MatchAndMergeEngine
from .models import Elapsed, EnhancementStats, SearchResponse, SourceId, TierPolicy
from .orchestrator import AggregationOrchestrator
from .shaper import TierPolicyShaper
from .tiers import filter_sources

logger = logging.getLogger(__name__)


def new_request_id() -> str:
    return f"search-{int(time.time() * 1000)}-{secrets.token_hex(4)}"


class SearchCoordinator:
    """Runs one search end to end.

    Empty results from every provider is a normal, successful response. Only
    an exception escaping the pipeline itself is reported, as
    :class:`~sourcescout.errors.TotalFailure`.
    """

    def __init__(
        self,
        orchestrator: AggregationOrchestrator,
        merger: MatchAndMergeEngine | None = None,
        shaper: TierPolicyShaper | None = None,
    ) -> None:
        self.orchestrator = orchestrator
        self._merger = merger or MatchAndMergeEngine()
        self._shaper = shaper or TierPolicyShaper()

    async def search(
        self,
        query: str,
        sources: Sequence[SourceId],
        policy: TierPolicy,
        enhanced: bool = False,
        request_id: str | None = None,
    ) -> SearchResponse:
        request_id = request_id or new_request_id()
        sources = filter_sources(sources, policy)
        enhanced = enhanced and policy.enhanced_allowed
        try:
            return await self._search(query, sources, policy, enhanced, request_id)
        except Exception as exc:
            logger.exception("search_failed request_id=%s q=%r error=%s", request_id, query, exc)
            raise TotalFailure(request_id) from exc

    async def _search(
        self,
        query: str,
        sources: Sequence[SourceId],
        policy: TierPolicy,
        enhanced: bool,
        request_id: str,
    ) -> SearchResponse:
        t0 = perf_counter()
        aggregation = await self.orchestrator.aggregate(query, sources, enhanced)
        t1 = perf_counter()

        primary = aggregation.primary_products
        enhancement = None
        if enhanced:
            merged, _ = self._merger.merge(primary, aggregation.enrichment)
            enhancement = EnhancementStats(
                primary_count=len(primary),
                enrichment_count=len(aggregation.enrichment),
            )
        else:
            merged = primary
        t2 = perf_counter()

        shaped = self._shaper.shape(merged, policy)
        t3 = perf_counter()

        elapsed = Elapsed(
            total_ms=(t3 - t0) * 1000,
            primary_ms=aggregation.primary_ms,
            enrichment_ms=aggregation.enrichment_ms,
            merge_ms=(t2 - t1) * 1000,
            shape_ms=(t3 - t2) * 1000,
        )
        logger.info(
            "timing: total=%.2fms aggregate=%.2fms merge=%.2fms shape=%.2fms q=%r tier=%s enhanced=%s results=%s request_id=%s",
            elapsed.total_ms,
            (t1 - t0) * 1000,
            elapsed.merge_ms,
            elapsed.shape_ms,
            query,
            policy.tier,
            int(enhanced),
            shaped.total_results,
            request_id,
        )
        return SearchResponse(
            query=query,
            request_id=request_id,
            products=shaped.products,
            total_results=shaped.total_results,
            per_source_counts=shaped.per_source_counts,
            elapsed=elapsed,
            enhanced=enhanced,
            enhancement=enhancement,
        )
