"""Calling layer around the coordinator: tier checks, quotas and caching."""
from __future__ import annotations

import logging
from time import perf_counter
from typing import Iterable, List

from pydantic import ValidationError

from .cache import CacheBackend, hash_key
from .config import settings
from .coordinator import SearchCoordinator, new_request_id
from .errors import FeatureUnavailable, QuotaExceeded, ValidationFailure
from .models import SearchRequest, SearchResponse, SourceId, TierPolicy
from .tiers import filter_sources, get_tier_policy, is_within_limit, remaining
from .usage import UsageTracker

logger = logging.getLogger(__name__)

ENHANCED_FEATURE = "enhancedMode"


def build_request(query: str, sources: Iterable[str] | None = None, enhanced: bool = False) -> SearchRequest:
    """Validate raw input into a :class:`SearchRequest` or raise ``ValidationFailure``."""
    try:
        return SearchRequest(query=query, sources=list(sources) if sources else None, enhanced=enhanced)
    except ValidationError as exc:
        first = exc.errors()[0]
        message = str(first.get("msg", "Invalid search request")).removeprefix("Value error, ")
        raise ValidationFailure(message) from exc


def cache_key(query: str, sources: List[SourceId], tier: str, enhanced: bool) -> str:
    return hash_key("search", [query.lower(), ",".join(source.value for source in sources), tier, int(enhanced)])


class SearchService:
    def __init__(
        self,
        coordinator: SearchCoordinator,
        usage: UsageTracker | None = None,
        cache: CacheBackend | None = None,
        cache_ttl: int | None = None,
    ) -> None:
        self.coordinator = coordinator
        self._usage = usage
        self._cache = cache
        self._cache_ttl = cache_ttl if cache_ttl is not None else settings.cache_ttl_seconds

    def check_search_quota(self, policy: TierPolicy, user_id: str | None) -> None:
        if not user_id or self._usage is None:
            return
        used = self._usage.searches_this_month(user_id)
        if not is_within_limit(policy.monthly_search_limit, used):
            logger.info("quota_exceeded user=%s tier=%s monthly_used=%s", user_id, policy.tier, used)
            raise QuotaExceeded(
                f"Monthly search limit reached ({policy.monthly_search_limit} searches)",
                policy.monthly_search_limit,
                used,
                policy.tier,
            )

    def check_enhanced(self, policy: TierPolicy, user_id: str | None) -> None:
        if not policy.enhanced_allowed:
            raise FeatureUnavailable(
                f"Boss Mode is not available on the {policy.tier} plan", ENHANCED_FEATURE, policy.tier
            )
        if not user_id:
            raise FeatureUnavailable("Boss Mode requires a signed-in account", ENHANCED_FEATURE, policy.tier)
        if self._usage is None:
            return
        used = self._usage.enhanced_searches_today(user_id)
        if not is_within_limit(policy.enhanced_daily_limit, used):
            logger.info("quota_exceeded user=%s tier=%s used=%s", user_id, policy.tier, used)
            raise QuotaExceeded(
                f"Daily Boss Mode limit reached ({policy.enhanced_daily_limit} searches)",
                policy.enhanced_daily_limit,
                used,
                policy.tier,
            )

    async def run(self, request: SearchRequest, tier: str | None = None, user_id: str | None = None) -> SearchResponse:
        policy = get_tier_policy(tier)
        self.check_search_quota(policy, user_id)
        if request.enhanced:
            self.check_enhanced(policy, user_id)
        sources = filter_sources(request.sources, policy)

        key = cache_key(request.query, sources, policy.tier, request.enhanced)
        response = self._cached(key, request.query)
        if response is None:
            response = await self.coordinator.search(request.query, sources, policy, request.enhanced)
            if self._cache is not None and response.total_results:
                self._cache.set(key, response.model_dump(mode="json", by_alias=True), self._cache_ttl)
                logger.debug("cache_store q=%r ttl=%s", request.query, self._cache_ttl)

        if user_id and self._usage is not None:
            used = self._usage.record_search(user_id, response.enhanced)
            response = response.model_copy(
                update={"remaining_searches": remaining(policy.monthly_search_limit, used)}
            )
        return response

    def _cached(self, key: str, query: str) -> SearchResponse | None:
        if self._cache is None:
            return None
        start = perf_counter()
        cached = self._cache.get(key)
        if cached is None:
            return None
        response = SearchResponse.model_validate(cached).model_copy(update={"request_id": new_request_id()})
        logger.info("timing: total=%.2fms cache_hit=1 q=%r", (perf_counter() - start) * 1000, query)
        return response
