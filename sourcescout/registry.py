"""Composition root: builds providers and the search service once per process."""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Dict

from .cache import CacheBackend, get_cache
from .cj_client import CJDropshippingClient
from .coordinator import SearchCoordinator
from .enrichment import build_enrichment_providers
from .models import SourceId
from .orchestrator import AggregationOrchestrator
from .providers import ProviderAdapter
from .scrapers import (
    AlibabaScraper,
    GlobalSourcesScraper,
    MadeInChinaScraper,
    TradeKoreaScraper,
    WholesaleCentralScraper,
)
from .search_service import SearchService
from .usage import CacheUsageTracker

logger = logging.getLogger(__name__)


def build_providers(cache: CacheBackend) -> Dict[SourceId, ProviderAdapter]:
    providers: Dict[SourceId, ProviderAdapter] = {
        SourceId.ALIBABA: AlibabaScraper(),
        SourceId.MADE_IN_CHINA: MadeInChinaScraper(),
        SourceId.CJ_DROPSHIPPING: CJDropshippingClient(cache=cache),
        SourceId.GLOBAL_SOURCES: GlobalSourcesScraper(),
        SourceId.TRADEKOREA: TradeKoreaScraper(),
        SourceId.WHOLESALE_CENTRAL: WholesaleCentralScraper(),
    }
    if not providers[SourceId.CJ_DROPSHIPPING].is_configured():
        logger.warning("CJ Dropshipping API key not configured; the source will return no results")
    return providers


def build_service(cache: CacheBackend) -> SearchService:
    orchestrator = AggregationOrchestrator(build_providers(cache), build_enrichment_providers())
    return SearchService(SearchCoordinator(orchestrator), usage=CacheUsageTracker(cache), cache=cache)


@lru_cache(maxsize=1)
def get_search_service() -> SearchService:
    logger.info("Building search service")
    return build_service(get_cache())
