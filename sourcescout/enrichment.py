"""AI-assisted second extraction pass used by enhanced ("Boss Mode") searches.

JigsawStack's ``/ai/scrape`` endpoint loads a site's search page itself and
answers one list per element prompt. The lists are index-aligned, so record
``i`` is assembled from the ``i``-th entry of each list. Sites block this
pathway often; its output only ever supplements the primary scrape.
"""
from __future__ import annotations

import logging
from typing import Dict, List
from urllib.parse import quote, quote_plus

from .config import settings
from .errors import ProviderFailure
from .models import CandidateKind, RawCandidate, SourceId
from .normalizer import parse_price_range
from .providers import HttpProvider

logger = logging.getLogger(__name__)

ELEMENT_PROMPTS = [
    "product_titles",
    "product_prices",
    "minimum_order_quantities",
    "supplier_names",
    "supplier_ratings",
]

# Search pages the AI scraper handles; Made-in-China works best.
ENRICHMENT_TARGETS: Dict[SourceId, str] = {
    SourceId.MADE_IN_CHINA: "https://www.made-in-china.com/products-search/hot-china-products/{path}.html",
    SourceId.ALIBABA: "https://www.alibaba.com/trade/search?SearchText={query}",
}


def parse_context(context: Dict[str, List[str]], source_id: SourceId, limit: int) -> List[RawCandidate]:
    titles = context.get("product_titles") or []
    prices = context.get("product_prices") or []
    moqs = context.get("minimum_order_quantities") or []
    suppliers = context.get("supplier_names") or []
    ratings = context.get("supplier_ratings") or []

    def at(values: List[str], index: int) -> str:
        return (values[index] or "").strip() if index < len(values) else ""

    candidates: List[RawCandidate] = []
    for index in range(min(len(titles), limit)):
        title = at(titles, index)
        if not title:
            continue
        price_text = at(prices, index)
        price_min, price_max = parse_price_range(price_text)
        candidates.append(
            RawCandidate(
                title=title,
                source_id=source_id,
                kind=CandidateKind.AI,
                price_text=price_text,
                price_min=price_min,
                price_max=price_max,
                moq_text=at(moqs, index),
                supplier_name=at(suppliers, index),
                rating_text=at(ratings, index),
            )
        )
    return candidates


class AIScrapeProvider(HttpProvider):
    name = "jigsawstack"

    def __init__(
        self,
        source_id: SourceId,
        *,
        api_key: str | None = None,
        api_url: str | None = None,
        disable_logging: bool | None = None,
        **kwargs,
    ) -> None:
        if source_id not in ENRICHMENT_TARGETS:
            raise ValueError(f"No AI scrape target for {source_id.value}")
        self.source_id = source_id
        self._api_key = settings.jigsawstack_api_key if api_key is None else api_key
        self._api_url = (api_url or settings.jigsawstack_api_url).rstrip("/")
        no_log = settings.jigsawstack_disable_logging if disable_logging is None else disable_logging
        headers = {"Content-Type": "application/json", "x-api-key": self._api_key}
        if no_log:
            headers["x-jigsaw-no-request-log"] = "true"
        kwargs.setdefault("headers", headers)
        super().__init__(**kwargs)

    def is_enabled(self) -> bool:
        return bool(self._api_key)

    def target_url(self, query: str) -> str:
        return ENRICHMENT_TARGETS[self.source_id].format(query=quote_plus(query), path=quote(query))

    async def scrape(self, query: str, limit: int) -> List[RawCandidate]:
        if not self.is_enabled():
            return []
        return await self._run(query, limit)

    async def _fetch(self, query: str, limit: int) -> List[RawCandidate]:
        response = await self.client.post(
            f"{self._api_url}/ai/scrape",
            json={"url": self.target_url(query), "element_prompts": ELEMENT_PROMPTS},
        )
        response.raise_for_status()
        result = response.json()
        if not result.get("success") or not result.get("context"):
            raise ProviderFailure(self.source_id.value, result.get("error") or "AI scrape returned no data")
        usage = result.get("_usage") or {}
        logger.debug("ai_scrape_usage source=%s tokens=%s", self.source_id.value, usage.get("total_tokens"))
        return parse_context(result["context"], self.source_id, limit)


def build_enrichment_providers(**kwargs) -> Dict[SourceId, AIScrapeProvider]:
    providers = {source: AIScrapeProvider(source, **kwargs) for source in ENRICHMENT_TARGETS}
    if not any(provider.is_enabled() for provider in providers.values()):
        logger.warning("JigsawStack API key not configured; enhanced searches run without enrichment")
    return providers
