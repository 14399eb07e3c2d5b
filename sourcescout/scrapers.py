"""HTML search-page scrapers for the five sourcing sites without an API.

Each site is described by a :class:`SiteLayout`: the search URL, the card
selectors to try in order and the per-field selectors inside a card. Sites
reshuffle their markup often, so every selector is a comma-separated list of
fallbacks and a card missing a field just yields an empty string.
"""
from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import quote_plus, urljoin

import httpx
from bs4 import BeautifulSoup, Tag

from .config import settings
from .errors import ProviderFailure
from .models import CandidateKind, RawCandidate, SourceId
from .normalizer import parse_price_range
from .providers import PrimaryProvider
from .text import clean_text

logger = logging.getLogger(__name__)

_BLOCK_MARKERS = ("captcha", "punish", "slide to verify", "access denied")
_MOQ_IN_PRICE_RE = re.compile(r"(\d[\d,]*)\s*(?:Piece|Pieces|Set|Sets|Unit|Units)\b", re.IGNORECASE)
_MIC_ID_RE = re.compile(r"/product/([^/?#]+)")


@dataclass(frozen=True)
class SiteLayout:
    base_url: str
    search_path: str
    cards: tuple[str, ...]
    title: str
    price: str = '[class*="price"], .price'
    moq: str = '[class*="moq"], [class*="min-order"]'
    supplier: str = '[class*="company"], [class*="supplier"]'
    rating: str = ""
    badge: str = ""
    image: str = "img[data-src], img[src]"
    link: str = "a[href]"
    description: str = ""
    years: str = ""


def _first(card: Tag, selector: str) -> Optional[Tag]:
    if not selector:
        return None
    return card.select_one(selector)


def _text(card: Tag, selector: str) -> str:
    element = _first(card, selector)
    return clean_text(element.get_text(" ")) if element else ""


class HtmlScraper(PrimaryProvider):
    layout: SiteLayout

    def __init__(self, **kwargs) -> None:
        kwargs.setdefault(
            "headers",
            {
                "User-Agent": settings.scraper_user_agent,
                "Accept-Language": "en-US,en;q=0.9",
                "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            },
        )
        super().__init__(**kwargs)

    def search_url(self, query: str) -> str:
        return self.layout.base_url + self.layout.search_path.format(query=quote_plus(query))

    async def _get_page(self, query: str) -> str:
        url = self.search_url(query)
        logger.debug("scrape_navigate source=%s url=%s", self.source_id.value, url)
        response = await self.client.get(url)
        response.raise_for_status()
        html = response.text
        lowered = html[:5000].lower()
        if any(marker in lowered for marker in _BLOCK_MARKERS):
            raise ProviderFailure(self.source_id.value, "blocked by anti-bot page")
        return html

    async def _fetch(self, query: str, limit: int) -> List[RawCandidate]:
        html = await self._get_page(query)
        return self.parse_listing(html, limit)

    def find_cards(self, soup: BeautifulSoup) -> List[Tag]:
        for selector in self.layout.cards:
            found = soup.select(selector)
            if found:
                return found
        return []

    def parse_listing(self, html: str, limit: int) -> List[RawCandidate]:
        soup = BeautifulSoup(html, "html.parser")
        candidates: List[RawCandidate] = []
        for card in self.find_cards(soup):
            if len(candidates) >= limit:
                break
            candidate = self.parse_card(card)
            if candidate is not None:
                candidates.append(candidate)
        if not candidates:
            logger.info("scrape_no_cards source=%s", self.source_id.value)
        return candidates

    def _absolute(self, href: Optional[str]) -> Optional[str]:
        if not href:
            return None
        if href.startswith("//"):
            return "https:" + href
        return urljoin(self.layout.base_url, href)

    def _image(self, card: Tag) -> Optional[str]:
        element = _first(card, self.layout.image)
        if element is None:
            return None
        return self._absolute(element.get("data-src") or element.get("src"))

    def _link(self, card: Tag) -> Optional[str]:
        element = _first(card, self.layout.link)
        return self._absolute(element.get("href")) if element is not None else None

    def parse_card(self, card: Tag) -> Optional[RawCandidate]:
        layout = self.layout
        title = _text(card, layout.title)
        if not title:
            title_attr = _first(card, "a[title]")
            title = clean_text(title_attr.get("title")) if title_attr is not None else ""
        if not title:
            return None
        return RawCandidate(
            title=title,
            source_id=self.source_id,
            kind=CandidateKind.DOM,
            price_text=_text(card, layout.price),
            moq_text=_text(card, layout.moq),
            supplier_name=_text(card, layout.supplier),
            rating_text=_text(card, layout.rating),
            supplier_text=_text(card, layout.badge),
            image_url=self._image(card),
            product_url=self._link(card),
            description=_text(card, layout.description) or None,
            years_text=_text(card, layout.years),
        )


class AlibabaScraper(HtmlScraper):
    source_id = SourceId.ALIBABA
    name = "alibaba-scraper"
    layout = SiteLayout(
        base_url="https://www.alibaba.com",
        search_path="/trade/search?SearchText={query}",
        cards=(
            ".fy23-search-card",
            '[class*="search-card"]',
            ".organic-list-offer",
            '[class*="offer-item"]',
            ".list-gallery .item",
        ),
        title="h2 a, .search-card-e-title-wrapper a, h2",
        rating='[class*="rating"], [class*="review"]',
        badge='[class*="verified"], [class*="gold"], [class*="supplier-tag"]',
        link='a[href*="/product-detail/"], a[href*="com/trade/"], a[href]',
    )

    def parse_card(self, card: Tag) -> Optional[RawCandidate]:
        candidate = super().parse_card(card)
        if candidate is not None and not candidate.moq_text:
            # Alibaba folds the MOQ into the price block ("Min. order: 100 Pieces").
            match = _MOQ_IN_PRICE_RE.search(candidate.price_text)
            if match:
                candidate.moq_text = match.group(1)
        return candidate


class MadeInChinaScraper(HtmlScraper):
    source_id = SourceId.MADE_IN_CHINA
    name = "made-in-china-scraper"
    layout = SiteLayout(
        base_url="https://www.made-in-china.com",
        search_path=(
            "/productdirectory.do?word={query}&subaction=hunt&style=b&mode=and"
            "&comession=S&code=0&order=0"
        ),
        cards=(
            ".product-item",
            ".prod-list .prod-item",
            ".pro-info",
            ".product-info",
            "[data-product-id]",
            ".search-result-item",
        ),
        title="h2, h3, .title, .pro-name, .product-name",
        price=".price, .pro-price, .product-price, [class*=\"price\"]",
        moq='.moq, .min-order, [class*="moq"]',
        supplier='.company, .supplier, .factory, .manufacturer, [class*="company"]',
        rating='.rating, .score, [class*="rating"]',
        badge='.verified, .gold, .audited, [class*="verified"], [class*="audit"]',
        link='a[href*="/product/"], a[href*="made-in-china.com"]',
    )

    def __init__(self, *, max_retries: int | None = None, retry_delay: float | None = None, **kwargs) -> None:
        super().__init__(**kwargs)
        self._max_retries = max_retries if max_retries is not None else settings.scraper_max_retries
        self._retry_delay = retry_delay if retry_delay is not None else settings.scraper_retry_delay_seconds

    def find_cards(self, soup: BeautifulSoup) -> List[Tag]:
        cards = super().find_cards(soup)
        if cards:
            return cards
        # Fall back to whatever container wraps each distinct product link.
        seen: set[str] = set()
        for link in soup.select('a[href*="/product/"]'):
            href = link.get("href")
            if not href or href in seen:
                continue
            seen.add(href)
            container = link.find_parent(["div", "li", "article"])
            if container is not None:
                cards.append(container)
        return cards

    def parse_card(self, card: Tag) -> Optional[RawCandidate]:
        candidate = super().parse_card(card)
        if candidate is None:
            return None
        if candidate.product_url:
            match = _MIC_ID_RE.search(candidate.product_url)
            if match:
                candidate.external_id = match.group(1)
        if candidate.supplier_text and "audit" in candidate.supplier_text.lower():
            candidate.supplier_text = f"{candidate.supplier_text} Assessed"
        price_min, price_max = parse_price_range(candidate.price_text)
        if price_min is not None and price_max is not None and price_min != price_max:
            candidate.price_min, candidate.price_max = price_min, price_max
        return candidate

    async def _fetch(self, query: str, limit: int) -> List[RawCandidate]:
        attempt = 0
        while True:
            attempt += 1
            try:
                return await super()._fetch(query, limit)
            except (httpx.HTTPError, ProviderFailure) as exc:
                if attempt >= self._max_retries:
                    raise
                logger.warning(
                    "scrape_retry source=%s attempt=%s error=%s", self.source_id.value, attempt, exc
                )
                await asyncio.sleep(self._retry_delay * attempt)


class GlobalSourcesScraper(HtmlScraper):
    source_id = SourceId.GLOBAL_SOURCES
    name = "global-sources-scraper"
    layout = SiteLayout(
        base_url="https://www.globalsources.com",
        search_path="/searchList/products?query={query}",
        cards=(".product-item", ".search-result-item", '[class*="productCard"]'),
        title='h2, h3, .product-title, [class*="title"]',
        link='a[href*="/product/"], a[href*="/p/"]',
        badge='[class*="verified"], [class*="badge"]',
        years='[class*="years"], [class*="year"]',
    )


class TradeKoreaScraper(HtmlScraper):
    source_id = SourceId.TRADEKOREA
    name = "tradekorea-scraper"
    layout = SiteLayout(
        base_url="https://www.tradekorea.com",
        search_path="/product/product_search.html?search_text={query}",
        cards=(".product-item", ".prd-item", '[class*="productCard"]'),
        title='h3, h4, .prd-name, [class*="title"]',
        supplier='[class*="company"], [class*="seller"]',
        link='a[href*="/product/"]',
    )


class WholesaleCentralScraper(HtmlScraper):
    source_id = SourceId.WHOLESALE_CENTRAL
    name = "wholesale-central-scraper"
    layout = SiteLayout(
        base_url="https://www.wholesalecentral.com",
        search_path="/c/search.php?q={query}",
        cards=(".product", ".listing-item", '[class*="productCard"]', ".search-result"),
        title='h2, h3, h4, .title, [class*="name"]',
        supplier='[class*="company"], [class*="seller"], [class*="vendor"]',
        description='[class*="desc"], p',
    )
