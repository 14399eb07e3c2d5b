"""HTML scrapers against canned search pages."""

import httpx
import pytest

from sourcescout.models import SourceId
from sourcescout.normalizer import normalize_batch
from sourcescout.scrapers import AlibabaScraper, MadeInChinaScraper, WholesaleCentralScraper

ALIBABA_PAGE = """
<html><body>
<div class="fy23-search-card">
  <img data-src="//s.alicdn.com/ice.jpg">
  <h2><a href="//www.alibaba.com/product-detail/Ice-Maker_1600.html?spm=a2700">Commercial Ice Maker 50kg</a></h2>
  <div class="search-card-e-price-main">$120.00-$180.00</div>
  <div class="moq-number">Min. order: 2 Units</div>
  <a class="search-card-e-company" href="/company">Ningbo Cold Co.</a>
  <span class="search-card-e-review">4.8/5.0 (12)</span>
  <span class="verified-badge">Gold Supplier 6 yrs</span>
</div>
<div class="fy23-search-card">
  <h2><a href="//www.alibaba.com/product-detail/Ice-Tray_1601.html">Silicone Ice Tray</a></h2>
  <div class="search-card-e-price-main">$0.45</div>
</div>
<div class="fy23-search-card"><span class="search-card-e-price-main">$9</span></div>
</body></html>
"""

MIC_PAGE = """
<html><body>
<div class="product-item">
  <h2 class="product-name">
    <a href="https://www.made-in-china.com/product/AbCd123/China-Ice-Maker.html?from=search">Ice Maker 100kg</a>
  </h2>
  <div class="price">US$7.60 - 7.90 / Piece</div>
  <div class="moq">500 Pieces (MOQ)</div>
  <div class="company">Cixi Home Appliances</div>
  <div class="audited">Audited Supplier</div>
</div>
</body></html>
"""

MIC_FALLBACK_PAGE = """
<html><body><ul>
  <li><a href="/product/Zz9/Ice-Tray.html" title="Fallback Ice Tray">img</a><span class="price">$2</span></li>
</ul></body></html>
"""


def _transport(pages):
    """Serve the queued responses in order and record every request."""

    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        status, body = pages[min(len(requests), len(pages)) - 1]
        return httpx.Response(status, text=body)

    return httpx.MockTransport(handler), requests


@pytest.mark.asyncio
async def test_alibaba_listing_parsed_into_candidates():
    transport, requests = _transport([(200, ALIBABA_PAGE)])
    scraper = AlibabaScraper(transport=transport)

    candidates = await scraper.search("ice maker", 10)
    await scraper.close()

    assert requests[0].url.params["SearchText"] == "ice maker"
    assert [c.title for c in candidates] == ["Commercial Ice Maker 50kg", "Silicone Ice Tray"]
    first = candidates[0]
    assert first.price_text == "$120.00-$180.00"
    assert first.supplier_name == "Ningbo Cold Co."
    assert first.image_url == "https://s.alicdn.com/ice.jpg"
    assert first.product_url.startswith("https://www.alibaba.com/product-detail/")

    product = normalize_batch(candidates)[0]
    assert product.price == 150.0
    assert product.min_order_quantity == 2
    assert product.supplier_rating == pytest.approx(4.8)
    assert product.supplier_transaction_level.value == "Gold"
    assert product.supplier_years_in_business == 6


@pytest.mark.asyncio
async def test_limit_caps_parsed_cards():
    transport, _ = _transport([(200, ALIBABA_PAGE)])
    scraper = AlibabaScraper(transport=transport)

    assert len(await scraper.search("ice maker", 1)) == 1
    assert await scraper.search("ice maker", 0) == []


@pytest.mark.asyncio
async def test_blocked_or_failing_pages_yield_nothing():
    """Anti-bot interstitials and HTTP errors become an empty result."""

    blocked, _ = _transport([(200, "<html><title>Captcha Interception</title></html>")])
    failing, _ = _transport([(503, "unavailable")])

    assert await AlibabaScraper(transport=blocked).search("ice maker", 5) == []
    assert await WholesaleCentralScraper(transport=failing).search("ice maker", 5) == []


@pytest.mark.asyncio
async def test_made_in_china_retries_then_parses():
    transport, requests = _transport([(503, ""), (503, ""), (200, MIC_PAGE)])
    scraper = MadeInChinaScraper(transport=transport, max_retries=3, retry_delay=0)

    (candidate,) = await scraper.search("ice maker", 5)

    assert len(requests) == 3
    assert candidate.external_id == "AbCd123"
    assert (candidate.price_min, candidate.price_max) == (7.6, 7.9)

    (product,) = normalize_batch([candidate])
    assert product.id == "made-in-china-AbCd123"
    assert product.min_order_quantity == 500
    assert product.supplier_transaction_level.value == "Assessed"


@pytest.mark.asyncio
async def test_made_in_china_gives_up_after_max_retries():
    transport, requests = _transport([(503, "")])
    scraper = MadeInChinaScraper(transport=transport, max_retries=2, retry_delay=0)

    assert await scraper.search("ice maker", 5) == []
    assert len(requests) == 2


def test_made_in_china_falls_back_to_product_links():
    scraper = MadeInChinaScraper()

    (candidate,) = scraper.parse_listing(MIC_FALLBACK_PAGE, 5)

    assert candidate.title == "Fallback Ice Tray"
    assert candidate.source_id is SourceId.MADE_IN_CHINA
    assert candidate.product_url == "https://www.made-in-china.com/product/Zz9/Ice-Tray.html"
    assert candidate.external_id == "Zz9"
