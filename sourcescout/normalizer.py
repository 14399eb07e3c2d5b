"""Map provider-native :class:`RawCandidate` records onto :class:`Product`.

Parsing is forgiving. A candidate without a usable title is
dropped; every other field that fails to parse simply ends up absent so a
single odd listing never aborts the batch.

Rules:

* price: all numeric substrings of the price text; two or more -> mean of the
  first and last, one -> that value, none -> absent.
* MOQ: first integer in the MOQ text, default 1.
* rating: first decimal; a percentage (``"96"``, ``"96%"``) is divided by 20,
  anything else is clamped to the 0-5 scale.
* response rate: an ``N%`` figure, clamped to 0-100.
* transaction level: first of Gold/Silver/Assessed/Premium in supplier text.
"""
from __future__ import annotations

import logging
import re
import time
from itertools import count
from typing import Iterable, List, Optional

from pydantic import ValidationError

from .models import CandidateKind, Product, Provenance, RawCandidate, SourceId, TransactionLevel
from .text import clean_text

logger = logging.getLogger(__name__)

MIN_TITLE_LENGTH = 3
RATING_SCALE_MAX = 5.0
# Bare numbers above this are read as a 0-100 score rather than stars.
PERCENT_SCALE_THRESHOLD = 10.0

SUPPLIER_PLACEHOLDERS: dict[SourceId, str] = {
    SourceId.ALIBABA: "Alibaba Supplier",
    SourceId.MADE_IN_CHINA: "Made-in-China Supplier",
    SourceId.CJ_DROPSHIPPING: "CJ Dropshipping",
    SourceId.GLOBAL_SOURCES: "Global Sources Supplier",
    SourceId.TRADEKOREA: "Korean Supplier",
    SourceId.WHOLESALE_CENTRAL: "US Wholesaler",
}

_NUMBER_RE = re.compile(r"\d+(?:,\d{3})*(?:\.\d+)?|\.\d+")
_INTEGER_RE = re.compile(r"\d+")
_RATING_RE = re.compile(r"(\d+(?:\.\d+)?)\s*(%)?")
_PERCENT_RE = re.compile(r"(\d+(?:\.\d+)?)\s*%")
_YEARS_RE = re.compile(r"(\d+)\s*(?:\+\s*)?(?:yrs?|years?)\b", re.IGNORECASE)
_TRANSACTION_LEVELS = (
    TransactionLevel.GOLD,
    TransactionLevel.SILVER,
    TransactionLevel.ASSESSED,
    TransactionLevel.PREMIUM,
)

_sequence = count(1)


def _to_float(token: str) -> Optional[float]:
    try:
        return float(token.replace(",", ""))
    except ValueError:
        return None


def parse_price(price_text: str | None) -> Optional[float]:
    """``"$5.00-$10.00 / Piece"`` -> 7.5, ``"$12"`` -> 12, ``""`` -> None."""
    if not price_text:
        return None
    numbers = [value for value in (_to_float(tok) for tok in _NUMBER_RE.findall(price_text)) if value is not None]
    if not numbers:
        return None
    if len(numbers) > 1:
        return (numbers[0] + numbers[-1]) / 2
    return numbers[0]


def parse_price_range(price_text: str | None) -> tuple[Optional[float], Optional[float]]:
    """Lower and upper bound of a ``"US$7.60 - 7.90"`` style range."""
    if not price_text:
        return None, None
    cleaned = price_text.replace("US$", "").replace("$", "")
    match = re.search(r"(\d+(?:,\d{3})*(?:\.\d+)?)\s*[-–~]\s*(\d+(?:,\d{3})*(?:\.\d+)?)", cleaned)
    if match:
        return _to_float(match.group(1)), _to_float(match.group(2))
    single = parse_price(cleaned)
    return single, single


def parse_moq(moq_text: str | None) -> Optional[int]:
    """First integer in the text, or None when the source gave nothing usable."""
    if not moq_text:
        return None
    match = _INTEGER_RE.search(moq_text.replace(",", ""))
    if not match:
        return None
    return max(int(match.group(0)), 1)


def parse_rating(rating_text: str | None) -> Optional[float]:
    if not rating_text:
        return None
    match = _RATING_RE.search(rating_text)
    if not match:
        return None
    value = float(match.group(1))
    if match.group(2) or value > PERCENT_SCALE_THRESHOLD:
        value = value / 20
    return min(max(value, 0.0), RATING_SCALE_MAX)


def parse_response_rate(*texts: str | None) -> Optional[float]:
    """First ``N%`` figure across the given texts, clamped to 0-100."""
    for text in texts:
        if not text:
            continue
        match = _PERCENT_RE.search(text)
        if match:
            return min(max(float(match.group(1)), 0.0), 100.0)
    return None


def parse_transaction_level(supplier_text: str | None) -> Optional[TransactionLevel]:
    if not supplier_text:
        return None
    for level in _TRANSACTION_LEVELS:
        if level.value in supplier_text:
            return level
    return None


def parse_years_in_business(*texts: str | None) -> Optional[int]:
    for text in texts:
        if not text:
            continue
        match = _YEARS_RE.search(text)
        if match:
            return int(match.group(1))
    return None


def _product_id(raw: RawCandidate, sequence: int) -> str:
    prefix = raw.source_id.value
    if raw.kind is CandidateKind.AI:
        prefix = f"{prefix}-ai"
    if raw.external_id:
        return f"{prefix}-{raw.external_id}"
    return f"{prefix}-{int(time.time() * 1000)}-{sequence}"


def normalize_candidate(
    raw: RawCandidate,
    provenance: Provenance = Provenance.PRIMARY,
) -> Optional[Product]:
    """Return a canonical product, or None when the title is unusable."""

    title = clean_text(raw.title)
    if len(title) < MIN_TITLE_LENGTH:
        logger.debug("normalize_drop source=%s title=%r", raw.source_id.value, raw.title)
        return None

    price = parse_price(raw.price_text)
    price_min, price_max = raw.price_min, raw.price_max
    if price is None and price_min is not None and price_max is not None:
        price = (price_min + price_max) / 2

    moq = parse_moq(raw.moq_text)
    supplier_name = clean_text(raw.supplier_name)
    supplier_text = " ".join(part for part in (raw.supplier_text, raw.supplier_name) if part)

    try:
        return Product(
            id=_product_id(raw, next(_sequence)),
            title=title,
            description=clean_text(raw.description) or None,
            price=price,
            price_min=price_min,
            price_max=price_max,
            min_order_quantity=moq or 1,
            image_url=raw.image_url or None,
            product_url=raw.product_url or None,
            supplier_name=supplier_name or SUPPLIER_PLACEHOLDERS[raw.source_id],
            supplier_rating=parse_rating(raw.rating_text),
            supplier_response_rate=parse_response_rate(raw.rating_text, supplier_text),
            supplier_transaction_level=parse_transaction_level(supplier_text),
            supplier_years_in_business=parse_years_in_business(raw.years_text, supplier_text),
            source=raw.source_id.value,
            provenance=provenance,
            moq_inferred=moq is None,
            supplier_inferred=not supplier_name,
        )
    except ValidationError as exc:
        logger.debug("normalize_invalid source=%s title=%r error=%s", raw.source_id.value, title, exc)
        return None


def normalize_batch(
    candidates: Iterable[RawCandidate],
    provenance: Provenance = Provenance.PRIMARY,
) -> List[Product]:
    """Normalize in provider order, skipping records that cannot be used."""
    products: List[Product] = []
    for raw in candidates:
        product = normalize_candidate(raw, provenance)
        if product is not None:
            products.append(product)
    return products
