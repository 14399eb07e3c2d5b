"""Apply subscription-tier rules to a merged result set.

Pure and synchronous: trims each source's list, enforces the overall cap and
hides where products came from on tiers that do not disclose source names.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from .config import settings
from .models import Product, TierPolicy
from .text import strip_query_params

logger = logging.getLogger(__name__)

REDACTED_SOURCE = "supplier"
REDACTED_SUPPLIER = "Verified Supplier"


@dataclass
class ShapedResults:
    products: List[Product]
    total_results: int
    per_source_counts: Optional[Dict[str, int]] = None


def per_source_limit(policy: TierPolicy, source_count: int) -> int:
    if policy.unlimited or source_count <= 0:
        return settings.default_source_ceiling
    return math.ceil(policy.result_cap / source_count)


def group_by_source(products: Sequence[Product]) -> Dict[str, List[Product]]:
    groups: Dict[str, List[Product]] = {}
    for product in products:
        groups.setdefault(product.source, []).append(product)
    return groups


def redact(product: Product) -> Product:
    """Strip everything that reveals which site a product came from."""
    product_id = product.id
    if product_id.startswith(product.source + "-"):
        product_id = REDACTED_SOURCE + product_id[len(product.source):]
    return product.model_copy(
        update={
            "id": product_id,
            "source": REDACTED_SOURCE,
            "supplier_name": REDACTED_SUPPLIER,
            "product_url": strip_query_params(product.product_url),
        }
    )


class TierPolicyShaper:
    def shape(self, products: Sequence[Product], policy: TierPolicy) -> ShapedResults:
        groups = group_by_source(products)
        limit = per_source_limit(policy, len(groups))
        kept: List[Product] = []
        for source, group in groups.items():
            if len(group) > limit:
                logger.debug("shape_truncated source=%s kept=%s dropped=%s", source, limit, len(group) - limit)
            kept.extend(group[:limit])
        if not policy.unlimited:
            kept = kept[: policy.result_cap]

        if not policy.show_source_names:
            return ShapedResults(products=[redact(product) for product in kept], total_results=len(kept))

        counts: Dict[str, int] = {}
        for product in kept:
            counts[product.source] = counts.get(product.source, 0) + 1
        return ShapedResults(products=kept, total_results=len(kept), per_source_counts=counts)
