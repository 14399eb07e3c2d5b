"""Combine primary results with the enrichment pass.

An enrichment record matches a primary record from the same source when the
first 30 characters of their normalized titles agree, or when the first 15
title characters agree and the first 20 characters of the normalized supplier
names agree. A match only ever fills gaps: values the primary record already
has are never overwritten, except for a supplier name the enrichment pass
spelled out more fully.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from pydantic.alias_generators import to_camel

from .models import Product, Provenance
from .text import normalize_key

logger = logging.getLogger(__name__)

TITLE_KEY_LENGTH = 30
SHORT_TITLE_KEY_LENGTH = 15
SUPPLIER_KEY_LENGTH = 20

_PRICE_FIELDS = ("price", "price_min", "price_max")


@dataclass
class MergeStats:
    matched: int = 0
    enriched: int = 0
    appended: int = 0
    discarded: int = 0


def _is_match(primary: Product, candidate: Product) -> bool:
    if primary.source != candidate.source:
        return False
    primary_title = normalize_key(primary.title)
    candidate_title = normalize_key(candidate.title)
    if not primary_title:
        return False
    if primary_title[:TITLE_KEY_LENGTH] == candidate_title[:TITLE_KEY_LENGTH]:
        return True
    if primary_title[:SHORT_TITLE_KEY_LENGTH] != candidate_title[:SHORT_TITLE_KEY_LENGTH]:
        return False
    primary_supplier = normalize_key(primary.supplier_name)[:SUPPLIER_KEY_LENGTH]
    candidate_supplier = normalize_key(candidate.supplier_name)[:SUPPLIER_KEY_LENGTH]
    return bool(primary_supplier) and primary_supplier == candidate_supplier


def _gap_fill(primary: Product, candidate: Product) -> Dict[str, Any]:
    update: Dict[str, Any] = {}
    for name in _PRICE_FIELDS:
        if getattr(primary, name) is None and getattr(candidate, name) is not None:
            update[name] = getattr(candidate, name)
    if primary.supplier_rating is None and candidate.supplier_rating is not None:
        update["supplier_rating"] = candidate.supplier_rating
    if primary.moq_inferred and not candidate.moq_inferred:
        update["min_order_quantity"] = candidate.min_order_quantity
        update["moq_inferred"] = False
    if not candidate.supplier_inferred and candidate.supplier_name != primary.supplier_name:
        if primary.supplier_inferred or len(candidate.supplier_name) > len(primary.supplier_name):
            update["supplier_name"] = candidate.supplier_name
            update["supplier_inferred"] = False
    return update


def merge_product(primary: Product, candidate: Product) -> Product:
    """Return ``primary`` with gaps filled from ``candidate``.

    The same instance comes back untouched when nothing was filled.
    """
    update = _gap_fill(primary, candidate)
    changed = [name for name in update if name not in ("moq_inferred", "supplier_inferred")]
    if not changed:
        return primary
    enriched = list(primary.enriched_fields or [])
    enriched.extend(to_camel(name) for name in changed if to_camel(name) not in enriched)
    update["enriched_fields"] = enriched
    update["provenance"] = Provenance.MERGED
    return primary.model_copy(update=update)


class MatchAndMergeEngine:
    def merge(
        self, primary: Sequence[Product], enrichment: Sequence[Product]
    ) -> tuple[List[Product], MergeStats]:
        merged = list(primary)
        stats = MergeStats()
        seen_titles = {normalize_key(product.title) for product in merged}

        for candidate in enrichment:
            index = self._find(merged, candidate)
            if index is not None:
                stats.matched += 1
                updated = merge_product(merged[index], candidate)
                if updated is not merged[index]:
                    stats.enriched += 1
                    merged[index] = updated
                continue
            title_key = normalize_key(candidate.title)
            if title_key in seen_titles:
                stats.discarded += 1
                continue
            seen_titles.add(title_key)
            merged.append(candidate.model_copy(update={"provenance": Provenance.ENRICHMENT}))
            stats.appended += 1

        logger.info(
            "merge: primary=%s enrichment=%s matched=%s enriched=%s appended=%s discarded=%s",
            len(primary),
            len(enrichment),
            stats.matched,
            stats.enriched,
            stats.appended,
            stats.discarded,
        )
        return merged, stats

    @staticmethod
    def _find(products: Sequence[Product], candidate: Product) -> Optional[int]:
        for index, product in enumerate(products):
            if product.provenance == Provenance.ENRICHMENT:
                continue
            if _is_match(product, candidate):
                return index
        return None
