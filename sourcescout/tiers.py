"""Subscription tiers and the search policy each one resolves to.

``-1`` means unlimited for every numeric limit.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List

from .models import ALL_SOURCES, SourceId, TierPolicy, TierSummary

logger = logging.getLogger(__name__)

UNLIMITED = -1
DEFAULT_TIER = "free"

# Free accounts get the three sources that cover the basic workflow.
BASIC_SOURCES: tuple[SourceId, ...] = (
    SourceId.ALIBABA,
    SourceId.MADE_IN_CHINA,
    SourceId.CJ_DROPSHIPPING,
)


@dataclass(frozen=True)
class TierConfig:
    id: str
    results_per_search: int
    all_sources: bool
    show_source_names: bool
    enhanced_mode: bool
    enhanced_searches_per_day: int
    searches_per_month: int


TIERS: dict[str, TierConfig] = {
    "free": TierConfig("free", 5, False, False, False, 0, 5),
    "starter": TierConfig("starter", 25, True, False, False, 0, 100),
    "pro": TierConfig("pro", 50, True, True, True, 3, UNLIMITED),
    "enterprise": TierConfig("enterprise", 100, True, True, True, UNLIMITED, UNLIMITED),
}


def get_tier_config(tier: str | None) -> TierConfig:
    config = TIERS.get((tier or "").lower())
    if config is None:
        if tier:
            logger.warning("Unknown subscription tier %r, falling back to %s", tier, DEFAULT_TIER)
        config = TIERS[DEFAULT_TIER]
    return config


def available_sources(tier: str | None) -> tuple[SourceId, ...]:
    return ALL_SOURCES if get_tier_config(tier).all_sources else BASIC_SOURCES


def get_tier_policy(tier: str | None) -> TierPolicy:
    config = get_tier_config(tier)
    return TierPolicy(
        tier=config.id,
        allowed_sources=available_sources(config.id),
        result_cap=config.results_per_search,
        show_source_names=config.show_source_names,
        enhanced_allowed=config.enhanced_mode,
        enhanced_daily_limit=config.enhanced_searches_per_day,
        monthly_search_limit=config.searches_per_month,
    )


def filter_sources(requested: Iterable[SourceId] | None, policy: TierPolicy) -> List[SourceId]:
    """Silently drop sources the tier does not include.

    An empty request, or one where nothing survives, searches every source
    the tier allows.
    """
    if not requested:
        return list(policy.allowed_sources)
    allowed = set(policy.allowed_sources)
    kept: List[SourceId] = []
    for source in requested:
        if source in allowed and source not in kept:
            kept.append(source)
        elif source not in allowed:
            logger.debug("source_dropped source=%s tier=%s", source.value, policy.tier)
    return kept or list(policy.allowed_sources)


def is_within_limit(limit: int, usage: int) -> bool:
    if limit == UNLIMITED:
        return True
    return usage < limit


def remaining(limit: int, usage: int) -> int:
    if limit == UNLIMITED:
        return UNLIMITED
    return max(0, limit - usage)


def tier_summaries() -> List[TierSummary]:
    return [
        TierSummary(
            id=config.id,
            results_per_search=config.results_per_search,
            sources=list(available_sources(config.id)),
            show_source_names=config.show_source_names,
            enhanced_mode=config.enhanced_mode,
            enhanced_searches_per_day=config.enhanced_searches_per_day,
            searches_per_month=config.searches_per_month,
        )
        for config in TIERS.values()
    ]
