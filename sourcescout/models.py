"""Domain records and pydantic models for request/response payloads."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

QUERY_MIN_LENGTH = 2
QUERY_MAX_LENGTH = 200


class SourceId(str, Enum):
    ALIBABA = "alibaba"
    MADE_IN_CHINA = "made-in-china"
    CJ_DROPSHIPPING = "cj-dropshipping"
    GLOBAL_SOURCES = "global-sources"
    TRADEKOREA = "tradekorea"
    WHOLESALE_CENTRAL = "wholesale-central"


ALL_SOURCES: tuple[SourceId, ...] = tuple(SourceId)


class Provenance(str, Enum):
    PRIMARY = "primary"
    ENRICHMENT = "enrichment"
    MERGED = "merged"


class TransactionLevel(str, Enum):
    GOLD = "Gold"
    SILVER = "Silver"
    ASSESSED = "Assessed"
    PREMIUM = "Premium"


class CandidateKind(str, Enum):
    """Which extraction pathway produced a raw record."""

    DOM = "dom"
    API = "api"
    AI = "ai"


@dataclass
class RawCandidate:
    """Provider-native record, discarded once normalized.

    ``supplier_text`` carries badge/verification text when a site renders it
    separately from the supplier name; the normalizer falls back to
    ``supplier_name`` for transaction levels otherwise.
    """

    title: str
    source_id: SourceId
    kind: CandidateKind = CandidateKind.DOM
    price_text: str = ""
    moq_text: str = ""
    supplier_name: str = ""
    rating_text: str = ""
    image_url: Optional[str] = None
    product_url: Optional[str] = None
    external_id: Optional[str] = None
    description: Optional[str] = None
    supplier_text: str = ""
    years_text: str = ""
    price_min: Optional[float] = None
    price_max: Optional[float] = None


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Product(_CamelModel):
    id: str
    title: str = Field(..., min_length=1)
    description: str | None = None
    price: float | None = None
    price_min: float | None = None
    price_max: float | None = None
    min_order_quantity: int = Field(1, ge=1)
    image_url: str | None = None
    product_url: str | None = None
    supplier_name: str
    supplier_rating: float | None = Field(None, ge=0.0, le=5.0)
    supplier_response_rate: float | None = Field(None, ge=0.0, le=100.0)
    supplier_transaction_level: TransactionLevel | None = None
    supplier_years_in_business: int | None = Field(None, ge=0)
    source: str = Field(..., frozen=True)
    provenance: Provenance = Provenance.PRIMARY
    enriched_fields: list[str] | None = None
    # True when the value above is a default rather than something the source said.
    moq_inferred: bool = Field(False, exclude=True)
    supplier_inferred: bool = Field(False, exclude=True)


@dataclass(frozen=True)
class TierPolicy:
    """Limits and flags resolved from a subscription plan."""

    tier: str
    allowed_sources: tuple[SourceId, ...]
    result_cap: int
    show_source_names: bool
    enhanced_allowed: bool
    enhanced_daily_limit: int
    monthly_search_limit: int = -1

    @property
    def unlimited(self) -> bool:
        return self.result_cap < 0


class SearchRequest(_CamelModel):
    query: str = Field(..., description="Search query string")
    sources: list[SourceId] | None = Field(None, max_length=10)
    enhanced: bool = Field(False, description="Run the AI-assisted enrichment pass")

    @field_validator("query")
    @classmethod
    def _trim_query(cls, value: str) -> str:
        value = value.strip()
        if not QUERY_MIN_LENGTH <= len(value) <= QUERY_MAX_LENGTH:
            raise ValueError(
                f"Search query must be between {QUERY_MIN_LENGTH} and {QUERY_MAX_LENGTH} characters"
            )
        return value


class Elapsed(_CamelModel):
    total_ms: float
    primary_ms: float
    enrichment_ms: float | None = None
    merge_ms: float = 0.0
    shape_ms: float = 0.0


class EnhancementStats(_CamelModel):
    primary_count: int
    enrichment_count: int


class SearchResponse(_CamelModel):
    query: str
    request_id: str
    products: list[Product]
    total_results: int
    per_source_counts: dict[str, int] | None = None
    elapsed: Elapsed
    enhanced: bool = False
    enhancement: EnhancementStats | None = None
    # Searches left this month for the caller; None when untracked.
    remaining_searches: int | None = None


class TierSummary(_CamelModel):
    id: str
    results_per_search: int
    sources: list[SourceId]
    show_source_names: bool
    enhanced_mode: bool
    enhanced_searches_per_day: int
    searches_per_month: int
