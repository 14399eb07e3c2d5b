"""Tier shaping: per-source trimming and source redaction."""

from sourcescout.models import SourceId
from sourcescout.normalizer import normalize_batch
from sourcescout.shaper import REDACTED_SOURCE, REDACTED_SUPPLIER, TierPolicyShaper, per_source_limit
from sourcescout.tiers import get_tier_policy

from conftest import raw


def _products(source, count):
    return normalize_batch(
        [
            raw(
                f"{source.value} product {i}",
                source,
                price_text="$4.50",
                moq_text="20",
                rating_text="4.6",
                supplier_name="Shenzhen Widgets",
                product_url=f"https://example.com/item/{i}?spm=tracking&ref=abc",
            )
            for i in range(count)
        ]
    )


def test_per_source_limit_rounds_up():
    assert per_source_limit(get_tier_policy("free"), 3) == 2
    assert per_source_limit(get_tier_policy("pro"), 6) == 9


def test_redaction_hides_source_but_keeps_numbers():
    """Tiers without source names see generic labels and no per-source counts."""

    shaped = TierPolicyShaper().shape(_products(SourceId.ALIBABA, 3), get_tier_policy("starter"))

    assert shaped.per_source_counts is None
    assert shaped.total_results == 3
    for product in shaped.products:
        assert product.source == REDACTED_SOURCE
        assert product.supplier_name == REDACTED_SUPPLIER
        assert not product.id.startswith("alibaba")
        assert "?" not in product.product_url
        assert product.price == 4.5
        assert product.min_order_quantity == 20
        assert product.supplier_rating == 4.6


def test_disclosed_counts_sum_to_total():
    products = _products(SourceId.ALIBABA, 30) + _products(SourceId.TRADEKOREA, 4)

    shaped = TierPolicyShaper().shape(products, get_tier_policy("pro"))

    assert shaped.per_source_counts == {"alibaba": 25, "tradekorea": 4}
    assert sum(shaped.per_source_counts.values()) == shaped.total_results == 29
    assert shaped.products[0].supplier_name == "Shenzhen Widgets"


def test_total_cap_applies_after_per_source_trim():
    products = _products(SourceId.ALIBABA, 5) + _products(SourceId.MADE_IN_CHINA, 5) + _products(SourceId.CJ_DROPSHIPPING, 5)

    shaped = TierPolicyShaper().shape(products, get_tier_policy("free"))

    assert shaped.total_results == 5
    assert len(shaped.products) == 5


def test_empty_input_shapes_to_empty():
    shaped = TierPolicyShaper().shape([], get_tier_policy("enterprise"))

    assert shaped.products == []
    assert shaped.total_results == 0
    assert shaped.per_source_counts == {}


def test_share_is_split_among_sources_that_returned_results():
    """A source that came back empty does not shrink the others' share."""

    shaped = TierPolicyShaper().shape(_products(SourceId.ALIBABA, 5), get_tier_policy("free"))

    assert shaped.total_results == 5
