"""Parsing rules for turning scraped text into products."""

import pytest

from sourcescout.models import Provenance, SourceId, TransactionLevel
from sourcescout.normalizer import (
    normalize_batch,
    normalize_candidate,
    parse_moq,
    parse_price,
    parse_price_range,
    parse_rating,
    parse_response_rate,
    parse_transaction_level,
    parse_years_in_business,
)

from conftest import ai_raw, raw


@pytest.mark.parametrize(
    "text, expected",
    [
        ("$5.00-$10.00 / Piece", 7.5),
        ("$12", 12.0),
        ("US$1,200.00 - 1,800.00", 1500.0),
        ("", None),
        ("Contact supplier", None),
    ],
)
def test_parse_price(text, expected):
    """Two or more numbers average the first and last, one is taken as is."""

    assert parse_price(text) == expected


def test_parse_price_range_single_value_is_both_bounds():
    assert parse_price_range("US$7.60 - 7.90") == (7.6, 7.9)
    assert parse_price_range("$3") == (3.0, 3.0)
    assert parse_price_range(None) == (None, None)


def test_parse_moq_first_integer():
    assert parse_moq("Min. order: 1,000 pieces") == 1000
    assert parse_moq("0 sets") == 1
    assert parse_moq("negotiable") is None


@pytest.mark.parametrize(
    "text, expected",
    [
        ("96", 4.8),
        ("96%", 4.8),
        ("4.5/5", 4.5),
        ("7", 5.0),
        ("5.0", 5.0),
        ("no reviews", None),
    ],
)
def test_parse_rating_always_lands_on_five_point_scale(text, expected):
    """Percentage scores are divided by 20; star values are clamped."""

    value = parse_rating(text)
    if expected is None:
        assert value is None
    else:
        assert value == pytest.approx(expected)
        assert 0.0 <= value <= 5.0


def test_response_rate_is_independent_of_rating():
    assert parse_response_rate("4.8", "Gold Supplier 97% response") == 97.0
    assert parse_response_rate("", "150%") == 100.0
    assert parse_response_rate("4.8") is None


def test_transaction_level_and_years():
    assert parse_transaction_level("Verified Gold Supplier") is TransactionLevel.GOLD
    assert parse_transaction_level("Audited Supplier Assessed") is TransactionLevel.ASSESSED
    assert parse_transaction_level("Trading company") is None
    assert parse_years_in_business("12 yrs CN") == 12
    assert parse_years_in_business("", "Since 5 years") == 5


def test_normalize_candidate_fills_defaults():
    """Missing MOQ and supplier fall back to 1 and the per-source placeholder."""

    product = normalize_candidate(raw("Commercial Ice Maker", SourceId.TRADEKOREA, price_text="$100-$200"))

    assert product is not None
    assert product.price == 150.0
    assert product.min_order_quantity == 1
    assert product.moq_inferred
    assert product.supplier_name == "Korean Supplier"
    assert product.supplier_inferred
    assert product.source == "tradekorea"
    assert product.provenance is Provenance.PRIMARY
    assert product.id.startswith("tradekorea-")


def test_normalize_candidate_reads_supplier_text():
    product = normalize_candidate(
        raw(
            "Ice Maker 50kg",
            price_text="$300",
            moq_text="2 Units",
            supplier_name="Ningbo Cold Co.",
            supplier_text="Gold Supplier 97% response rate 8 yrs",
        )
    )

    assert product.supplier_transaction_level is TransactionLevel.GOLD
    assert product.supplier_response_rate == pytest.approx(97.0)
    assert product.supplier_years_in_business == 8
    assert product.min_order_quantity == 2
    assert not product.moq_inferred


def test_normalize_uses_explicit_range_when_text_has_no_number():
    product = normalize_candidate(raw("Ice Maker", price_text="Negotiable", price_min=10.0, price_max=20.0))

    assert product.price == 15.0
    assert (product.price_min, product.price_max) == (10.0, 20.0)


def test_ai_candidates_get_their_own_id_prefix():
    product = normalize_candidate(ai_raw("Ice Maker", external_id="abc"), Provenance.ENRICHMENT)

    assert product.id == "alibaba-ai-abc"
    assert product.provenance is Provenance.ENRICHMENT


def test_normalize_batch_drops_short_titles_and_keeps_order():
    products = normalize_batch([raw("A"), raw("Second item"), raw("   "), raw("Third item")])

    assert [product.title for product in products] == ["Second item", "Third item"]
