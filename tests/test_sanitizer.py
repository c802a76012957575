from decimal import Decimal

from storefront.utils import clean_keyword, round_amount, slugify


def test_clean_keyword_removes_tags():
    out = clean_keyword("<script>alert(1)</script>Bob")
    assert "script" not in out.lower()
    assert "bob" in out.lower()
    assert clean_keyword("<i>kettle</i>") == "kettle"
    assert clean_keyword("<i>kettle") == "kettle"


def test_clean_keyword_keeps_punctuation():
    assert clean_keyword("salt & pepper") == "salt & pepper"
    assert clean_keyword("  a; b -- c ") == "a; b -- c"
    assert clean_keyword(None) == ""


def test_slugify():
    assert slugify("Electronics & Gadgets") == "electronics-gadgets"
    assert slugify("  Café   Crème ") == "cafe-creme"
    assert slugify("T-Shirts / Tops") == "t-shirts-tops"
    assert slugify("&&&") == ""
    assert slugify(None) == ""


def test_amount_rounding_regression():
    # Guard against regressions: 2-decimal rounding half up
    assert round_amount(Decimal("2.675")) == Decimal("2.68")
    assert str(round_amount(Decimal("10"))) == "10.00"
