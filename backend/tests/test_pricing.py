import pytest

from services.pricing import compute_totals, format_cents

THRESHOLD = 19900
FLAT = 1999


def test_flat_shipping_below_threshold():
    totals = compute_totals([(300, 3)], THRESHOLD, FLAT)
    assert (totals.subtotal, totals.shipping, totals.grand_total) == (900, 1999, 2899)


@pytest.mark.parametrize("lines", [[(19900, 1)], [(10000, 2)], [(100, 150), (5000, 1)]])
def test_free_shipping_at_or_above_threshold(lines):
    totals = compute_totals(lines, THRESHOLD, FLAT)
    assert totals.subtotal >= THRESHOLD
    assert totals.shipping == 0
    assert totals.grand_total == totals.subtotal


def test_no_shipping_without_purchasable_lines():
    assert compute_totals([], THRESHOLD, FLAT).grand_total == 0
    # A line clamped to zero does not count
    totals = compute_totals([(300, 0)], THRESHOLD, FLAT)
    assert (totals.subtotal, totals.shipping, totals.grand_total) == (0, 0, 0)


def test_grand_total_is_subtotal_plus_shipping():
    for lines in ([(1, 1)], [(19899, 1)], [(250, 4), (0, 3)], [(7000, 3)]):
        totals = compute_totals(lines, THRESHOLD, FLAT)
        assert totals.grand_total == totals.subtotal + totals.shipping


def test_format_cents():
    assert format_cents(2899) == "28.99"
    assert format_cents(5) == "0.05"
    assert format_cents(0) == "0.00"
    assert format_cents(-150) == "-1.50"
