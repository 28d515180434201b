from decimal import Decimal
from itertools import permutations

import pytest

from quotedesk.errors import InvalidLineValue, InvalidQuantity
from quotedesk.quotations.calculator import LineItem, compute_line, compute_totals


def D(s):
    return Decimal(s)


def test_compute_totals_worked_example():
    items = [
        LineItem("widget", 2, 100, 10, 16),
        LineItem("install", 1, 50, 0, 0),
    ]
    totals = compute_totals(items)

    assert totals.subtotal == D("230")
    assert totals.tax_total == D("28.8")
    assert totals.discount_total == D("20")
    assert totals.total == D("258.8")


def test_compute_line_applies_tax_after_discount():
    amounts = compute_line(LineItem("widget", 2, 100, 10, 16))

    assert amounts.raw_total == D("200")
    assert amounts.discount_amount == D("20")
    assert amounts.line_subtotal == D("180")
    assert amounts.tax_amount == D("28.8")
    assert amounts.rounded_subtotal == D("180.00")


@pytest.mark.parametrize("qty,price,discount,tax", [
    (1, "0", "0", "0"),
    (3, "19.99", "12.5", "7.25"),
    (10, "0.10", "100", "16"),
    (7, "1234.56", "0", "100"),
    (3, "0.33", "33.33", "16.67"),
])
def test_line_formula(qty, price, discount, tax):
    amounts = compute_line(LineItem(None, qty, price, discount, tax))

    expected_sub = qty * D(price) * (1 - D(discount) / 100)
    assert amounts.line_subtotal == expected_sub
    assert amounts.tax_amount == expected_sub * D(tax) / 100
    assert amounts.line_subtotal >= 0
    assert amounts.tax_amount >= 0


def test_empty_list_gives_zero_totals():
    totals = compute_totals([])
    assert (totals.subtotal, totals.tax_total, totals.discount_total, totals.total) == (0, 0, 0, 0)


def test_totals_do_not_depend_on_line_order():
    items = [
        LineItem("a", 3, "19.99", "12.5", "7.25"),
        LineItem("b", 1, "0.33", "0", "16.67"),
        LineItem("c", 5, "2.05", "3", "0"),
    ]
    results = {compute_totals(list(p)) for p in permutations(items)}
    assert len(results) == 1


def test_compute_totals_is_repeatable():
    items = [LineItem("a", 3, "19.99", "12.5", "7.25"), LineItem("b", 2, "5", "0", "16")]
    assert compute_totals(items) == compute_totals(items)


def test_rounding_happens_once_on_aggregates():
    # 0.015 of tax per line: rounding each line would give 0.02 * 1000
    items = [LineItem(i, 1, "0.10", "0", "15") for i in range(1000)]
    totals = compute_totals(items)

    assert totals.subtotal == D("100.00")
    assert totals.tax_total == D("15.00")
    assert totals.total == totals.subtotal + totals.tax_total


def test_total_equals_subtotal_plus_tax_after_rounding():
    # 3 * 0.35 * 0.6667 = 0.700035, taxed at 16.67% = 0.11669...
    totals = compute_totals([LineItem("a", 3, "0.35", "33.33", "16.67")])
    assert totals.subtotal == D("0.70")
    assert totals.tax_total == D("0.12")
    assert totals.total == totals.subtotal + totals.tax_total == D("0.82")


def test_accepts_integral_quantity_strings():
    assert compute_line(LineItem(None, "2", "5")).raw_total == D("10")
    assert compute_line(LineItem(None, D("3.0"), "5")).item.quantity == 3


@pytest.mark.parametrize("qty", [0, -1, 1.5, "1.5", "abc", None, True])
def test_bad_quantity_is_rejected(qty):
    with pytest.raises(InvalidQuantity):
        compute_line(LineItem(None, qty, "10"))


@pytest.mark.parametrize("price,discount,tax", [
    ("-1", "0", "0"),
    ("10", "-5", "0"),
    ("10", "101", "0"),
    ("10", "0", "100.01"),
    ("10", "0", "-0.5"),
    ("abc", "0", "0"),
    ("NaN", "0", "0"),
    ("0.333", "0", "0"),
    ("10", "0.004", "0"),
    ("10", "0", "16.125"),
    ("10000000000", "0", "0"),
    (None, "0", "0"),
])
def test_bad_line_values_are_rejected(price, discount, tax):
    with pytest.raises(InvalidLineValue):
        compute_line(LineItem(None, 1, price, discount, tax))


def test_error_reports_failing_line_index():
    items = [LineItem("a", 1, "10"), LineItem("b", 0, "10")]
    with pytest.raises(InvalidQuantity) as exc:
        compute_totals(items)
    assert exc.value.line == 1


def test_trailing_zeros_are_not_extra_places():
    amounts = compute_line(LineItem(None, 2, "10.500", "5.00", "16.000"))
    assert amounts.line_subtotal == D("19.95")


def test_line_tax_amount_is_rounded_for_storage():
    amounts = compute_line(LineItem(None, 3, "0.35", "33.33", "16.67"))
    assert amounts.rounded_subtotal == D("0.70")
    assert amounts.rounded_tax_amount == D("0.12")
