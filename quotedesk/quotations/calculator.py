# quotedesk/quotations/calculator.py
"""
Quotation money math.

Everything here is a pure function of its inputs. Intermediate amounts are
kept as unrounded Decimals; rounding to cents happens only when an output
field is produced, so summing many lines never drifts.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable, List

from ..errors import InvalidLineValue, InvalidQuantity

CENT = Decimal("0.01")
HUNDRED = Decimal("100")
ZERO = Decimal("0")
# largest value a Numeric(12, 2) column holds
MAX_PRICE = Decimal("9999999999.99")


def money(val: Decimal) -> Decimal:
    return val.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class LineItem:
    catalog_item_ref: Any
    quantity: Any
    unit_price: Any
    discount_percent: Any = ZERO
    tax_percent: Any = ZERO


@dataclass(frozen=True)
class LineAmounts:
    # validated copy of the input: int quantity, Decimal prices and percents
    item: LineItem
    raw_total: Decimal
    discount_amount: Decimal
    line_subtotal: Decimal
    tax_amount: Decimal

    @property
    def rounded_subtotal(self) -> Decimal:
        return money(self.line_subtotal)

    @property
    def rounded_tax_amount(self) -> Decimal:
        return money(self.tax_amount)


@dataclass(frozen=True)
class QuotationTotals:
    subtotal: Decimal
    tax_total: Decimal
    discount_total: Decimal
    total: Decimal

    def as_dict(self):
        return {
            "subtotal": self.subtotal,
            "tax_total": self.tax_total,
            "discount_total": self.discount_total,
            "total": self.total,
        }


def _quantity(val, line=None) -> int:
    # bool is an int subclass; True is not a quantity
    if isinstance(val, bool) or val is None:
        raise InvalidQuantity("Quantity must be a whole number of at least 1", line=line)

    if isinstance(val, int):
        qty = val
    else:
        try:
            dec = Decimal(str(val).strip())
        except (InvalidOperation, ValueError):
            raise InvalidQuantity("Quantity must be a whole number of at least 1", line=line)
        if not dec.is_finite() or dec != dec.to_integral_value():
            raise InvalidQuantity("Quantity must be a whole number", line=line)
        qty = int(dec)

    if qty < 1:
        raise InvalidQuantity("Quantity cannot be less than 1", line=line)
    return qty


def _amount(val, field: str, line=None, upper=None) -> Decimal:
    if isinstance(val, bool) or val is None:
        raise InvalidLineValue(f"{field} must be a number", line=line)
    try:
        dec = val if isinstance(val, Decimal) else Decimal(str(val).strip())
    except (InvalidOperation, ValueError):
        raise InvalidLineValue(f"{field} must be a number", line=line)

    if not dec.is_finite():
        raise InvalidLineValue(f"{field} must be a finite number", line=line)
    if dec < 0:
        raise InvalidLineValue(f"{field} cannot be negative", line=line)
    if upper is not None and dec > upper:
        raise InvalidLineValue(f"{field} cannot be more than {upper}", line=line)
    # lines are stored with two decimals; anything finer would change the totals on reload
    if dec != dec.quantize(CENT):
        raise InvalidLineValue(f"{field} cannot have more than 2 decimal places", line=line)
    return dec


def compute_line(item: LineItem, line=None) -> LineAmounts:
    """
    Amounts for one line. Tax is charged on the discounted amount.
    `line` is the index reported in validation errors.
    """
    qty = _quantity(item.quantity, line=line)
    unit_price = _amount(item.unit_price, "Unit price", line=line, upper=MAX_PRICE)
    discount_pct = _amount(item.discount_percent, "Discount", line=line, upper=HUNDRED)
    tax_pct = _amount(item.tax_percent, "Tax", line=line, upper=HUNDRED)

    raw_total = qty * unit_price
    discount_amount = raw_total * discount_pct / HUNDRED
    after_discount = raw_total - discount_amount
    tax_amount = after_discount * tax_pct / HUNDRED

    return LineAmounts(
        item=LineItem(item.catalog_item_ref, qty, unit_price, discount_pct, tax_pct),
        raw_total=raw_total,
        discount_amount=discount_amount,
        line_subtotal=after_discount,
        tax_amount=tax_amount,
    )


def compute_lines(items: Iterable[LineItem]) -> List[LineAmounts]:
    """Validate and compute every line; the first bad line aborts the whole list."""
    return [compute_line(it, line=idx) for idx, it in enumerate(items)]


def totals_from_amounts(amounts: Iterable[LineAmounts]) -> QuotationTotals:
    subtotal = ZERO
    tax_total = ZERO
    discount_total = ZERO

    for a in amounts:
        subtotal += a.line_subtotal
        tax_total += a.tax_amount
        discount_total += a.discount_amount

    subtotal = money(subtotal)
    tax_total = money(tax_total)

    return QuotationTotals(
        subtotal=subtotal,
        tax_total=tax_total,
        discount_total=money(discount_total),
        total=subtotal + tax_total,
    )


def compute_totals(items: Iterable[LineItem]) -> QuotationTotals:
    return totals_from_amounts(compute_lines(items))
