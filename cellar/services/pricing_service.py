"""Pricing and tax calculation shared by the cart and checkout.

Pure functions over Decimal:
- effective price = discounted price if set, else list price
- line subtotal   = effective price * quantity
- line tax        = line subtotal * tax_percentage / 100

Order and cart totals are the sums of the *unrounded* line values, rounded
once at the end. Per-line rounded figures are kept alongside for display.

Example:
- 3 x 33.33 @ 18% -> subtotal 99.99, tax 17.9982
- 2 x 10.00 @ 18% -> subtotal 20.00, tax 3.60
- total_amount 119.99, total_tax 21.60 (rounded from 21.5982)
"""
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional

TWO_PLACES = Decimal("0.01")
HUNDRED = Decimal("100")


def to_decimal(value) -> Decimal:
    """Coerce ints, floats, strings and None to Decimal without float noise."""
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_money(value) -> Decimal:
    """Round to 2 decimals, half away from zero."""
    return to_decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def effective_price(price, discounted_price=None) -> Decimal:
    if discounted_price is not None:
        return to_decimal(discounted_price)
    return to_decimal(price)


@dataclass(frozen=True)
class LinePricing:
    """Pricing of one line. Unrounded values feed the aggregate totals."""
    unit_price: Decimal
    discounted_price: Optional[Decimal]
    effective_price: Decimal
    tax_percentage: Decimal
    quantity: int
    subtotal: Decimal
    tax: Decimal

    @property
    def total(self) -> Decimal:
        return self.subtotal + self.tax

    @property
    def line_subtotal(self) -> Decimal:
        return round_money(self.subtotal)

    @property
    def line_tax(self) -> Decimal:
        return round_money(self.tax)

    @property
    def line_total(self) -> Decimal:
        return round_money(self.total)


@dataclass(frozen=True)
class PricingSummary:
    item_count: int
    unique_items: int
    subtotal: Decimal
    total_tax: Decimal
    grand_total: Decimal
    lines: List[LinePricing] = field(default_factory=list)


def price_line(
    price,
    discounted_price,
    tax_percentage,
    quantity: int,
    unit_price_override=None,
) -> LinePricing:
    """
    Price a single line.

    unit_price_override, when given, replaces the effective price (direct
    checkout lets the storefront pin the price it displayed).
    """
    if unit_price_override is not None:
        unit_effective = to_decimal(unit_price_override)
    else:
        unit_effective = effective_price(price, discounted_price)

    rate = to_decimal(tax_percentage)
    subtotal = unit_effective * quantity
    tax = subtotal * rate / HUNDRED

    return LinePricing(
        unit_price=to_decimal(price),
        discounted_price=to_decimal(discounted_price) if discounted_price is not None else None,
        effective_price=unit_effective,
        tax_percentage=rate,
        quantity=quantity,
        subtotal=subtotal,
        tax=tax,
    )


def summarize(lines: Iterable[LinePricing]) -> PricingSummary:
    """Aggregate lines, rounding the running sums only once."""
    lines = list(lines)
    subtotal = sum((line.subtotal for line in lines), Decimal("0"))
    total_tax = sum((line.tax for line in lines), Decimal("0"))

    return PricingSummary(
        item_count=sum(line.quantity for line in lines),
        unique_items=len(lines),
        subtotal=round_money(subtotal),
        total_tax=round_money(total_tax),
        grand_total=round_money(subtotal + total_tax),
        lines=lines,
    )
