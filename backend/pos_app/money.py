# Overview: Integer money arithmetic (cents and tax basis points) shared by checkout and reporting.

"""
Money Invariants (authoritative)

- All amounts are integer cents; tax rates are integer basis points (825 = 8.25%).
- Rounding is nearest-cent, half-up, applied per line.
- Order totals are the sums of already-rounded line values, so the order total
  always equals the sum of the line totals printed on the receipt.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

BPS_DENOMINATOR = 10_000

# Maximum price: $9,999,999.99 (999,999,999 cents)
MAX_PRICE_CENTS = 999_999_999


def tax_cents(subtotal_cents: int, tax_rate_bps: int) -> int:
    """Tax on a line subtotal, nearest-cent rounding (half-up)."""
    return (subtotal_cents * tax_rate_bps + BPS_DENOMINATOR // 2) // BPS_DENOMINATOR


@dataclass(frozen=True)
class LineAmounts:
    subtotal_cents: int
    tax_cents: int

    @property
    def total_cents(self) -> int:
        return self.subtotal_cents + self.tax_cents


@dataclass(frozen=True)
class OrderTotals:
    subtotal_cents: int = 0
    tax_total_cents: int = 0

    @property
    def total_cents(self) -> int:
        return self.subtotal_cents + self.tax_total_cents

    def add(self, line: LineAmounts) -> "OrderTotals":
        return OrderTotals(
            subtotal_cents=self.subtotal_cents + line.subtotal_cents,
            tax_total_cents=self.tax_total_cents + line.tax_cents,
        )


def line_amounts(unit_price_cents: int, quantity: int, tax_rate_bps: int) -> LineAmounts:
    subtotal = unit_price_cents * quantity
    return LineAmounts(subtotal_cents=subtotal, tax_cents=tax_cents(subtotal, tax_rate_bps))


def order_totals(lines) -> OrderTotals:
    totals = OrderTotals()
    for line in lines:
        totals = totals.add(line)
    return totals


def to_cents(value) -> int:
    """
    Convert a decimal amount ("12.99", 12.99, Decimal) to integer cents.

    Integers are treated as whole currency units.
    """
    if isinstance(value, bool):
        raise ValueError("amount must be a number")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValueError(f"invalid amount: {value!r}")
    if not amount.is_finite():
        raise ValueError(f"invalid amount: {value!r}")
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def percent_to_bps(value) -> int:
    """Convert a percentage ("8.25", 10) to basis points."""
    if isinstance(value, bool):
        raise ValueError("tax rate must be a number")
    try:
        pct = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValueError(f"invalid tax rate: {value!r}")
    if not pct.is_finite():
        raise ValueError(f"invalid tax rate: {value!r}")
    return int((pct * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def cents_to_decimal(cents: int | None) -> float | None:
    if cents is None:
        return None
    return float(Decimal(cents) / 100)


def bps_to_percent(bps: int | None) -> float | None:
    if bps is None:
        return None
    return float(Decimal(bps) / 100)
