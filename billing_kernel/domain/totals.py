"""
Totals -- pure invoice arithmetic.

Responsibility:
    Derives sub_total, grand_total and amount_due from line totals,
    invoice-level adjustments and payments.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Called by every
    service that changes an invoice's structure or payments.

Invariants enforced:
    - sub_total = sum(line totals of non-removed lines)
    - grand_total = max(sub_total - discount + tax, 0)
    - amount_due = max(grand_total - amount_paid, 0)
    - No intermediate rounding: sums are exact; round_money() is applied
      once by persist_totals() when values are written.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from billing_kernel.db.types import round_money

ZERO = Decimal("0")


@dataclass(frozen=True)
class Totals:
    """Derived invoice totals at full precision."""

    sub_total: Decimal
    grand_total: Decimal


def line_total(quantity: int, unit_price: Decimal) -> Decimal:
    """quantity x unit_price, unrounded."""
    return unit_price * quantity


def compute_totals(
    line_totals: Iterable[Decimal],
    discount_amt: Decimal = ZERO,
    tax_amt: Decimal = ZERO,
) -> Totals:
    """
    Apply discount then tax to the line sum, flooring the result at zero.

    Args:
        line_totals: Totals of the invoice's non-removed lines.
        discount_amt: Invoice-level discount (non-negative).
        tax_amt: Invoice-level tax (non-negative).
    """
    sub_total = sum(line_totals, ZERO)
    grand_total = sub_total - discount_amt + tax_amt
    if grand_total < ZERO:
        grand_total = ZERO
    return Totals(sub_total=sub_total, grand_total=grand_total)


def compute_amount_due(grand_total: Decimal, amount_paid: Decimal) -> Decimal:
    """Outstanding balance, never negative (overpayment floors at zero)."""
    due = grand_total - amount_paid
    return due if due > ZERO else ZERO


@dataclass(frozen=True)
class PersistedTotals:
    """Rounded values ready to be written onto an invoice row."""

    sub_total: Decimal
    grand_total: Decimal
    amount_due: Decimal


def persist_totals(totals: Totals, amount_paid: Decimal) -> PersistedTotals:
    """
    Round totals for persistence and derive amount_due from the rounded
    grand total, so the stored row satisfies its invariants exactly.
    """
    sub_total = round_money(totals.sub_total)
    grand_total = round_money(totals.grand_total)
    amount_due = round_money(compute_amount_due(grand_total, round_money(amount_paid)))
    return PersistedTotals(
        sub_total=sub_total,
        grand_total=grand_total,
        amount_due=amount_due,
    )
