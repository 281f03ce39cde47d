"""
Property tests for invoice totals.

Verifies, for arbitrary lines, adjustments and payments:
- grand_total = max(sub_total - discount + tax, 0)
- amount_due = max(grand_total - amount_paid, 0)
- amount_due + min(amount_paid, grand_total) = grand_total
- derived status agrees with the paid/grand relationship
"""

from decimal import Decimal

from hypothesis import given, settings
from hypothesis import strategies as st

from billing_kernel.domain.status import InvoiceStatus, derive_status
from billing_kernel.domain.totals import compute_totals, line_total, persist_totals

money = st.decimals(
    min_value=Decimal("0"),
    max_value=Decimal("1000000"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)
lines = st.lists(
    st.tuples(st.integers(min_value=1, max_value=50), money),
    max_size=10,
)


@settings(max_examples=200)
@given(lines=lines, discount=money, tax=money, paid=money)
def test_persisted_totals_satisfy_invariants(lines, discount, tax, paid):
    totals = compute_totals((line_total(q, p) for q, p in lines), discount, tax)
    persisted = persist_totals(totals, paid)

    assert persisted.grand_total == max(persisted.sub_total - discount + tax, Decimal("0"))
    assert persisted.amount_due == max(persisted.grand_total - paid, Decimal("0"))
    assert persisted.amount_due + min(paid, persisted.grand_total) == persisted.grand_total
    assert persisted.amount_due >= 0


@settings(max_examples=200)
@given(grand=money, paid=money, has_items=st.booleans())
def test_status_matches_payment_position(grand, paid, has_items):
    status = derive_status(paid, grand, voided=False, has_items=has_items)

    if paid == 0:
        expected = InvoiceStatus.PENDING if has_items else InvoiceStatus.DRAFT
    elif paid < grand:
        expected = InvoiceStatus.PARTIALLY_PAID
    else:
        expected = InvoiceStatus.PAID
    assert status == expected
