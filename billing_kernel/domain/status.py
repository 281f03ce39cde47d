"""
Status -- invoice lifecycle enumerations and status derivation.

Responsibility:
    Defines the enumerations shared by models, services and callers
    (InvoiceStatus, ItemSourceType, PaymentMethod) and derive_status(), the
    pure function every mutation uses to set an invoice's status.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Status is a function of (amount_paid, grand_total, voided, has_items)
      and the empty-invoice policy.  Nothing else chooses a status except the
      Void Handler, which moves to the terminal VOID state.
    - VOID is terminal: derive_status() never leaves it.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum


class InvoiceStatus(str, Enum):
    """Invoice lifecycle states."""

    DRAFT = "DRAFT"
    PENDING = "PENDING"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    PAID = "PAID"
    VOID = "VOID"


class ItemSourceType(str, Enum):
    """Origin of an invoice line."""

    SERVICE = "SERVICE"
    PHARMACY = "PHARMACY"
    MANUAL = "MANUAL"


class PaymentMethod(str, Enum):
    """How a payment was settled (recorded, never processed)."""

    CASH = "CASH"
    CARD = "CARD"
    MOBILE_WALLET = "MOBILE_WALLET"
    BANK_TRANSFER = "BANK_TRANSFER"
    OTHER = "OTHER"


def derive_status(
    amount_paid: Decimal,
    grand_total: Decimal,
    *,
    voided: bool,
    has_items: bool,
    empty_status: InvoiceStatus = InvoiceStatus.DRAFT,
) -> InvoiceStatus:
    """
    Compute the status an invoice must carry.

    Rules, in order:
        voided                        -> VOID
        amount_paid == 0, no items    -> empty_status (DRAFT or PENDING policy)
        amount_paid == 0              -> PENDING
        0 < amount_paid < grand_total -> PARTIALLY_PAID
        amount_paid >= grand_total    -> PAID

    Args:
        amount_paid: Sum of recorded payments.
        grand_total: Invoice grand total (already floored at zero).
        voided: Whether the invoice has been voided.
        has_items: Whether any non-removed line exists.
        empty_status: Status for an unpaid invoice without lines.
    """
    if voided:
        return InvoiceStatus.VOID
    if amount_paid == 0:
        if not has_items:
            return empty_status
        return InvoiceStatus.PENDING
    if amount_paid < grand_total:
        return InvoiceStatus.PARTIALLY_PAID
    return InvoiceStatus.PAID


# -----------------------------------------------------------------------------
# Workflow description
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class Transition:
    """A valid state transition."""

    from_state: InvoiceStatus
    to_state: InvoiceStatus
    action: str


@dataclass(frozen=True)
class Workflow:
    """A state machine definition."""

    name: str
    description: str
    initial_states: tuple[InvoiceStatus, ...]
    terminal_states: tuple[InvoiceStatus, ...]
    transitions: tuple[Transition, ...]

    def allows(self, from_state: InvoiceStatus, to_state: InvoiceStatus) -> bool:
        """Whether moving between the two states is a declared transition."""
        if from_state == to_state:
            return from_state not in self.terminal_states
        return any(
            t.from_state == from_state and t.to_state == to_state
            for t in self.transitions
        )


_OPEN = (
    InvoiceStatus.DRAFT,
    InvoiceStatus.PENDING,
    InvoiceStatus.PARTIALLY_PAID,
    InvoiceStatus.PAID,
)

INVOICE_WORKFLOW = Workflow(
    name="clinic_invoice",
    description="Clinic invoice lifecycle",
    initial_states=(InvoiceStatus.DRAFT, InvoiceStatus.PENDING),
    terminal_states=(InvoiceStatus.VOID,),
    transitions=(
        Transition(InvoiceStatus.DRAFT, InvoiceStatus.PENDING, "add_item"),
        Transition(InvoiceStatus.PENDING, InvoiceStatus.DRAFT, "remove_item"),
        Transition(InvoiceStatus.DRAFT, InvoiceStatus.PARTIALLY_PAID, "post_payment"),
        Transition(InvoiceStatus.DRAFT, InvoiceStatus.PAID, "post_payment"),
        Transition(InvoiceStatus.PENDING, InvoiceStatus.PARTIALLY_PAID, "post_payment"),
        Transition(InvoiceStatus.PENDING, InvoiceStatus.PAID, "post_payment"),
        Transition(InvoiceStatus.PARTIALLY_PAID, InvoiceStatus.PAID, "post_payment"),
        # Adding lines or lowering a discount reopens a settled balance
        Transition(InvoiceStatus.PAID, InvoiceStatus.PARTIALLY_PAID, "recompute"),
        Transition(InvoiceStatus.PARTIALLY_PAID, InvoiceStatus.PAID, "recompute"),
    )
    + tuple(Transition(state, InvoiceStatus.VOID, "void") for state in _OPEN),
)
