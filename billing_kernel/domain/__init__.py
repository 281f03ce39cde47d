"""
Pure domain layer: value objects, status rules, totals arithmetic and DTOs.

Nothing in this package performs I/O or imports from models/ or services/.
"""

from billing_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from billing_kernel.domain.dtos import (
    ChargeLine,
    InvoiceFilter,
    InvoiceItemView,
    InvoiceView,
    ItemInput,
    ItemPatch,
    PaymentView,
)
from billing_kernel.domain.status import (
    INVOICE_WORKFLOW,
    InvoiceStatus,
    ItemSourceType,
    PaymentMethod,
    derive_status,
)
from billing_kernel.domain.totals import Totals, compute_amount_due, compute_totals
from billing_kernel.domain.values import Money, parse_amount

__all__ = [
    "ChargeLine",
    "Clock",
    "DeterministicClock",
    "INVOICE_WORKFLOW",
    "InvoiceFilter",
    "InvoiceItemView",
    "InvoiceStatus",
    "InvoiceView",
    "ItemInput",
    "ItemPatch",
    "ItemSourceType",
    "Money",
    "PaymentMethod",
    "PaymentView",
    "SystemClock",
    "Totals",
    "compute_amount_due",
    "compute_totals",
    "derive_status",
    "parse_amount",
]
