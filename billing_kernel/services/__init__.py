"""
Billing kernel services.

Every service here flushes within the caller's transaction and never
commits; BillingService in ``billing_services`` owns the boundary.
"""

from billing_kernel.services.charge_poster import ChargePoster, ChargePostingOutcome
from billing_kernel.services.directory import ClinicalDirectory, InMemoryDirectory
from billing_kernel.services.invoice_repository import InvoiceRepository
from billing_kernel.services.invoice_service import InvoiceService
from billing_kernel.services.payment_service import PaymentService
from billing_kernel.services.sequence_service import SequenceService
from billing_kernel.services.void_service import VoidService

__all__ = [
    "ChargePoster",
    "ChargePostingOutcome",
    "ClinicalDirectory",
    "InMemoryDirectory",
    "InvoiceRepository",
    "InvoiceService",
    "PaymentService",
    "SequenceService",
    "VoidService",
]
