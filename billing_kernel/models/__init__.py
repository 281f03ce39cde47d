"""
ORM models for the billing kernel.

Importing this package registers every table on ``Base.metadata``.
"""

from billing_kernel.models.invoice import InvoiceItemModel, InvoiceModel, PaymentModel
from billing_kernel.models.locks import BillingLock, SequenceCounter
from billing_kernel.models.posting import ExternalChargePostingModel

__all__ = [
    "BillingLock",
    "ExternalChargePostingModel",
    "InvoiceItemModel",
    "InvoiceModel",
    "PaymentModel",
    "SequenceCounter",
]
