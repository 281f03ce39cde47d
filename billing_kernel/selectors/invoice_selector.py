"""
InvoiceSelector -- read access to invoices for collaborators.

Returns InvoiceView / PaymentView DTOs (with lines and payments embedded)
for one tenant.  Invoices of other tenants are indistinguishable from
missing ones.
"""

from __future__ import annotations

from uuid import UUID

from billing_kernel.domain.dtos import InvoiceFilter, InvoiceView, PaymentView
from billing_kernel.selectors.base import BaseSelector


class InvoiceSelector(BaseSelector):
    def get_invoice(self, invoice_id: UUID | str) -> InvoiceView:
        """
        Invoice with its lines (including removed ones) and payments.

        Raises:
            InvoiceNotFoundError: Absent or in another tenant.
        """
        return self.repository.get_invoice(invoice_id).to_dto()

    def list_invoices(self, criteria: InvoiceFilter | None = None) -> list[InvoiceView]:
        """Invoices matching ``criteria``, newest first."""
        models = self.repository.list_invoices(criteria or InvoiceFilter())
        return [m.to_dto() for m in models]

    def list_payments(self, invoice_id: UUID | str) -> list[PaymentView]:
        invoice = self.repository.get_invoice(invoice_id)
        return [p.to_dto(invoice.currency) for p in self.repository.list_payments(invoice.id)]
