"""
VoidService -- one-way cancellation of invoices.

Voiding freezes an invoice: status becomes VOID and the reason and time are
recorded.  Totals, amount_paid and amount_due keep their last computed values,
so the outstanding balance stays visible while VOID marks it written off.
Recorded payments stay exactly as they were; refunds are a front-desk matter
outside the billing core.  After a void every structural change and every
payment is rejected with InvoiceVoidError, and a second void with
InvoiceAlreadyVoidError.
"""

from __future__ import annotations

from uuid import UUID

from billing_kernel.domain.clock import Clock
from billing_kernel.domain.policy import BillingPolicy
from billing_kernel.domain.status import INVOICE_WORKFLOW, InvoiceStatus
from billing_kernel.exceptions import EmptyVoidReasonError, InvoiceAlreadyVoidError
from billing_kernel.logging_config import get_logger
from billing_kernel.models.invoice import InvoiceModel
from billing_kernel.services.base import BaseService
from billing_kernel.services.invoice_repository import InvoiceRepository

logger = get_logger("services.void")


class VoidService(BaseService):
    def __init__(
        self,
        repository: InvoiceRepository,
        policy: BillingPolicy | None = None,
        clock: Clock | None = None,
        actor_id: UUID | None = None,
    ):
        super().__init__(repository, policy, clock)
        self.actor_id = actor_id

    def void_invoice(self, invoice_id: UUID | str, reason: str) -> InvoiceModel:
        """
        Void an invoice.

        Raises:
            EmptyVoidReasonError: Reason blank after trimming.
            InvoiceNotFoundError: Invoice absent from the tenant.
            InvoiceAlreadyVoidError: Invoice is already VOID.
        """
        cleaned = (reason or "").strip()
        if not cleaned:
            raise EmptyVoidReasonError(str(invoice_id))

        with self.atomic():
            invoice = self.repository.get_invoice(invoice_id, for_update=True)
            if invoice.is_void:
                raise InvoiceAlreadyVoidError(str(invoice.id))

            old_status = invoice.status_enum
            assert INVOICE_WORKFLOW.allows(old_status, InvoiceStatus.VOID)

            invoice.status = InvoiceStatus.VOID.value
            invoice.void_reason = cleaned
            invoice.voided_at = self.clock.now()
            invoice.updated_by_id = self.actor_id
            self.session.flush()

        logger.info(
            "invoice_voided",
            extra={
                "invoice_id": str(invoice.id),
                "from_status": old_status.value,
                "amount_paid": str(invoice.amount_paid),
            },
        )
        return invoice
