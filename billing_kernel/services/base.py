"""
BaseService -- common base for billing services.

Responsibility:
    Provides the shared constructor (repository, policy, clock) and the one
    routine every mutation ends with: recomputing an invoice's totals and
    status from its lines, adjustments and payments.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.  Every service in
    ``billing_kernel/services/`` that mutates invoices extends this class.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's transaction
      and never commit or roll back the outer transaction themselves.  Each
      mutating operation runs inside its own savepoint (``atomic()``) so a
      failure leaves no partial write behind.
    - Totals and status are always derived, never assigned piecemeal:
      ``recalculate()`` is the only writer of sub_total, grand_total,
      amount_due and the non-VOID statuses.
"""

from abc import ABC

from sqlalchemy.orm import SessionTransaction

from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.domain.policy import BillingPolicy
from billing_kernel.domain.status import INVOICE_WORKFLOW, derive_status
from billing_kernel.domain.totals import compute_totals, persist_totals
from billing_kernel.domain.values import ensure_storable
from billing_kernel.exceptions import InvoiceVoidError
from billing_kernel.logging_config import get_logger
from billing_kernel.models.invoice import InvoiceModel
from billing_kernel.services.invoice_repository import InvoiceRepository

logger = get_logger("services.base")


class BaseService(ABC):
    """
    Abstract base class for billing services.

    Contract:
        Accepts a tenant-bound InvoiceRepository and uses its session's
        ``flush()`` to persist changes within the active transaction.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide read-model queries -- those belong in
          ``billing_kernel/selectors/``.
    """

    def __init__(
        self,
        repository: InvoiceRepository,
        policy: BillingPolicy | None = None,
        clock: Clock | None = None,
    ):
        self.repository = repository
        self.session = repository.session
        self.policy = policy or BillingPolicy()
        self.clock = clock or SystemClock()

    @property
    def tenant_id(self) -> str:
        return self.repository.tenant_id

    def atomic(self) -> SessionTransaction:
        """Savepoint scoping one mutating operation."""
        return self.session.begin_nested()

    def ensure_not_void(self, invoice: InvoiceModel, operation: str) -> None:
        if invoice.is_void:
            logger.warning(
                "invoice_mutation_rejected_void",
                extra={"invoice_id": str(invoice.id), "operation": operation},
            )
            raise InvoiceVoidError(str(invoice.id), operation)

    def recalculate(self, invoice: InvoiceModel, action: str) -> InvoiceModel:
        """
        Recompute totals and status from the invoice's current rows.

        Rounds once, when the values are written.  ``action`` names the
        triggering operation for the workflow check and the log line.
        """
        active = invoice.active_items
        totals = compute_totals(
            (item.line_total for item in active),
            invoice.discount_amt,
            invoice.tax_amt,
        )
        ensure_storable(totals.sub_total, "sub_total")
        ensure_storable(totals.grand_total, "grand_total")
        persisted = persist_totals(totals, invoice.amount_paid)

        old_status = invoice.status_enum
        new_status = derive_status(
            invoice.amount_paid,
            persisted.grand_total,
            voided=invoice.is_void,
            has_items=bool(active),
            empty_status=self.policy.empty_invoice_status,
        )
        assert INVOICE_WORKFLOW.allows(old_status, new_status), (
            f"Undeclared invoice transition {old_status.value} -> "
            f"{new_status.value} on {action}"
        )

        invoice.sub_total = persisted.sub_total
        invoice.grand_total = persisted.grand_total
        invoice.amount_due = persisted.amount_due
        invoice.status = new_status.value
        self.session.flush()

        logger.debug(
            "invoice_recalculated",
            extra={
                "invoice_id": str(invoice.id),
                "action": action,
                "sub_total": str(invoice.sub_total),
                "grand_total": str(invoice.grand_total),
                "amount_due": str(invoice.amount_due),
                "from_status": old_status.value,
                "to_status": new_status.value,
            },
        )
        return invoice
