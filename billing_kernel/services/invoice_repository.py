"""
InvoiceRepository -- tenant-scoped persistence access for invoices.

Responsibility:
    The only component that builds queries against invoices, invoice items,
    payments and charge postings.  Bound to one tenant at construction;
    every statement it issues carries that tenant's filter.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.  Used by the
    invoice, payment, void and charge-posting services and by the invoice
    selector.

Invariants enforced:
    - There is no tenant-less query path: the tenant id is fixed at
      construction and cannot be empty.
    - Row locks: ``for_update=True`` issues ``SELECT ... FOR UPDATE`` with
      ``populate_existing`` so the caller works on the locked row's current
      values, never a stale identity-map copy.
    - Payment increments are server-side arithmetic
      (``amount_paid = amount_paid + :amount``).
    - Flush only; never commit.

Failure modes:
    - InvoiceNotFoundError / InvoiceItemNotFoundError when the row is absent
      or belongs to another tenant (indistinguishable by design of the
      tenant filter).
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from billing_kernel.domain.dtos import InvoiceFilter
from billing_kernel.domain.status import InvoiceStatus
from billing_kernel.exceptions import InvoiceItemNotFoundError, InvoiceNotFoundError
from billing_kernel.logging_config import get_logger
from billing_kernel.models.invoice import InvoiceItemModel, InvoiceModel, PaymentModel
from billing_kernel.models.posting import ExternalChargePostingModel

logger = get_logger("services.invoice_repository")


def as_uuid(value: UUID | str) -> UUID | None:
    """Parse an id supplied by a caller; None if it cannot be a valid id."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None


class InvoiceRepository:
    """
    Tenant-bound data access for the invoice aggregate.

    Contract:
        Constructed with a Session and a tenant id.  Reads return ORM
        instances for the services to mutate; writes flush within the
        caller's transaction.

    Non-goals:
        - Does NOT compute totals or statuses -- services do.
        - Does NOT manage transaction lifecycle (commit/rollback).
    """

    def __init__(self, session: Session, tenant_id: str):
        if not tenant_id or not str(tenant_id).strip():
            raise ValueError("InvoiceRepository requires a tenant id")
        self.session = session
        self._tenant_id = str(tenant_id)

    @property
    def tenant_id(self) -> str:
        return self._tenant_id

    # -------------------------------------------------------------------------
    # Invoices
    # -------------------------------------------------------------------------

    def get_invoice(self, invoice_id: UUID | str, *, for_update: bool = False) -> InvoiceModel:
        """
        Load an invoice of this tenant.

        Raises:
            InvoiceNotFoundError: If absent or owned by another tenant.
        """
        parsed = as_uuid(invoice_id)
        if parsed is None:
            raise InvoiceNotFoundError(str(invoice_id))

        stmt = select(InvoiceModel).where(
            InvoiceModel.id == parsed,
            InvoiceModel.tenant_id == self._tenant_id,
        )
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)

        invoice = self.session.execute(stmt).scalar_one_or_none()
        if invoice is None:
            raise InvoiceNotFoundError(str(invoice_id))
        return invoice

    def refresh_invoice(self, invoice: InvoiceModel) -> InvoiceModel:
        """Reload an invoice (columns and eager collections) from the database."""
        self.session.refresh(invoice)
        return invoice

    def find_open_invoice_for_visit(
        self, visit_id: str, *, for_update: bool = False
    ) -> InvoiceModel | None:
        """Earliest invoice of the visit that is neither VOID nor PAID."""
        stmt = (
            select(InvoiceModel)
            .where(
                InvoiceModel.tenant_id == self._tenant_id,
                InvoiceModel.visit_id == visit_id,
                InvoiceModel.status.not_in(
                    [InvoiceStatus.VOID.value, InvoiceStatus.PAID.value]
                ),
            )
            .order_by(InvoiceModel.created_at, InvoiceModel.invoice_no)
            .limit(1)
        )
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return self.session.execute(stmt).scalar_one_or_none()

    def list_invoices(self, criteria: InvoiceFilter) -> list[InvoiceModel]:
        """Invoices matching the filter, newest first."""
        stmt = select(InvoiceModel).where(InvoiceModel.tenant_id == self._tenant_id)
        if criteria.visit_id:
            stmt = stmt.where(InvoiceModel.visit_id == criteria.visit_id)
        if criteria.patient_id:
            stmt = stmt.where(InvoiceModel.patient_id == criteria.patient_id)
        if criteria.statuses:
            stmt = stmt.where(InvoiceModel.status.in_([s.value for s in criteria.statuses]))
        stmt = stmt.order_by(InvoiceModel.created_at.desc(), InvoiceModel.invoice_no.desc())
        if criteria.offset:
            stmt = stmt.offset(criteria.offset)
        if criteria.limit is not None:
            stmt = stmt.limit(criteria.limit)
        return list(self.session.execute(stmt).scalars().all())

    def add_invoice(self, invoice: InvoiceModel) -> InvoiceModel:
        invoice.tenant_id = self._tenant_id
        self.session.add(invoice)
        self.session.flush()
        return invoice

    def increment_amount_paid(self, invoice_id: UUID, amount: Decimal) -> None:
        """Add to amount_paid in the database, not from a value read earlier."""
        self.session.flush()
        self.session.execute(
            update(InvoiceModel)
            .where(
                InvoiceModel.id == invoice_id,
                InvoiceModel.tenant_id == self._tenant_id,
            )
            .values(amount_paid=InvoiceModel.amount_paid + amount)
            .execution_options(synchronize_session=False)
        )

    # -------------------------------------------------------------------------
    # Items
    # -------------------------------------------------------------------------

    def get_item(self, item_id: UUID | str) -> InvoiceItemModel:
        """
        Load a live (not removed) invoice item of this tenant.

        Raises:
            InvoiceItemNotFoundError: If absent, removed, or in another tenant.
        """
        parsed = as_uuid(item_id)
        if parsed is None:
            raise InvoiceItemNotFoundError(str(item_id))

        item = self.session.execute(
            select(InvoiceItemModel).where(
                InvoiceItemModel.id == parsed,
                InvoiceItemModel.tenant_id == self._tenant_id,
                InvoiceItemModel.removed_at.is_(None),
            ).execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if item is None:
            raise InvoiceItemNotFoundError(str(item_id))
        return item

    def next_line_no(self, invoice_id: UUID) -> int:
        """Next line number; call with the invoice row locked."""
        current = self.session.execute(
            select(func.max(InvoiceItemModel.line_no)).where(
                InvoiceItemModel.invoice_id == invoice_id,
                InvoiceItemModel.tenant_id == self._tenant_id,
            )
        ).scalar_one()
        return (current or 0) + 1

    def add_item(self, invoice: InvoiceModel, item: InvoiceItemModel) -> InvoiceItemModel:
        item.tenant_id = self._tenant_id
        item.line_no = self.next_line_no(invoice.id)
        invoice.items.append(item)
        self.session.flush()
        return item

    def delete_item(self, invoice: InvoiceModel, item: InvoiceItemModel) -> None:
        invoice.items.remove(item)
        self.session.flush()

    # -------------------------------------------------------------------------
    # Payments
    # -------------------------------------------------------------------------

    def add_payment(self, invoice: InvoiceModel, payment: PaymentModel) -> PaymentModel:
        payment.tenant_id = self._tenant_id
        invoice.payments.append(payment)
        self.session.flush()
        return payment

    def list_payments(self, invoice_id: UUID | str) -> list[PaymentModel]:
        """Payments of an invoice in the order they were recorded."""
        invoice = self.get_invoice(invoice_id)
        return list(
            self.session.execute(
                select(PaymentModel)
                .where(
                    PaymentModel.invoice_id == invoice.id,
                    PaymentModel.tenant_id == self._tenant_id,
                )
                .order_by(PaymentModel.paid_at, PaymentModel.created_at)
            ).scalars().all()
        )

    def count_payments(self, invoice_id: UUID) -> int:
        return self.session.execute(
            select(func.count(PaymentModel.id)).where(
                PaymentModel.invoice_id == invoice_id,
                PaymentModel.tenant_id == self._tenant_id,
            )
        ).scalar_one()

    # -------------------------------------------------------------------------
    # External charge postings
    # -------------------------------------------------------------------------

    def find_posting(self, idempotency_key: str) -> ExternalChargePostingModel | None:
        return self.session.execute(
            select(ExternalChargePostingModel).where(
                ExternalChargePostingModel.tenant_id == self._tenant_id,
                ExternalChargePostingModel.idempotency_key == idempotency_key,
            )
        ).scalar_one_or_none()

    def add_posting(self, posting: ExternalChargePostingModel) -> ExternalChargePostingModel:
        """Insert the idempotency anchor; IntegrityError if the key exists."""
        posting.tenant_id = self._tenant_id
        self.session.add(posting)
        self.session.flush()
        return posting
