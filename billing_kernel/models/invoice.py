"""
Invoice ORM Models (``billing_kernel.models.invoice``).

Responsibility
--------------
SQLAlchemy persistence for invoices, their lines and their payments, plus
conversion to the frozen read models in ``domain/dtos.py``.

Architecture position
---------------------
**Kernel > Models** -- persistence.  Imports from ``db/`` and ``domain/``.
MUST NOT import from services/ or selectors/.

Invariants enforced
-------------------
- Every row carries tenant_id (TenantScopedBase).
- invoice_no is unique per tenant (uq_invoices_tenant_invoice_no).
- Money columns are Numeric(12, 2) via the type annotation map.
- Payment rows are immutable once flushed: the ORM listeners at the bottom of
  this module reject UPDATE and DELETE.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint, event
from sqlalchemy.orm import Mapped, mapped_column, relationship

from billing_kernel.db.base import TenantScopedBase
from billing_kernel.domain.dtos import InvoiceItemView, InvoiceView, PaymentView
from billing_kernel.domain.status import InvoiceStatus, ItemSourceType, PaymentMethod
from billing_kernel.domain.values import Money
from billing_kernel.exceptions import ImmutablePaymentError


# ---------------------------------------------------------------------------
# 1. InvoiceModel
# ---------------------------------------------------------------------------


class InvoiceModel(TenantScopedBase):
    """
    ORM model for clinic invoices.

    Guarantees:
        - grand_total = max(sub_total - discount_amt + tax_amt, 0) after every
          service mutation.
        - amount_due = max(grand_total - amount_paid, 0), VOID included; a
          void invoice keeps its last balance and the status marks it written off.
        - status stored as the InvoiceStatus string value.
    """

    __tablename__ = "invoices"

    __table_args__ = (
        UniqueConstraint("tenant_id", "invoice_no", name="uq_invoices_tenant_invoice_no"),
        Index("idx_invoices_tenant_visit", "tenant_id", "visit_id"),
        Index("idx_invoices_tenant_patient", "tenant_id", "patient_id"),
        Index("idx_invoices_tenant_status", "tenant_id", "status"),
    )

    invoice_no: Mapped[str] = mapped_column(String(50), nullable=False)
    visit_id: Mapped[str] = mapped_column(String(64), nullable=False)
    patient_id: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=InvoiceStatus.DRAFT.value
    )
    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    sub_total: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    discount_amt: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    tax_amt: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    grand_total: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    amount_paid: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    amount_due: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    note: Mapped[str | None] = mapped_column(String(4000), nullable=True)
    void_reason: Mapped[str | None] = mapped_column(String(4000), nullable=True)
    voided_at: Mapped[datetime | None] = mapped_column(nullable=True)

    items: Mapped[list["InvoiceItemModel"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="InvoiceItemModel.line_no",
    )
    payments: Mapped[list["PaymentModel"]] = relationship(
        back_populates="invoice",
        cascade="save-update, merge",
        lazy="selectin",
        order_by=lambda: (PaymentModel.paid_at, PaymentModel.id),
    )

    @property
    def status_enum(self) -> InvoiceStatus:
        return InvoiceStatus(self.status)

    @property
    def is_void(self) -> bool:
        return self.status == InvoiceStatus.VOID.value

    @property
    def active_items(self) -> list["InvoiceItemModel"]:
        return [i for i in self.items if i.removed_at is None]

    def _money(self, amount: Decimal) -> Money:
        return Money(amount=amount, currency=self.currency)

    def to_dto(self) -> InvoiceView:
        """Convert ORM model to frozen read model."""
        return InvoiceView(
            id=self.id,
            tenant_id=self.tenant_id,
            invoice_no=self.invoice_no,
            visit_id=self.visit_id,
            patient_id=self.patient_id,
            status=self.status_enum,
            currency=self.currency,
            sub_total=self._money(self.sub_total),
            discount_amt=self._money(self.discount_amt),
            tax_amt=self._money(self.tax_amt),
            grand_total=self._money(self.grand_total),
            amount_paid=self._money(self.amount_paid),
            amount_due=self._money(self.amount_due),
            note=self.note,
            void_reason=self.void_reason,
            voided_at=self.voided_at,
            created_at=self.created_at,
            updated_at=self.updated_at,
            items=tuple(i.to_dto(self.currency) for i in self.items),
            payments=tuple(p.to_dto(self.currency) for p in self.payments),
        )

    def __repr__(self) -> str:
        return f"<InvoiceModel {self.invoice_no} [{self.status}] due={self.amount_due}>"


# ---------------------------------------------------------------------------
# 2. InvoiceItemModel
# ---------------------------------------------------------------------------


class InvoiceItemModel(TenantScopedBase):
    """
    ORM model for invoice lines.

    Guarantees:
        - line_total = quantity * unit_price, set by the service layer.
        - removed_at is set instead of deleting once the invoice has payments.
        - line_no orders lines within an invoice; allocated under the invoice
          row lock.
    """

    __tablename__ = "invoice_items"

    __table_args__ = (
        Index("idx_invoice_items_invoice_id", "invoice_id"),
        Index("idx_invoice_items_tenant_source", "tenant_id", "source_type", "source_ref_id"),
    )

    invoice_id: Mapped[UUID] = mapped_column(
        ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False
    )
    line_no: Mapped[int] = mapped_column(nullable=False, default=1)
    source_type: Mapped[str] = mapped_column(String(20), nullable=False)
    source_ref_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    service_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    description: Mapped[str] = mapped_column(String(4000), nullable=False)
    quantity: Mapped[int] = mapped_column(nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    line_total: Mapped[Decimal] = mapped_column(nullable=False)
    removed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    invoice: Mapped["InvoiceModel"] = relationship(back_populates="items")

    def to_dto(self, currency: str) -> InvoiceItemView:
        return InvoiceItemView(
            id=self.id,
            invoice_id=self.invoice_id,
            source_type=ItemSourceType(self.source_type),
            source_ref_id=self.source_ref_id,
            service_id=self.service_id,
            description=self.description,
            quantity=self.quantity,
            unit_price=Money(amount=self.unit_price, currency=currency),
            line_total=Money(amount=self.line_total, currency=currency),
            removed_at=self.removed_at,
        )

    def __repr__(self) -> str:
        return f"<InvoiceItemModel {self.description} x{self.quantity} = {self.line_total}>"


# ---------------------------------------------------------------------------
# 3. PaymentModel
# ---------------------------------------------------------------------------


class PaymentModel(TenantScopedBase):
    """
    ORM model for recorded payments.

    Payments are settled facts reported by the front desk; they are appended,
    never edited or removed.  A void leaves them in place.
    """

    __tablename__ = "payments"

    __table_args__ = (
        Index("idx_payments_invoice_id", "invoice_id"),
    )

    invoice_id: Mapped[UUID] = mapped_column(
        ForeignKey("invoices.id"), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    method: Mapped[str] = mapped_column(String(20), nullable=False)
    reference_no: Mapped[str | None] = mapped_column(String(100), nullable=True)
    note: Mapped[str | None] = mapped_column(String(4000), nullable=True)
    paid_at: Mapped[datetime] = mapped_column(nullable=False)

    invoice: Mapped["InvoiceModel"] = relationship(back_populates="payments")

    def to_dto(self, currency: str) -> PaymentView:
        return PaymentView(
            id=self.id,
            invoice_id=self.invoice_id,
            amount=Money(amount=self.amount, currency=currency),
            method=PaymentMethod(self.method),
            paid_at=self.paid_at,
            reference_no=self.reference_no,
            note=self.note,
        )

    def __repr__(self) -> str:
        return f"<PaymentModel {self.amount} {self.method}>"


# =============================================================================
# ORM-level immutability of payments
# =============================================================================


@event.listens_for(PaymentModel, "before_update")
def prevent_payment_update(mapper, connection, target):
    """Reject any UPDATE of a flushed payment row."""
    raise ImmutablePaymentError(payment_id=str(target.id), operation="update")


@event.listens_for(PaymentModel, "before_delete")
def prevent_payment_delete(mapper, connection, target):
    """Reject any DELETE of a payment row."""
    raise ImmutablePaymentError(payment_id=str(target.id), operation="delete")
