"""
ExternalChargePostingModel -- idempotency anchor for externally triggered charges.

One row per (tenant, source_type, source_event_id).  The unique constraint on
idempotency_key is what makes posting exactly-once: the second insert for the
same event fails inside a savepoint and the caller answers with the invoice
the first one recorded.
"""

from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from billing_kernel.db.base import TenantScopedBase


class ExternalChargePostingModel(TenantScopedBase):
    """Record that an external event's charges were posted to an invoice."""

    __tablename__ = "external_charge_postings"

    __table_args__ = (
        UniqueConstraint("idempotency_key", name="uq_external_charge_postings_key"),
        Index("idx_external_charge_postings_invoice_id", "invoice_id"),
    )

    idempotency_key: Mapped[str] = mapped_column(String(300), nullable=False)
    source_type: Mapped[str] = mapped_column(String(20), nullable=False)
    source_event_id: Mapped[str] = mapped_column(String(200), nullable=False)
    invoice_id: Mapped[UUID] = mapped_column(ForeignKey("invoices.id"), nullable=False)
    line_count: Mapped[int] = mapped_column(nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<ExternalChargePostingModel {self.idempotency_key} -> {self.invoice_id}>"
