"""
Module: billing_kernel.db.base
Responsibility: The declarative base every billing table maps onto, plus the
    column groups shared across tables (audit stamps, acting user, tenant).
Architecture position: Kernel > DB.  Imports only SQLAlchemy and db/types.
    MUST NOT import from models/, services/, selectors/ or domain/.

Invariants enforced:
    - Primary keys are random UUIDs held as 36-character text, so the same
      schema runs on PostgreSQL and SQLite.
    - A Decimal attribute becomes a Numeric money column, never a float.
    - Billing rows cannot be written without a tenant_id.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from billing_kernel.db.types import MONEY_DECIMAL_PLACES, MONEY_PRECISION


class UUIDString(TypeDecorator):
    """UUID column persisted as its canonical hyphenated text."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else PyUUID(value)


class Base(DeclarativeBase):
    type_annotation_map: ClassVar[dict] = {
        PyUUID: UUIDString(),
        Decimal: Numeric(MONEY_PRECISION, MONEY_DECIMAL_PLACES),
        datetime: DateTime(timezone=True),
    }

    id: Mapped[PyUUID] = mapped_column(primary_key=True, default=uuid4)


class AuditStampMixin:
    """
    Who touched the row and when.

    Timestamps come from the database clock.  The actor columns stay
    nullable: dispense-completion postings arrive with no user attached.
    """

    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now()
    )
    created_by_id: Mapped[PyUUID | None] = mapped_column()
    updated_by_id: Mapped[PyUUID | None] = mapped_column()


class TrackedBase(AuditStampMixin, Base):
    __abstract__ = True


class TenantScopedBase(TrackedBase):
    """Rows owned by exactly one clinic."""

    __abstract__ = True

    tenant_id: Mapped[str] = mapped_column(String(64), index=True)


UUID = PyUUID
