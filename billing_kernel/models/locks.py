"""
Lock and counter rows.

SequenceCounter backs invoice-number allocation; BillingLock rows exist only
to be locked with ``SELECT ... FOR UPDATE`` so that find-or-create of a
visit's invoice runs one caller at a time.  Names embed the tenant id, so
neither table needs its own tenant column.
"""

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from billing_kernel.db.base import Base


class SequenceCounter(Base):
    """
    Sequence counter table.

    Each row represents a named sequence with its current value.
    Row-level locking ensures monotonicity under concurrency.
    """

    __tablename__ = "sequence_counters"

    # e.g. "invoice_no:clinic-a:INV:20240101"
    name: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)

    current_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)


class BillingLock(Base):
    """Named lock row, e.g. ``visit:clinic-a:visit-17``."""

    __tablename__ = "billing_locks"

    name: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)
