"""
SequenceService -- invoice numbers and named locks on dedicated rows.

Responsibility:
    Hands out per-clinic, per-day invoice sequence values from a counter
    table, and lets a caller hold a named lock (one per visit) for the rest
    of its transaction.  Both rows are created lazily on first use and then
    locked with ``SELECT ... FOR UPDATE``.

Architecture position:
    Kernel > Services -- infrastructure shared by InvoiceService (numbers)
    and ChargePoster (visit lock).  Never commits.

Invariants enforced:
    - The next number is read from the locked counter row, never derived by
      counting or aggregating existing invoices.
    - A rolled-back allocation is given out again; gaps only appear when a
      later caller commits first.
    - A named lock lasts until the owning transaction ends.

Failure modes:
    - Two transactions creating the same row: the loser's insert fails in
      its own savepoint and it proceeds to lock the winner's row.
"""

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from billing_kernel.db.base import Base
from billing_kernel.domain.invoice_number import (
    counter_name,
    format_invoice_number,
    local_date,
)
from billing_kernel.logging_config import get_logger
from billing_kernel.models.locks import BillingLock, SequenceCounter

logger = get_logger("services.sequence")


class SequenceService:
    """
    Locked counters and named locks for one session.

        seq = SequenceService(session)
        seq.next_invoice_number("clinic-a", "INV", clock.now(), "Asia/Yangon")
    """

    def __init__(self, session: Session):
        self._session = session

    def _insert_if_absent(self, row: Base) -> None:
        savepoint = self._session.begin_nested()
        try:
            self._session.add(row)
            self._session.flush()
        except IntegrityError:
            savepoint.rollback()
            logger.debug(
                "row_created_concurrently",
                extra={"table": row.__tablename__, "row_name": row.name},
            )
        else:
            savepoint.commit()

    def next_value(self, sequence_name: str) -> int:
        """Increment the named counter under its row lock; the first value is 1."""
        locked = (
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        counter = self._session.execute(locked).scalar_one_or_none()
        if counter is None:
            self._insert_if_absent(SequenceCounter(name=sequence_name, current_value=0))
            counter = self._session.execute(locked).scalar_one()

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def next_invoice_number(
        self,
        tenant_id: str,
        prefix: str,
        moment: datetime,
        timezone_name: str,
    ) -> str:
        """``<prefix>-<YYYYMMDD>-<NNNN>``, dated by the clinic's local calendar."""
        day = local_date(moment, timezone_name)
        return format_invoice_number(
            prefix, day, self.next_value(counter_name(tenant_id, prefix, day))
        )

    def acquire_lock(self, lock_name: str) -> None:
        """
        Hold ``lock_name`` until this transaction ends.

        PostgreSQL blocks here while another transaction owns the row.
        SQLite ignores FOR UPDATE and relies on its single-writer lock.
        """
        locked = (
            select(BillingLock)
            .where(BillingLock.name == lock_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        if self._session.execute(locked).scalar_one_or_none() is None:
            self._insert_if_absent(BillingLock(name=lock_name))
            self._session.execute(locked).scalar_one()
        logger.debug("lock_acquired", extra={"lock_name": lock_name})


def visit_lock_name(tenant_id: str, visit_id: str) -> str:
    return f"visit:{tenant_id}:{visit_id}"
