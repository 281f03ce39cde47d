"""
ChargePoster -- exactly-once posting of externally triggered charges.

Responsibility:
    Turns an external event (a completed pharmacy dispense, a finished
    procedure) into invoice lines on the visit's open invoice, creating the
    invoice when the visit has none.  The same event posted twice, in
    sequence or concurrently, yields one set of lines.

Architecture position:
    Kernel > Services -- imperative shell.  Called by the BillingService
    facade from dispense-completion style hooks.  Reuses InvoiceService for
    invoice creation and line insertion.

Invariants enforced:
    - One ExternalChargePosting row per (tenant, source_type,
      source_event_id), guarded by a unique idempotency key.
    - Find-or-create of the visit's invoice runs under the visit lock row,
      so two events for one visit never open two invoices.
    - The open invoice is the earliest one of the visit that is neither VOID
      nor PAID.
    - Posted lines carry source_ref_id = source_event_id.

Failure modes:
    - A concurrent duplicate loses the unique-key insert: its savepoint is
      rolled back (including any invoice it opened) and it answers with the
      winner's invoice.
    - IntegrityError with no posting row to explain it propagates.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.exc import IntegrityError

from billing_kernel.domain.clock import Clock
from billing_kernel.domain.dtos import ChargeLine, ItemInput, coerce_source_type, from_mapping
from billing_kernel.domain.policy import BillingPolicy
from billing_kernel.domain.status import ItemSourceType
from billing_kernel.exceptions import EmptyChargeError, MissingDescriptionError
from billing_kernel.logging_config import get_logger
from billing_kernel.models.posting import ExternalChargePostingModel
from billing_kernel.services.base import BaseService
from billing_kernel.services.directory import ClinicalDirectory
from billing_kernel.services.invoice_repository import InvoiceRepository
from billing_kernel.services.invoice_service import InvoiceService
from billing_kernel.services.sequence_service import SequenceService, visit_lock_name
from billing_kernel.utils.idempotency import generate_idempotency_key

logger = get_logger("services.charge_poster")


@dataclass(frozen=True)
class ChargePostingOutcome:
    """Invoice that holds the event's lines, and whether this call wrote them."""

    invoice_id: UUID
    already_posted: bool


def as_charge_line(line: ChargeLine | Mapping) -> ChargeLine:
    return from_mapping(ChargeLine, line)


class ChargePoster(BaseService):
    """
    Idempotent external charge posting for one tenant.

    Usage:
        poster = ChargePoster(repo, directory)
        outcome = poster.post_external_charges(
            "dispense-42", "visit-1", "patient-1",
            [ChargeLine(quantity=5, unit_price=Decimal("0.00"), name="Paracetamol")],
        )
    """

    def __init__(
        self,
        repository: InvoiceRepository,
        directory: ClinicalDirectory,
        policy: BillingPolicy | None = None,
        clock: Clock | None = None,
        actor_id: UUID | None = None,
    ):
        super().__init__(repository, policy, clock)
        self.invoices = InvoiceService(repository, directory, self.policy, self.clock, actor_id)
        self._sequences = SequenceService(self.session)

    def post_external_charges(
        self,
        source_event_id: str,
        visit_id: str,
        patient_id: str,
        lines: Iterable[ChargeLine | Mapping],
        *,
        source_type: ItemSourceType | str | None = None,
    ) -> ChargePostingOutcome:
        """
        Post an event's lines once.

        Returns:
            ChargePostingOutcome with the invoice id; ``already_posted`` is
            True when an earlier call (or a concurrent winner) posted them.

        Raises:
            EmptyChargeError: ``lines`` is empty.
            MissingDescriptionError: A line has neither description nor name.
            VisitNotFoundError: Visit/patient unknown to the tenant.
        """
        kind = coerce_source_type(source_type or self.policy.external_charge_source_type)
        event_id = str(source_event_id)
        charge_lines = [as_charge_line(line) for line in lines]
        if not charge_lines:
            raise EmptyChargeError(event_id)
        items = [self._to_item(line, kind, event_id) for line in charge_lines]

        key = generate_idempotency_key(self.tenant_id, kind.value, event_id)

        existing = self.repository.find_posting(key)
        if existing is not None:
            logger.info(
                "external_charge_already_posted",
                extra={"idempotency_key": key, "invoice_id": str(existing.invoice_id)},
            )
            return ChargePostingOutcome(invoice_id=existing.invoice_id, already_posted=True)

        self.invoices.check_visit(visit_id, patient_id)
        self._sequences.acquire_lock(visit_lock_name(self.tenant_id, visit_id))

        # A winner that held the visit lock before us has committed by now
        existing = self.repository.find_posting(key)
        if existing is not None:
            logger.info(
                "external_charge_already_posted",
                extra={"idempotency_key": key, "invoice_id": str(existing.invoice_id)},
            )
            return ChargePostingOutcome(invoice_id=existing.invoice_id, already_posted=True)

        try:
            with self.atomic():
                invoice = self.repository.find_open_invoice_for_visit(visit_id, for_update=True)
                created = invoice is None
                if created:
                    invoice = self.invoices.open_invoice(visit_id, patient_id)
                self.repository.add_posting(
                    ExternalChargePostingModel(
                        idempotency_key=key,
                        source_type=kind.value,
                        source_event_id=event_id,
                        invoice_id=invoice.id,
                        line_count=len(items),
                    )
                )
                for item in items:
                    self.invoices.append_line(invoice, item, item.description)
                self.recalculate(invoice, "add_item")
        except IntegrityError:
            winner = self.repository.find_posting(key)
            if winner is None:
                raise
            logger.info(
                "external_charge_duplicate_lost_race",
                extra={"idempotency_key": key, "invoice_id": str(winner.invoice_id)},
            )
            return ChargePostingOutcome(invoice_id=winner.invoice_id, already_posted=True)

        logger.info(
            "external_charge_posted",
            extra={
                "idempotency_key": key,
                "invoice_id": str(invoice.id),
                "invoice_created": created,
                "line_count": len(items),
                "grand_total": str(invoice.grand_total),
            },
        )
        return ChargePostingOutcome(invoice_id=invoice.id, already_posted=False)

    @staticmethod
    def _to_item(line: ChargeLine, kind: ItemSourceType, event_id: str) -> ItemInput:
        description = line.resolved_description
        if description is None:
            raise MissingDescriptionError()
        return ItemInput(
            quantity=line.quantity,
            unit_price=line.unit_price,
            source_type=kind,
            description=description,
            source_ref_id=event_id,
        )
