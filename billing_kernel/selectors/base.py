"""
Module: billing_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors.
    Selectors provide structured read access to billing data without
    mutation capability.
Architecture position: Kernel > Selectors.  May import from db/, domain/
    (DTOs), models/ and the tenant-scoped repository.  MUST NOT import from
    outer layers.

Invariants enforced:
    - Read-only access: Selectors MUST NOT call session.add(),
      session.delete(), session.commit(), or session.flush().
    - DTO return convention: Selectors return frozen dataclasses, NOT ORM
      model instances.
    - Session ownership: the caller owns the session and its transaction.
"""

from abc import ABC

from billing_kernel.services.invoice_repository import InvoiceRepository


class BaseSelector(ABC):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors read through a tenant-bound repository and return DTOs.
        They MUST NOT mutate any data.
    """

    def __init__(self, repository: InvoiceRepository):
        self.repository = repository
        self.session = repository.session
