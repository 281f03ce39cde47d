"""
ClinicalDirectory -- the billing core's view of clinical reference data.

Visits, patients and the service catalog belong to other parts of the clinic
system.  Billing only needs two answers from them: does this visit belong to
this patient within this tenant, and what is a catalog service called.  The
protocol below is that seam; InMemoryDirectory serves tests and embedded use.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class ClinicalDirectory(Protocol):
    """Lookup of visits and catalog services, always scoped to a tenant."""

    def visit_belongs_to(self, tenant_id: str, visit_id: str, patient_id: str) -> bool:
        """True if the visit exists in the tenant and belongs to the patient."""
        ...

    def service_name(self, tenant_id: str, service_id: str) -> str | None:
        """Display name of a catalog service, or None if unknown to the tenant."""
        ...


class InMemoryDirectory:
    """Dictionary-backed ClinicalDirectory."""

    def __init__(self) -> None:
        self._visits: dict[tuple[str, str], str] = {}
        self._services: dict[tuple[str, str], str] = {}

    def register_visit(self, tenant_id: str, visit_id: str, patient_id: str) -> None:
        self._visits[(tenant_id, visit_id)] = patient_id

    def register_service(self, tenant_id: str, service_id: str, name: str) -> None:
        self._services[(tenant_id, service_id)] = name

    def visit_belongs_to(self, tenant_id: str, visit_id: str, patient_id: str) -> bool:
        return self._visits.get((tenant_id, visit_id)) == patient_id

    def service_name(self, tenant_id: str, service_id: str) -> str | None:
        return self._services.get((tenant_id, service_id))
