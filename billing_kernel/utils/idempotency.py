"""
Idempotency key generation utilities.

Idempotency keys ensure that the same external event (a completed dispense,
a finished procedure) posts its charges exactly once, even under retries and
concurrent delivery.
"""


def generate_idempotency_key(
    tenant_id: str,
    source_type: str,
    source_event_id: str,
) -> str:
    """
    Generate an idempotency key for an external charge event.

    Format: tenant_id:source_type:source_event_id

    The key is stored on ExternalChargePosting under a unique constraint.

    Example:
        >>> generate_idempotency_key("clinic-a", "PHARMACY", "disp-42")
        'clinic-a:PHARMACY:disp-42'
    """
    return f"{tenant_id}:{source_type}:{source_event_id}"


def parse_idempotency_key(key: str) -> tuple[str, str, str]:
    """
    Parse an idempotency key into (tenant_id, source_type, source_event_id).

    The event id may itself contain colons; only the first two separate.

    Raises:
        ValueError: If key format is invalid.
    """
    parts = key.split(":", 2)
    if len(parts) != 3:
        raise ValueError(f"Invalid idempotency key format: {key}")
    return parts[0], parts[1], parts[2]
