"""
Invoice numbering -- human-facing invoice numbers.

Format: ``<prefix>-<YYYYMMDD>-<NNNN>``, e.g. ``INV-20240101-0001``.  The date
is the clinic's local calendar date, so numbers roll over at local midnight
rather than UTC midnight.  The sequence part is zero-padded to four digits
and simply grows wider past 9999.
"""

from __future__ import annotations

from datetime import date, datetime
from zoneinfo import ZoneInfo

SEQUENCE_WIDTH = 4


def local_date(moment: datetime, timezone_name: str) -> date:
    """Calendar date of ``moment`` in the named timezone."""
    return moment.astimezone(ZoneInfo(timezone_name)).date()


def counter_name(tenant_id: str, prefix: str, day: date) -> str:
    """Name of the sequence row backing one tenant's numbers for one day."""
    return f"invoice_no:{tenant_id}:{prefix}:{day:%Y%m%d}"


def format_invoice_number(prefix: str, day: date, sequence: int) -> str:
    if sequence <= 0:
        raise ValueError(f"Invoice sequence must be positive, got {sequence}")
    return f"{prefix}-{day:%Y%m%d}-{sequence:0{SEQUENCE_WIDTH}d}"
