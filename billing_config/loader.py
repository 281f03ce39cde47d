"""
Configuration Loader (``billing_config.loader``).

Responsibility
--------------
Reads a YAML configuration file and parses it into a ``BillingConfig``.
Runtime callers go through ``billing_config.get_active_config()``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown or invalid keys  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
from dataclasses import fields
from pathlib import Path
from typing import Any

import yaml

from billing_config.schema import BillingConfig

_KNOWN_KEYS = frozenset(f.name for f in fields(BillingConfig)) - {"checksum"}


def compute_checksum(content: bytes) -> str:
    """Deterministic SHA-256 of a configuration file's bytes."""
    return hashlib.sha256(content).hexdigest()


def parse_config(data: dict[str, Any], checksum: str = "") -> BillingConfig:
    """
    Build a BillingConfig from a parsed YAML mapping.

    The mapping may nest the settings under a top-level ``billing`` key.
    """
    if not isinstance(data, dict):
        raise ValueError("Configuration root must be a mapping")
    section = data.get("billing", data)
    if not isinstance(section, dict):
        raise ValueError("'billing' section must be a mapping")

    unknown = set(section) - _KNOWN_KEYS
    if unknown:
        raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")

    return BillingConfig(checksum=checksum, **section)


def load_config(path: Path | str) -> BillingConfig:
    """Load and validate a YAML configuration file."""
    raw = Path(path).read_bytes()
    data = yaml.safe_load(raw) or {}
    return parse_config(data, checksum=compute_checksum(raw))
