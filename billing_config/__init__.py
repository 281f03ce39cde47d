"""
billing_config -- single public entrypoint for billing configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration files
    or environment variables directly.

Architecture position:
    Configuration -- sits above ``billing_kernel`` and below
    ``billing_services``.  The kernel MUST NEVER import from
    ``billing_config``; ``bridges.build_billing_policy`` translates the
    loaded configuration into the kernel's BillingPolicy.

Failure modes:
    - ``FileNotFoundError`` -- BILLING_CONFIG_PATH names a missing file.
    - ``ValueError`` -- schema validation failures.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``BILLING_CONFIG_TRACE`` log entry with config_id, version and checksum.
"""

from __future__ import annotations

import os
from pathlib import Path

from billing_config.bridges import build_billing_policy
from billing_config.loader import load_config
from billing_config.schema import BillingConfig
from billing_kernel.logging_config import get_logger

_logger = get_logger("config")

CONFIG_PATH_ENV = "BILLING_CONFIG_PATH"
DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(path: Path | str | None = None) -> BillingConfig:
    """
    The ONLY public configuration entrypoint.

    Resolution order: explicit ``path``, then ``BILLING_CONFIG_PATH``, then
    the bundled ``defaults.yaml``.
    """
    resolved = Path(path or os.environ.get(CONFIG_PATH_ENV) or DEFAULT_CONFIG_PATH)
    config = load_config(resolved)
    # Fail here, not at first use, if the kernel cannot accept the values
    build_billing_policy(config)

    _logger.info(
        "BILLING_CONFIG_TRACE",
        extra={
            "trace_type": "BILLING_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "source": str(resolved),
        },
    )
    return config


__all__ = [
    "BillingConfig",
    "build_billing_policy",
    "get_active_config",
    "load_config",
]
