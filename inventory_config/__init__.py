"""
inventory_config -- single public entrypoint for runtime configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  Services receive the resulting
    ``InventoryConfig`` by injection and never read files or environment
    variables themselves.

Sources, lowest precedence first:
    1. ``InventoryConfig`` field defaults
    2. the YAML file named by ``INVENTORY_CONFIG_PATH`` (or ``path=``),
       falling back to the bundled ``defaults.yaml``
    3. ``INVENTORY_DATABASE_URL`` / ``INVENTORY_TRANSACTION_MODE``

Audit relevance:
    Every call emits an ``inventory_config_loaded`` log entry with the
    configuration checksum, so a run can be tied to the exact settings that
    governed it.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

from inventory_config.loader import compute_checksum, load_config
from inventory_config.schema import TRANSACTION_MODES, InventoryConfig

_logger = logging.getLogger("inventory_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> InventoryConfig:
    """The ONLY public configuration entrypoint.

    Args:
        path: YAML file; defaults to ``$INVENTORY_CONFIG_PATH`` and then to
            the bundled defaults.
        environ: Environment mapping (defaults to ``os.environ``).
    """
    env = os.environ if environ is None else environ
    config_path = path or env.get("INVENTORY_CONFIG_PATH") or DEFAULT_CONFIG_PATH

    config = load_config(config_path, environ=env)
    _logger.info(
        "inventory_config_loaded",
        extra={
            "config_path": str(config_path),
            "checksum": compute_checksum(config),
            "transaction_mode": config.transaction_mode,
            "max_retries": config.max_retries,
        },
    )
    return config


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "InventoryConfig",
    "TRANSACTION_MODES",
    "compute_checksum",
    "get_active_config",
    "load_config",
]
