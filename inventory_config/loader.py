"""
Configuration Loader (``inventory_config.loader``).

Responsibility
--------------
Loads a YAML settings file, applies environment overrides and parses the
result into a frozen ``InventoryConfig``.  Runtime callers go through
``inventory_config.get_active_config()``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown keys  -> ``ValueError`` naming them; no silent ignores.
* Invalid values  -> ``ValueError`` from ``InventoryConfig.__post_init__``.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from dataclasses import fields
from pathlib import Path
from typing import Any

import yaml

from inventory_config.schema import InventoryConfig

# Environment variable -> config field
ENV_OVERRIDES = {
    "INVENTORY_DATABASE_URL": "database_url",
    "INVENTORY_TRANSACTION_MODE": "transaction_mode",
}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_config(data: Mapping[str, Any]) -> InventoryConfig:
    """Build an ``InventoryConfig`` from a mapping of field values.

    Accepts either the fields at the top level or nested under an
    ``inventory`` key.
    """
    if "inventory" in data and isinstance(data["inventory"], Mapping):
        data = data["inventory"]

    known = {f.name for f in fields(InventoryConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown configuration keys: {', '.join(unknown)}")
    return InventoryConfig(**dict(data))


def apply_env_overrides(
    data: Mapping[str, Any],
    environ: Mapping[str, str],
) -> dict[str, Any]:
    """Return a copy of ``data`` with any ``ENV_OVERRIDES`` present applied."""
    section = data.get("inventory")
    merged = dict(section) if isinstance(section, Mapping) else dict(data)
    for env_name, field_name in ENV_OVERRIDES.items():
        value = environ.get(env_name)
        if value:
            merged[field_name] = value
    return merged


def load_config(
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> InventoryConfig:
    """Load configuration from ``path`` (optional) plus environment overrides."""
    data: dict[str, Any] = load_yaml_file(Path(path)) if path is not None else {}
    if environ is not None:
        data = apply_env_overrides(data, environ)
    return parse_config(data)


def compute_checksum(config: InventoryConfig) -> str:
    """Deterministic SHA-256 of the configuration (database_url excluded)."""
    payload = config.to_dict()
    payload.pop("database_url", None)
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
