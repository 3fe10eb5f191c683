"""
Configuration schema (``inventory_config.schema``).

Frozen dataclass describing every runtime setting.  Validation happens in
``__post_init__`` so an invalid configuration can never be constructed.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

TRANSACTION_MODES = ("auto", "required", "disabled")


@dataclass(frozen=True)
class InventoryConfig:
    """
    Runtime settings.

    transaction_mode:
        ``auto`` probes the store, ``required`` never degrades,
        ``disabled`` always runs in direct (non-transactional) mode.
    max_retries:
        Total attempts per unit of work for retryable conflicts.
    retry_backoff_seconds:
        Attempt n sleeps ``n * retry_backoff_seconds`` before retrying.
    """

    transaction_mode: str = "auto"
    max_retries: int = 3
    retry_backoff_seconds: float = 0.1
    default_low_stock_threshold: int = 10
    order_number_prefix: str = "ORD"
    po_number_prefix: str = "PO"
    number_width: int = 6
    database_url: str | None = None
    echo_sql: bool = False

    def __post_init__(self) -> None:
        if self.transaction_mode not in TRANSACTION_MODES:
            raise ValueError(
                f"transaction_mode must be one of {TRANSACTION_MODES}, "
                f"got {self.transaction_mode!r}"
            )
        if not isinstance(self.max_retries, int) or self.max_retries < 1:
            raise ValueError(f"max_retries must be an integer >= 1, got {self.max_retries!r}")
        if self.retry_backoff_seconds < 0:
            raise ValueError(
                f"retry_backoff_seconds must be >= 0, got {self.retry_backoff_seconds!r}"
            )
        if self.default_low_stock_threshold < 0:
            raise ValueError(
                "default_low_stock_threshold must be >= 0, "
                f"got {self.default_low_stock_threshold!r}"
            )
        if not self.order_number_prefix or not self.po_number_prefix:
            raise ValueError("document number prefixes must be non-empty")
        if self.order_number_prefix == self.po_number_prefix:
            raise ValueError("order and purchase order prefixes must differ")
        if not isinstance(self.number_width, int) or self.number_width < 1:
            raise ValueError(f"number_width must be an integer >= 1, got {self.number_width!r}")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
