"""
Stock Module.

Catalogue registration, manual adjustments and the low-stock report.
"""

from inventory_modules.stock.models import (
    DashboardSummary,
    ProductView,
    VariantRequest,
    VariantView,
)
from inventory_modules.stock.service import StockService

__all__ = [
    "DashboardSummary",
    "ProductView",
    "StockService",
    "VariantRequest",
    "VariantView",
]
