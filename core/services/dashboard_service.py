from __future__ import annotations
from decimal import Decimal
from typing import List

from pydantic import BaseModel, Field

from core.models.invoice import Invoice
from core.services.catalog_service import CatalogService
from core.services.state import ShopState


class DashboardSummary(BaseModel):
    total_products: int = 0
    inventory_value: Decimal = Decimal("0")
    total_invoices: int = 0
    total_revenue: Decimal = Decimal("0")
    low_stock_count: int = 0
    out_of_stock_count: int = 0
    recent_invoices: List[Invoice] = Field(default_factory=list)


class DashboardService:
    RECENT_COUNT = 3

    def __init__(self, state: ShopState, catalog: CatalogService):
        self.state = state
        self.catalog = catalog

    def summary(self) -> DashboardSummary:
        invoices = self.state.invoices
        return DashboardSummary(
            total_products=len(self.state.products),
            inventory_value=self.catalog.inventory_value(),
            total_invoices=len(invoices),
            total_revenue=sum((inv.total for inv in invoices), Decimal("0")),
            low_stock_count=len(self.catalog.low_stock()),
            out_of_stock_count=len(self.catalog.out_of_stock()),
            # les plus récentes d'abord
            recent_invoices=list(reversed(invoices[-self.RECENT_COUNT:])),
        )
