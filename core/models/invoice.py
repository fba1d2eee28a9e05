from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Literal, Optional
from datetime import datetime
from decimal import Decimal
from .common import gen_id

PaymentMethod = Literal["cash", "credit"]
PaymentStatus = Literal["paid", "pending", "overdue"]

PAYMENT_METHODS = ("cash", "credit")
PAYMENT_STATUSES = ("paid", "pending", "overdue")


class InvoiceLine(BaseModel):
    product_id: str
    product_name: str          # snapshot au moment de l'ajout
    quantity: int = Field(gt=0)
    unit_price: Decimal = Field(ge=0)  # snapshot au moment de l'ajout

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


class Invoice(BaseModel):
    model_config = ConfigDict(extra="ignore")  # tolère d'anciennes clés dans les JSON

    id: str = Field(default_factory=gen_id)
    invoice_number: str

    customer_name: str
    customer_phone: Optional[str] = None

    items: List[InvoiceLine] = Field(default_factory=list)
    subtotal: Decimal = Decimal("0")
    discount: Decimal = Decimal("0")
    tax: Decimal = Decimal("0")
    total: Decimal = Decimal("0")

    date: datetime = Field(default_factory=datetime.now)
    due_date: Optional[datetime] = None

    payment_method: PaymentMethod = "cash"
    payment_status: PaymentStatus = "paid"
    notes: Optional[str] = None

    # helpers
    def compute_subtotal(self) -> Decimal:
        return sum((ln.line_total for ln in self.items), Decimal("0"))

    def compute_total(self) -> Decimal:
        return self.subtotal - self.discount + self.tax
