from __future__ import annotations

import enum
import logging
from collections import Counter
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Tuple

from core.errors import (
    ConcurrentStockConflictError,
    NotFoundError,
    OutOfStockError,
    ValidationError,
)
from core.models.invoice import PAYMENT_METHODS, Invoice, InvoiceLine
from core.services.catalog_service import CatalogService
from core.services.invoice_service import InvoiceService

logger = logging.getLogger(__name__)


class BuilderState(str, enum.Enum):
    EMPTY = "empty"
    BUILDING = "building"
    COMMITTED = "committed"


def _as_decimal(value, label: str) -> Decimal:
    try:
        amount = Decimal(str(value if value not in (None, "") else 0))
    except ArithmeticError as e:
        raise ValidationError(f"Montant invalide : {label}", field=label) from e
    if not amount.is_finite():
        raise ValidationError(f"Montant invalide : {label}", field=label)
    return amount


class InvoiceBuilder:
    """
    Facture en cours de saisie : EMPTY -> BUILDING -> COMMITTED.
    discard() vide les lignes et revient à EMPTY sans toucher au catalogue.
    Prix et libellés sont figés à l'ajout de la ligne.
    """

    def __init__(
        self,
        catalog: CatalogService,
        invoices: InvoiceService,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.catalog = catalog
        self.invoices = invoices
        self.clock = clock
        self._items: List[InvoiceLine] = []
        self._committed: Optional[Invoice] = None

    # ---------- État ---------- #

    @property
    def state(self) -> BuilderState:
        if self._committed is not None:
            return BuilderState.COMMITTED
        return BuilderState.BUILDING if self._items else BuilderState.EMPTY

    @property
    def items(self) -> List[InvoiceLine]:
        return [ln.model_copy() for ln in self._items]

    @property
    def invoice(self) -> Optional[Invoice]:
        return self._committed

    def _ensure_open(self) -> None:
        if self._committed is not None:
            raise ValidationError(f"Facture {self._committed.invoice_number} déjà validée")

    def _line_index(self, product_id: str) -> int:
        for i, ln in enumerate(self._items):
            if ln.product_id == product_id:
                return i
        return -1

    # ---------- Lignes ---------- #

    def add_item(self, product_id: str, quantity: int) -> InvoiceLine:
        self._ensure_open()
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
            raise ValidationError("Quantité invalide : entier positif attendu", field="quantity")
        product = self.catalog.get(product_id)

        idx = self._line_index(product_id)
        combined = quantity + (self._items[idx].quantity if idx >= 0 else 0)
        if combined > product.quantity:
            raise OutOfStockError(product_id, combined, product.quantity)

        if idx >= 0:
            self._items[idx].quantity = combined
            return self._items[idx].model_copy()

        line = InvoiceLine(
            product_id=product.id,
            product_name=product.name,
            quantity=quantity,
            unit_price=product.price,
        )
        self._items.append(line)
        return line.model_copy()

    def remove_item(self, product_id: str) -> None:
        self._ensure_open()
        idx = self._line_index(product_id)
        if idx < 0:
            raise NotFoundError("Ligne de facture", product_id)
        del self._items[idx]

    def discard(self) -> None:
        self._ensure_open()
        self._items.clear()

    # ---------- Totaux ---------- #

    def compute_subtotal(self) -> Decimal:
        return sum((ln.line_total for ln in self._items), Decimal("0"))

    def compute_total(self, discount=0, tax=0) -> Decimal:
        # pas de plancher à zéro : une remise > sous-total donne un total négatif
        return self.compute_subtotal() - _as_decimal(discount, "discount") + _as_decimal(tax, "tax")

    # ---------- Validation ---------- #

    def _check_stock(self) -> Dict[str, Tuple[int, int]]:
        """Vérifie tout le lot avant la moindre décrémentation."""
        demand: Counter[str] = Counter()
        for ln in self._items:
            demand[ln.product_id] += ln.quantity
        shortages: Dict[str, Tuple[int, int]] = {}
        remaining: Dict[str, int] = {}
        for product_id, qty in demand.items():
            product = self.catalog.get(product_id)  # NotFoundError si supprimé entre-temps
            if product.quantity - qty < 0:
                shortages[product_id] = (qty, product.quantity)
            remaining[product_id] = product.quantity - qty
        if shortages:
            raise ConcurrentStockConflictError(shortages)
        return remaining

    def commit(
        self,
        customer_name: str,
        payment_method: str = "cash",
        discount=0,
        tax=0,
        due_days: Optional[int] = None,
        *,
        customer_phone: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Invoice:
        self._ensure_open()
        name = (customer_name or "").strip()
        if not name:
            raise ValidationError("Nom du client obligatoire", field="customer_name")
        if not self._items:
            raise ValidationError("Ajoutez au moins un produit à la facture", field="items")
        if payment_method not in PAYMENT_METHODS:
            raise ValidationError(f"Mode de paiement inconnu : {payment_method}", field="payment_method")
        if due_days is not None and (not isinstance(due_days, int) or due_days < 0):
            raise ValidationError("Délai de paiement invalide", field="due_days")
        discount_d = _as_decimal(discount, "discount")
        tax_d = _as_decimal(tax, "tax")

        remaining = self._check_stock()

        now = self.clock()
        subtotal = self.compute_subtotal()
        credit = payment_method == "credit"
        inv = Invoice(
            invoice_number="",
            customer_name=name,
            customer_phone=(customer_phone or "").strip() or None,
            items=[ln.model_copy() for ln in self._items],
            subtotal=subtotal,
            discount=discount_d,
            tax=tax_d,
            total=subtotal - discount_d + tax_d,
            date=now,
            due_date=now + timedelta(days=due_days) if credit and due_days is not None else None,
            payment_method=payment_method,
            payment_status="pending" if credit else "paid",
            notes=(notes or "").strip() or None,
        )
        # numéro attribué une fois la facture validée
        inv.invoice_number = self.invoices.next_invoice_number(now)

        for product_id, qty in remaining.items():
            self.catalog.set_quantity(product_id, qty)
        self.invoices.add_invoice(inv)

        self._committed = inv
        logger.info("Facture %s validée : %d lignes, total %s", inv.invoice_number, len(inv.items), inv.total)
        return inv
