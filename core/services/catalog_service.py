from __future__ import annotations

import logging
import random
from decimal import Decimal
from typing import Any, Dict, List, Literal, Mapping, Optional, Union

from pydantic import ValidationError as ModelValidationError

from core.errors import NotFoundError, ValidationError
from core.models.product import Product, ProductDraft
from core.services.state import PRODUCTS_KEY, ShopState

logger = logging.getLogger(__name__)

StockStatus = Literal["out", "low", "ok"]

DEFAULT_LOW_STOCK = 10

_FIELD_LABELS = {
    "name": "nom",
    "price": "prix",
    "quantity": "quantité",
    "category": "catégorie",
    "barcode": "code-barres",
}


def _to_draft(payload: Union[ProductDraft, Mapping[str, Any]]) -> ProductDraft:
    """Valide une saisie ; les erreurs pydantic deviennent des ValidationError métier."""
    data = payload.model_dump() if isinstance(payload, ProductDraft) else dict(payload)
    data.pop("id", None)
    # champ vide == champ absent
    data = {k: v for k, v in data.items() if k == "barcode" or v not in (None, "")}
    try:
        return ProductDraft.model_validate(data)
    except ModelValidationError as e:
        err = e.errors()[0]
        field = str(err["loc"][0]) if err.get("loc") else None
        label = _FIELD_LABELS.get(field or "", field or "produit")
        if err["type"] == "missing" or err["type"] == "string_too_short":
            msg = f"Champ obligatoire : {label}"
        elif err["type"] in ("greater_than_equal", "greater_than"):
            msg = f"Valeur négative interdite : {label}"
        else:
            msg = f"Valeur invalide : {label}"
        raise ValidationError(msg, field=field) from e


def stock_status(quantity: int, threshold: int = DEFAULT_LOW_STOCK) -> StockStatus:
    if quantity == 0:
        return "out"
    if quantity < threshold:
        return "low"
    return "ok"


class CatalogService:
    """
    Catalogue produits en mémoire (ShopState.products).
    - add / update / remove / find_by_code / set_quantity
    - unicité du code-barres quand il est renseigné
    - chaque mutation signale PRODUCTS_KEY au ShopState (sauvegarde différée)
    """

    def __init__(self, state: ShopState, low_stock_threshold: int = DEFAULT_LOW_STOCK) -> None:
        self.state = state
        self.low_stock_threshold = low_stock_threshold

    # ---------- Helpers ---------- #

    def _index_of(self, product_id: str) -> int:
        for i, p in enumerate(self.state.products):
            if p.id == product_id:
                return i
        raise NotFoundError("Produit", product_id)

    def _check_barcode_unique(self, barcode: Optional[str], exclude_id: Optional[str] = None) -> None:
        if not barcode:
            return
        for p in self.state.products:
            if p.barcode == barcode and p.id != exclude_id:
                raise ValidationError(f"Code-barres déjà utilisé par « {p.name} »", field="barcode")

    def _changed(self) -> None:
        self.state.changed(PRODUCTS_KEY)

    # ---------- Lecture ---------- #

    def list_products(self) -> List[Product]:
        return list(self.state.products)

    def get(self, product_id: str) -> Product:
        return self.state.products[self._index_of(product_id)]

    def find_by_code(self, barcode: str) -> Product:
        code = (barcode or "").strip()
        if code:
            for p in self.state.products:
                if p.barcode == code:
                    return p
        raise NotFoundError("Code-barres", code)

    # ---------- Mutations ---------- #

    def add(self, payload: Union[ProductDraft, Mapping[str, Any]]) -> Product:
        draft = _to_draft(payload)
        self._check_barcode_unique(draft.barcode)
        product = Product(**draft.model_dump())
        self.state.products.append(product)
        logger.info("Produit ajouté : %s (%s)", product.name, product.id)
        self._changed()
        return product

    def update(self, product_id: str, fields: Union[ProductDraft, Mapping[str, Any]]) -> Product:
        idx = self._index_of(product_id)
        draft = _to_draft(fields)
        self._check_barcode_unique(draft.barcode, exclude_id=product_id)
        product = Product(id=product_id, **draft.model_dump())
        self.state.products[idx] = product
        logger.info("Produit modifié : %s (%s)", product.name, product_id)
        self._changed()
        return product

    def remove(self, product_id: str) -> Product:
        idx = self._index_of(product_id)
        product = self.state.products.pop(idx)
        logger.info("Produit supprimé : %s (%s)", product.name, product_id)
        self._changed()
        return product

    def set_quantity(self, product_id: str, new_quantity: int) -> Product:
        if not isinstance(new_quantity, int) or isinstance(new_quantity, bool):
            raise ValidationError("La quantité doit être un entier", field="quantity")
        if new_quantity < 0:
            raise ValidationError("Valeur négative interdite : quantité", field="quantity")
        product = self.get(product_id)
        product.quantity = new_quantity
        self._changed()
        return product

    # ---------- Inventaire ---------- #

    def categories(self) -> List[str]:
        seen: Dict[str, None] = {}
        for p in self.state.products:
            seen.setdefault(p.category, None)
        return list(seen)

    def search(self, text: str = "", category: str = "all") -> List[Product]:
        """Recherche insensible à la casse sur nom / catégorie / code-barres."""
        needle = (text or "").strip().casefold()
        out: List[Product] = []
        for p in self.state.products:
            if category != "all" and p.category != category:
                continue
            if needle and not any(
                needle in (v or "").casefold() for v in (p.name, p.category, p.barcode)
            ):
                continue
            out.append(p)
        return out

    def low_stock(self, threshold: Optional[int] = None) -> List[Product]:
        limit = self.low_stock_threshold if threshold is None else threshold
        return [p for p in self.state.products if p.quantity < limit]

    def out_of_stock(self) -> List[Product]:
        return [p for p in self.state.products if p.quantity == 0]

    def stock_status(self, product: Product) -> StockStatus:
        return stock_status(product.quantity, self.low_stock_threshold)

    def inventory_value(self) -> Decimal:
        return sum((p.price * p.quantity for p in self.state.products), Decimal("0"))

    def generate_barcode(self) -> str:
        """Code EAN-13 libre (préfixe 2 = usage interne magasin)."""
        used = {p.barcode for p in self.state.products if p.barcode}
        while True:
            body = "2" + "".join(random.choice("0123456789") for _ in range(11))
            code = body + _ean13_checksum(body)
            if code not in used:
                return code


def _ean13_checksum(body: str) -> str:
    total = sum(int(d) * (3 if i % 2 else 1) for i, d in enumerate(body))
    return str((10 - total % 10) % 10)
