from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

from pydantic import TypeAdapter, ValidationError

from core.models.invoice import Invoice
from core.models.product import Product
from core.storage.json_store import JsonStore
from core.storage.seed import seed_products

logger = logging.getLogger(__name__)

PRODUCTS_KEY = "supermarket-products"
INVOICES_KEY = "supermarket-invoices"

_PRODUCTS = TypeAdapter(List[Product])
_INVOICES = TypeAdapter(List[Invoice])

ChangeListener = Callable[[str], None]


class ShopState:
    """
    Propriétaire unique des collections produits / factures.
    Les services reçoivent la même instance et signalent leurs mutations via
    changed(clé) ; les listeners (sauvegarde auto, UI) sont notifiés.
    """

    def __init__(
        self,
        products: Optional[List[Product]] = None,
        invoices: Optional[List[Invoice]] = None,
    ) -> None:
        self.products: List[Product] = list(products or [])
        self.invoices: List[Invoice] = list(invoices or [])
        self._listeners: List[ChangeListener] = []

    # ---------- Notifications ---------- #

    def subscribe(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def changed(self, key: str) -> None:
        for listener in list(self._listeners):
            listener(key)

    # ---------- Sérialisation ---------- #

    def dump(self, key: str) -> List[Dict[str, Any]]:
        if key == PRODUCTS_KEY:
            return _PRODUCTS.dump_python(self.products, mode="json")
        if key == INVOICES_KEY:
            return _INVOICES.dump_python(self.invoices, mode="json")
        raise KeyError(key)

    @staticmethod
    def parse_products(raw: Any) -> List[Product]:
        return _PRODUCTS.validate_python(raw)

    @staticmethod
    def parse_invoices(raw: Any) -> List[Invoice]:
        return _INVOICES.validate_python(raw)

    @classmethod
    def load(cls, store: JsonStore) -> "ShopState":
        """Clé absente ou contenu invalide -> catalogue de démarrage / aucune facture."""
        products = cls._load_key(store, PRODUCTS_KEY, cls.parse_products, seed_products)
        invoices = cls._load_key(store, INVOICES_KEY, cls.parse_invoices, list)
        return cls(products, invoices)

    @staticmethod
    def _load_key(store: JsonStore, key: str, parse: Callable[[Any], list], fallback: Callable[[], list]) -> list:
        raw = store.read(key)
        if raw is None:
            return fallback()
        try:
            return parse(raw)
        except ValidationError as e:
            logger.warning("Blob %s invalide, valeurs par défaut utilisées (%d erreurs)", key, e.error_count())
            return fallback()
