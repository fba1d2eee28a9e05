"""Catalogue de démarrage, utilisé quand aucun blob produits n'est lisible."""
from __future__ import annotations
from decimal import Decimal
from typing import List

from core.models.product import Product


def seed_products() -> List[Product]:
    return [
        Product(id="1", name="Riz basmati", price=Decimal("25.50"), quantity=50, category="Céréales"),
        Product(id="2", name="Huile de cuisson", price=Decimal("45.00"), quantity=8, category="Huiles"),
        Product(id="3", name="Sucre blanc", price=Decimal("18.75"), quantity=25, category="Céréales"),
    ]
