"""Exceptions métier du magasin (catalogue, factures, stock)."""
from __future__ import annotations


class StoreError(Exception):
    """Base de toutes les erreurs récupérables côté interface."""

    title = "Erreur"


class ValidationError(StoreError):
    """Champ obligatoire manquant ou valeur invalide."""

    title = "Validation"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class NotFoundError(StoreError):
    """Produit, facture ou code-barres inconnu."""

    title = "Introuvable"

    def __init__(self, entity: str, key: str):
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} introuvable : {key}")


class OutOfStockError(StoreError):
    """Quantité demandée supérieure au stock disponible."""

    title = "Stock insuffisant"

    def __init__(self, product_id: str, requested: int, available: int):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Quantité demandée ({requested}) supérieure au stock disponible ({available})"
        )


class ConcurrentStockConflictError(StoreError):
    """Le stock a changé entre l'ajout à la facture et la validation."""

    title = "Conflit de stock"

    def __init__(self, shortages: dict[str, tuple[int, int]]):
        # product_id -> (demandé, disponible)
        self.shortages = dict(shortages)
        names = ", ".join(sorted(self.shortages))
        super().__init__(f"Le stock a changé depuis l'ajout des articles : {names}")
