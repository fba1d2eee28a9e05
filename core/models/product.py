from __future__ import annotations
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
from .common import gen_id


class ProductDraft(BaseModel):
    """Champs modifiables d'un produit (saisie formulaire, sans id)."""
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    name: str = Field(min_length=1)
    price: Decimal = Field(ge=0)
    quantity: int = Field(ge=0)
    category: str = Field(min_length=1)
    barcode: Optional[str] = None

    @field_validator("barcode")
    @classmethod
    def _blank_barcode_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None


class Product(ProductDraft):
    id: str = Field(default_factory=gen_id)

    def draft(self) -> ProductDraft:
        return ProductDraft.model_validate(self.model_dump(exclude={"id"}))
