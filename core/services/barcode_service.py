from __future__ import annotations

import logging
from io import BytesIO
from typing import Literal, Optional

from barcode import Code128
from barcode.errors import BarcodeError
from barcode.writer import SVGWriter
from pydantic import BaseModel

from core.errors import NotFoundError, ValidationError
from core.models.common import Notice
from core.models.product import Product
from core.services.catalog_service import CatalogService
from core.settings import BarcodeDefaults

logger = logging.getLogger(__name__)

ImageFormat = Literal["svg", "png"]

MM_PER_PX = 25.4 / 96  # python-barcode travaille en millimètres


class ScanResult(BaseModel):
    code: str
    product: Optional[Product] = None
    notice: Notice

    @property
    def found(self) -> bool:
        return self.product is not None


class BarcodeService:
    """
    Collaborateurs code-barres :
    - handle_scan : texte décodé par un lecteur externe -> produit du catalogue
    - render : image Code128 (SVG, ou PNG si Pillow est installé)
    """

    def __init__(self, catalog: CatalogService, defaults: Optional[BarcodeDefaults] = None) -> None:
        self.catalog = catalog
        self.defaults = defaults or BarcodeDefaults()

    # ---------- Lecture ---------- #

    def handle_scan(self, decoded_text: str) -> ScanResult:
        code = (decoded_text or "").strip()
        try:
            product = self.catalog.find_by_code(code)
        except NotFoundError:
            logger.info("Scan sans correspondance : %r", code)
            return ScanResult(
                code=code,
                notice=Notice(level="error", title="Produit introuvable",
                              message=f"Aucun produit pour le code {code or '(vide)'}"),
            )
        return ScanResult(
            code=code,
            product=product,
            notice=Notice(level="success", title="Produit trouvé",
                          message=f"{product.name} (stock : {product.quantity})"),
        )

    # ---------- Rendu ---------- #

    def render(
        self,
        value: str,
        width: Optional[float] = None,
        height: Optional[float] = None,
        font_size: Optional[int] = None,
        image_format: ImageFormat = "svg",
    ) -> bytes:
        """Largeur de barre / hauteur en pixels, taille de police en points."""
        code = (value or "").strip()
        if not code:
            raise ValidationError("Code-barres vide", field="barcode")
        if not code.isascii() or not code.isprintable():
            raise ValidationError("Code-barres : caractères ASCII imprimables uniquement", field="barcode")

        options = {
            "module_width": float(width if width is not None else self.defaults.width) * MM_PER_PX,
            "module_height": float(height if height is not None else self.defaults.height) * MM_PER_PX,
            "font_size": int(font_size if font_size is not None else self.defaults.font_size),
        }
        if image_format == "png":
            # Pillow requis (extra "images")
            from barcode.writer import ImageWriter
            writer = ImageWriter()
        else:
            writer = SVGWriter()

        buf = BytesIO()
        try:
            Code128(code, writer=writer).write(buf, options=options)
        except BarcodeError as e:
            raise ValidationError(f"Code-barres invalide : {e}", field="barcode") from e
        return buf.getvalue()

    def render_product(self, product: Product, image_format: ImageFormat = "svg") -> bytes:
        if not product.barcode:
            raise ValidationError(f"« {product.name} » n'a pas de code-barres", field="barcode")
        return self.render(product.barcode, image_format=image_format)
