from __future__ import annotations
from PySide6.QtCore import QByteArray
from PySide6.QtSvgWidgets import QSvgWidget
from PySide6.QtWidgets import QDialog, QVBoxLayout, QLabel, QDialogButtonBox

from core.models.product import Product


class BarcodeDialog(QDialog):
    """Affiche le Code128 (SVG) d'un produit, prêt à imprimer."""
    def __init__(self, parent=None, product: Product | None = None, svg: bytes = b""):
        super().__init__(parent)
        self.setWindowTitle(f"Code-barres – {product.name if product else ''}")
        self.setModal(True)

        view = QSvgWidget()
        view.load(QByteArray(svg))
        view.setMinimumSize(360, 160)

        btns = QDialogButtonBox(QDialogButtonBox.Close)
        btns.rejected.connect(self.reject)

        lay = QVBoxLayout(self)
        lay.addWidget(QLabel(product.name if product else ""))
        lay.addWidget(view, 1)
        lay.addWidget(btns)
