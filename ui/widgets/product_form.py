from __future__ import annotations
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from PySide6.QtWidgets import (
    QDialog, QVBoxLayout, QHBoxLayout, QFormLayout, QLineEdit, QSpinBox,
    QPushButton, QWidget, QComboBox
)

from core.models.product import Product


def _to_decimal(text: str) -> Optional[Decimal]:
    t = (text or "").replace("€", "").replace(" ", "").replace(",", ".")
    if not t:
        return None
    try:
        return Decimal(t)
    except InvalidOperation:
        return None


class ProductForm(QDialog):
    """
    Formulaire Produit (création / édition).
    - Prix saisi en texte (virgule ou point)
    - get_payload() retourne un dict brut : la validation reste au CatalogService
    """
    def __init__(
        self,
        parent: Optional[QWidget] = None,
        product: Optional[Product] = None,
        categories: Optional[List[str]] = None,
        generate_barcode=None,
    ):
        super().__init__(parent)
        self.setWindowTitle("Modifier le produit" if product else "Nouveau produit")
        self.product = product
        self._generate_barcode = generate_barcode

        self.ed_name = QLineEdit()
        self.ed_price = QLineEdit()
        self.ed_price.setPlaceholderText("ex: 18,50")
        self.sp_qty = QSpinBox()
        self.sp_qty.setRange(0, 10_000_000)
        self.cb_category = QComboBox()
        self.cb_category.setEditable(True)
        self.cb_category.addItems(categories or [])
        self.cb_category.setCurrentText("")
        self.ed_barcode = QLineEdit()
        btn_gen = QPushButton("Générer")
        btn_gen.setEnabled(generate_barcode is not None)
        btn_gen.clicked.connect(self._on_generate)

        if product:
            self.ed_name.setText(product.name)
            self.ed_price.setText(f"{product.price:.2f}")
            self.sp_qty.setValue(product.quantity)
            self.cb_category.setCurrentText(product.category)
            self.ed_barcode.setText(product.barcode or "")

        barcode_row = QHBoxLayout()
        barcode_row.addWidget(self.ed_barcode, 1)
        barcode_row.addWidget(btn_gen)

        form = QFormLayout()
        form.addRow("Nom*", self.ed_name)
        form.addRow("Prix*", self.ed_price)
        form.addRow("Quantité*", self.sp_qty)
        form.addRow("Catégorie*", self.cb_category)
        form.addRow("Code-barres", barcode_row)

        btn_ok = QPushButton("Enregistrer" if product else "Ajouter")
        btn_cancel = QPushButton("Annuler")
        btn_ok.clicked.connect(self.accept)
        btn_cancel.clicked.connect(self.reject)
        bar = QHBoxLayout()
        bar.addStretch(1)
        bar.addWidget(btn_cancel)
        bar.addWidget(btn_ok)

        root = QVBoxLayout(self)
        root.addLayout(form)
        root.addLayout(bar)

        # UX: ENTER valide
        self.ed_name.returnPressed.connect(btn_ok.click)
        self.ed_price.returnPressed.connect(btn_ok.click)
        self.resize(460, 260)

    def _on_generate(self) -> None:
        if self._generate_barcode:
            self.ed_barcode.setText(self._generate_barcode())

    def get_payload(self) -> Dict[str, Any]:
        price = _to_decimal(self.ed_price.text())
        return {
            "name": self.ed_name.text().strip(),
            # None -> "Champ obligatoire : prix" côté service
            "price": price,
            "quantity": self.sp_qty.value(),
            "category": self.cb_category.currentText().strip(),
            "barcode": self.ed_barcode.text().strip() or None,
        }
