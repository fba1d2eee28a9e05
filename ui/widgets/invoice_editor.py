from __future__ import annotations
from typing import Optional
from PySide6.QtCore import Qt
from PySide6.QtWidgets import (
    QDialog, QVBoxLayout, QFormLayout, QComboBox, QTextEdit, QDialogButtonBox,
    QHBoxLayout, QPushButton, QTableWidget, QTableWidgetItem, QHeaderView,
    QDoubleSpinBox, QSpinBox, QLabel, QLineEdit, QMessageBox
)

from core.models.common import Notice
from core.models.invoice import Invoice
from core.services.invoice_builder import BuilderState, InvoiceBuilder
from core.services.invoice_service import format_money
from core.services.workflow_service import WorkflowService


class _AddLineDialog(QDialog):
    """Sélecteur simple : produit en stock + quantité."""
    def __init__(self, parent=None, workflow: WorkflowService | None = None):
        super().__init__(parent)
        self.setWindowTitle("Ajouter un produit")
        self.setModal(True)
        currency = workflow.settings.currency

        self.cb_item = QComboBox()
        for p in workflow.catalog.list_products():
            if p.quantity > 0:
                self.cb_item.addItem(
                    f"{p.name} — {format_money(p.price, currency)} (disponible : {p.quantity})", p.id
                )
        self.sp_qty = QSpinBox(); self.sp_qty.setRange(1, 1_000_000); self.sp_qty.setValue(1)
        btns = QDialogButtonBox(QDialogButtonBox.Ok | QDialogButtonBox.Cancel)

        form = QFormLayout()
        form.addRow("Produit", self.cb_item)
        form.addRow("Quantité", self.sp_qty)

        lay = QVBoxLayout(self)
        lay.addLayout(form)
        lay.addWidget(btns)

        btns.accepted.connect(self.accept)
        btns.rejected.connect(self.reject)

    def get_selection(self) -> Optional[tuple[str, int]]:
        pid = self.cb_item.currentData()
        if not pid:
            return None
        return pid, int(self.sp_qty.value())


class InvoiceEditor(QDialog):
    """Saisie d'une facture ; la validation (commit) se fait à l'acceptation."""

    def __init__(self, parent=None, workflow: WorkflowService | None = None):
        super().__init__(parent)
        self.setWindowTitle("Nouvelle facture")
        self.setModal(True)
        self.workflow = workflow
        self.builder: InvoiceBuilder = workflow.new_invoice()
        self.invoice: Optional[Invoice] = None
        self._currency = workflow.settings.currency

        self.ed_customer = QLineEdit()
        self.ed_phone = QLineEdit()
        self.cb_method = QComboBox()
        self.cb_method.addItem("Espèces", "cash")
        self.cb_method.addItem("Crédit", "credit")
        self.sp_due = QSpinBox(); self.sp_due.setRange(0, 365); self.sp_due.setValue(30); self.sp_due.setSuffix(" jours")
        self.sp_discount = QDoubleSpinBox(); self.sp_discount.setRange(0, 1e9); self.sp_discount.setDecimals(2)
        self.sp_tax = QDoubleSpinBox(); self.sp_tax.setRange(0, 1e9); self.sp_tax.setDecimals(2)
        self.ed_notes = QTextEdit()
        self.ed_scan = QLineEdit(); self.ed_scan.setPlaceholderText("Scanner un code-barres puis Entrée")

        self.lab_total = QLabel()

        self.tbl = QTableWidget(0, 4)
        self.tbl.setHorizontalHeaderLabels(["Produit", "Qté", "Prix unitaire", "Total"])
        self.tbl.horizontalHeader().setSectionResizeMode(QHeaderView.Stretch)
        self.tbl.setSelectionBehavior(self.tbl.SelectionBehavior.SelectRows)
        self.tbl.setEditTriggers(self.tbl.EditTrigger.NoEditTriggers)

        btn_add = QPushButton("Ajouter un produit")
        btn_del = QPushButton("Retirer la ligne")
        btn_add.clicked.connect(self._add_line)
        btn_del.clicked.connect(self._del_line)

        top = QFormLayout()
        top.addRow("Client*", self.ed_customer)
        top.addRow("Téléphone", self.ed_phone)
        top.addRow("Paiement", self.cb_method)
        top.addRow("Échéance (crédit)", self.sp_due)
        top.addRow("Remise", self.sp_discount)
        top.addRow("Taxe", self.sp_tax)
        top.addRow("Notes", self.ed_notes)
        top.addRow("Scan", self.ed_scan)

        bar = QHBoxLayout()
        bar.addWidget(btn_add); bar.addWidget(btn_del); bar.addStretch(1); bar.addWidget(self.lab_total)

        btns = QDialogButtonBox(QDialogButtonBox.Ok | QDialogButtonBox.Cancel)
        btns.button(QDialogButtonBox.Ok).setText("Créer la facture")
        btns.accepted.connect(self._commit)
        btns.rejected.connect(self.reject)

        lay = QVBoxLayout(self)
        lay.addLayout(top)
        lay.addLayout(bar)
        lay.addWidget(self.tbl)
        lay.addWidget(btns)

        self.cb_method.currentIndexChanged.connect(self._sync_due)
        self.sp_discount.valueChanged.connect(self._update_totals)
        self.sp_tax.valueChanged.connect(self._update_totals)
        self.ed_scan.returnPressed.connect(self._on_scan)

        self._sync_due()
        self._refresh_table()
        self.resize(640, 720)

    # -------- UI helpers --------
    def _notify(self, notice: Notice) -> None:
        if notice.level == "error":
            QMessageBox.warning(self, notice.title, notice.message)

    def _sync_due(self):
        self.sp_due.setEnabled(self.cb_method.currentData() == "credit")

    def _refresh_table(self):
        self.tbl.setRowCount(0)
        for ln in self.builder.items:
            r = self.tbl.rowCount()
            self.tbl.insertRow(r)
            item = QTableWidgetItem(ln.product_name)
            item.setData(Qt.ItemDataRole.UserRole, ln.product_id)
            self.tbl.setItem(r, 0, item)
            self.tbl.setItem(r, 1, QTableWidgetItem(str(ln.quantity)))
            self.tbl.setItem(r, 2, QTableWidgetItem(format_money(ln.unit_price, self._currency)))
            self.tbl.setItem(r, 3, QTableWidgetItem(format_money(ln.line_total, self._currency)))
        self.tbl.resizeRowsToContents()
        self._update_totals()

    def _update_totals(self):
        total = self.builder.compute_total(self.sp_discount.value(), self.sp_tax.value())
        self.lab_total.setText(
            f"Sous-total : {format_money(self.builder.compute_subtotal(), self._currency)}"
            f"   Total : {format_money(total, self._currency)}"
        )

    def _add(self, product_id: str, qty: int):
        _, notice = self.workflow.add_to_invoice(self.builder, product_id, qty)
        self._notify(notice)
        self._refresh_table()

    def _add_line(self):
        dlg = _AddLineDialog(self, self.workflow)
        if dlg.exec() == QDialog.Accepted:
            sel = dlg.get_selection()
            if sel:
                self._add(*sel)

    def _on_scan(self):
        result = self.workflow.scan(self.ed_scan.text())
        self.ed_scan.clear()
        if not result.found:
            self._notify(result.notice)
            return
        self._add(result.product.id, 1)

    def _del_line(self):
        row = self.tbl.currentRow()
        if row < 0: return
        self.builder.remove_item(self.tbl.item(row, 0).data(Qt.ItemDataRole.UserRole))
        self._refresh_table()

    # -------- Validation --------
    def _commit(self):
        credit = self.cb_method.currentData() == "credit"
        inv, notice = self.workflow.commit_invoice(
            self.builder,
            customer_name=self.ed_customer.text(),
            payment_method=self.cb_method.currentData(),
            discount=str(self.sp_discount.value()),
            tax=str(self.sp_tax.value()),
            due_days=int(self.sp_due.value()) if credit else None,
            customer_phone=self.ed_phone.text(),
            notes=self.ed_notes.toPlainText(),
        )
        if inv is None:
            self._notify(notice)
            return
        self.invoice = inv
        self.accept()

    def reject(self):
        if self.builder.state != BuilderState.COMMITTED:
            self.builder.discard()
        super().reject()
