from __future__ import annotations
from datetime import datetime
from PySide6.QtWidgets import (
    QMainWindow, QWidget, QTabWidget, QVBoxLayout, QHBoxLayout, QGridLayout,
    QLabel, QPushButton, QMessageBox, QTableWidget, QLineEdit, QComboBox,
    QTableWidgetItem, QHeaderView, QGroupBox, QDialog
)

from core.errors import ValidationError
from core.models.common import Notice
from core.models.product import Product
from core.services.invoice_service import filter_by_status, filter_by_text, format_money, is_overdue
from core.services.workflow_service import WorkflowService
from core.settings import load_settings
from ui.qt_timer import QtSingleShot
from ui.widgets.barcode_dialog import BarcodeDialog
from ui.widgets.invoice_editor import InvoiceEditor
from ui.widgets.product_form import ProductForm

STATUS_LABELS = {"paid": "Payée", "pending": "En attente", "overdue": "En retard"}
STOCK_LABELS = {"out": "Rupture", "low": "Stock faible", "ok": "Disponible"}
NOTICE_MS = 4000


def _readonly_table(cols: list[str]) -> QTableWidget:
    tbl = QTableWidget(0, len(cols))
    tbl.setHorizontalHeaderLabels(cols)
    tbl.horizontalHeader().setSectionResizeMode(QHeaderView.Stretch)
    tbl.setSelectionBehavior(tbl.SelectionBehavior.SelectRows)
    tbl.setEditTriggers(tbl.EditTrigger.NoEditTriggers)
    return tbl


class MainWindow(QMainWindow):
    def __init__(self, workflow: WorkflowService | None = None):
        super().__init__()
        self.setWindowTitle("Supermarché – Gestion")
        self.resize(1280, 800)
        # QtSingleShot : la sauvegarde différée s'exécute dans la boucle Qt
        self.workflow = workflow or WorkflowService(load_settings(), timer_factory=QtSingleShot)
        self.currency = self.workflow.settings.currency

        self.tabs = QTabWidget()
        self.setCentralWidget(self.tabs)

        self.tabs.addTab(self._dashboard_tab(), "Tableau de bord")
        self.tabs.addTab(self._products_tab(), "Produits")
        self.tabs.addTab(self._invoices_tab(), "Factures")
        self.tabs.addTab(self._inventory_tab(), "Inventaire")
        self.tabs.currentChanged.connect(lambda _i: self._refresh_all())

    def money(self, v) -> str:
        return format_money(v, self.currency)

    def notify(self, notice: Notice) -> None:
        """Toast : barre d'état pour les succès, boîte de dialogue pour les erreurs."""
        if notice.level == "error":
            QMessageBox.warning(self, notice.title, notice.message)
        else:
            self.statusBar().showMessage(f"{notice.title} : {notice.message}", NOTICE_MS)

    def _refresh_all(self):
        self._refresh_dashboard()
        self._refresh_products()
        self._refresh_invoices()
        self._refresh_inventory()

    def closeEvent(self, event):
        self.workflow.shutdown()
        super().closeEvent(event)

    # ==================== TABLEAU DE BORD ====================
    def _dashboard_tab(self):
        w = QWidget()
        root = QVBoxLayout(w)
        grid = QGridLayout()
        self.lbl_stats = {}
        for i, (key, title) in enumerate([
            ("total_products", "Total produits"),
            ("inventory_value", "Valeur du stock"),
            ("total_invoices", "Nombre de factures"),
            ("total_revenue", "Total des ventes"),
        ]):
            box = QGroupBox(title); lay = QVBoxLayout(box)
            lbl = QLabel("–"); lbl.setStyleSheet("font-size:22px;font-weight:bold;")
            lay.addWidget(lbl)
            grid.addWidget(box, 0, i)
            self.lbl_stats[key] = lbl
        root.addLayout(grid)

        self.lbl_low_stock = QLabel()
        grp_low = QGroupBox("Produits en stock faible"); QVBoxLayout(grp_low).addWidget(self.lbl_low_stock)
        root.addWidget(grp_low)

        grp_recent = QGroupBox("Dernières factures"); lay_r = QVBoxLayout(grp_recent)
        self.tbl_recent = _readonly_table(["Client", "Numéro", "Total"])
        lay_r.addWidget(self.tbl_recent)
        root.addWidget(grp_recent, 1)

        self._refresh_dashboard()
        return w

    def _refresh_dashboard(self):
        s = self.workflow.dashboard.summary()
        self.lbl_stats["total_products"].setText(str(s.total_products))
        self.lbl_stats["inventory_value"].setText(self.money(s.inventory_value))
        self.lbl_stats["total_invoices"].setText(str(s.total_invoices))
        self.lbl_stats["total_revenue"].setText(self.money(s.total_revenue))
        if s.low_stock_count:
            self.lbl_low_stock.setText(f"{s.low_stock_count} produit(s) à réapprovisionner")
        else:
            self.lbl_low_stock.setText("Tous les produits sont disponibles en stock")
        self.tbl_recent.setRowCount(0)
        for inv in s.recent_invoices:
            r = self.tbl_recent.rowCount(); self.tbl_recent.insertRow(r)
            self.tbl_recent.setItem(r, 0, QTableWidgetItem(inv.customer_name))
            self.tbl_recent.setItem(r, 1, QTableWidgetItem(inv.invoice_number))
            self.tbl_recent.setItem(r, 2, QTableWidgetItem(self.money(inv.total)))

    # ==================== PRODUITS ====================
    def _products_tab(self):
        w = QWidget()
        root = QVBoxLayout(w)
        bar = QHBoxLayout()
        btn_new = QPushButton("Nouveau produit")
        btn_edit = QPushButton("Modifier")
        btn_del = QPushButton("Supprimer")
        btn_code = QPushButton("Code-barres")
        self.ed_scan_product = QLineEdit(); self.ed_scan_product.setPlaceholderText("Scanner un code-barres…")
        for b in (btn_new, btn_edit, btn_del, btn_code): bar.addWidget(b)
        bar.addStretch(1); bar.addWidget(self.ed_scan_product)
        root.addLayout(bar)

        self.tbl_products = _readonly_table(["Nom", "Catégorie", "Prix", "Quantité", "Code-barres", "ID"])
        root.addWidget(self.tbl_products, 1)

        btn_new.clicked.connect(self._product_new)
        btn_edit.clicked.connect(self._product_edit)
        btn_del.clicked.connect(self._product_delete)
        btn_code.clicked.connect(self._product_barcode)
        self.ed_scan_product.returnPressed.connect(self._product_scan)

        self._refresh_products()
        return w

    def _refresh_products(self):
        self.tbl_products.setRowCount(0)
        for p in self.workflow.catalog.list_products():
            r = self.tbl_products.rowCount(); self.tbl_products.insertRow(r)
            self.tbl_products.setItem(r, 0, QTableWidgetItem(p.name))
            self.tbl_products.setItem(r, 1, QTableWidgetItem(p.category))
            self.tbl_products.setItem(r, 2, QTableWidgetItem(self.money(p.price)))
            self.tbl_products.setItem(r, 3, QTableWidgetItem(str(p.quantity)))
            self.tbl_products.setItem(r, 4, QTableWidgetItem(p.barcode or "—"))
            self.tbl_products.setItem(r, 5, QTableWidgetItem(p.id))
        self.tbl_products.resizeRowsToContents()

    def _selected_product(self) -> Product | None:
        row = self.tbl_products.currentRow()
        if row < 0:
            QMessageBox.information(self, "Produits", "Sélectionne une ligne d’abord.")
            return None
        pid = self.tbl_products.item(row, 5).text()
        return next((p for p in self.workflow.catalog.list_products() if p.id == pid), None)

    def _product_form(self, product: Product | None) -> dict | None:
        dlg = ProductForm(
            self, product=product,
            categories=self.workflow.catalog.categories(),
            generate_barcode=self.workflow.catalog.generate_barcode,
        )
        if dlg.exec() != QDialog.Accepted:
            return None
        return dlg.get_payload()

    def _product_new(self):
        payload = self._product_form(None)
        if payload is None: return
        _, notice = self.workflow.add_product(payload)
        self.notify(notice)
        self._refresh_all()

    def _product_edit(self):
        p = self._selected_product()
        if not p: return
        payload = self._product_form(p)
        if payload is None: return
        _, notice = self.workflow.update_product(p.id, payload)
        self.notify(notice)
        self._refresh_all()

    def _product_delete(self):
        p = self._selected_product()
        if not p: return
        if QMessageBox.question(self, "Suppression", f"Supprimer « {p.name} » ?") == QMessageBox.Yes:
            _, notice = self.workflow.delete_product(p.id)
            self.notify(notice)
            self._refresh_all()

    def _product_barcode(self):
        p = self._selected_product()
        if not p: return
        if not p.barcode:
            QMessageBox.information(self, "Code-barres", "Ce produit n'a pas de code-barres.")
            return
        try:
            svg = self.workflow.barcodes.render_product(p)
        except ValidationError as e:
            QMessageBox.warning(self, e.title, str(e))
            return
        BarcodeDialog(self, product=p, svg=svg).exec()

    def _product_scan(self):
        result = self.workflow.scan(self.ed_scan_product.text())
        self.ed_scan_product.clear()
        self.notify(result.notice)
        if not result.found: return
        for r in range(self.tbl_products.rowCount()):
            if self.tbl_products.item(r, 5).text() == result.product.id:
                self.tbl_products.selectRow(r)
                break

    # ==================== FACTURES ====================
    def _invoices_tab(self):
        w = QWidget()
        root = QVBoxLayout(w)
        bar = QHBoxLayout()
        btn_new = QPushButton("Nouvelle facture")
        btn_pdf = QPushButton("Exporter PDF")
        self.ed_inv_search = QLineEdit(); self.ed_inv_search.setPlaceholderText("Client ou numéro…")
        self.cb_inv_status = QComboBox()
        self.cb_inv_status.addItem("Toutes", "all")
        for key, label in STATUS_LABELS.items():
            self.cb_inv_status.addItem(label, key)
        bar.addWidget(btn_new); bar.addWidget(btn_pdf); bar.addStretch(1)
        bar.addWidget(self.ed_inv_search); bar.addWidget(self.cb_inv_status)
        root.addLayout(bar)

        self.tbl_invoices = _readonly_table(["Numéro", "Client", "Date", "Échéance", "Paiement", "Statut", "Total", "ID"])
        root.addWidget(self.tbl_invoices, 1)

        btn_new.clicked.connect(self._invoice_new)
        btn_pdf.clicked.connect(self._invoice_pdf)
        self.ed_inv_search.textChanged.connect(lambda _t: self._refresh_invoices())
        self.cb_inv_status.currentIndexChanged.connect(lambda _i: self._refresh_invoices())

        self._refresh_invoices()
        return w

    def _refresh_invoices(self):
        items = self.workflow.invoices.list_invoices()
        items = filter_by_text(items, self.ed_inv_search.text())
        items = filter_by_status(items, self.cb_inv_status.currentData())
        now = datetime.now()
        self.tbl_invoices.setRowCount(0)
        for inv in reversed(items):
            r = self.tbl_invoices.rowCount(); self.tbl_invoices.insertRow(r)
            status = STATUS_LABELS[inv.payment_status]
            if inv.payment_status != "overdue" and is_overdue(inv, now):
                status += " (échue)"
            self.tbl_invoices.setItem(r, 0, QTableWidgetItem(inv.invoice_number))
            self.tbl_invoices.setItem(r, 1, QTableWidgetItem(inv.customer_name))
            self.tbl_invoices.setItem(r, 2, QTableWidgetItem(inv.date.strftime("%d/%m/%Y")))
            self.tbl_invoices.setItem(r, 3, QTableWidgetItem(inv.due_date.strftime("%d/%m/%Y") if inv.due_date else "—"))
            self.tbl_invoices.setItem(r, 4, QTableWidgetItem("Espèces" if inv.payment_method == "cash" else "Crédit"))
            self.tbl_invoices.setItem(r, 5, QTableWidgetItem(status))
            self.tbl_invoices.setItem(r, 6, QTableWidgetItem(self.money(inv.total)))
            self.tbl_invoices.setItem(r, 7, QTableWidgetItem(inv.id))
        self.tbl_invoices.resizeRowsToContents()

    def _invoice_new(self):
        dlg = InvoiceEditor(self, workflow=self.workflow)
        if dlg.exec() == QDialog.Accepted and dlg.invoice:
            self.notify(Notice(level="success", title="Facture créée",
                               message=f"Facture {dlg.invoice.invoice_number} créée avec succès"))
        self._refresh_all()

    def _invoice_pdf(self):
        row = self.tbl_invoices.currentRow()
        if row < 0:
            QMessageBox.information(self, "Factures", "Sélectionne une facture."); return
        inv = self.workflow.invoices.get_by_id(self.tbl_invoices.item(row, 7).text())
        _, notice = self.workflow.export_invoice_pdf(inv)
        if notice.ok:
            QMessageBox.information(self, notice.title, notice.message)
        else:
            self.notify(notice)

    # ==================== INVENTAIRE ====================
    def _inventory_tab(self):
        w = QWidget()
        root = QVBoxLayout(w)
        bar = QHBoxLayout()
        self.ed_inv_filter = QLineEdit(); self.ed_inv_filter.setPlaceholderText("Rechercher un produit…")
        self.cb_category = QComboBox()
        self.lbl_inventory = QLabel()
        bar.addWidget(self.ed_inv_filter, 1); bar.addWidget(self.cb_category); bar.addWidget(self.lbl_inventory)
        root.addLayout(bar)

        self.tbl_stock = _readonly_table(["Nom", "Catégorie", "Quantité", "État", "Valeur"])
        root.addWidget(self.tbl_stock, 1)

        self.ed_inv_filter.textChanged.connect(lambda _t: self._refresh_inventory())
        self.cb_category.currentIndexChanged.connect(lambda _i: self._refresh_inventory())

        self._refresh_inventory()
        return w

    def _refresh_inventory(self):
        catalog = self.workflow.catalog
        current = self.cb_category.currentData() or "all"
        self.cb_category.blockSignals(True)
        self.cb_category.clear()
        self.cb_category.addItem("Toutes catégories", "all")
        for c in catalog.categories():
            self.cb_category.addItem(c, c)
        self.cb_category.setCurrentIndex(max(0, self.cb_category.findData(current)))
        self.cb_category.blockSignals(False)

        self.lbl_inventory.setText(
            f"Faible : {len(catalog.low_stock())} | Rupture : {len(catalog.out_of_stock())} | "
            f"Valeur : {self.money(catalog.inventory_value())}"
        )
        self.tbl_stock.setRowCount(0)
        for p in catalog.search(self.ed_inv_filter.text(), self.cb_category.currentData() or "all"):
            r = self.tbl_stock.rowCount(); self.tbl_stock.insertRow(r)
            self.tbl_stock.setItem(r, 0, QTableWidgetItem(p.name))
            self.tbl_stock.setItem(r, 1, QTableWidgetItem(p.category))
            self.tbl_stock.setItem(r, 2, QTableWidgetItem(str(p.quantity)))
            self.tbl_stock.setItem(r, 3, QTableWidgetItem(STOCK_LABELS[catalog.stock_status(p)]))
            self.tbl_stock.setItem(r, 4, QTableWidgetItem(self.money(p.price * p.quantity)))
        self.tbl_stock.resizeRowsToContents()
