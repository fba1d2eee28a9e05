from __future__ import annotations
import logging
from typing import Any, Callable, Mapping, Optional, Tuple, TypeVar

from core.errors import StoreError
from core.models.common import Notice
from core.models.invoice import Invoice
from core.models.product import Product
from core.services.barcode_service import BarcodeService, ScanResult
from core.services.catalog_service import CatalogService
from core.services.dashboard_service import DashboardService
from core.services.invoice_builder import InvoiceBuilder
from core.services.invoice_service import InvoiceService
from core.services.state import ShopState
from core.settings import Settings, load_settings
from core.storage.autosave import AutoSaver, TimerFactory, thread_timer
from core.storage.json_store import JsonStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class WorkflowService:
    """
    Point d'entrée de l'interface.
    - possède le ShopState et le câblage de la sauvegarde différée
    - les actions utilisateur renvoient (résultat, Notice) : aucune erreur
      métier ne remonte jusqu'aux widgets
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        timer_factory: TimerFactory = thread_timer,
    ) -> None:
        self.settings = settings or load_settings()
        self.store = JsonStore(self.settings.data_dir, backup_keep=self.settings.backup_keep)
        self.state = ShopState.load(self.store)
        self.autosaver = AutoSaver(self.store, delay=self.settings.autosave_delay, timer_factory=timer_factory)
        self.state.subscribe(self._on_state_changed)

        self.catalog = CatalogService(self.state, low_stock_threshold=self.settings.low_stock_threshold)
        self.invoices = InvoiceService(self.state, self.settings)
        self.barcodes = BarcodeService(self.catalog, self.settings.barcode)
        self.dashboard = DashboardService(self.state, self.catalog)

    def _on_state_changed(self, key: str) -> None:
        self.autosaver.schedule(key, lambda: self.state.dump(key))

    def new_invoice(self) -> InvoiceBuilder:
        return InvoiceBuilder(self.catalog, self.invoices)

    def shutdown(self) -> None:
        self.autosaver.flush()

    # ---------- Frontière UI ---------- #

    def _guard(self, action: Callable[[], T], success: Callable[[T], Notice]) -> Tuple[Optional[T], Notice]:
        try:
            result = action()
        except StoreError as e:
            logger.warning("Action refusée (%s) : %s", type(e).__name__, e)
            return None, Notice(level="error", title=e.title, message=str(e))
        return result, success(result)

    def add_product(self, payload: Mapping[str, Any]) -> Tuple[Optional[Product], Notice]:
        return self._guard(
            lambda: self.catalog.add(payload),
            lambda p: Notice(level="success", title="Produit ajouté", message=p.name),
        )

    def update_product(self, product_id: str, payload: Mapping[str, Any]) -> Tuple[Optional[Product], Notice]:
        return self._guard(
            lambda: self.catalog.update(product_id, payload),
            lambda p: Notice(level="success", title="Produit mis à jour", message=p.name),
        )

    def delete_product(self, product_id: str) -> Tuple[Optional[Product], Notice]:
        return self._guard(
            lambda: self.catalog.remove(product_id),
            lambda p: Notice(level="success", title="Produit supprimé", message=p.name),
        )

    def add_to_invoice(self, builder: InvoiceBuilder, product_id: str, quantity: int):
        return self._guard(
            lambda: builder.add_item(product_id, quantity),
            lambda ln: Notice(level="info", title="Article ajouté",
                              message=f"{ln.product_name} × {ln.quantity}"),
        )

    def commit_invoice(self, builder: InvoiceBuilder, **kwargs: Any) -> Tuple[Optional[Invoice], Notice]:
        return self._guard(
            lambda: builder.commit(**kwargs),
            lambda inv: Notice(level="success", title="Facture créée",
                               message=f"Facture {inv.invoice_number} créée avec succès"),
        )

    def scan(self, decoded_text: str) -> ScanResult:
        return self.barcodes.handle_scan(decoded_text)

    def export_invoice_pdf(self, invoice: Invoice, out_dir: Optional[str] = None) -> Tuple[Optional[str], Notice]:
        try:
            path = self.invoices.export_invoice_pdf(invoice, out_dir)
        except (RuntimeError, OSError) as e:
            logger.warning("Export PDF impossible : %s", e)
            return None, Notice(level="error", title="PDF facture", message=str(e))
        return path, Notice(level="success", title="PDF facture", message=f"Fichier généré :\n{path}")
