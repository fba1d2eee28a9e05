from __future__ import annotations
import logging
import os
import re
import time
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from shutil import which
from typing import Iterable, List, Optional

import pdfkit  # utilisé si wkhtmltopdf dispo
from jinja2 import Environment, FileSystemLoader, select_autoescape

from core.errors import NotFoundError
from core.models.invoice import Invoice
from core.services.state import INVOICES_KEY, ShopState
from core.settings import EXPORTS_DIR, TEMPLATES_DIR, Settings

logger = logging.getLogger(__name__)

PDF_TEMPLATES_DIR = TEMPLATES_DIR / "pdf"


# ---------- Recherche / filtres ----------
def filter_by_text(invoices: Iterable[Invoice], text: str) -> List[Invoice]:
    needle = (text or "").strip().casefold()
    if not needle:
        return list(invoices)
    return [
        inv for inv in invoices
        if needle in inv.customer_name.casefold() or needle in inv.invoice_number.casefold()
    ]


def filter_by_status(invoices: Iterable[Invoice], status: str) -> List[Invoice]:
    # statut stocké uniquement : le retard calculé (is_overdue) n'est jamais appliqué ici
    if status == "all":
        return list(invoices)
    return [inv for inv in invoices if inv.payment_status == status]


def is_overdue(invoice: Invoice, now: datetime) -> bool:
    """Affichage seulement : ne modifie pas payment_status."""
    return (
        invoice.payment_method == "credit"
        and invoice.due_date is not None
        and now > invoice.due_date
    )


# ---------- Formats ----------
def format_money(amount: Decimal, currency: str = "€") -> str:
    return f"{Decimal(amount):,.2f} {currency}".replace(",", " ")


_UNSAFE_FILENAME = re.compile(r'[\\/:*?"<>|\s]+')


def _safe_filename(customer: str) -> str:
    return _UNSAFE_FILENAME.sub("_", (customer or "").strip()).strip("_") or "Client"


# ---------- PDF helpers ----------
def _find_wkhtmltopdf(configured: Optional[str]) -> Optional[str]:
    """
    Localise wkhtmltopdf :
    - settings.pdf.wkhtmltopdf_path (ou $WKHTMLTOPDF, déjà fusionné)
    - chemins Windows connus
    - PATH
    """
    if configured:
        path = os.path.normpath(configured.strip().strip('"').strip("'"))
        if Path(path).is_file():
            return path
    for c in (
        r"C:\Program Files\wkhtmltopdf\bin\wkhtmltopdf.exe",
        r"C:\Program Files (x86)\wkhtmltopdf\bin\wkhtmltopdf.exe",
    ):
        if Path(c).is_file():
            return c
    return which("wkhtmltopdf")


def _render_pdf_with_weasyprint(html: str, out_path: Path, base_url: Optional[str]) -> None:
    """Fallback WeasyPrint (si wkhtmltopdf absent)."""
    try:
        from weasyprint import HTML, CSS
    except ImportError as e:
        raise RuntimeError(
            "Export PDF indisponible : ni wkhtmltopdf ni WeasyPrint (extra \"pdf\"). "
            f"({e})"
        ) from e

    css_file = PDF_TEMPLATES_DIR / "stylesheet.css"
    styles = [CSS(filename=str(css_file))] if css_file.exists() else None
    HTML(string=html, base_url=base_url).write_pdf(str(out_path), stylesheets=styles)


# ---------- Service ----------
class InvoiceService:
    def __init__(self, state: ShopState, settings: Optional[Settings] = None):
        self.state = state
        self.settings = settings or Settings()
        self._last_stamp = 0

    # ----------- CRUD/list -----------
    def list_invoices(self) -> List[Invoice]:
        return list(self.state.invoices)

    def get_by_id(self, invoice_id: str) -> Invoice:
        for inv in self.state.invoices:
            if inv.id == invoice_id:
                return inv
        raise NotFoundError("Facture", invoice_id)

    def add_invoice(self, inv: Invoice) -> Invoice:
        self.state.invoices.append(inv)
        self.state.changed(INVOICES_KEY)
        logger.info("Facture %s enregistrée (%s, total %s)", inv.invoice_number, inv.customer_name, inv.total)
        return inv

    # ----------- numérotation -----------
    def next_invoice_number(self, now: Optional[datetime] = None) -> str:
        """
        <préfixe><millisecondes epoch>, strictement croissant dans la session
        et distinct des numéros déjà stockés.
        """
        stamp = int((now.timestamp() if now else time.time()) * 1000)
        stamp = max(stamp, self._last_stamp + 1)
        prefix = self.settings.invoice_prefix
        taken = {inv.invoice_number for inv in self.state.invoices}
        while f"{prefix}{stamp}" in taken:
            stamp += 1
        self._last_stamp = stamp
        return f"{prefix}{stamp}"

    # ----------- export PDF ----------
    def render_invoice_html(self, inv: Invoice) -> str:
        """
        Rend le HTML de facture en mémoire via Jinja2: templates/pdf/invoice.html
        """
        env = Environment(
            loader=FileSystemLoader(str(PDF_TEMPLATES_DIR)),
            autoescape=select_autoescape(["html", "xml"])
        )
        env.filters["money"] = lambda v: format_money(v, self.settings.currency)
        tpl = env.get_template("invoice.html")

        ctx = {
            "invoice": inv,
            "lines": [
                {
                    "name": ln.product_name,
                    "qty": ln.quantity,
                    "unit_price": ln.unit_price,
                    "total": ln.line_total,
                } for ln in inv.items
            ],
            "shop": self.settings.shop,
            "payment_method_label": "Espèces" if inv.payment_method == "cash" else "Crédit",
            "payment_status_label": {
                "paid": "Payée", "pending": "En attente", "overdue": "En retard",
            }[inv.payment_status],
        }
        return tpl.render(**ctx)

    def export_invoice_pdf(self, inv: Invoice, out_dir: Optional[str] = None) -> str:
        """
        Génère le PDF de facture.
        Essaie wkhtmltopdf (pdfkit) en priorité, sinon fallback WeasyPrint.
        """
        html = self.render_invoice_html(inv)

        exports_dir = Path(out_dir) if out_dir else (EXPORTS_DIR / "factures")
        exports_dir.mkdir(parents=True, exist_ok=True)
        out_path = exports_dir / f"{inv.invoice_number} ({_safe_filename(inv.customer_name)}).pdf"

        base_url = str(PDF_TEMPLATES_DIR.resolve())

        # 1) wkhtmltopdf d'abord
        wkhtml = _find_wkhtmltopdf(self.settings.pdf.wkhtmltopdf_path)
        if wkhtml:
            try:
                config = pdfkit.configuration(wkhtmltopdf=wkhtml)
                options = {
                    "enable-local-file-access": None,
                    "quiet": "",
                    "encoding": "UTF-8",
                }
                css_path = str((PDF_TEMPLATES_DIR / "stylesheet.css").resolve())
                pdfkit.from_string(html, str(out_path), options=options, configuration=config, css=css_path)
                return str(out_path)
            except (OSError, IOError) as e:
                logger.warning("Échec wkhtmltopdf (%s). Fallback WeasyPrint...", e)

        # 2) Fallback WeasyPrint
        _render_pdf_with_weasyprint(html, out_path, base_url=base_url)
        return str(out_path)
