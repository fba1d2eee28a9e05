from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

ROOT_DIR = Path(__file__).resolve().parents[1]
DEFAULT_DATA_DIR = ROOT_DIR / "data"
TEMPLATES_DIR = ROOT_DIR / "templates"
EXPORTS_DIR = ROOT_DIR / "exports"

DATA_DIR_ENV = "SUPERMARKET_DATA_DIR"


class ShopInfo(BaseModel):
    name: str = "Supermarché"
    address: str = ""
    phone: str = ""


class BarcodeDefaults(BaseModel):
    width: float = 2       # largeur d'une barre, en pixels
    height: float = 100    # hauteur des barres, en pixels
    font_size: int = 14


class PdfSettings(BaseModel):
    wkhtmltopdf_path: Optional[str] = None


class Settings(BaseModel):
    data_dir: Path = DEFAULT_DATA_DIR
    autosave_delay: float = Field(default=1.0, ge=0)  # secondes
    low_stock_threshold: int = Field(default=10, ge=0)
    invoice_prefix: str = "INV-"
    currency: str = "€"
    backup_keep: int = Field(default=5, ge=0)
    shop: ShopInfo = Field(default_factory=ShopInfo)
    barcode: BarcodeDefaults = Field(default_factory=BarcodeDefaults)
    pdf: PdfSettings = Field(default_factory=PdfSettings)

    @property
    def settings_file(self) -> Path:
        return self.data_dir / "settings.json"


def _load_json(path: Path) -> Any:
    if not path.exists():
        return None
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.warning("Paramètres illisibles (%s) : %s", path, e)
        return None


def load_settings(data_dir: Optional[Union[str, Path]] = None) -> Settings:
    """
    Charge data/settings.json.
    - data_dir : argument, sinon $SUPERMARKET_DATA_DIR, sinon ./data du projet
    - fichier absent ou invalide -> valeurs par défaut
    - $WKHTMLTOPDF prime sur pdf.wkhtmltopdf_path
    """
    base = Path(data_dir or os.environ.get(DATA_DIR_ENV) or DEFAULT_DATA_DIR)
    raw = _load_json(base / "settings.json")
    if not isinstance(raw, dict):
        raw = {}
    raw["data_dir"] = base
    try:
        settings = Settings.model_validate(raw)
    except ValidationError as e:
        logger.warning("settings.json ignoré (%s)", e)
        settings = Settings(data_dir=base)

    wk = os.environ.get("WKHTMLTOPDF")
    if wk:
        settings.pdf.wkhtmltopdf_path = wk
    return settings
