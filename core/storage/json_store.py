from __future__ import annotations

import glob
import json
import logging
import re
import shutil
import threading
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, List, Optional, Union

logger = logging.getLogger(__name__)

_KEY_RE = re.compile(r"^[A-Za-z0-9_.-]+$")


def _json_default(o: Any) -> Any:
    if isinstance(o, (date, datetime)):
        return o.isoformat()
    if isinstance(o, Decimal):
        return str(o)
    raise TypeError(f"Object of type {o.__class__.__name__} is not JSON serializable")


class JsonStore:
    """
    Stockage clé/valeur : un fichier <data_dir>/<clé>.json par blob JSON.
    - N'écrit pas si le contenu ne change pas (réduction du bruit et des .bak)
    - Rotation de backups (backup_enabled, backup_keep)
    - Fichier corrompu -> copie .corrupt.json et lecture = défaut
    """

    def __init__(
        self,
        data_dir: Union[str, Path],
        *,
        backup_enabled: bool = True,
        backup_keep: int = 5,
    ) -> None:
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.backup_enabled = backup_enabled
        self.backup_keep = max(0, int(backup_keep))
        self._lock = threading.Lock()

    def path_for(self, key: str) -> Path:
        if not _KEY_RE.match(key or ""):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self.data_dir / f"{key}.json"

    # ---------------- Lecture ---------------- #

    def exists(self, key: str) -> bool:
        return self.path_for(key).exists()

    def read(self, key: str, default: Any = None) -> Any:
        path = self.path_for(key)
        try:
            with path.open("r", encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError:
            return default
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning("Blob %s illisible (%s), copie en .corrupt.json", key, e)
            try:
                shutil.copy2(path, path.with_suffix(".corrupt.json"))
            except OSError:
                logger.exception("Copie de %s impossible", path)
            return default

    # ---------------- Écriture ---------------- #

    def backups(self, key: str) -> List[Path]:
        pattern = str(self.path_for(key).with_suffix(".*.bak.json"))
        return [Path(p) for p in sorted(glob.glob(pattern))]

    def _rotate_backups(self, key: str) -> None:
        if not self.backup_enabled or self.backup_keep <= 0:
            return
        files = self.backups(key)
        # garde les plus récents
        for old in files[: max(0, len(files) - self.backup_keep)]:
            old.unlink(missing_ok=True)

    def write(self, key: str, data: Any) -> bool:
        """Écrit le blob ; retourne False si le contenu était identique."""
        path = self.path_for(key)
        with self._lock:
            new_dump = json.dumps(data, ensure_ascii=False, indent=2, default=_json_default)

            # si contenu identique → ne rien faire
            if path.exists():
                try:
                    if path.read_text(encoding="utf-8") == new_dump:
                        return False
                except OSError:
                    pass

            # backup
            if self.backup_enabled and self.backup_keep > 0 and path.exists():
                ts = datetime.now().strftime("%Y%m%d-%H%M%S-%f")
                shutil.copy2(path, path.with_suffix(f".{ts}.bak.json"))
                self._rotate_backups(key)

            tmp = path.with_suffix(".tmp")
            tmp.write_text(new_dump, encoding="utf-8")
            tmp.replace(path)
        logger.debug("Blob %s écrit (%d octets)", key, len(new_dump))
        return True

    def delete(self, key: str) -> bool:
        path = self.path_for(key)
        if not path.exists():
            return False
        path.unlink()
        return True

    def read_text(self, key: str) -> Optional[str]:
        path = self.path_for(key)
        return path.read_text(encoding="utf-8") if path.exists() else None
