from __future__ import annotations
from typing import Callable

from PySide6.QtCore import QTimer


class QtSingleShot:
    """Timer compatible AutoSaver, exécuté dans la boucle Qt (thread principal)."""

    def __init__(self, interval: float, function: Callable[[], None]):
        self._timer = QTimer()
        self._timer.setSingleShot(True)
        self._timer.setInterval(int(interval * 1000))
        self._timer.timeout.connect(function)

    def start(self) -> None:
        self._timer.start()

    def cancel(self) -> None:
        self._timer.stop()
