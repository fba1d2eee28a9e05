from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, Protocol

from core.storage.json_store import JsonStore

logger = logging.getLogger(__name__)


class Timer(Protocol):
    def start(self) -> None: ...
    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[[], None]], Timer]


def thread_timer(interval: float, function: Callable[[], None]) -> Timer:
    t = threading.Timer(interval, function)
    t.daemon = True
    return t


class AutoSaver:
    """
    Écriture différée (debounce) des blobs du JsonStore.
    Chaque schedule() annule le timer en attente pour la même clé et en arme
    un nouveau ; le snapshot est pris au déclenchement, donc l'écriture
    reflète toujours l'état mémoire le plus récent.
    """

    def __init__(
        self,
        store: JsonStore,
        delay: float = 1.0,
        timer_factory: TimerFactory = thread_timer,
    ) -> None:
        self.store = store
        self.delay = delay
        self.timer_factory = timer_factory
        self._snapshots: Dict[str, Callable[[], Any]] = {}
        self._timers: Dict[str, Timer] = {}
        self._lock = threading.RLock()

    @property
    def pending(self) -> list[str]:
        with self._lock:
            return sorted(self._snapshots)

    def schedule(self, key: str, snapshot: Callable[[], Any]) -> None:
        with self._lock:
            old = self._timers.pop(key, None)
            if old is not None:
                old.cancel()
            self._snapshots[key] = snapshot
            timer = self.timer_factory(self.delay, lambda: self._fire(key))
            self._timers[key] = timer
            timer.start()

    def _fire(self, key: str) -> None:
        with self._lock:
            self._timers.pop(key, None)
            snapshot = self._snapshots.pop(key, None)
            if snapshot is None:
                return
            try:
                self.store.write(key, snapshot())
            except (OSError, TypeError, ValueError):
                # on garde le snapshot pour la prochaine tentative (flush / close)
                self._snapshots.setdefault(key, snapshot)
                logger.exception("Sauvegarde automatique de %s impossible", key)
                return
            logger.info("Sauvegarde automatique : %s", key)

    def flush(self) -> None:
        """Écrit immédiatement toutes les clés en attente."""
        with self._lock:
            for key in list(self._snapshots):
                timer = self._timers.pop(key, None)
                if timer is not None:
                    timer.cancel()
                self._fire(key)

    def cancel_all(self) -> None:
        with self._lock:
            for timer in self._timers.values():
                timer.cancel()
            self._timers.clear()
            self._snapshots.clear()
