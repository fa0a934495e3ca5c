"""Periodic cleanup of expired product reservations."""

from __future__ import annotations

import logging
import threading
from typing import Callable

_LOGGER = logging.getLogger("wala.reservations")


class ReservationCleaner:
    """Run `task` every `interval_seconds` on a daemon thread until stopped."""

    def __init__(self, task: Callable[[], int], interval_seconds: float):
        self._task = task
        self._interval = interval_seconds
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="reservation-cleaner", daemon=True)
        self._thread.start()
        _LOGGER.info("reservation cleaner started (every %.0fs)", self._interval)

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def run_once(self) -> int:
        released = self._task()
        if released:
            _LOGGER.info("released %d expired reservation(s)", released)
        return released

    def _loop(self) -> None:
        while not self._stop.wait(self._interval):
            try:
                self.run_once()
            except Exception:
                _LOGGER.exception("reservation cleanup failed")
