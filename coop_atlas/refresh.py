"""
Periodic refresh of the remote collection.

A daemon threading.Timer re-arms itself after every run. stop() cancels the
pending timer so no fetch is started after the dashboard shuts down.
"""

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class PeriodicRefresher:
    """Run callback every interval_s seconds until stopped."""

    def __init__(self, callback: Callable[[], None], interval_s: float) -> None:
        if interval_s <= 0:
            raise ValueError(f"interval_s must be > 0, got {interval_s}")
        self.callback = callback
        self.interval_s = interval_s
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> None:
        with self._lock:
            if self._running:
                return
            self._running = True
            self._arm()
        logger.info(f"🔄 Periodic refresh every {self.interval_s:.0f}s")

    def stop(self) -> None:
        with self._lock:
            self._running = False
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        logger.info("Periodic refresh stopped")

    def _arm(self) -> None:
        self._timer = threading.Timer(self.interval_s, self._run)
        self._timer.daemon = True
        self._timer.start()

    def _run(self) -> None:
        try:
            self.callback()
        except Exception:
            logger.exception("Periodic refresh failed")
        with self._lock:
            if self._running:
                self._arm()
