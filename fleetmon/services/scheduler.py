# fleetmon/services/scheduler.py
from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class RecurringTask:
    """
    Runs ``func`` every ``interval`` seconds on a background thread.

    At most one run is in flight at any time: a tick (or a manual ``run_once``)
    that finds the previous run still going is skipped, not queued. Exceptions
    raised by ``func`` are logged and the next tick runs as usual.
    """

    def __init__(
        self,
        func: Callable[[], object],
        interval: float,
        name: str = "RecurringTask",
        run_immediately: bool = False,
    ):
        self.func = func
        self.interval = interval
        self.name = name
        self.run_immediately = run_immediately

        self._stop = threading.Event()
        self._in_flight = threading.Lock()
        self._thread: Optional[threading.Thread] = None

        self.runs = 0
        self.failures = 0
        self.skipped = 0
        self.last_error: Optional[BaseException] = None
        self.last_run_at: Optional[float] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            logger.warning(f"[{self.name}] already running")
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name=self.name, daemon=True)
        self._thread.start()
        logger.info(f"[{self.name}] started (interval={self.interval}s)")

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info(f"[{self.name}] stopped")

    def run_once(self) -> bool:
        """Run ``func`` now unless a run is already in flight.

        Returns False when the run was skipped.
        """
        if not self._in_flight.acquire(blocking=False):
            self.skipped += 1
            logger.warning(f"[{self.name}] previous run still in progress, skipping")
            return False
        try:
            self.last_run_at = time.time()
            self.func()
            self.last_error = None
        except Exception as e:
            self.failures += 1
            self.last_error = e
            logger.exception(f"[{self.name}] run failed, retrying at next tick: {e}")
        finally:
            self.runs += 1
            self._in_flight.release()
        return True

    def _loop(self) -> None:
        if self.run_immediately and not self._stop.is_set():
            self.run_once()
        while not self._stop.wait(self.interval):
            self.run_once()
