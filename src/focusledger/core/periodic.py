"""Fixed-interval background task with a cooperative stop signal."""

from __future__ import annotations

import logging
import threading
from typing import Callable

logger = logging.getLogger(__name__)


class PeriodicTask:
    """Run *action* every *interval_seconds* on a daemon thread.

    The first run happens after one full interval.  Exceptions raised by
    *action* are logged and the loop keeps going.
    """

    def __init__(
        self,
        action: Callable[[], object],
        interval_seconds: float,
        *,
        name: str = "periodic",
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval_seconds}")
        self._action = action
        self._interval = interval_seconds
        self._name = name
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
        self._thread.start()

    def _run(self) -> None:
        """Blocking loop. Runs on the task's own daemon thread."""
        while not self._stop.wait(timeout=self._interval):
            try:
                self._action()
            except Exception:
                logger.exception("Periodic task %s failed", self._name)

    def stop(self, timeout: float | None = 5.0) -> None:
        """Signal the loop to stop and wait for the thread to exit."""
        self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)
        self._thread = None
