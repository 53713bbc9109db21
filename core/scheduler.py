"""
Owned periodic tasks.

Each concern (countdown, presence sampling) gets exactly one
PeriodicTask handle. The handle must be cancelled on every exit path;
using it as a context manager guarantees that.
"""

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class PeriodicTask:
    """
    Run a callback every `interval` seconds on a daemon thread.

    The next run is scheduled only after the previous callback returns,
    so runs of one task never overlap.
    """

    def __init__(self, interval: float, callback: Callable[[], None], name: str = "periodic") -> None:
        """
        Args:
            interval: Seconds between runs.
            callback: Zero-argument callable. Exceptions are logged, not raised.
            name: Thread name (shows up in logs).
        """
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self.interval = interval
        self.callback = callback
        self.name = name
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_active(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stop_event.is_set()

    def start(self) -> "PeriodicTask":
        """Start the task. Starting an active task is a no-op."""
        if self.is_active:
            return self
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()
        logger.debug(f"Periodic task '{self.name}' started (every {self.interval}s)")
        return self

    def cancel(self, timeout: float = 2.0) -> None:
        """
        Stop the task. Safe to call repeatedly and from inside the callback.

        Args:
            timeout: Max seconds to wait for the worker thread to exit.
        """
        self._stop_event.set()
        thread = self._thread
        if thread is None:
            return
        # The callback may cancel its own task (e.g. natural completion)
        if thread is not threading.current_thread() and thread.is_alive():
            thread.join(timeout=timeout)
            if thread.is_alive():
                logger.warning(f"Periodic task '{self.name}' did not stop within timeout")
        self._thread = None
        logger.debug(f"Periodic task '{self.name}' cancelled")

    def _run(self) -> None:
        while not self._stop_event.wait(self.interval):
            try:
                self.callback()
            except Exception as e:
                logger.error(f"Periodic task '{self.name}' callback error: {e}", exc_info=True)

    def __enter__(self) -> "PeriodicTask":
        return self.start()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.cancel()
