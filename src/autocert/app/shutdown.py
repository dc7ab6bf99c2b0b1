"""Graceful shutdown coordinator.

Tracks in-flight runs and exposes the shutdown flag as a
:class:`threading.Event`, which the fan-out uses as its process-wide
cancellation signal.

Usage::

    from autocert.app.shutdown import ShutdownCoordinator

    coordinator = ShutdownCoordinator(graceful_timeout=30)
    coordinator.register_signals()

    with coordinator.track("run"):
        orchestrator.run(email, hostnames)

    coordinator.initiate()  # waits for tracked runs to finish
"""

from __future__ import annotations

import logging
import signal
import threading
import time
from contextlib import contextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Generator
    from types import FrameType

log = logging.getLogger(__name__)


class ShutdownCoordinator:
    """Coordinates graceful shutdown by tracking in-flight operations.

    Parameters
    ----------
    graceful_timeout:
        Maximum seconds to wait for in-flight operations during shutdown.

    """

    def __init__(self, graceful_timeout: float = 30) -> None:
        self._graceful_timeout = graceful_timeout
        self._shutdown_flag = threading.Event()
        self._in_flight = 0
        self._lock = threading.Lock()
        self._done = threading.Condition(self._lock)

    @property
    def shutdown_event(self) -> threading.Event:
        """Set once shutdown has been requested."""
        return self._shutdown_flag

    @property
    def is_shutting_down(self) -> bool:
        return self._shutdown_flag.is_set()

    @property
    def in_flight_count(self) -> int:
        with self._lock:
            return self._in_flight

    @contextmanager
    def track(self, name: str) -> Generator[None, None, None]:
        """Context manager to track an in-flight operation.

        An operation started during shutdown still runs, with a warning.
        """
        if self._shutdown_flag.is_set():
            log.warning("Operation '%s' starting during shutdown", name)

        with self._lock:
            self._in_flight += 1

        try:
            yield
        finally:
            with self._done:
                self._in_flight -= 1
                if self._in_flight == 0:
                    self._done.notify_all()

    def initiate(self) -> None:
        """Begin graceful shutdown.

        Sets the shutdown flag and waits up to ``graceful_timeout``
        seconds for in-flight operations to complete.
        """
        if self._shutdown_flag.is_set():
            return

        self._shutdown_flag.set()
        log.info("Graceful shutdown initiated")

        with self._done:
            deadline = time.monotonic() + self._graceful_timeout
            while self._in_flight > 0:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    log.warning(
                        "Shutdown timeout expired with %d operations in flight",
                        self._in_flight,
                    )
                    return
                self._done.wait(timeout=remaining)

        log.info("All in-flight operations completed")

    def register_signals(self) -> None:
        """Register SIGTERM and SIGINT handlers to initiate shutdown.

        Must be called from the main thread.
        """
        try:
            signal.signal(signal.SIGTERM, self._signal_handler)
            signal.signal(signal.SIGINT, self._signal_handler)
        except (ValueError, OSError):
            log.debug("Could not register signal handlers (not main thread)")

    def _signal_handler(self, signum: int, frame: FrameType | None) -> None:  # noqa: ARG002
        sig_name = signal.Signals(signum).name
        log.info("Received %s, initiating graceful shutdown", sig_name)
        # Run in a thread to avoid blocking the signal handler
        threading.Thread(
            target=self.initiate,
            name="shutdown-coordinator",
            daemon=True,
        ).start()
