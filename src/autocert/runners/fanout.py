"""Concurrent dispatch of one certificate to many distribution targets.

Every target is submitted to its own worker before any result is
awaited, so a slow or failing provider never delays the others.  A
target's exception is captured into its :class:`DistributionOutcome`
and never propagates.  There are no retries: a failed target is
reported, and the next scheduled run re-applies the certificate.

Cancellation comes from two places: a process-wide event (set by the
shutdown coordinator on SIGTERM/SIGINT) and, when
``cancel_on_first_error`` is on, the first failed target.  Either way
the targets that have not finished are reported as failed.

Usage::

    fanout = RunnerFanOut(cancel_event=coordinator.shutdown_event)
    report = fanout.dispatch(targets, hostnames, record)
"""

from __future__ import annotations

import contextvars
import logging
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import TYPE_CHECKING

from autocert.logging import audit
from autocert.models.record import DispatchReport, DistributionOutcome
from autocert.runners.base import DistributionError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from autocert.models.record import CertificateRecord
    from autocert.runners.base import DistributionTarget

log = logging.getLogger(__name__)

CANCELLED = "cancelled before completion"


def _label(target: DistributionTarget) -> str:
    return target.name or type(target).__name__


class RunnerFanOut:
    """Fan a certificate out to targets and collect a :class:`DispatchReport`.

    Parameters
    ----------
    cancel_on_first_error:
        Stop waiting for the remaining targets as soon as one fails.
    cancel_event:
        Process-wide cancellation signal.  When set, dispatch stops
        waiting and reports unfinished targets as cancelled.
    poll_interval:
        How often (seconds) the wait loop re-checks *cancel_event*.

    """

    def __init__(
        self,
        *,
        cancel_on_first_error: bool = False,
        cancel_event: threading.Event | None = None,
        poll_interval: float = 0.2,
    ) -> None:
        self.cancel_on_first_error = cancel_on_first_error
        self.cancel_event = cancel_event or threading.Event()
        self.poll_interval = poll_interval

    def dispatch(
        self,
        targets: Sequence[DistributionTarget],
        hostnames: Sequence[str],
        record: CertificateRecord,
    ) -> DispatchReport:
        """Run every target concurrently and wait for all of them.

        Returns
        -------
        DispatchReport
            One outcome per target, in the order of *targets*.

        """
        if not targets:
            log.info("No distribution targets configured; nothing to dispatch")
            return DispatchReport()

        stop = threading.Event()
        results: dict[int, DistributionOutcome] = {}
        executor = ThreadPoolExecutor(
            max_workers=len(targets),
            thread_name_prefix="autocert-runner",
        )
        futures: dict[Future, int] = {}
        try:
            # Submit everything before waiting on anything.
            for index, target in enumerate(targets):
                ctx = contextvars.copy_context()
                future = executor.submit(
                    ctx.run, self._execute, target, hostnames, record, stop,
                )
                futures[future] = index
            log.info("Dispatching certificate to %d target(s)", len(targets))

            pending = set(futures)
            while pending:
                done, pending = wait(
                    pending,
                    timeout=self.poll_interval,
                    return_when=FIRST_COMPLETED,
                )
                for future in done:
                    outcome = future.result()
                    results[futures[future]] = outcome
                    if not outcome.success and self.cancel_on_first_error:
                        log.warning(
                            "Target %s failed; cancelling remaining targets",
                            outcome.target,
                        )
                        stop.set()
                if self.cancel_event.is_set():
                    log.warning("Shutdown requested; cancelling remaining targets")
                    stop.set()
                if stop.is_set():
                    break
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        outcomes = tuple(
            results.get(index)
            or DistributionOutcome(target=_label(target), success=False, error=CANCELLED)
            for index, target in enumerate(targets)
        )
        for outcome in outcomes:
            if not outcome.success:
                audit.target_failed(outcome)

        report = DispatchReport(outcomes=outcomes)
        audit.dispatch_completed(report)
        return report

    @staticmethod
    def _execute(
        target: DistributionTarget,
        hostnames: Sequence[str],
        record: CertificateRecord,
        stop: threading.Event,
    ) -> DistributionOutcome:
        """Run one target, converting any exception into a failed outcome."""
        label = _label(target)
        if stop.is_set():
            return DistributionOutcome(target=label, success=False, error=CANCELLED)

        start = time.monotonic()
        try:
            message = target.exec(hostnames, record)
        except Exception as exc:  # noqa: BLE001
            elapsed_ms = round((time.monotonic() - start) * 1000, 2)
            log.error(  # noqa: TRY400
                "Target %s failed after %.1fms: %s",
                label,
                elapsed_ms,
                exc,
                extra={"target": label, "duration_ms": elapsed_ms},
                exc_info=not isinstance(exc, DistributionError),
            )
            return DistributionOutcome(
                target=label,
                success=False,
                error=str(exc) or type(exc).__name__,
                duration_ms=elapsed_ms,
            )

        elapsed_ms = round((time.monotonic() - start) * 1000, 2)
        log.info(
            "Target %s completed in %.1fms",
            label,
            elapsed_ms,
            extra={"target": label, "duration_ms": elapsed_ms},
        )
        return DistributionOutcome(
            target=label,
            success=True,
            message=message,
            duration_ms=elapsed_ms,
        )
