"""Audit events for certificate lifecycle and distribution.

All events go to the ``autocert.audit`` logger with an ``event_id``
field for filtering.  When ``logging.audit`` is enabled that logger is
backed by a rotating JSON file (see :func:`configure_logging`).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from autocert.logging.sanitize import sanitize_for_logs

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime

    from autocert.models.record import DispatchReport, DistributionOutcome

audit_log = logging.getLogger("autocert.audit")


def _emit(
    event_id: str,
    message: str,
    *args: Any,  # noqa: ANN401
    severity: str = "INFO",
    **extra: Any,  # noqa: ANN401
) -> None:
    data: dict[str, object] = {"event_id": event_id, "severity": severity}
    data.update(sanitize_for_logs(extra))
    level = getattr(logging, severity.upper(), logging.INFO)
    audit_log.log(level, message, *args, extra=data)


def certificate_obtained(
    action: str,
    hostnames: Sequence[str],
    not_after: datetime | None,
) -> None:
    """Log a certificate issued or renewed by the authority."""
    _emit(
        f"autocert.certificate.{action}",
        "Certificate %s for %s",
        action,
        ", ".join(hostnames),
        hostnames=list(hostnames),
        not_after=not_after.isoformat() if not_after else None,
    )


def renewal_skipped(hostnames: Sequence[str], not_after: datetime) -> None:
    _emit(
        "autocert.certificate.skipped",
        "Certificate for %s still valid until %s",
        ", ".join(hostnames),
        not_after.isoformat(),
        hostnames=list(hostnames),
        not_after=not_after.isoformat(),
    )


def target_failed(outcome: DistributionOutcome) -> None:
    _emit(
        "autocert.dispatch.target_failed",
        "Distribution to %s failed: %s",
        outcome.target,
        outcome.error,
        severity="WARNING",
        target=outcome.target,
        error=outcome.error,
        duration_ms=outcome.duration_ms,
    )


def dispatch_completed(report: DispatchReport) -> None:
    _emit(
        "autocert.dispatch.completed",
        "Dispatch finished: %d attempted, %d succeeded, %d failed",
        report.attempted,
        report.succeeded,
        report.failed,
        severity="INFO" if report.ok else "WARNING",
        attempted=report.attempted,
        succeeded=report.succeeded,
        failed=report.failed,
    )
