"""Certificate validity window and state-transition logic.

The orchestrator asks one question per run: given the stored record and
the requested hostnames, does a certificate have to be obtained?
:func:`evaluate` answers it without side effects so it can be tested in
isolation from the authority and the store.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from autocert.core.keys import dns_names, load_chain
from autocert.core.types import CertificateState
from autocert.models.record import MalformedRecordError, normalize_hostnames

if TYPE_CHECKING:
    from collections.abc import Iterable

    from autocert.models.record import CertificateRecord

RENEWAL_THRESHOLD = timedelta(hours=72)


def hostnames_match(left: Iterable[str], right: Iterable[str]) -> bool:
    """Compare two hostname collections as unordered, case-insensitive sets."""
    return set(normalize_hostnames(left)) == set(normalize_hostnames(right))


@dataclass(frozen=True)
class ValidityDecision:
    """Outcome of :func:`evaluate`."""

    state: CertificateState
    not_after: datetime | None = None
    time_to_expiry: timedelta | None = None

    @property
    def needs_certificate(self) -> bool:
        return self.state != CertificateState.VALID

    @property
    def reusable(self) -> bool:
        """True when the stored record matches the hostname set."""
        return self.state not in (CertificateState.ABSENT, CertificateState.MISMATCHED)


def leaf_not_after(record: CertificateRecord) -> tuple[datetime, list[str]]:
    """Return the leaf certificate's expiry and DNS SANs.

    Raises
    ------
    MalformedRecordError
        If the stored chain cannot be parsed.

    """
    try:
        leaf = load_chain(record.certificate_chain)[0]
    except ValueError as exc:
        msg = f"stored certificate is unreadable: {exc}"
        raise MalformedRecordError(msg) from exc
    return leaf.not_valid_after_utc, dns_names(leaf)


def evaluate(
    record: CertificateRecord | None,
    hostnames: Iterable[str],
    now: datetime | None = None,
    *,
    force: bool = False,
    threshold: timedelta = RENEWAL_THRESHOLD,
) -> ValidityDecision:
    """Decide whether a certificate must be obtained for *hostnames*.

    Parameters
    ----------
    record:
        The stored record, or ``None`` on first run.
    hostnames:
        The requested hostname set.
    now:
        Reference time (defaults to the current UTC time).
    force:
        Renew regardless of the remaining validity.
    threshold:
        Renew when less than this much validity remains.

    Returns
    -------
    ValidityDecision

    Raises
    ------
    MalformedRecordError
        If the stored leaf certificate cannot be parsed.

    """
    if record is None:
        return ValidityDecision(CertificateState.ABSENT)

    requested = normalize_hostnames(hostnames)
    not_after, sans = leaf_not_after(record)
    if now is None:
        now = datetime.now(UTC)
    remaining = not_after - now

    if not hostnames_match(record.hostnames, requested) or not hostnames_match(
        sans, requested,
    ):
        return ValidityDecision(CertificateState.MISMATCHED, not_after, remaining)
    if force:
        return ValidityDecision(CertificateState.FORCE_RENEW, not_after, remaining)
    if remaining < threshold:
        return ValidityDecision(CertificateState.EXPIRING_SOON, not_after, remaining)
    return ValidityDecision(CertificateState.VALID, not_after, remaining)
