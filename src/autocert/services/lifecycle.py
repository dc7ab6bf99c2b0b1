"""Certificate lifecycle orchestration.

One :meth:`LifecycleOrchestrator.run` call reads the stored record,
decides between issuing, renewing and skipping, persists any new
certificate and only then fans it out to the distribution targets.

Outcomes per stored state:

- absent: issue under a new account identity, ``create`` the record;
- mismatched hostnames: issue under the stored account identity with
  a fresh key, ``update`` the record;
- expiring soon or forced: renew (reusing the certificate key unless
  ``reuse_private_key`` is off), ``update`` the record;
- valid: nothing is called or written; the report has no outcomes.

Authority and store failures propagate; target failures never do.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from autocert.core.keys import generate_account_key
from autocert.core.types import CertificateState, RunAction
from autocert.core.validity import RENEWAL_THRESHOLD, evaluate, leaf_not_after
from autocert.logging import audit, bind_run
from autocert.models.record import AccountIdentity, DispatchReport, normalize_hostnames

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from autocert.authority.base import CertificateAuthority
    from autocert.models.record import CertificateRecord
    from autocert.runners.base import DistributionTarget
    from autocert.runners.fanout import RunnerFanOut
    from autocert.store.base import SecretStore

log = logging.getLogger(__name__)


class LifecycleOrchestrator:
    """Top-level control flow for one certificate.

    Parameters
    ----------
    store:
        Where the certificate record is kept between runs.
    authority:
        Issues and renews certificates.
    fanout:
        Dispatches a certificate to *targets*.
    targets:
        Distribution targets, in reporting order.
    threshold:
        Renew when less than this much validity remains.
    reuse_private_key:
        Keep the certificate key across renewals.
    clock:
        Returns the current UTC time; replaceable in tests.

    """

    def __init__(  # noqa: PLR0913
        self,
        store: SecretStore,
        authority: CertificateAuthority,
        fanout: RunnerFanOut,
        targets: Sequence[DistributionTarget],
        *,
        threshold: timedelta = RENEWAL_THRESHOLD,
        reuse_private_key: bool = True,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._authority = authority
        self._fanout = fanout
        self._targets = list(targets)
        self._threshold = threshold
        self._reuse_private_key = reuse_private_key
        self._clock = clock or (lambda: datetime.now(UTC))

    @property
    def targets(self) -> list[DistributionTarget]:
        return list(self._targets)

    def run(
        self,
        account_email: str,
        hostnames: Sequence[str],
        force_renew: bool = False,  # noqa: FBT001, FBT002
    ) -> DispatchReport:
        """Ensure a valid certificate for *hostnames* and distribute it.

        Parameters
        ----------
        account_email:
            Contact address for a newly created ACME account.
        hostnames:
            Requested hostname set; the first entry becomes the CN.
        force_renew:
            Renew even when the stored certificate is still valid.

        Returns
        -------
        DispatchReport
            ``action`` is ``issued``, ``renewed`` or ``skipped``.

        Raises
        ------
        MalformedRecordError
            If the stored record cannot be decoded.
        SecretStoreError
            If the store cannot be read or written.
        AuthorityError
            If no certificate could be obtained.

        """
        names = normalize_hostnames(hostnames)
        if not names:
            msg = "at least one hostname is required"
            raise ValueError(msg)

        with bind_run() as run_id:
            log.info("Run %s started for %s", run_id, ", ".join(names))
            return self._run(account_email, names, force_renew=force_renew)

    # -- internals ----------------------------------------------------------

    def _run(
        self,
        account_email: str,
        names: tuple[str, ...],
        *,
        force_renew: bool,
    ) -> DispatchReport:
        current = self._store.read()
        decision = evaluate(
            current,
            names,
            self._clock(),
            force=force_renew,
            threshold=self._threshold,
        )
        log.info(
            "Stored certificate state: %s (expires %s)",
            decision.state,
            decision.not_after.isoformat() if decision.not_after else "n/a",
        )

        if current is None:
            identity = AccountIdentity(email=account_email, key=generate_account_key())
            record = self._authority.issue(identity, names)
            self._store.create(record)
            action = RunAction.ISSUED

        elif decision.state == CertificateState.MISMATCHED:
            log.warning(
                "Stored certificate covers %s; requested %s. Issuing a new one",
                ", ".join(current.hostnames),
                ", ".join(names),
            )
            record = self._authority.issue(current.account, names)
            self._store.update(record)
            action = RunAction.ISSUED

        elif decision.needs_certificate:
            record = self._renew(current, names)
            self._store.update(record)
            action = RunAction.RENEWED

        else:
            audit.renewal_skipped(names, decision.not_after)
            log.info(
                "Certificate valid for another %s; nothing to do",
                decision.time_to_expiry,
            )
            return DispatchReport(action=RunAction.SKIPPED)

        audit.certificate_obtained(action, names, self._not_after(record))
        report = self._fanout.dispatch(self._targets, names, record)
        log.info(
            "Run finished: %s, %d/%d target(s) succeeded",
            action,
            report.succeeded,
            report.attempted,
        )
        return report.with_action(action)

    def _renew(self, current: CertificateRecord, names: tuple[str, ...]) -> CertificateRecord:
        if self._reuse_private_key:
            return self._authority.renew(current.account, names, current.private_key)
        log.info("Key reuse disabled; renewing with a fresh certificate key")
        return self._authority.issue(current.account, names)

    @staticmethod
    def _not_after(record: CertificateRecord) -> datetime | None:
        try:
            return leaf_not_after(record)[0]
        except ValueError:
            log.warning("Obtained certificate could not be parsed for audit logging")
            return None
