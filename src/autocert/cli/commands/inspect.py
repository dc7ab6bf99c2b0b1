"""Inspect subcommand: print the stored certificate record.

Usage::

    autocert -c config.yaml inspect

Private keys are never printed; only the account, hostnames and the
leaf certificate's validity are shown.
"""

from __future__ import annotations

import json
import sys
from datetime import UTC, datetime


def run_inspect(config, args) -> int:  # noqa: ARG001
    """Print a JSON summary of the stored record and its validity state."""
    from autocert.cli.main import EXIT_FATAL, EXIT_OK
    from autocert.core.keys import KeyMaterialError, dns_names, load_chain
    from autocert.core.validity import evaluate
    from autocert.models.record import MalformedRecordError
    from autocert.store.base import SecretStoreError
    from autocert.store.registry import load_secret_store

    settings = config.settings
    try:
        store = load_secret_store(settings.secret_store)
        try:
            record = store.read()
        finally:
            store.close()
    except (SecretStoreError, MalformedRecordError) as exc:
        print(f"autocert: error: {exc}", file=sys.stderr)  # noqa: T201
        return EXIT_FATAL

    if record is None:
        print(json.dumps({"store": store.name, "record": None}, indent=2))  # noqa: T201
        return EXIT_OK

    now = datetime.now(UTC)
    try:
        decision = evaluate(
            record,
            settings.hostnames,
            now,
            threshold=settings.renewal.threshold,
        )
        leaf = load_chain(record.certificate_chain)[0]
    except (MalformedRecordError, KeyMaterialError) as exc:
        print(f"autocert: error: stored record is unusable: {exc}", file=sys.stderr)  # noqa: T201
        return EXIT_FATAL

    result = {
        "store": store.name,
        "account": record.account.email,
        "hostnames": list(record.hostnames),
        "certificate": {
            "subject": leaf.subject.rfc4514_string(),
            "issuer": leaf.issuer.rfc4514_string(),
            "serial": format(leaf.serial_number, "x"),
            "dns_names": dns_names(leaf),
            "not_before": leaf.not_valid_before_utc.isoformat(),
            "not_after": leaf.not_valid_after_utc.isoformat(),
        },
        "state": str(decision.state),
        "time_to_expiry": str(decision.time_to_expiry) if decision.time_to_expiry else None,
    }
    print(json.dumps(result, indent=2))  # noqa: T201
    return EXIT_OK
