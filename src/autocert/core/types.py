"""Enumerated types shared across autocert.

All enums inherit from ``StrEnum`` so their ``.value`` is a plain
string that round-trips through YAML/JSON config and log records.
"""

from __future__ import annotations

from enum import StrEnum

# ---------------------------------------------------------------------------
# Certificate lifecycle
# ---------------------------------------------------------------------------


class CertificateState(StrEnum):
    """State of the stored certificate relative to the current run."""

    ABSENT = "absent"
    MISMATCHED = "mismatched"
    VALID = "valid"
    EXPIRING_SOON = "expiring_soon"
    FORCE_RENEW = "force_renew"


class RunAction(StrEnum):
    """What a single orchestrator run did."""

    ISSUED = "issued"
    RENEWED = "renewed"
    SKIPPED = "skipped"


# ---------------------------------------------------------------------------
# Keys
# ---------------------------------------------------------------------------


class KeyType(StrEnum):
    RSA2048 = "rsa2048"
    RSA4096 = "rsa4096"
    EC256 = "ec256"
    EC384 = "ec384"


# ---------------------------------------------------------------------------
# Challenge types
# ---------------------------------------------------------------------------


class ChallengeType(StrEnum):
    HTTP_01 = "http-01"
    DNS_01 = "dns-01"
