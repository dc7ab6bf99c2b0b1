"""Data model: persisted certificate record and dispatch results."""

from autocert.models.record import (
    AccountIdentity,
    CertificateRecord,
    DispatchReport,
    DistributionOutcome,
    MalformedRecordError,
    normalize_hostnames,
)

__all__ = [
    "AccountIdentity",
    "CertificateRecord",
    "DispatchReport",
    "DistributionOutcome",
    "MalformedRecordError",
    "normalize_hostnames",
]
