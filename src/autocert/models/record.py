"""Persisted certificate state and per-run dispatch results.

:class:`CertificateRecord` is the unit of state kept in the secret
store.  Its JSON form keeps the field names the store has always used
(``private_key``, ``certificate``, ``user``, ``hostnames``) so records
written by earlier deployments stay readable.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

from autocert.core.keys import (
    KeyMaterialError,
    load_private_key,
    private_key_to_pem,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from cryptography.hazmat.primitives.asymmetric.types import (
        CertificateIssuerPrivateKeyTypes,
    )


class MalformedRecordError(ValueError):
    """Raised when a stored record cannot be decoded or trusted."""


def normalize_hostnames(hostnames: Iterable[str]) -> tuple[str, ...]:
    """Lower-case, strip, and de-duplicate *hostnames* preserving order."""
    seen: dict[str, None] = {}
    for name in hostnames:
        cleaned = name.strip().lower().rstrip(".")
        if cleaned:
            seen.setdefault(cleaned, None)
    return tuple(seen)


# ---------------------------------------------------------------------------
# Account identity
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AccountIdentity:
    """ACME account: contact email, signing key and registration flag."""

    email: str
    key: CertificateIssuerPrivateKeyTypes = field(repr=False)
    registered: bool = False

    @property
    def key_pem(self) -> str:
        return private_key_to_pem(self.key)

    def as_registered(self) -> AccountIdentity:
        return replace(self, registered=True)

    def to_dict(self) -> dict[str, str]:
        return {"email": self.email, "private_key": self.key_pem}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AccountIdentity:
        """Rebuild a stored identity; stored identities are registered."""
        try:
            key = load_private_key(data["private_key"])
        except (KeyError, TypeError, KeyMaterialError) as exc:
            msg = f"stored account key is unusable: {exc}"
            raise MalformedRecordError(msg) from exc
        return cls(email=data.get("email", ""), key=key, registered=True)


# ---------------------------------------------------------------------------
# Certificate record
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CertificateRecord:
    """Key material, certificate chain, account and hostname set."""

    private_key: str = field(repr=False)
    certificate_chain: str = field(repr=False)
    account: AccountIdentity
    hostnames: tuple[str, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "hostnames", normalize_hostnames(self.hostnames))

    def to_dict(self) -> dict[str, Any]:
        return {
            "private_key": self.private_key,
            "certificate": self.certificate_chain,
            "user": self.account.to_dict(),
            "hostnames": list(self.hostnames),
        }

    def to_json(self) -> bytes:
        return json.dumps(self.to_dict()).encode("utf-8")

    @classmethod
    def from_dict(cls, data: Any) -> CertificateRecord:  # noqa: ANN401
        if not isinstance(data, dict):
            msg = f"stored record must be a JSON object, got {type(data).__name__}"
            raise MalformedRecordError(msg)
        missing = [k for k in ("private_key", "certificate", "user") if not data.get(k)]
        if missing:
            msg = f"stored record is missing fields: {', '.join(missing)}"
            raise MalformedRecordError(msg)
        return cls(
            private_key=data["private_key"],
            certificate_chain=data["certificate"],
            account=AccountIdentity.from_dict(data["user"]),
            hostnames=tuple(data.get("hostnames") or ()),
        )

    @classmethod
    def from_json(cls, payload: bytes | str) -> CertificateRecord:
        try:
            data = json.loads(payload)
        except (ValueError, TypeError) as exc:
            msg = f"stored record is not valid JSON: {exc}"
            raise MalformedRecordError(msg) from exc
        return cls.from_dict(data)


# ---------------------------------------------------------------------------
# Dispatch results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DistributionOutcome:
    """Result of pushing one certificate to one distribution target."""

    target: str
    success: bool
    error: str | None = None
    message: str | None = None
    duration_ms: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "target": self.target,
            "success": self.success,
            "duration_ms": self.duration_ms,
        }
        if self.error is not None:
            data["error"] = self.error
        if self.message is not None:
            data["message"] = self.message
        return data


@dataclass(frozen=True)
class DispatchReport:
    """Run-level summary of a fan-out dispatch."""

    outcomes: tuple[DistributionOutcome, ...] = ()
    action: str | None = None

    @property
    def attempted(self) -> int:
        return len(self.outcomes)

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.success)

    @property
    def failed(self) -> int:
        return self.attempted - self.succeeded

    @property
    def errors(self) -> dict[str, str]:
        return {o.target: o.error or "unknown error" for o in self.outcomes if not o.success}

    @property
    def ok(self) -> bool:
        return self.failed == 0

    def with_action(self, action: str) -> DispatchReport:
        return replace(self, action=action)

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action,
            "attempted": self.attempted,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "outcomes": [o.to_dict() for o in self.outcomes],
        }
