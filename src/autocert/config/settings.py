"""Typed, frozen dataclasses for every configuration section.

This module is the **single source of truth** for default values.
JSON Schema defaults exist only for documentation; these builders
are what the application actually reads.

Access pattern::

    from autocert.config import get_config

    runners = get_config().settings.runners
    print(runners.enabled, runners.timeout_seconds)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Any

LETSENCRYPT_STAGING = "https://acme-staging-v02.api.letsencrypt.org/directory"


def _split_list(value: Any) -> tuple[str, ...]:  # noqa: ANN401
    """Accept a list or a comma-separated string."""
    if value is None:
        return ()
    if isinstance(value, str):
        value = value.split(",")
    return tuple(item.strip() for item in value if item and item.strip())


# ---------------------------------------------------------------------------
# Account
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AccountSettings:
    email: str


def _build_account(data: dict | None) -> AccountSettings:
    d = data or {}
    return AccountSettings(email=d.get("email", ""))


# ---------------------------------------------------------------------------
# Renewal
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RenewalSettings:
    """When to renew and whether the certificate key is kept."""

    threshold_hours: float
    reuse_private_key: bool

    @property
    def threshold(self) -> timedelta:
        return timedelta(hours=self.threshold_hours)


def _build_renewal(data: dict | None) -> RenewalSettings:
    d = data or {}
    return RenewalSettings(
        threshold_hours=d.get("threshold_hours", 72),
        reuse_private_key=d.get("reuse_private_key", True),
    )


# ---------------------------------------------------------------------------
# Certificate
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CertificateSettings:
    key_type: str


def _build_certificate(data: dict | None) -> CertificateSettings:
    d = data or {}
    return CertificateSettings(key_type=d.get("key_type", "rsa2048"))


# ---------------------------------------------------------------------------
# Authority
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AcmeAuthoritySettings:
    """ACME directory and challenge handling."""

    directory_url: str
    challenge_type: str
    challenge_handler: str
    challenge_handler_config: dict[str, Any]
    verify_ssl: bool
    timeout_seconds: int
    poll_timeout_seconds: int
    user_agent: str


@dataclass(frozen=True)
class AuthoritySettings:
    backend: str
    acme: AcmeAuthoritySettings


def _build_authority(data: dict | None) -> AuthoritySettings:
    d = data or {}
    a = d.get("acme") or {}
    return AuthoritySettings(
        backend=d.get("backend", "acme"),
        acme=AcmeAuthoritySettings(
            directory_url=a.get("directory_url", LETSENCRYPT_STAGING),
            challenge_type=a.get("challenge_type", "dns-01"),
            challenge_handler=a.get("challenge_handler", ""),
            challenge_handler_config=dict(a.get("challenge_handler_config") or {}),
            verify_ssl=a.get("verify_ssl", True),
            timeout_seconds=a.get("timeout_seconds", 30),
            poll_timeout_seconds=a.get("poll_timeout_seconds", 300),
            user_agent=a.get("user_agent", "autocert"),
        ),
    )


# ---------------------------------------------------------------------------
# Secret store
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SecretManagerSettings:
    project_id: str
    secret_id: str


@dataclass(frozen=True)
class FileStoreSettings:
    path: str


@dataclass(frozen=True)
class SecretStoreSettings:
    backend: str
    secretmanager: SecretManagerSettings
    file: FileStoreSettings


def _build_secret_store(data: dict | None) -> SecretStoreSettings:
    d = data or {}
    sm = d.get("secretmanager") or {}
    f = d.get("file") or {}
    return SecretStoreSettings(
        backend=d.get("backend", "secretmanager"),
        secretmanager=SecretManagerSettings(
            project_id=sm.get("project_id", ""),
            secret_id=sm.get("secret_id", ""),
        ),
        file=FileStoreSettings(path=f.get("path", "autocert-state.json")),
    )


# ---------------------------------------------------------------------------
# Runners
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BunnyCdnSettings:
    api_key: str
    pull_zone_id: str
    api_url: str


@dataclass(frozen=True)
class StackPathSettings:
    client_id: str
    client_secret: str
    stack_id: str
    site_id: str
    api_url: str


@dataclass(frozen=True)
class RunnerSettings:
    """Distribution targets and fan-out behaviour."""

    enabled: tuple[str, ...]
    cancel_on_first_error: bool
    timeout_seconds: int
    bunnycdn: BunnyCdnSettings
    stackpath: StackPathSettings


def _build_runners(data: dict | None) -> RunnerSettings:
    d = data or {}
    b = d.get("bunnycdn") or {}
    s = d.get("stackpath") or {}
    return RunnerSettings(
        enabled=_split_list(d.get("enabled")),
        cancel_on_first_error=d.get("cancel_on_first_error", False),
        timeout_seconds=d.get("timeout_seconds", 30),
        bunnycdn=BunnyCdnSettings(
            api_key=b.get("api_key", ""),
            pull_zone_id=str(b.get("pull_zone_id", "")),
            api_url=b.get("api_url", "https://api.bunny.net"),
        ),
        stackpath=StackPathSettings(
            client_id=s.get("client_id", ""),
            client_secret=s.get("client_secret", ""),
            stack_id=s.get("stack_id", ""),
            site_id=s.get("site_id", ""),
            api_url=s.get("api_url", "https://gateway.stackpath.com"),
        ),
    )


# ---------------------------------------------------------------------------
# Listener
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ListenerSettings:
    """HTTP trigger configuration (bind address, workers, timeouts)."""

    enabled: bool
    bind: str
    port: int
    workers: int
    timeout: int
    graceful_timeout: int


def _build_listener(data: dict | None) -> ListenerSettings:
    d = data or {}
    return ListenerSettings(
        enabled=d.get("enabled", False),
        bind=d.get("bind", "0.0.0.0"),  # noqa: S104
        port=d.get("port", 8080),
        workers=d.get("workers", 1),
        timeout=d.get("timeout", 600),
        graceful_timeout=d.get("graceful_timeout", 30),
    )


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AuditLogSettings:
    """Audit log output settings (file and rotation)."""

    enabled: bool
    file: str | None
    max_file_size_bytes: int
    backup_count: int


@dataclass(frozen=True)
class LoggingSettings:
    level: str
    format: str
    audit: AuditLogSettings


def _build_logging(data: dict | None) -> LoggingSettings:
    d = data or {}
    a = d.get("audit") or {}
    return LoggingSettings(
        level=d.get("level", "INFO"),
        format=d.get("format", "json"),
        audit=AuditLogSettings(
            enabled=a.get("enabled", False),
            file=a.get("file"),
            max_file_size_bytes=a.get("max_file_size_bytes", 10485760),
            backup_count=a.get("backup_count", 5),
        ),
    )


# ---------------------------------------------------------------------------
# Root settings aggregate
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AutocertSettings:
    account: AccountSettings
    hostnames: tuple[str, ...]
    force_renew: bool
    renewal: RenewalSettings
    certificate: CertificateSettings
    authority: AuthoritySettings
    secret_store: SecretStoreSettings
    runners: RunnerSettings
    listener: ListenerSettings
    logging: LoggingSettings


def build_settings(data: dict) -> AutocertSettings:
    """Build the full typed settings tree from raw config data.

    Called once during :class:`AutocertConfig` initialization after
    schema validation and environment-variable resolution.
    """
    return AutocertSettings(
        account=_build_account(data.get("account")),
        hostnames=_split_list(data.get("hostnames")),
        force_renew=bool(data.get("force_renew", False)),
        renewal=_build_renewal(data.get("renewal")),
        certificate=_build_certificate(data.get("certificate")),
        authority=_build_authority(data.get("authority")),
        secret_store=_build_secret_store(data.get("secret_store")),
        runners=_build_runners(data.get("runners")),
        listener=_build_listener(data.get("listener")),
        logging=_build_logging(data.get("logging")),
    )
