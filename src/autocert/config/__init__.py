"""Configuration subsystem for autocert.

Public API::

    from autocert.config import get_config, AutocertConfig

    # At startup (CLI only):
    AutocertConfig(config_file="config.yaml")

    # Everywhere else:
    cfg = get_config()
    hostnames = cfg.settings.hostnames          # typed access
    zone = cfg.get("runners.bunnycdn.pull_zone_id")  # dynamic dot-path
"""

from autocert.config.autocert_config import (
    AutocertConfig,
    ConfigValidationError,
    get_config,
)
from autocert.config.settings import (
    AccountSettings,
    AcmeAuthoritySettings,
    AuditLogSettings,
    AuthoritySettings,
    AutocertSettings,
    BunnyCdnSettings,
    CertificateSettings,
    FileStoreSettings,
    ListenerSettings,
    LoggingSettings,
    RenewalSettings,
    RunnerSettings,
    SecretManagerSettings,
    SecretStoreSettings,
    StackPathSettings,
    build_settings,
)

__all__ = [
    "AccountSettings",
    "AcmeAuthoritySettings",
    "AuditLogSettings",
    "AuthoritySettings",
    "AutocertConfig",
    "AutocertSettings",
    "BunnyCdnSettings",
    "CertificateSettings",
    "ConfigValidationError",
    "FileStoreSettings",
    "ListenerSettings",
    "LoggingSettings",
    "RenewalSettings",
    "RunnerSettings",
    "SecretManagerSettings",
    "SecretStoreSettings",
    "StackPathSettings",
    "build_settings",
    "get_config",
]
