"""autocert configuration loader.

Lifecycle::

    # 1. CLI creates the singleton (once, at startup)
    AutocertConfig(config_file="/etc/autocert/config.yaml")

    # 2. Any module retrieves it afterwards
    from autocert.config import get_config
    cfg = get_config()
    cfg.settings.runners.enabled  # typed access

    # 3. Dynamic access
    cfg.get("runners.bunnycdn.pull_zone_id", default="")

Loading order: read YAML/JSON, resolve ``${VAR}`` references, validate
against the bundled JSON schema, run cross-field checks, then build the
frozen settings tree.
"""

from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Any

import jsonschema
import yaml

from autocert.config.settings import AutocertSettings, build_settings

_SCHEMA_PATH = Path(__file__).parent / "schema.json"

_ENV_RE = re.compile(
    r"^\$\{([^}:]+?)(?::-(.*))?\}$",
    re.DOTALL,
)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

_CLASS_PATH_RE = re.compile(
    r"^[a-zA-Z_][a-zA-Z0-9_]*(\.[a-zA-Z_][a-zA-Z0-9_]*)+$",
)

_BUILTIN_RUNNERS = frozenset({"bunnycdn", "stackpath"})
_BUILTIN_STORES = frozenset({"secretmanager", "file"})
_BUILTIN_HANDLERS = frozenset({"callback_dns", "file_http", "callback_http"})

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Module-level singleton reference
# ---------------------------------------------------------------------------
_instance: AutocertConfig | None = None


def get_config() -> AutocertConfig:
    """Return the initialised configuration singleton.

    Raises :class:`RuntimeError` if :class:`AutocertConfig` has not been
    created yet (i.e. the CLI entry point has not run).
    """
    if _instance is None:
        msg = (
            "Configuration not initialised. "
            "AutocertConfig must be created with config_file= before calling get_config()."
        )
        raise RuntimeError(msg)
    return _instance


# ---------------------------------------------------------------------------
# Validation error collector
# ---------------------------------------------------------------------------


class ConfigValidationError(Exception):
    """Raised when schema or cross-field validation finds one or more problems."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = errors
        body = "\n".join(f"  - {e}" for e in errors)
        super().__init__(f"Configuration validation failed:\n{body}")


# ---------------------------------------------------------------------------
# Environment variable resolution
# ---------------------------------------------------------------------------


def _resolve_value(value: str, path: str) -> str:
    """Replace ``${VAR}`` or ``${VAR:-default}`` with env var value."""
    match = _ENV_RE.match(value)
    if match is None:
        return value
    var_name = match.group(1)
    fallback = match.group(2)
    resolved = os.environ.get(var_name)
    if resolved is not None:
        return resolved
    if fallback is not None:
        return fallback
    raise ConfigValidationError(
        [
            f"Environment variable '${{{var_name}}}' referenced "
            f"at '{path}' is not set and has no default",
        ],
    )


def _resolve_env_vars(
    data: Any,  # noqa: ANN401
    path: str = "",
) -> None:
    """Walk *data* in-place and resolve ``${VAR}``/``${VAR:-default}`` strings."""
    if isinstance(data, dict):
        for key in data:
            child_path = f"{path}.{key}" if path else key
            if isinstance(data[key], str):
                data[key] = _resolve_value(data[key], child_path)
            elif isinstance(data[key], (dict, list)):
                _resolve_env_vars(data[key], child_path)
    elif isinstance(data, list):
        for idx, item in enumerate(data):
            child_path = f"{path}[{idx}]"
            if isinstance(item, str):
                data[idx] = _resolve_value(item, child_path)
            elif isinstance(item, (dict, list)):
                _resolve_env_vars(item, child_path)


def _coerce_scalars(data: dict) -> None:
    """Convert env-substituted strings back into the types the schema expects.

    ``${VAR}`` always yields a string, so booleans and numbers that came
    from the environment are normalised here before validation.
    """
    for section, key, kind in (
        (None, "force_renew", bool),
        ("renewal", "threshold_hours", float),
        ("renewal", "reuse_private_key", bool),
        ("runners", "cancel_on_first_error", bool),
        ("runners", "timeout_seconds", int),
        ("listener", "enabled", bool),
        ("listener", "port", int),
        ("listener", "workers", int),
    ):
        target = data if section is None else data.get(section)
        if not isinstance(target, dict) or not isinstance(target.get(key), str):
            continue
        raw = target[key].strip()
        if kind is bool:
            if raw.lower() in ("true", "1", "yes", "on"):
                target[key] = True
            elif raw.lower() in ("false", "0", "no", "off", ""):
                target[key] = False
        else:
            try:
                target[key] = kind(raw)
            except ValueError:
                pass  # left as-is; schema validation reports the type error


def _read_file(path: Path) -> dict:
    try:
        with path.open(encoding="utf-8") as f:
            if path.suffix in (".yaml", ".yml"):
                data = yaml.safe_load(f)
            else:
                data = json.load(f)
    except OSError as exc:
        raise ConfigValidationError([f"cannot read config file '{path}': {exc}"]) from exc
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise ConfigValidationError([f"cannot parse config file '{path}': {exc}"]) from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigValidationError(
            [f"config file '{path}' must contain a mapping at the top level"],
        )
    return data


# ---------------------------------------------------------------------------
# Config class
# ---------------------------------------------------------------------------


class AutocertConfig:
    """Central configuration for autocert.

    The JSON schema is bundled at ``config/schema.json``; users supply
    only ``config_file``.  After construction the typed settings tree is
    available at :pyattr:`settings` and the raw dict via :pyattr:`data`
    / :pymeth:`get`.
    """

    def __init__(self, *, config_file: str | Path) -> None:
        global _instance  # noqa: PLW0603

        self._source = Path(config_file)
        self._data = self._load()
        self._validate_schema()
        self.additional_checks()
        self._settings: AutocertSettings = build_settings(self._data)
        _instance = self

    # -- loading ------------------------------------------------------------

    def _load(self) -> dict:
        """Load config file then resolve ``${VAR}`` env-var references.

        Runs env-var resolution **before** schema validation so that
        substituted values (e.g. ``${LOG_LEVEL:-INFO}``) are checked
        against enum constraints in the schema.
        """
        data = _read_file(self._source)
        _resolve_env_vars(data)
        _coerce_scalars(data)
        return data

    def _validate_schema(self) -> None:
        with _SCHEMA_PATH.open(encoding="utf-8") as f:
            schema = json.load(f)
        validator = jsonschema.Draft7Validator(schema)
        errors = sorted(validator.iter_errors(self._data), key=lambda e: list(e.path))
        if errors:
            raise ConfigValidationError(
                [
                    f"{'.'.join(str(p) for p in e.path) or '<root>'}: {e.message}"
                    for e in errors
                ],
            )

    # -- typed access -------------------------------------------------------

    @property
    def settings(self) -> AutocertSettings:
        """Fully-typed, frozen settings tree."""
        return self._settings

    @property
    def config_file(self) -> Path:
        return self._source

    @property
    def data(self) -> dict:
        return self._data

    def get(self, path: str, default: Any = None) -> Any:  # noqa: ANN401
        """Return the raw value at dot-separated *path*, or *default*."""
        node: Any = self._data
        for part in path.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    # -- cross-field validation ---------------------------------------------

    def additional_checks(self) -> None:  # noqa: C901, PLR0912
        """Semantic & cross-field validation, run after schema validation."""
        errors: list[str] = []
        warnings: list[str] = []

        account = self._data.get("account") or {}
        authority = self._data.get("authority") or {}
        store = self._data.get("secret_store") or {}
        runners = self._data.get("runners") or {}
        renewal = self._data.get("renewal") or {}

        # -- account --
        email = account.get("email", "")
        if not email:
            errors.append("account.email is required")
        elif not _EMAIL_RE.match(email):
            errors.append(f"account.email is not a valid address (got '{email}')")

        # -- hostnames --
        hostnames = self._data.get("hostnames")
        if isinstance(hostnames, str):
            hostnames = [h for h in hostnames.split(",") if h.strip()]
        if not hostnames:
            errors.append("hostnames must list at least one hostname")

        # -- renewal --
        if renewal.get("threshold_hours", 72) <= 0:
            errors.append("renewal.threshold_hours must be positive")

        # -- authority --
        acme = authority.get("acme") or {}
        handler = acme.get("challenge_handler", "")
        if authority.get("backend", "acme") == "acme":
            if not handler:
                errors.append(
                    "authority.acme.challenge_handler is required "
                    "when authority.backend is 'acme'",
                )
            elif handler.startswith("ext:"):
                if not _CLASS_PATH_RE.match(handler[4:]):
                    errors.append(
                        f"authority.acme.challenge_handler '{handler}' is not a "
                        "fully-qualified class path",
                    )
            elif handler not in _BUILTIN_HANDLERS:
                errors.append(
                    f"authority.acme.challenge_handler '{handler}' is unknown; "
                    f"built-in options: {sorted(_BUILTIN_HANDLERS)}",
                )
            if "staging" in acme.get("directory_url", "staging"):
                warnings.append(
                    "authority.acme.directory_url points at a staging directory; "
                    "issued certificates will not be publicly trusted",
                )
            if not acme.get("verify_ssl", True):
                warnings.append("authority.acme.verify_ssl is disabled")

        # -- secret store --
        backend = store.get("backend", "secretmanager")
        if backend == "secretmanager":
            sm = store.get("secretmanager") or {}
            for key in ("project_id", "secret_id"):
                if not sm.get(key):
                    errors.append(
                        f"secret_store.secretmanager.{key} is required "
                        "when secret_store.backend is 'secretmanager'",
                    )
        elif backend not in _BUILTIN_STORES and not backend.startswith("ext:"):
            errors.append(f"secret_store.backend '{backend}' is unknown")

        # -- runners --
        enabled = runners.get("enabled") or []
        if isinstance(enabled, str):
            enabled = [r.strip() for r in enabled.split(",") if r.strip()]
        if not enabled:
            warnings.append(
                "runners.enabled is empty; certificates will be obtained "
                "but not distributed",
            )
        if len(set(enabled)) != len(enabled):
            errors.append("runners.enabled contains duplicate entries")
        for name in enabled:
            if name.startswith("ext:"):
                if not _CLASS_PATH_RE.match(name[4:]):
                    errors.append(f"runner '{name}' is not a fully-qualified class path")
            elif name not in _BUILTIN_RUNNERS:
                errors.append(
                    f"runner '{name}' is unknown; built-in options: "
                    f"{sorted(_BUILTIN_RUNNERS)}",
                )
        if "bunnycdn" in enabled:
            bunny = runners.get("bunnycdn") or {}
            for key in ("api_key", "pull_zone_id"):
                if not bunny.get(key):
                    errors.append(
                        f"runners.bunnycdn.{key} is required when bunnycdn is enabled",
                    )
        if "stackpath" in enabled:
            sp = runners.get("stackpath") or {}
            for key in ("client_id", "client_secret", "stack_id", "site_id"):
                if not sp.get(key):
                    errors.append(
                        f"runners.stackpath.{key} is required when stackpath is enabled",
                    )

        for w in warnings:
            log.warning("Config warning: %s", w)

        if errors:
            raise ConfigValidationError(errors)

    # -- helpers ------------------------------------------------------------

    @classmethod
    def reset(cls) -> None:
        """Reset the singleton -- testing only."""
        global _instance  # noqa: PLW0603
        _instance = None

    def __repr__(self) -> str:
        return f"<AutocertConfig config_file={self._source}>"
