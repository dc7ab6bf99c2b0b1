"""Secret store registry.

Loads the configured store backend by name.  Supports the built-in
backends (``secretmanager``, ``file``) and custom backends via the
``ext:`` prefix.

Usage::

    from autocert.store.registry import load_secret_store

    store = load_secret_store(settings.secret_store)
    record = store.read()
"""

from __future__ import annotations

import importlib
import logging
from typing import TYPE_CHECKING

from autocert.store.base import SecretStore, SecretStoreError

if TYPE_CHECKING:
    from autocert.config.settings import SecretStoreSettings

log = logging.getLogger(__name__)

# Maps config string -> (module_path, class_name)
_BUILTIN_STORES: dict[str, tuple[str, str]] = {
    "secretmanager": ("autocert.store.secretmanager", "SecretManagerStore"),
    "file": ("autocert.store.file", "FileSecretStore"),
}


def load_secret_store(settings: SecretStoreSettings) -> SecretStore:
    """Load and return the configured secret store.

    Raises
    ------
    SecretStoreError
        If the backend cannot be loaded.

    """
    backend = settings.backend
    if backend in _BUILTIN_STORES:
        mod_path, cls_name = _BUILTIN_STORES[backend]
        label = backend
    elif backend.startswith("ext:"):
        mod_path, _, cls_name = backend[4:].rpartition(".")
        label = backend
        if not mod_path:
            msg = (
                f"Invalid external secret store '{backend[4:]}': must be fully "
                "qualified (e.g. 'mypackage.module.ClassName')"
            )
            raise SecretStoreError(msg)
    else:
        msg = (
            f"Unknown secret store '{backend}'; "
            f"built-in options: {sorted(_BUILTIN_STORES)}. "
            f"Use 'ext:mypackage.module.ClassName' for custom stores."
        )
        raise SecretStoreError(msg)

    try:
        module = importlib.import_module(mod_path)
        cls = getattr(module, cls_name)
    except (ImportError, AttributeError) as exc:
        msg = f"Failed to load secret store '{label}': {exc}"
        raise SecretStoreError(msg) from exc

    if not (isinstance(cls, type) and issubclass(cls, SecretStore)):
        msg = f"Secret store '{label}' is not a subclass of SecretStore"
        raise SecretStoreError(msg)

    store = cls(settings)
    log.info("Loaded secret store: %s", label)
    return store
