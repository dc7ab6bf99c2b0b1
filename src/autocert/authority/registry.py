"""Certificate authority registry.

Loads the configured authority by name and returns an initialised
:class:`CertificateAuthority` instance.  Supports the built-in ``acme``
backend and custom authorities via the ``ext:`` prefix.

Usage::

    from autocert.authority.registry import load_authority

    authority = load_authority(settings.authority, key_type="ec256")
    record = authority.issue(identity, ["a.example.com"])
"""

from __future__ import annotations

import importlib
import logging
from typing import TYPE_CHECKING

from autocert.authority.base import AuthorityError, CertificateAuthority

if TYPE_CHECKING:
    from autocert.config.settings import AuthoritySettings
    from autocert.core.types import KeyType

log = logging.getLogger(__name__)

# Maps config string -> (module_path, class_name)
_BUILTIN_AUTHORITIES: dict[str, tuple[str, str]] = {
    "acme": ("autocert.authority.acme", "AcmeAuthority"),
}


def load_authority(
    settings: AuthoritySettings,
    key_type: KeyType | str,
) -> CertificateAuthority:
    """Load and return the configured certificate authority.

    Raises
    ------
    AuthorityError
        If the authority cannot be loaded.

    """
    name = settings.backend

    if name in _BUILTIN_AUTHORITIES:
        mod_path, cls_name = _BUILTIN_AUTHORITIES[name]
    elif name.startswith("ext:"):
        mod_path, _, cls_name = name[4:].rpartition(".")
        if not mod_path:
            msg = (
                f"Invalid external authority '{name[4:]}': must be fully "
                "qualified (e.g. 'mypackage.module.ClassName')"
            )
            raise AuthorityError(msg)
    else:
        msg = (
            f"Unknown authority backend '{name}'; "
            f"built-in options: {sorted(_BUILTIN_AUTHORITIES)}. "
            f"Use 'ext:mypackage.module.ClassName' for custom authorities."
        )
        raise AuthorityError(msg)

    try:
        module = importlib.import_module(mod_path)
        cls = getattr(module, cls_name)
    except (ImportError, AttributeError) as exc:
        msg = f"Failed to load authority '{name}': {exc}"
        raise AuthorityError(msg) from exc

    _validate_class(cls, name)
    authority = cls(settings, key_type)
    log.info("Loaded certificate authority: %s", name)
    return authority


def _validate_class(cls: type, label: str) -> None:
    """Verify that an authority class implements issue and renew."""
    if not (isinstance(cls, type) and issubclass(cls, CertificateAuthority)):
        msg = f"Authority '{label}' is not a subclass of CertificateAuthority"
        raise AuthorityError(msg)

    for method_name in ("issue", "renew"):
        method = getattr(cls, method_name, None)
        if method is None or getattr(method, "__isabstractmethod__", False):
            msg = f"Authority '{label}' does not implement '{method_name}()'"
            raise AuthorityError(msg)
