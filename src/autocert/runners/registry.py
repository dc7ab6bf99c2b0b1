"""Distribution target registry.

Resolves the names in ``runners.enabled`` to target instances.  Built-in
names map to the modules below; ``ext:package.module.ClassName`` loads a
custom :class:`DistributionTarget` subclass.  An unknown name is a fatal
configuration error: no target is built if any name fails to resolve.

Usage::

    from autocert.runners.registry import load_targets

    targets = load_targets(settings.runners)
"""

from __future__ import annotations

import importlib
import logging
from typing import TYPE_CHECKING

from autocert.runners.base import DistributionTarget, TargetConfigError

if TYPE_CHECKING:
    from autocert.config.settings import RunnerSettings

log = logging.getLogger(__name__)

# Maps config string -> (module_path, class_name)
_BUILTIN_TARGETS: dict[str, tuple[str, str]] = {
    "bunnycdn": ("autocert.runners.bunnycdn", "BunnyCdnTarget"),
    "stackpath": ("autocert.runners.stackpath", "StackPathTarget"),
}


def available_targets() -> list[str]:
    return sorted(_BUILTIN_TARGETS)


def load_targets(settings: RunnerSettings) -> list[DistributionTarget]:
    """Instantiate every enabled target, in configuration order.

    Raises
    ------
    TargetConfigError
        If any name is unknown or its class cannot be loaded.

    """
    classes = [(name, _resolve(name)) for name in settings.enabled]
    targets = []
    for name, cls in classes:
        target = cls(settings)
        if not target.name:
            target.name = name
        targets.append(target)
    if targets:
        log.info("Loaded distribution targets: %s", ", ".join(t.name for t in targets))
    else:
        log.warning("No distribution targets enabled")
    return targets


def _resolve(name: str) -> type[DistributionTarget]:
    if name in _BUILTIN_TARGETS:
        mod_path, cls_name = _BUILTIN_TARGETS[name]
    elif name.startswith("ext:"):
        mod_path, _, cls_name = name[4:].rpartition(".")
        if not mod_path:
            msg = (
                f"Invalid external runner '{name[4:]}': must be fully "
                "qualified (e.g. 'mypackage.module.ClassName')"
            )
            raise TargetConfigError(msg)
    else:
        msg = (
            f"Unknown runner '{name}'; built-in options: {available_targets()}. "
            "Use 'ext:mypackage.module.ClassName' for custom runners."
        )
        raise TargetConfigError(msg)

    try:
        module = importlib.import_module(mod_path)
        cls = getattr(module, cls_name)
    except (ImportError, AttributeError) as exc:
        msg = f"Failed to load runner '{name}': {exc}"
        raise TargetConfigError(msg) from exc

    if not (isinstance(cls, type) and issubclass(cls, DistributionTarget)):
        msg = f"Runner '{name}' is not a subclass of DistributionTarget"
        raise TargetConfigError(msg)
    if getattr(cls.exec, "__isabstractmethod__", False):
        msg = f"Runner '{name}' does not implement 'exec()'"
        raise TargetConfigError(msg)
    return cls
