"""Abstract base class for distribution targets.

A distribution target ("runner") pushes an obtained certificate to one
provider.  All targets (built-in and custom) must inherit from
:class:`DistributionTarget` and implement :meth:`exec`.

Contract for implementations:

- idempotent: re-running with the same record converges to the same
  provider state;
- every hostname is checked against the provider before anything is
  changed, so a target either applies the certificate to all hostnames
  or to none;
- an existing provider certificate whose hostname set equals the
  requested set is updated rather than duplicated.
"""

from __future__ import annotations

import abc
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from autocert.config.settings import RunnerSettings
    from autocert.models.record import CertificateRecord

log = logging.getLogger(__name__)


class DistributionError(Exception):
    """Raised by a target when the certificate could not be applied.

    Parameters
    ----------
    detail:
        Human-readable description of the failure.

    """

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(detail)


class TargetConfigError(Exception):
    """Raised when a configured target name cannot be resolved."""


class DistributionTarget(abc.ABC):
    """Base class for all distribution targets.

    Parameters
    ----------
    settings:
        The full ``runners`` configuration section.

    """

    #: Registry name; also the label in dispatch reports.
    name: str = ""

    def __init__(self, settings: RunnerSettings) -> None:
        self._settings = settings

    @abc.abstractmethod
    def exec(
        self,
        hostnames: Sequence[str],
        record: CertificateRecord,
    ) -> str | None:
        """Apply *record* to the provider for *hostnames*.

        Returns
        -------
        str or None
            Optional human-readable summary of what was changed.

        Raises
        ------
        DistributionError
            If the provider rejected the certificate or a hostname is
            not configured there.

        """

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name!r}>"
