"""Abstract base class for secret store backends.

A store holds exactly one :class:`~autocert.models.record.CertificateRecord`.
All backends (built-in and custom) must inherit from :class:`SecretStore`
and implement :meth:`read`, :meth:`create` and :meth:`update`.

Writes are all-or-nothing: a record is never partially persisted, so a
failed renewal leaves the previous record readable.
"""

from __future__ import annotations

import abc
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from autocert.config.settings import SecretStoreSettings
    from autocert.models.record import CertificateRecord

log = logging.getLogger(__name__)


class SecretStoreError(Exception):
    """Raised by store backends when the backing service fails.

    Parameters
    ----------
    detail:
        Human-readable description of the failure.

    """

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(detail)


class SecretStore(abc.ABC):
    """Base class for all secret store implementations.

    Parameters
    ----------
    settings:
        The full ``secret_store`` configuration section.

    """

    def __init__(self, settings: SecretStoreSettings) -> None:
        self._settings = settings

    @property
    def name(self) -> str:
        """Short label used in log messages."""
        return type(self).__name__

    @abc.abstractmethod
    def read(self) -> CertificateRecord | None:
        """Return the stored record, or ``None`` if nothing is stored yet.

        Raises
        ------
        MalformedRecordError
            If stored data exists but cannot be decoded.
        SecretStoreError
            On any backend failure other than absence.

        """

    @abc.abstractmethod
    def create(self, record: CertificateRecord) -> None:
        """Persist *record* for the first time.

        Raises
        ------
        SecretStoreError
            On backend failure.

        """

    @abc.abstractmethod
    def update(self, record: CertificateRecord) -> None:
        """Replace the stored record with *record*.

        Raises
        ------
        SecretStoreError
            On backend failure.

        """

    def close(self) -> None:  # noqa: B027
        """Release backend resources.  Default implementation is a no-op."""
