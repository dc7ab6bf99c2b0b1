"""Abstract base class for certificate authorities.

All authorities (built-in and custom) must inherit from
:class:`CertificateAuthority` and implement :meth:`issue` and
:meth:`renew`.  Both return a complete
:class:`~autocert.models.record.CertificateRecord` whose account
identity is marked as registered.
"""

from __future__ import annotations

import abc
import logging
from typing import TYPE_CHECKING

from autocert.core.types import KeyType

if TYPE_CHECKING:
    from collections.abc import Sequence

    from autocert.config.settings import AuthoritySettings
    from autocert.models.record import AccountIdentity, CertificateRecord

log = logging.getLogger(__name__)


class AuthorityError(Exception):
    """Raised by authorities on registration, validation or issuance failure.

    Parameters
    ----------
    detail:
        Human-readable description of the failure.
    retryable:
        Whether the failure is transient (network, rate limit) and a
        later run may succeed.

    """

    def __init__(self, detail: str, *, retryable: bool = False) -> None:
        self.detail = detail
        self.retryable = retryable
        super().__init__(detail)


class CertificateAuthority(abc.ABC):
    """Base class for all certificate authority implementations.

    Parameters
    ----------
    settings:
        The full ``authority`` configuration section.
    key_type:
        Key type used when a fresh certificate key is generated.

    """

    def __init__(
        self,
        settings: AuthoritySettings,
        key_type: KeyType | str = KeyType.RSA2048,
    ) -> None:
        self._settings = settings
        self._key_type = KeyType(key_type)

    @abc.abstractmethod
    def issue(
        self,
        identity: AccountIdentity,
        hostnames: Sequence[str],
    ) -> CertificateRecord:
        """Obtain a certificate for *hostnames* under a freshly generated key.

        Parameters
        ----------
        identity:
            Account to act as.  Unregistered identities are registered
            first.
        hostnames:
            Hostnames to place on the certificate; the first is the
            common name.

        Returns
        -------
        CertificateRecord

        Raises
        ------
        AuthorityError
            On any registration, validation or issuance failure.

        """

    @abc.abstractmethod
    def renew(
        self,
        identity: AccountIdentity,
        hostnames: Sequence[str],
        existing_key_pem: str,
    ) -> CertificateRecord:
        """Obtain a new certificate for *hostnames* reusing *existing_key_pem*.

        Raises
        ------
        AuthorityError
            On any validation or issuance failure.

        """

    def startup_check(self) -> None:
        """Optional startup health check.  Default implementation is a no-op.

        Raises
        ------
        AuthorityError
            If the authority is misconfigured.

        """
