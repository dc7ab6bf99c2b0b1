"""ACME certificate authority.

Drives an RFC 8555 exchange through the ``acme`` client library:
account lookup or registration, order creation, challenge publication
through a :class:`~autocert.authority.challenge_handlers.ChallengeHandler`,
finalisation and chain download.
"""

from __future__ import annotations

import datetime
import logging
import time
from typing import TYPE_CHECKING, Any

import josepy as jose
from acme import challenges, client, errors, messages
from cryptography.hazmat.primitives.asymmetric import ec

from autocert.authority.base import AuthorityError, CertificateAuthority
from autocert.authority.challenge_handlers import (
    ChallengeHandler,
    load_challenge_handler,
)
from autocert.core.keys import (
    KeyMaterialError,
    build_csr,
    generate_private_key,
    load_private_key,
    private_key_to_pem,
)
from autocert.core.types import ChallengeType, KeyType
from autocert.models.record import CertificateRecord, normalize_hostnames

if TYPE_CHECKING:
    from collections.abc import Sequence

    from cryptography.hazmat.primitives.asymmetric.types import (
        CertificateIssuerPrivateKeyTypes,
    )

    from autocert.config.settings import AuthoritySettings
    from autocert.models.record import AccountIdentity

log = logging.getLogger(__name__)

_RETRYABLE_PROBLEMS = frozenset({"rateLimited", "serverInternal", "badNonce"})

_CHALLENGE_CLASSES = {
    ChallengeType.DNS_01: challenges.DNS01,
    ChallengeType.HTTP_01: challenges.HTTP01,
}


def _jwk_for(key: CertificateIssuerPrivateKeyTypes) -> tuple[jose.JWK, Any]:
    """Wrap *key* as a JWK and pick the matching JWS algorithm."""
    if isinstance(key, ec.EllipticCurvePrivateKey):
        alg = jose.ES384 if key.curve.key_size == 384 else jose.ES256  # noqa: PLR2004
        return jose.JWKEC(key=key), alg
    return jose.JWKRSA(key=key), jose.RS256


class AcmeAuthority(CertificateAuthority):
    """Certificate authority backed by an ACME directory.

    Parameters
    ----------
    settings:
        The full ``authority`` configuration section.
    key_type:
        Key type for freshly generated certificate keys.
    handler:
        Optional pre-built challenge handler.  When omitted the handler
        named in ``authority.acme.challenge_handler`` is loaded.

    """

    def __init__(
        self,
        settings: AuthoritySettings,
        key_type: KeyType | str = KeyType.RSA2048,
        handler: ChallengeHandler | None = None,
    ) -> None:
        super().__init__(settings, key_type)
        self._acme = settings.acme
        self._challenge_type = ChallengeType(self._acme.challenge_type)
        self._handler = handler

    @property
    def handler(self) -> ChallengeHandler:
        if self._handler is None:
            self._handler = load_challenge_handler(
                self._acme.challenge_handler,
                self._acme.challenge_handler_config,
            )
        return self._handler

    def startup_check(self) -> None:
        handler = self.handler
        if handler.challenge_type != self._challenge_type:
            msg = (
                f"challenge handler '{self._acme.challenge_handler}' serves "
                f"{handler.challenge_type} but authority.acme.challenge_type "
                f"is {self._challenge_type}"
            )
            raise AuthorityError(msg)

    # -- public API ---------------------------------------------------------

    def issue(
        self,
        identity: AccountIdentity,
        hostnames: Sequence[str],
    ) -> CertificateRecord:
        key = generate_private_key(self._key_type)
        log.info(
            "Issuing %s certificate for %s",
            self._key_type,
            ", ".join(hostnames),
        )
        return self._obtain(identity, hostnames, key)

    def renew(
        self,
        identity: AccountIdentity,
        hostnames: Sequence[str],
        existing_key_pem: str,
    ) -> CertificateRecord:
        try:
            key = load_private_key(existing_key_pem)
        except KeyMaterialError as exc:
            msg = f"stored certificate key cannot be reused: {exc}"
            raise AuthorityError(msg) from exc
        log.info("Renewing certificate for %s", ", ".join(hostnames))
        return self._obtain(identity, hostnames, key)

    # -- protocol steps -----------------------------------------------------

    def _obtain(
        self,
        identity: AccountIdentity,
        hostnames: Sequence[str],
        key: CertificateIssuerPrivateKeyTypes,
    ) -> CertificateRecord:
        names = normalize_hostnames(hostnames)
        if not names:
            msg = "at least one hostname is required"
            raise AuthorityError(msg)

        try:
            acme_client = self._connect(identity)
            self._register(acme_client, identity)
            orderr = acme_client.new_order(build_csr(key, names))
            published = self._publish_challenges(acme_client, orderr)
            try:
                deadline = datetime.datetime.now() + datetime.timedelta(  # noqa: DTZ005
                    seconds=self._acme.poll_timeout_seconds,
                )
                orderr = acme_client.poll_and_finalize(orderr, deadline=deadline)
            finally:
                self._cleanup(published)
        except AuthorityError:
            raise
        except errors.ValidationError as exc:
            failed = ", ".join(
                a.body.identifier.value for a in getattr(exc, "failed_authzrs", [])
            )
            msg = f"challenge validation failed for {failed or 'one or more names'}"
            raise AuthorityError(msg) from exc
        except errors.TimeoutError as exc:
            msg = "timed out waiting for the ACME order to complete"
            raise AuthorityError(msg, retryable=True) from exc
        except messages.Error as exc:
            msg = f"ACME server error: {exc}"
            raise AuthorityError(
                msg, retryable=exc.code in _RETRYABLE_PROBLEMS,
            ) from exc
        except (errors.Error, OSError) as exc:
            msg = f"ACME request failed: {exc}"
            raise AuthorityError(msg, retryable=True) from exc

        if not orderr.fullchain_pem:
            msg = "ACME order finalised without a certificate chain"
            raise AuthorityError(msg)

        log.info("Obtained certificate for %s", ", ".join(names))
        return CertificateRecord(
            private_key=private_key_to_pem(key),
            certificate_chain=orderr.fullchain_pem,
            account=identity.as_registered(),
            hostnames=names,
        )

    def _connect(self, identity: AccountIdentity) -> client.ClientV2:
        jwk, alg = _jwk_for(identity.key)
        net = client.ClientNetwork(
            jwk,
            alg=alg,
            verify_ssl=self._acme.verify_ssl,
            user_agent=self._acme.user_agent,
            timeout=self._acme.timeout_seconds,
        )
        directory = client.ClientV2.get_directory(self._acme.directory_url, net)
        return client.ClientV2(directory, net=net)

    def _register(self, acme_client: client.ClientV2, identity: AccountIdentity) -> None:
        """Bind the client to the identity's account, registering if needed."""
        if identity.registered:
            lookup = messages.NewRegistration.from_data(
                email=identity.email or None,
                only_return_existing=True,
            )
            try:
                acme_client.new_account(lookup)
            except errors.ConflictError as exc:
                self._bind_existing(acme_client, exc.location)
                return
            except messages.Error as exc:
                if exc.code != "accountDoesNotExist":
                    raise
                log.warning(
                    "Stored account for %s is unknown to %s; registering again",
                    identity.email,
                    self._acme.directory_url,
                )
            else:
                return

        registration = messages.NewRegistration.from_data(
            email=identity.email or None,
            terms_of_service_agreed=True,
        )
        try:
            acme_client.new_account(registration)
            log.info("Registered ACME account for %s", identity.email)
        except errors.ConflictError as exc:
            self._bind_existing(acme_client, exc.location)

    @staticmethod
    def _bind_existing(acme_client: client.ClientV2, location: str) -> None:
        regr = messages.RegistrationResource(body=messages.Registration(), uri=location)
        acme_client.query_registration(regr)
        log.info("Using existing ACME account %s", location)

    def _publish_challenges(
        self,
        acme_client: client.ClientV2,
        orderr: messages.OrderResource,
    ) -> list[tuple[str, str]]:
        """Deploy and answer one challenge per pending authorization."""
        handler = self.handler
        chall_cls = _CHALLENGE_CLASSES[self._challenge_type]
        account_key = acme_client.net.key
        pending: list[tuple[messages.ChallengeBody, str]] = []
        published: list[tuple[str, str]] = []

        try:
            for authzr in orderr.authorizations:
                if authzr.body.status == messages.STATUS_VALID:
                    continue
                domain = authzr.body.identifier.value
                challb = next(
                    (c for c in authzr.body.challenges if isinstance(c.chall, chall_cls)),
                    None,
                )
                if challb is None:
                    msg = f"ACME server offered no {self._challenge_type} challenge for {domain}"
                    raise AuthorityError(msg)

                if self._challenge_type == ChallengeType.DNS_01:
                    name = challb.chall.validation_domain_name(domain)
                else:
                    name = challb.chall.encode("token")

                handler.deploy(domain, name, challb.chall.validation(account_key))
                published.append((domain, name))
                pending.append((challb, domain))

            if pending and handler.propagation_delay:
                log.info("Waiting %ss for challenge propagation", handler.propagation_delay)
                time.sleep(handler.propagation_delay)

            for challb, domain in pending:
                log.debug("Answering %s challenge for %s", self._challenge_type, domain)
                acme_client.answer_challenge(challb, challb.chall.response(account_key))
        except BaseException:
            self._cleanup(published)
            raise
        return published

    def _cleanup(self, published: list[tuple[str, str]]) -> None:
        for domain, name in published:
            try:
                self.handler.cleanup(domain, name)
            except AuthorityError as exc:
                log.warning("Challenge cleanup for %s failed: %s", domain, exc)
        published.clear()
