"""StackPath distribution target.

Authenticates with OAuth2 client credentials, verifies that every
hostname is a delivery domain of the configured site, then either
updates the ACTIVE stack certificate whose SAN set equals the hostname
set or uploads a new one.  Certificates are sent as leaf, CA bundle and
key.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from autocert.core.keys import KeyMaterialError, split_chain
from autocert.core.validity import hostnames_match
from autocert.models.record import normalize_hostnames
from autocert.runners.base import DistributionError, DistributionTarget
from autocert.runners.http import JsonApiClient

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

    from autocert.config.settings import RunnerSettings
    from autocert.models.record import CertificateRecord

log = logging.getLogger(__name__)

_PAGE_SIZE = "50"
_MAX_PAGES = 100


class StackPathTarget(DistributionTarget):
    name = "stackpath"

    def __init__(self, settings: RunnerSettings) -> None:
        super().__init__(settings)
        self._sp = settings.stackpath
        self._client = JsonApiClient(
            self._sp.api_url,
            timeout=settings.timeout_seconds,
            label="StackPath",
        )

    # -- API helpers --------------------------------------------------------

    def authenticate(self) -> None:
        token = self._client.post(
            "/identity/v1/oauth2/token",
            {
                "client_id": self._sp.client_id,
                "client_secret": self._sp.client_secret,
                "grant_type": "client_credentials",
            },
        )
        access_token = (token or {}).get("access_token")
        if not access_token:
            msg = "StackPath token response did not include an access token"
            raise DistributionError(msg)
        self._client.headers["Authorization"] = f"Bearer {access_token}"

    def _paginate(self, path: str, params: dict[str, str] | None = None) -> Iterator[dict]:
        after: str | None = None
        for _ in range(_MAX_PAGES):
            query = {"page_request.first": _PAGE_SIZE, **(params or {})}
            if after:
                query["page_request.after"] = after
            page = self._client.get(path, query) or {}
            yield from page.get("results") or []
            info = page.get("pageInfo") or {}
            after = info.get("endCursor")
            if not info.get("hasNextPage") or not after:
                return
        log.warning("Stopped paginating %s after %d pages", path, _MAX_PAGES)

    def delivery_domains(self) -> set[str]:
        path = f"/cdn/v1/stacks/{self._sp.stack_id}/sites/{self._sp.site_id}/delivery-domains"
        return set(normalize_hostnames(d.get("domain", "") for d in self._paginate(path)))

    def active_certificates(self) -> list[dict[str, Any]]:
        return list(
            self._paginate(
                f"/cdn/v1/stacks/{self._sp.stack_id}/certificates",
                {"page_request.filter": 'status="ACTIVE"'},
            ),
        )

    # -- exec ---------------------------------------------------------------

    def exec(
        self,
        hostnames: Sequence[str],
        record: CertificateRecord,
    ) -> str | None:
        requested = normalize_hostnames(hostnames)
        try:
            leaf, bundle = split_chain(record.certificate_chain)
        except KeyMaterialError as exc:
            msg = f"cannot split certificate chain: {exc}"
            raise DistributionError(msg) from exc

        self.authenticate()

        domains = self.delivery_domains()
        missing = [h for h in requested if h not in domains]
        if missing:
            msg = (
                f"hostnames are not delivery domains of site {self._sp.site_id}: "
                f"{', '.join(missing)}"
            )
            raise DistributionError(msg)

        payload = {"certificate": leaf, "key": record.private_key, "caBundle": bundle}
        base = f"/cdn/v1/stacks/{self._sp.stack_id}/certificates"
        existing = next(
            (
                c
                for c in self.active_certificates()
                if hostnames_match(c.get("subjectAlternativeNames") or [], requested)
            ),
            None,
        )

        if existing is not None:
            cert_id = existing["id"]
            log.info("Updating StackPath certificate %s", cert_id)
            self._client.put(f"{base}/{cert_id}", payload)
            return f"updated certificate {cert_id}"

        log.info("Creating StackPath certificate for %s", ", ".join(requested))
        created = self._client.post(base, payload) or {}
        cert_id = (created.get("certificate") or {}).get("id")
        return f"created certificate {cert_id}" if cert_id else "created certificate"
