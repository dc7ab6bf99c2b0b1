"""BunnyCDN distribution target.

Looks up the configured pull zone, checks that every hostname is
attached to it, then uploads the certificate for each hostname with
``addCertificate``.  BunnyCDN replaces whatever certificate a hostname
already has, so repeating the upload is harmless.
"""

from __future__ import annotations

import base64
import logging
from typing import TYPE_CHECKING

from autocert.models.record import normalize_hostnames
from autocert.runners.base import DistributionError, DistributionTarget
from autocert.runners.http import JsonApiClient

if TYPE_CHECKING:
    from collections.abc import Sequence

    from autocert.config.settings import RunnerSettings
    from autocert.models.record import CertificateRecord

log = logging.getLogger(__name__)


def _b64(pem: str) -> str:
    return base64.b64encode(pem.encode("ascii")).decode("ascii")


class BunnyCdnTarget(DistributionTarget):
    name = "bunnycdn"

    def __init__(self, settings: RunnerSettings) -> None:
        super().__init__(settings)
        self._zone_id = settings.bunnycdn.pull_zone_id
        self._client = JsonApiClient(
            settings.bunnycdn.api_url,
            timeout=settings.timeout_seconds,
            headers={"AccessKey": settings.bunnycdn.api_key},
            label="BunnyCDN",
        )

    def zone_hostnames(self) -> set[str]:
        """Return the hostnames attached to the pull zone."""
        zone = self._client.get(f"/pullzone/{self._zone_id}")
        if not isinstance(zone, dict):
            msg = f"BunnyCDN returned no data for pull zone {self._zone_id}"
            raise DistributionError(msg)
        return set(
            normalize_hostnames(
                h.get("Value", "") for h in zone.get("Hostnames") or [] if isinstance(h, dict)
            ),
        )

    def exec(
        self,
        hostnames: Sequence[str],
        record: CertificateRecord,
    ) -> str | None:
        requested = normalize_hostnames(hostnames)
        attached = self.zone_hostnames()
        missing = [h for h in requested if h not in attached]
        if missing:
            msg = (
                f"hostnames missing from pull zone {self._zone_id}: "
                f"{', '.join(missing)}; add them first"
            )
            raise DistributionError(msg)

        certificate = _b64(record.certificate_chain)
        key = _b64(record.private_key)
        for hostname in requested:
            log.info("Adding certificate for %s to pull zone %s", hostname, self._zone_id)
            self._client.post(
                f"/pullzone/{self._zone_id}/addCertificate",
                {
                    "Hostname": hostname,
                    "Certificate": certificate,
                    "CertificateKey": key,
                },
            )
        return f"certificate applied to {len(requested)} hostname(s) in pull zone {self._zone_id}"
