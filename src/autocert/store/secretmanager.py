"""Google Cloud Secret Manager store.

The record lives in a single secret as JSON.  Reads access the
``latest`` version; updates add a new version and then disable the one
that was current before, so at most one version stays enabled.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from google.api_core import exceptions as google_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import secretmanager

from autocert.models.record import CertificateRecord
from autocert.store.base import SecretStore, SecretStoreError

if TYPE_CHECKING:
    from autocert.config.settings import SecretStoreSettings

log = logging.getLogger(__name__)


class SecretManagerStore(SecretStore):
    """Keep the certificate record in Google Cloud Secret Manager.

    Parameters
    ----------
    settings:
        The ``secret_store`` configuration section.
    client:
        Optional pre-built ``SecretManagerServiceClient``.  When omitted
        one is created lazily using application default credentials.

    """

    def __init__(
        self,
        settings: SecretStoreSettings,
        client: Any = None,  # noqa: ANN401
    ) -> None:
        super().__init__(settings)
        self._project_id = settings.secretmanager.project_id
        self._secret_id = settings.secretmanager.secret_id
        self._client = client

    @property
    def name(self) -> str:
        return f"secretmanager:{self.secret_path}"

    @property
    def project_path(self) -> str:
        return f"projects/{self._project_id}"

    @property
    def secret_path(self) -> str:
        return f"{self.project_path}/secrets/{self._secret_id}"

    @property
    def latest_version_path(self) -> str:
        return f"{self.secret_path}/versions/latest"

    @property
    def client(self) -> Any:  # noqa: ANN401
        if self._client is None:
            try:
                self._client = secretmanager.SecretManagerServiceClient()
            except auth_exceptions.DefaultCredentialsError as exc:
                msg = f"cannot create Secret Manager client: {exc}"
                raise SecretStoreError(msg) from exc
        return self._client

    # -- operations ---------------------------------------------------------

    def read(self) -> CertificateRecord | None:
        try:
            response = self.client.access_secret_version(
                request={"name": self.latest_version_path},
            )
        except google_exceptions.NotFound:
            log.info("Secret %s has no accessible version", self.secret_path)
            return None
        except google_exceptions.GoogleAPICallError as exc:
            msg = f"failed to access {self.latest_version_path}: {exc}"
            raise SecretStoreError(msg) from exc
        return CertificateRecord.from_json(response.payload.data)

    def create(self, record: CertificateRecord) -> None:
        try:
            secret = self.client.create_secret(
                request={
                    "parent": self.project_path,
                    "secret_id": self._secret_id,
                    "secret": {"replication": {"automatic": {}}},
                },
            )
            parent = secret.name
        except google_exceptions.AlreadyExists:
            log.warning(
                "Secret %s already exists; adding a version to it",
                self.secret_path,
            )
            parent = self.secret_path
        except google_exceptions.GoogleAPICallError as exc:
            msg = f"failed to create secret {self.secret_path}: {exc}"
            raise SecretStoreError(msg) from exc

        self._add_version(parent, record)
        log.info("Created secret %s", self.secret_path)

    def update(self, record: CertificateRecord) -> None:
        try:
            previous = self.client.get_secret_version(
                request={"name": self.latest_version_path},
            )
        except google_exceptions.NotFound:
            previous = None
        except google_exceptions.GoogleAPICallError as exc:
            msg = f"failed to look up current version of {self.secret_path}: {exc}"
            raise SecretStoreError(msg) from exc

        added = self._add_version(self.secret_path, record)

        if previous is None or previous.name == added:
            return
        try:
            self.client.disable_secret_version(request={"name": previous.name})
        except google_exceptions.GoogleAPICallError as exc:
            log.warning(
                "New version %s stored but disabling %s failed: %s",
                added,
                previous.name,
                exc,
            )
            return
        log.info("Updated secret %s (disabled %s)", self.secret_path, previous.name)

    def close(self) -> None:
        transport = getattr(self._client, "transport", None)
        if transport is not None:
            transport.close()

    # -- internals ----------------------------------------------------------

    def _add_version(self, parent: str, record: CertificateRecord) -> str:
        try:
            version = self.client.add_secret_version(
                request={"parent": parent, "payload": {"data": record.to_json()}},
            )
        except google_exceptions.GoogleAPICallError as exc:
            msg = f"failed to add a version to {parent}: {exc}"
            raise SecretStoreError(msg) from exc
        return version.name
