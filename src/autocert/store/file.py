"""Local JSON file secret store.

Intended for development and single-host deployments.  The record is
written to a temporary file in the same directory and moved into place
with :func:`os.replace`, so readers only ever see a complete record.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

from autocert.models.record import CertificateRecord
from autocert.store.base import SecretStore, SecretStoreError

if TYPE_CHECKING:
    from autocert.config.settings import SecretStoreSettings

log = logging.getLogger(__name__)


class FileSecretStore(SecretStore):
    """Keep the certificate record in a JSON file."""

    def __init__(self, settings: SecretStoreSettings) -> None:
        super().__init__(settings)
        self._path = Path(settings.file.path)

    @property
    def name(self) -> str:
        return f"file:{self._path}"

    def read(self) -> CertificateRecord | None:
        try:
            payload = self._path.read_bytes()
        except FileNotFoundError:
            log.info("No stored record at %s", self._path)
            return None
        except OSError as exc:
            msg = f"failed to read {self._path}: {exc}"
            raise SecretStoreError(msg) from exc
        return CertificateRecord.from_json(payload)

    def create(self, record: CertificateRecord) -> None:
        if self._path.exists():
            msg = f"refusing to create {self._path}: a record already exists"
            raise SecretStoreError(msg)
        self._write(record)
        log.info("Created record at %s", self._path)

    def update(self, record: CertificateRecord) -> None:
        self._write(record)
        log.info("Updated record at %s", self._path)

    def _write(self, record: CertificateRecord) -> None:
        directory = self._path.parent
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=directory, prefix=f".{self._path.name}.", suffix=".tmp",
            )
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(record.to_json())
                    f.flush()
                    os.fsync(f.fileno())
                os.chmod(tmp_name, 0o600)  # noqa: PTH101
                os.replace(tmp_name, self._path)  # noqa: PTH105
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            msg = f"failed to write {self._path}: {exc}"
            raise SecretStoreError(msg) from exc
