"""Tests for autocert.store.registry."""

from __future__ import annotations

import pytest

from autocert.config.settings import build_settings
from autocert.store.base import SecretStore, SecretStoreError
from autocert.store.file import FileSecretStore
from autocert.store.registry import load_secret_store
from autocert.store.secretmanager import SecretManagerStore


class MemoryStore(SecretStore):
    def read(self):
        return None

    def create(self, record):
        pass

    def update(self, record):
        pass


def _settings(backend):
    return build_settings({"secret_store": {"backend": backend}}).secret_store


def test_builtin_file():
    assert isinstance(load_secret_store(_settings("file")), FileSecretStore)


def test_builtin_secretmanager_is_lazy():
    store = load_secret_store(_settings("secretmanager"))
    assert isinstance(store, SecretManagerStore)


def test_external_store():
    store = load_secret_store(_settings(f"ext:{__name__}.MemoryStore"))
    assert isinstance(store, MemoryStore)


@pytest.mark.parametrize(
    "backend",
    ["vault", "ext:NoModule", "ext:no.such.module.Store", f"ext:{__name__}.test_builtin_file"],
)
def test_rejects_bad_backends(backend):
    with pytest.raises(SecretStoreError):
        load_secret_store(_settings(backend))
