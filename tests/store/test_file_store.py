"""Tests for autocert.store.file.FileSecretStore."""

from __future__ import annotations

import stat

import pytest

from autocert.config.settings import build_settings
from autocert.models.record import MalformedRecordError
from autocert.store.base import SecretStoreError
from autocert.store.file import FileSecretStore


@pytest.fixture
def store(tmp_path):
    settings = build_settings(
        {"secret_store": {"backend": "file", "file": {"path": str(tmp_path / "state" / "cert.json")}}},
    )
    return FileSecretStore(settings.secret_store)


class TestFileSecretStore:
    def test_read_missing_returns_none(self, store):
        assert store.read() is None

    def test_create_then_read(self, store, record_factory):
        record = record_factory()
        store.create(record)
        loaded = store.read()
        assert loaded.certificate_chain == record.certificate_chain
        assert loaded.account.email == record.account.email

    def test_file_is_private(self, store, record_factory, tmp_path):
        store.create(record_factory())
        mode = (tmp_path / "state" / "cert.json").stat().st_mode
        assert stat.S_IMODE(mode) == 0o600

    def test_create_refuses_existing(self, store, record_factory):
        store.create(record_factory())
        with pytest.raises(SecretStoreError, match="already exists"):
            store.create(record_factory())

    def test_update_replaces(self, store, record_factory):
        store.create(record_factory(["example.com"]))
        store.update(record_factory(["api.example.com"]))
        assert store.read().hostnames == ("api.example.com",)

    def test_no_temp_files_left(self, store, record_factory, tmp_path):
        store.create(record_factory())
        store.update(record_factory())
        assert [p.name for p in (tmp_path / "state").iterdir()] == ["cert.json"]

    def test_corrupt_file_raises_malformed(self, store, tmp_path):
        path = tmp_path / "state" / "cert.json"
        path.parent.mkdir(parents=True)
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(MalformedRecordError):
            store.read()

    def test_name(self, store):
        assert store.name.startswith("file:")
