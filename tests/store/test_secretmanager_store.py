"""Tests for autocert.store.secretmanager.SecretManagerStore.

The Secret Manager client is replaced by a MagicMock; the google
exception classes are the real ones.
"""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from google.api_core import exceptions as google_exceptions

from autocert.config.settings import build_settings
from autocert.models.record import MalformedRecordError
from autocert.store.base import SecretStoreError
from autocert.store.secretmanager import SecretManagerStore

SECRET = "projects/proj/secrets/autocert"


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def store(client):
    settings = build_settings(
        {"secret_store": {"secretmanager": {"project_id": "proj", "secret_id": "autocert"}}},
    )
    return SecretManagerStore(settings.secret_store, client=client)


class TestRead:
    def test_reads_latest_version(self, store, client, record_factory):
        record = record_factory()
        client.access_secret_version.return_value = SimpleNamespace(
            payload=SimpleNamespace(data=record.to_json()),
        )
        loaded = store.read()
        assert loaded.private_key == record.private_key
        client.access_secret_version.assert_called_once_with(
            request={"name": f"{SECRET}/versions/latest"},
        )

    def test_not_found_is_absent(self, store, client):
        client.access_secret_version.side_effect = google_exceptions.NotFound("gone")
        assert store.read() is None

    def test_permission_denied_raises(self, store, client):
        client.access_secret_version.side_effect = google_exceptions.PermissionDenied("no")
        with pytest.raises(SecretStoreError):
            store.read()

    def test_garbage_payload(self, store, client):
        client.access_secret_version.return_value = SimpleNamespace(
            payload=SimpleNamespace(data=b"nope"),
        )
        with pytest.raises(MalformedRecordError):
            store.read()


class TestCreate:
    def test_creates_secret_and_version(self, store, client, record_factory):
        client.create_secret.return_value = SimpleNamespace(name=SECRET)
        client.add_secret_version.return_value = SimpleNamespace(name=f"{SECRET}/versions/1")
        record = record_factory()

        store.create(record)

        request = client.create_secret.call_args.kwargs["request"]
        assert request["parent"] == "projects/proj"
        assert request["secret_id"] == "autocert"
        assert request["secret"] == {"replication": {"automatic": {}}}
        client.add_secret_version.assert_called_once_with(
            request={"parent": SECRET, "payload": {"data": record.to_json()}},
        )

    def test_existing_secret_gets_a_version(self, store, client, record_factory):
        client.create_secret.side_effect = google_exceptions.AlreadyExists("exists")
        client.add_secret_version.return_value = SimpleNamespace(name=f"{SECRET}/versions/2")
        store.create(record_factory())
        assert client.add_secret_version.call_args.kwargs["request"]["parent"] == SECRET

    def test_add_version_failure(self, store, client, record_factory):
        client.create_secret.return_value = SimpleNamespace(name=SECRET)
        client.add_secret_version.side_effect = google_exceptions.InternalServerError("x")
        with pytest.raises(SecretStoreError):
            store.create(record_factory())


class TestUpdate:
    def test_adds_version_and_disables_previous(self, store, client, record_factory):
        client.get_secret_version.return_value = SimpleNamespace(name=f"{SECRET}/versions/3")
        client.add_secret_version.return_value = SimpleNamespace(name=f"{SECRET}/versions/4")

        store.update(record_factory())

        client.disable_secret_version.assert_called_once_with(
            request={"name": f"{SECRET}/versions/3"},
        )

    def test_disable_failure_is_not_fatal(self, store, client, record_factory):
        client.get_secret_version.return_value = SimpleNamespace(name=f"{SECRET}/versions/3")
        client.add_secret_version.return_value = SimpleNamespace(name=f"{SECRET}/versions/4")
        client.disable_secret_version.side_effect = google_exceptions.FailedPrecondition("x")
        store.update(record_factory())

    def test_no_previous_version(self, store, client, record_factory):
        client.get_secret_version.side_effect = google_exceptions.NotFound("none")
        client.add_secret_version.return_value = SimpleNamespace(name=f"{SECRET}/versions/1")
        store.update(record_factory())
        client.disable_secret_version.assert_not_called()

    def test_add_failure_leaves_previous_enabled(self, store, client, record_factory):
        client.get_secret_version.return_value = SimpleNamespace(name=f"{SECRET}/versions/3")
        client.add_secret_version.side_effect = google_exceptions.ServiceUnavailable("x")
        with pytest.raises(SecretStoreError):
            store.update(record_factory())
        client.disable_secret_version.assert_not_called()


def test_close_closes_transport(store, client):
    store.close()
    client.transport.close.assert_called_once_with()
