"""Tests for autocert.runners.bunnycdn.BunnyCdnTarget."""

from __future__ import annotations

import base64
from unittest.mock import patch

import pytest

from autocert.config.settings import build_settings
from autocert.runners.base import DistributionError
from autocert.runners.bunnycdn import BunnyCdnTarget
from tests.runners.fake_api import FakeApi

ZONE = "/pullzone/42"
HOSTS = ("example.com", "www.example.com")


@pytest.fixture
def api():
    fake = FakeApi()
    fake.add(
        "GET",
        ZONE,
        {"Id": 42, "Hostnames": [{"Value": "example.com"}, {"Value": "WWW.example.com"}]},
    )
    fake.add("POST", f"{ZONE}/addCertificate", (204, None))
    with patch("urllib.request.urlopen", fake):
        yield fake


@pytest.fixture
def target():
    settings = build_settings(
        {"runners": {"bunnycdn": {"api_key": "secret", "pull_zone_id": 42}, "timeout_seconds": 7}},
    )
    return BunnyCdnTarget(settings.runners)


class TestBunnyCdnTarget:
    def test_uploads_per_hostname(self, api, target, record_factory):
        record = record_factory(HOSTS)
        message = target.exec(HOSTS, record)

        uploads = api.requests("POST", f"{ZONE}/addCertificate")
        assert [u["body"]["Hostname"] for u in uploads] == list(HOSTS)
        body = uploads[0]["body"]
        assert base64.b64decode(body["Certificate"]).decode() == record.certificate_chain
        assert base64.b64decode(body["CertificateKey"]).decode() == record.private_key
        assert "2 hostname(s)" in message

    def test_sends_access_key_and_timeout(self, api, target, record_factory):
        target.exec(HOSTS, record_factory(HOSTS))
        call = api.calls[0]
        assert call["headers"]["accesskey"] == "secret"
        assert call["timeout"] == 7

    def test_missing_hostname_changes_nothing(self, api, target, record_factory):
        hosts = ("example.com", "api.example.com")
        with pytest.raises(DistributionError, match="api.example.com"):
            target.exec(hosts, record_factory(hosts))
        assert api.requests("POST", f"{ZONE}/addCertificate") == []

    def test_http_error_is_distribution_error(self, api, target, record_factory):
        api.add("POST", f"{ZONE}/addCertificate", (400, {"Message": "bad cert"}))
        with pytest.raises(DistributionError, match="HTTP 400"):
            target.exec(HOSTS, record_factory(HOSTS))

    def test_unknown_zone(self, api, target, record_factory):
        api.routes.pop(("GET", ZONE))
        with pytest.raises(DistributionError, match="HTTP 404"):
            target.exec(HOSTS, record_factory(HOSTS))

    def test_rerun_is_idempotent(self, api, target, record_factory):
        record = record_factory(HOSTS)
        target.exec(HOSTS, record)
        target.exec(HOSTS, record)
        uploads = api.requests("POST", f"{ZONE}/addCertificate")
        assert len(uploads) == 4
        assert uploads[0]["body"] == uploads[2]["body"]
