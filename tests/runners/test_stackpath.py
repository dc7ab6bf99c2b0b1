"""Tests for autocert.runners.stackpath.StackPathTarget."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from autocert.config.settings import build_settings
from autocert.core.keys import split_chain
from autocert.runners.base import DistributionError
from autocert.runners.stackpath import StackPathTarget
from tests.runners.fake_api import FakeApi

HOSTS = ("example.com", "www.example.com")
TOKEN = "/identity/v1/oauth2/token"
DOMAINS = "/cdn/v1/stacks/stack/sites/site/delivery-domains"
CERTS = "/cdn/v1/stacks/stack/certificates"


@pytest.fixture
def api():
    fake = FakeApi()
    fake.add("POST", TOKEN, {"access_token": "tok", "expires_in": 3600})
    fake.add(
        "GET",
        DOMAINS,
        {
            "results": [{"domain": "example.com"}, {"domain": "www.example.com"}],
            "pageInfo": {"hasNextPage": False},
        },
    )
    fake.add("GET", CERTS, {"results": [], "pageInfo": {"hasNextPage": False}})
    fake.add("POST", CERTS, {"certificate": {"id": "new-cert"}})
    with patch("urllib.request.urlopen", fake):
        yield fake


@pytest.fixture
def target():
    settings = build_settings(
        {
            "runners": {
                "stackpath": {
                    "client_id": "id",
                    "client_secret": "secret",
                    "stack_id": "stack",
                    "site_id": "site",
                },
            },
        },
    )
    return StackPathTarget(settings.runners)


class TestStackPathTarget:
    def test_creates_certificate_when_none_matches(self, api, target, record_factory):
        record = record_factory(HOSTS)
        assert target.exec(HOSTS, record) == "created certificate new-cert"

        token_req = api.requests("POST", TOKEN)[0]["body"]
        assert token_req["grant_type"] == "client_credentials"
        created = api.requests("POST", CERTS)[0]
        leaf, bundle = split_chain(record.certificate_chain)
        assert created["body"] == {
            "certificate": leaf,
            "key": record.private_key,
            "caBundle": bundle,
        }
        assert created["headers"]["authorization"] == "Bearer tok"

    def test_updates_matching_active_certificate(self, api, target, record_factory):
        api.add(
            "GET",
            CERTS,
            {
                "results": [
                    {"id": "other", "subjectAlternativeNames": ["example.com"]},
                    {"id": "match", "subjectAlternativeNames": ["www.example.com", "example.com"]},
                ],
                "pageInfo": {"hasNextPage": False},
            },
        )
        api.add("PUT", f"{CERTS}/match", {"certificate": {"id": "match"}})

        assert target.exec(HOSTS, record_factory(HOSTS)) == "updated certificate match"
        assert api.requests("POST", CERTS) == []
        assert api.requests("GET", CERTS)[0]["query"]["page_request.filter"] == 'status="ACTIVE"'

    def test_paginates_delivery_domains(self, api, target, record_factory):
        def pages(query):
            if query.get("page_request.after") == "c1":
                return {
                    "results": [{"domain": "www.example.com"}],
                    "pageInfo": {"hasNextPage": False},
                }
            return {
                "results": [{"domain": "example.com"}],
                "pageInfo": {"hasNextPage": True, "endCursor": "c1"},
            }

        api.add("GET", DOMAINS, pages)
        target.exec(HOSTS, record_factory(HOSTS))
        assert len(api.requests("GET", DOMAINS)) == 2

    def test_missing_delivery_domain(self, api, target, record_factory):
        hosts = ("example.com", "cdn.example.com")
        with pytest.raises(DistributionError, match="cdn.example.com"):
            target.exec(hosts, record_factory(hosts))
        assert api.requests("POST", CERTS) == []

    def test_auth_failure(self, api, target, record_factory):
        api.add("POST", TOKEN, (401, {"error": "invalid_client"}))
        with pytest.raises(DistributionError, match="HTTP 401"):
            target.exec(HOSTS, record_factory(HOSTS))

    def test_token_without_access_token(self, api, target, record_factory):
        api.add("POST", TOKEN, {"expires_in": 1})
        with pytest.raises(DistributionError, match="access token"):
            target.exec(HOSTS, record_factory(HOSTS))
