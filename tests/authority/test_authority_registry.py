"""Tests for autocert.authority.registry."""

from __future__ import annotations

import pytest

from autocert.authority.acme import AcmeAuthority
from autocert.authority.base import AuthorityError, CertificateAuthority
from autocert.authority.registry import load_authority
from autocert.config.settings import build_settings
from autocert.core.types import KeyType


class StaticAuthority(CertificateAuthority):
    def issue(self, identity, hostnames):
        raise NotImplementedError

    def renew(self, identity, hostnames, existing_key_pem):
        raise NotImplementedError


class HalfAuthority(CertificateAuthority):
    pass


def _settings(backend):
    return build_settings({"authority": {"backend": backend}}).authority


def test_builtin_acme():
    authority = load_authority(_settings("acme"), KeyType.EC256)
    assert isinstance(authority, AcmeAuthority)


def test_external():
    authority = load_authority(_settings(f"ext:{__name__}.StaticAuthority"), "rsa2048")
    assert isinstance(authority, StaticAuthority)
    authority.startup_check()


@pytest.mark.parametrize(
    "backend",
    ["vault", "ext:Bare", "ext:nope.Nope", f"ext:{__name__}.HalfAuthority", f"ext:{__name__}.pytest"],
)
def test_rejects(backend):
    with pytest.raises(AuthorityError):
        load_authority(_settings(backend), "rsa2048")
