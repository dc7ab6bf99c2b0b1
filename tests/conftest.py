"""Root conftest for the autocert test suite."""

from __future__ import annotations

import sys
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
import yaml

# ---------------------------------------------------------------------------
# Make ``src/`` importable without installing the package
# ---------------------------------------------------------------------------
_SRC = str(Path(__file__).resolve().parent.parent / "src")
if _SRC not in sys.path:
    sys.path.insert(0, _SRC)

from cryptography import x509  # noqa: E402
from cryptography.hazmat.primitives import hashes, serialization  # noqa: E402
from cryptography.hazmat.primitives.asymmetric import ec  # noqa: E402
from cryptography.x509.oid import NameOID  # noqa: E402

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


# ---------------------------------------------------------------------------
# Certificate material
# ---------------------------------------------------------------------------


def _name(cn: str) -> x509.Name:
    return x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, cn)])


def _pem(cert: x509.Certificate) -> str:
    return cert.public_bytes(serialization.Encoding.PEM).decode("ascii")


def make_chain(
    hostnames,
    not_after: datetime,
    *,
    key=None,
    not_before: datetime | None = None,
) -> tuple[str, str]:
    """Return ``(private_key_pem, chain_pem)`` for a leaf signed by a test CA."""
    ca_key = ec.generate_private_key(ec.SECP256R1())
    key = key or ec.generate_private_key(ec.SECP256R1())
    not_before = not_before or not_after - timedelta(days=90)

    ca = (
        x509.CertificateBuilder()
        .subject_name(_name("autocert test CA"))
        .issuer_name(_name("autocert test CA"))
        .public_key(ca_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_before)
        .not_valid_after(not_after + timedelta(days=365))
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .sign(ca_key, hashes.SHA256())
    )
    leaf = (
        x509.CertificateBuilder()
        .subject_name(_name(hostnames[0]))
        .issuer_name(ca.subject)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_before)
        .not_valid_after(not_after)
        .add_extension(
            x509.SubjectAlternativeName([x509.DNSName(h) for h in hostnames]),
            critical=False,
        )
        .sign(ca_key, hashes.SHA256())
    )
    key_pem = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode("ascii")
    return key_pem, _pem(leaf) + _pem(ca)


@pytest.fixture()
def account():
    from autocert.core.keys import generate_account_key
    from autocert.models.record import AccountIdentity

    return AccountIdentity(
        email="ops@example.com",
        key=generate_account_key(),
        registered=True,
    )


@pytest.fixture()
def record_factory(account):
    """Build a CertificateRecord for *hostnames* expiring at *not_after*."""
    from autocert.models.record import CertificateRecord

    def _factory(hostnames=("example.com", "www.example.com"), not_after=None, **kwargs):
        hostnames = list(hostnames)
        key_pem, chain = make_chain(
            hostnames,
            not_after or NOW + timedelta(days=60),
            **kwargs,
        )
        return CertificateRecord(
            private_key=key_pem,
            certificate_chain=chain,
            account=account,
            hostnames=tuple(hostnames),
        )

    return _factory


# ---------------------------------------------------------------------------
# Minimal config data shared by multiple test modules
# ---------------------------------------------------------------------------


@pytest.fixture()
def minimal_config_data() -> dict:
    """Return a dict containing the minimum required config fields."""
    return {
        "account": {"email": "ops@example.com"},
        "hostnames": ["example.com", "www.example.com"],
        "authority": {
            "acme": {
                "directory_url": "https://acme.example.test/directory",
                "challenge_type": "dns-01",
                "challenge_handler": "callback_dns",
                "challenge_handler_config": {
                    "create_script": "/bin/true",
                    "delete_script": "/bin/true",
                },
            },
        },
        "secret_store": {
            "backend": "secretmanager",
            "secretmanager": {"project_id": "proj", "secret_id": "autocert"},
        },
        "runners": {
            "enabled": ["bunnycdn"],
            "bunnycdn": {"api_key": "k", "pull_zone_id": "42"},
        },
    }


@pytest.fixture()
def tmp_config_file(tmp_path: Path, minimal_config_data: dict) -> Path:
    """Write *minimal_config_data* to a temp YAML file and return its path."""
    cfg = tmp_path / "config.yaml"
    cfg.write_text(
        yaml.safe_dump(minimal_config_data, default_flow_style=False, sort_keys=False),
        encoding="utf-8",
    )
    return cfg


# ---------------------------------------------------------------------------
# Config singleton cleanup: autouse so every test gets a fresh slate
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def fresh_config():
    """Reset the AutocertConfig singleton before and after every test."""
    from autocert.config.autocert_config import AutocertConfig

    AutocertConfig.reset()
    yield
    AutocertConfig.reset()


@pytest.fixture(autouse=True)
def restore_logging():
    """Undo ``configure_logging`` so caplog keeps seeing autocert records."""
    import logging

    yield
    for name in ("autocert", "autocert.audit"):
        logger = logging.getLogger(name)
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
        logger.propagate = True
        logger.setLevel(logging.NOTSET)
