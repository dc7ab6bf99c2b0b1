"""Key and certificate helpers built on :mod:`cryptography`.

Covers the small amount of PEM plumbing the rest of autocert needs:
generating and (de)serialising private keys, building a CSR for a
hostname set, and splitting a PEM chain into leaf and CA bundle.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.x509.oid import ExtensionOID, NameOID

from autocert.core.types import KeyType

if TYPE_CHECKING:
    from collections.abc import Sequence

    from cryptography.hazmat.primitives.asymmetric.types import (
        CertificateIssuerPrivateKeyTypes,
    )

_EC_CURVES = {
    KeyType.EC256: ec.SECP256R1,
    KeyType.EC384: ec.SECP384R1,
}

_RSA_SIZES = {
    KeyType.RSA2048: 2048,
    KeyType.RSA4096: 4096,
}


class KeyMaterialError(ValueError):
    """Raised when PEM key or certificate material cannot be parsed."""


def generate_private_key(key_type: KeyType | str) -> CertificateIssuerPrivateKeyTypes:
    """Generate a new private key of *key_type*."""
    key_type = KeyType(key_type)
    if key_type in _RSA_SIZES:
        return rsa.generate_private_key(
            public_exponent=65537,
            key_size=_RSA_SIZES[key_type],
        )
    return ec.generate_private_key(_EC_CURVES[key_type]())


def generate_account_key() -> ec.EllipticCurvePrivateKey:
    """Generate an ACME account key (EC P-256)."""
    return ec.generate_private_key(ec.SECP256R1())


def private_key_to_pem(key: CertificateIssuerPrivateKeyTypes) -> str:
    """Serialise *key* as an unencrypted PKCS#8 PEM string."""
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")


def load_private_key(pem: str | bytes) -> CertificateIssuerPrivateKeyTypes:
    """Load an unencrypted PEM private key (PKCS#1, SEC1 or PKCS#8).

    Raises
    ------
    KeyMaterialError
        If the data is not a supported private key.

    """
    data = pem.encode("ascii") if isinstance(pem, str) else pem
    try:
        key = serialization.load_pem_private_key(data, password=None)
    except (ValueError, TypeError) as exc:
        msg = f"could not load private key: {exc}"
        raise KeyMaterialError(msg) from exc
    if not isinstance(key, (rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey)):
        msg = f"unsupported private key type {type(key).__name__}"
        raise KeyMaterialError(msg)
    return key


def build_csr(
    key: CertificateIssuerPrivateKeyTypes,
    hostnames: Sequence[str],
) -> bytes:
    """Build a PEM CSR for *hostnames*; the first hostname is the CN."""
    builder = x509.CertificateSigningRequestBuilder().subject_name(
        x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, hostnames[0])]),
    )
    builder = builder.add_extension(
        x509.SubjectAlternativeName([x509.DNSName(h) for h in hostnames]),
        critical=False,
    )
    csr = builder.sign(key, hashes.SHA256())
    return csr.public_bytes(serialization.Encoding.PEM)


def load_chain(chain_pem: str) -> list[x509.Certificate]:
    """Parse a PEM chain (leaf first).

    Raises
    ------
    KeyMaterialError
        If the chain is empty or cannot be parsed.

    """
    try:
        certs = x509.load_pem_x509_certificates(chain_pem.encode("ascii"))
    except (ValueError, UnicodeEncodeError) as exc:
        msg = f"failed to parse certificate PEM: {exc}"
        raise KeyMaterialError(msg) from exc
    if not certs:
        msg = "certificate chain is empty"
        raise KeyMaterialError(msg)
    return certs


def split_chain(chain_pem: str) -> tuple[str, str]:
    """Split a PEM chain into ``(leaf_pem, ca_bundle_pem)``."""
    certs = load_chain(chain_pem)
    leaf = certs[0].public_bytes(serialization.Encoding.PEM).decode("ascii")
    bundle = "".join(
        c.public_bytes(serialization.Encoding.PEM).decode("ascii") for c in certs[1:]
    )
    return leaf, bundle


def dns_names(cert: x509.Certificate) -> list[str]:
    """Return the DNS subject alternative names of *cert*."""
    try:
        san = cert.extensions.get_extension_for_oid(
            ExtensionOID.SUBJECT_ALTERNATIVE_NAME,
        )
    except x509.ExtensionNotFound:
        return []
    return san.value.get_values_for_type(x509.DNSName)
