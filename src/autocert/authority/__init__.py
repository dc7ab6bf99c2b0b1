"""Certificate authorities: obtain certificates for a hostname set."""

from autocert.authority.base import AuthorityError, CertificateAuthority
from autocert.authority.registry import load_authority

__all__ = ["AuthorityError", "CertificateAuthority", "load_authority"]
