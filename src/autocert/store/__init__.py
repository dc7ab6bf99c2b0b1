"""Persistence of the certificate record between runs."""

from autocert.store.base import SecretStore, SecretStoreError
from autocert.store.registry import load_secret_store

__all__ = ["SecretStore", "SecretStoreError", "load_secret_store"]
