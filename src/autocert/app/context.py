"""Dependency container for autocert.

Built once from the settings tree by :func:`build_container` and, in
listener mode, stored on the Flask app via
``app.extensions["container"]`` (see :func:`get_container`).

Usage::

    from autocert.app.context import build_container

    container = build_container(settings)
    report = container.run()
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from flask import current_app

from autocert.app.shutdown import ShutdownCoordinator
from autocert.authority.registry import load_authority
from autocert.runners.fanout import RunnerFanOut
from autocert.runners.registry import load_targets
from autocert.services.lifecycle import LifecycleOrchestrator
from autocert.store.registry import load_secret_store

if TYPE_CHECKING:
    from autocert.authority.base import CertificateAuthority
    from autocert.config.settings import AutocertSettings
    from autocert.models.record import DispatchReport
    from autocert.store.base import SecretStore


@dataclass
class Container:
    """Application-wide collaborators plus the run lock."""

    settings: AutocertSettings
    store: SecretStore
    authority: CertificateAuthority
    orchestrator: LifecycleOrchestrator
    shutdown: ShutdownCoordinator
    run_lock: threading.Lock = field(default_factory=threading.Lock)

    def run(self, *, force_renew: bool | None = None) -> DispatchReport:
        """Run the orchestrator with configured account and hostnames.

        Runs are serialised and tracked by the shutdown coordinator.
        ``force_renew=None`` falls back to the configured flag.
        """
        force = self.settings.force_renew if force_renew is None else force_renew
        with self.run_lock, self.shutdown.track("run"):
            return self.orchestrator.run(
                self.settings.account.email,
                self.settings.hostnames,
                force,
            )


def build_container(
    settings: AutocertSettings,
    shutdown: ShutdownCoordinator | None = None,
) -> Container:
    """Load every backend named in *settings* and wire the orchestrator.

    Raises
    ------
    TargetConfigError, SecretStoreError, AuthorityError
        If a configured backend cannot be loaded.

    """
    shutdown = shutdown or ShutdownCoordinator(
        graceful_timeout=settings.listener.graceful_timeout,
    )
    targets = load_targets(settings.runners)
    store = load_secret_store(settings.secret_store)
    authority = load_authority(settings.authority, settings.certificate.key_type)
    authority.startup_check()

    fanout = RunnerFanOut(
        cancel_on_first_error=settings.runners.cancel_on_first_error,
        cancel_event=shutdown.shutdown_event,
    )
    orchestrator = LifecycleOrchestrator(
        store,
        authority,
        fanout,
        targets,
        threshold=settings.renewal.threshold,
        reuse_private_key=settings.renewal.reuse_private_key,
    )
    return Container(
        settings=settings,
        store=store,
        authority=authority,
        orchestrator=orchestrator,
        shutdown=shutdown,
    )


def get_container() -> Container:
    """Return the container of the current Flask app."""
    return current_app.extensions["container"]
