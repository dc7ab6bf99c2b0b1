"""Run subcommand: one lifecycle pass, then exit."""

from __future__ import annotations

import json
import logging
import sys

log = logging.getLogger(__name__)


def run_once(config, args) -> int:
    """Run the orchestrator once and return the process exit code."""
    from autocert.app.context import build_container
    from autocert.app.shutdown import ShutdownCoordinator
    from autocert.authority.base import AuthorityError
    from autocert.cli.main import EXIT_FATAL, EXIT_OK, EXIT_TARGET_FAILED
    from autocert.models.record import MalformedRecordError
    from autocert.runners.base import TargetConfigError
    from autocert.store.base import SecretStoreError

    settings = config.settings
    shutdown = ShutdownCoordinator(graceful_timeout=settings.listener.graceful_timeout)
    shutdown.register_signals()

    try:
        container = build_container(settings, shutdown)
    except (AuthorityError, SecretStoreError, TargetConfigError) as exc:
        if args.debug:
            raise
        log.error("Startup failed: %s", exc)  # noqa: TRY400
        return EXIT_FATAL

    force = True if getattr(args, "force_renew", False) else None
    try:
        report = container.run(force_renew=force)
    except (AuthorityError, SecretStoreError, MalformedRecordError, ValueError) as exc:
        if args.debug:
            raise
        log.error("Run failed: %s", exc)  # noqa: TRY400
        return EXIT_FATAL
    finally:
        container.store.close()

    json.dump(report.to_dict(), sys.stdout, indent=2)
    sys.stdout.write("\n")

    if report.failed:
        log.warning("%d of %d target(s) failed", report.failed, report.attempted)
        return EXIT_TARGET_FAILED
    return EXIT_OK
