"""Serve subcommand: start the HTTP trigger."""

from __future__ import annotations

import logging

log = logging.getLogger(__name__)


def run_serve(config, args) -> int:
    """Start the HTTP trigger and block until it stops."""
    from autocert.app import create_app
    from autocert.authority.base import AuthorityError
    from autocert.cli.main import EXIT_FATAL, EXIT_OK
    from autocert.runners.base import TargetConfigError
    from autocert.store.base import SecretStoreError

    listener = config.settings.listener
    try:
        app = create_app(config=config)
    except (AuthorityError, SecretStoreError, TargetConfigError) as exc:
        if args.debug:
            raise
        log.error("Startup failed: %s", exc)  # noqa: TRY400
        return EXIT_FATAL

    if getattr(args, "dev", False):
        log.info("Starting development server (not for production)")
        app.extensions["container"].shutdown.register_signals()
        app.run(
            host=listener.bind,
            port=listener.port,
            debug=args.debug,
            use_reloader=False,
        )
        return EXIT_OK

    from autocert.server.gunicorn_app import run_gunicorn

    try:
        run_gunicorn(app, listener)
    except RuntimeError as exc:
        log.error("%s", exc)  # noqa: TRY400
        return EXIT_FATAL
    return EXIT_OK
