"""Programmatic gunicorn runner for the HTTP trigger.

Starts gunicorn with settings derived from the ``listener`` section
rather than requiring a separate gunicorn config file.  Runs are
serialised per process, so keep ``listener.workers`` at 1 unless the
secret store tolerates concurrent writers.

Usage::

    from autocert.server.gunicorn_app import run_gunicorn

    run_gunicorn(flask_app, settings.listener)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from flask import Flask

    from autocert.config.settings import ListenerSettings

log = logging.getLogger(__name__)


def run_gunicorn(app: Flask, settings: ListenerSettings) -> None:
    """Start a gunicorn server from :class:`ListenerSettings`.

    Raises :class:`RuntimeError` if gunicorn is not installed (e.g. on
    Windows).
    """
    try:
        from gunicorn.app.base import BaseApplication  # noqa: PLC0415
    except ImportError as exc:
        msg = (
            "gunicorn is not installed.  Install it with:\n"
            "    pip install gunicorn\n\n"
            "gunicorn only runs on Unix.  Use --dev for the Flask "
            "development server on Windows."
        )
        raise RuntimeError(msg) from exc

    class _App(BaseApplication):
        def __init__(self, flask_app: Flask, listener: ListenerSettings) -> None:
            self.application = flask_app
            self._listener = listener
            super().__init__()

        def load_config(self) -> None:
            s = self._listener
            self.cfg.set("bind", f"{s.bind}:{s.port}")
            self.cfg.set("workers", s.workers)
            self.cfg.set("worker_class", "gthread")
            self.cfg.set("threads", 4)
            self.cfg.set("timeout", s.timeout)
            self.cfg.set("graceful_timeout", s.graceful_timeout)
            self.cfg.set("accesslog", None)

        def load(self) -> Flask:
            return self.application

    log.info(
        "Starting gunicorn on %s:%s (%d workers)",
        settings.bind,
        settings.port,
        settings.workers,
    )
    _App(app, settings).run()
