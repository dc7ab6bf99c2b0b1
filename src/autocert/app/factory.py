"""Flask application factory for the HTTP trigger.

Routes:

- ``GET /``: health check, answers ``OK``;
- ``GET|POST /cert``: run the orchestrator (``?force=true`` forces a
  renewal) and return the dispatch report as JSON.  Target failures are
  reported in the body; only a fatal run error changes the status (500).

Usage::

    from autocert.app import create_app
    from autocert.config import get_config

    app = create_app(config=get_config())
"""

from __future__ import annotations

import atexit
import logging
from typing import TYPE_CHECKING

from flask import Flask, jsonify, request

from autocert.app.context import build_container, get_container
from autocert.app.errors import register_error_handlers

if TYPE_CHECKING:
    from flask.typing import ResponseReturnValue

    from autocert.app.context import Container
    from autocert.config.autocert_config import AutocertConfig

log = logging.getLogger(__name__)

_TRUTHY = frozenset({"1", "true", "yes", "on"})


def create_app(
    config: AutocertConfig | None = None,
    container: Container | None = None,
) -> Flask:
    """Create and configure the autocert Flask application.

    Parameters
    ----------
    config:
        Loaded :class:`AutocertConfig`.  Falls back to :func:`get_config`
        when ``None``.
    container:
        Pre-built dependency container; built from *config* when
        omitted.

    """
    if container is None:
        if config is None:
            from autocert.config import get_config  # noqa: PLC0415

            config = get_config()
        container = build_container(config.settings)

    app = Flask("autocert")
    app.extensions["container"] = container
    atexit.register(container.shutdown.initiate)

    register_error_handlers(app)
    _register_routes(app)

    log.info(
        "HTTP trigger ready for %s",
        ", ".join(container.settings.hostnames),
    )
    return app


def _register_routes(app: Flask) -> None:
    @app.route("/", methods=["GET"])
    def health() -> ResponseReturnValue:
        return "OK", 200, {"Content-Type": "text/plain; charset=utf-8"}

    @app.route("/cert", methods=["GET", "POST"])
    def cert() -> ResponseReturnValue:
        container = get_container()
        if container.shutdown.is_shutting_down:
            return jsonify({"detail": "shutting down"}), 503

        force = request.args.get("force", "").lower() in _TRUTHY or None
        report = container.run(force_renew=force)
        return jsonify(report.to_dict()), 200
