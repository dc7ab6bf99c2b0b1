"""WSGI entry point for external servers (gunicorn, uWSGI, etc.).

The config file path is read from the ``AUTOCERT_CONFIG`` environment
variable.

Example::

    export AUTOCERT_CONFIG=/etc/autocert/config.yaml
    gunicorn "autocert.server.wsgi:app"
"""

from __future__ import annotations

import os
import sys

_config_path = os.environ.get("AUTOCERT_CONFIG")
if _config_path is None:
    sys.exit("AUTOCERT_CONFIG is not set")

# Bootstrap the singleton before anything else imports it.
from autocert.config import AutocertConfig  # noqa: E402

_config = AutocertConfig(config_file=_config_path)

from autocert.logging import configure_logging  # noqa: E402

configure_logging(_config.settings.logging)

from autocert.app import create_app  # noqa: E402

app = create_app(config=_config)
