"""Logging subsystem for autocert.

Public API::

    from autocert.logging import configure_logging

    configure_logging(settings.logging)
"""

from autocert.logging.context import bind_run, current_run_id
from autocert.logging.setup import configure_logging

__all__ = ["bind_run", "configure_logging", "current_run_id"]
