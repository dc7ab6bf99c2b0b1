"""Flask application package for the HTTP trigger."""

from autocert.app.factory import create_app

__all__ = ["create_app"]
