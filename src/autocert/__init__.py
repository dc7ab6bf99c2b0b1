"""autocert: certificate lifecycle automation for CDN and edge providers."""

__version__ = "1.0.0"
