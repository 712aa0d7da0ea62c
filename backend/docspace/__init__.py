"""docspace: document workspace state manager and API."""

__version__ = "0.1.0"
