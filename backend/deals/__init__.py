"""Deals catalog backend: filtering, ranking, caching and the HTTP API."""

__version__ = "1.0.0"
