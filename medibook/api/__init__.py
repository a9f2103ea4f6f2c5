"""HTTP API for the scheduling engine."""

from .routes import create_app

__all__ = ["create_app"]
