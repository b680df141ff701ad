"""Admin HTTP API for annowatch."""

from .server import create_app, create_server

__all__ = ["create_app", "create_server"]
