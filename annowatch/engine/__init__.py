"""Dispatch engine for annowatch."""

from .dispatcher import ProcessingDispatcher
from .service import WatcherService, open_filesystem_source

__all__ = ["ProcessingDispatcher", "WatcherService", "open_filesystem_source"]
