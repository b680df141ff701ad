"""Annotator plugin system for annowatch."""

from .base import Annotator
from .builtin import SentenceAnnotator
from .loader import PluginLoader
from .registry import AnnotatorRegistry

__all__ = ["Annotator", "SentenceAnnotator", "PluginLoader", "AnnotatorRegistry"]
