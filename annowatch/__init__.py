"""annowatch - watch a directory and annotate every new text file."""

__version__ = "1.0.0"
