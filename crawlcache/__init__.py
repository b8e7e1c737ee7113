"""URL fetch cache service."""

__version__ = "0.1.0"
