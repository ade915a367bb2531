"""Personal reading tracker with Kindle library sync."""

__version__ = "0.1.0"
