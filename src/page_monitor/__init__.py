"""Periodic web page content extraction engine."""

__version__ = "0.1.0"
