"""Publish Android binaries to a Google Play release track."""

__version__ = "0.3.0"
