"""Signed lead-ingestion webhook."""

__version__ = "1.0.0"
