"""Keeps a YouTube live-stream playlist in canonical order."""

__version__ = "0.3.0"
