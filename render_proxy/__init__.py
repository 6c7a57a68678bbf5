"""Headless-browser rendering proxy."""

__version__ = "0.1.0"
