"""Shelf - note collections with persisted counts and change notifications."""

__version__ = "0.1.0"
