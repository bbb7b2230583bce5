"""Optimistic mutation queue and snapshot reconciliation for page/post galleries."""

__version__ = "0.1.0"
