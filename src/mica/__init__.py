"""MiCa: a personal, offline graph-of-notes store."""

__version__ = "0.1.0"
