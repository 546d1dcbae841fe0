"""JSON API server for courses, attendance and token-based sign-in."""

__version__ = "0.1.0"