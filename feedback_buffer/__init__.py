"""Durable client-side buffer for bug-report submissions."""

__version__ = "0.1.0"
