"""Mod identity resolution and update reconciliation for game instances."""

__version__ = "0.1.0"
