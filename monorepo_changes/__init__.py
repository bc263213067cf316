"""Monorepo change detection: find the projects affected by a diff."""

__version__ = "0.3.0"
