"""Command line interface for checkpoint administration."""

from .app import main

__all__ = ["main"]
