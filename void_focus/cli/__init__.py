"""Command-line interface for Void Focus."""

from .commands import app

__all__ = ["app"]
