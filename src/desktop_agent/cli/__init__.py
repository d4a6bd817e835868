"""Command line interface for desktop-agent."""

from .app import app

__all__ = ["app"]
