"""CLI module for cyberquiz.

This module provides the command-line interface using Typer.
"""

from __future__ import annotations

from cyberquiz.cli.main import app

__all__ = ["app"]
