"""Command-line interface."""

from gworkspace_gateway.cli.main import main

__all__ = ["main"]
