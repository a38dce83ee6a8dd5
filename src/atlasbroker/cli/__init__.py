"""
CLI commands for the broker.
"""

from atlasbroker.cli.catalog import catalog_command
from atlasbroker.cli.render import render_command
from atlasbroker.cli.resolve import resolve_command

__all__ = [
    "catalog_command",
    "render_command",
    "resolve_command",
]
