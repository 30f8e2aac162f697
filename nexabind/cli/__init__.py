"""
NexaBind CLI
============

Command-line interface for the NexaBind compiler.

Commands:
- build: Compile a template to an HTML document
- inspect: Print variables, events and component units
- serve: Preview server with per-request recompilation
"""

from nexabind.cli.main import main, cli

__all__ = ["main", "cli"]
