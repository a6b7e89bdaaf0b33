"""Siteforge CLI — Typer-based command-line interface.

Provides the ``siteforge`` command with subcommands for planning a
deployment and decoding patch ids and content types.

All output uses Rich for formatted terminal display.
"""
