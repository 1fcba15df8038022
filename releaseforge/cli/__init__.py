"""Releaseforge CLI — Typer-based command-line interface.

Provides the ``releaseforge`` command with subcommands for running a
release, listing the artifact table, writing and checking checksum
manifests, inspecting the audit ledger, and running a simulated demo.

All output uses Rich for formatted terminal display.
"""
