"""``releaseforge specs`` — print the expected artifact table for a version."""

from __future__ import annotations

from pathlib import Path

import typer

from releaseforge.cli.commands._shared import console, load_registry, resolve_version
from releaseforge.config import ForgeSettings
from releaseforge.monitor.renderer import ReleaseRenderer


def specs_cmd(
    version: str = typer.Option(
        None,
        "--version",
        "-V",
        help="Release version. Defaults to the configured version file.",
    ),
    version_file: Path = typer.Option(
        None,
        "--version-file",
        help="Read the version from this file (package.json, pyproject.toml, VERSION).",
    ),
    platforms: list[str] = typer.Option(
        None,
        "--platform",
        "-p",
        help="Only show these platform keys (repeatable).",
    ),
) -> None:
    """Show every artifact a release of VERSION must contain."""
    settings = ForgeSettings()
    resolved = resolve_version(settings, version, version_file)
    registry = load_registry(settings, platforms)
    console.print(ReleaseRenderer(console=console).render_specs(registry, resolved))
