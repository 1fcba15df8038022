"""Helpers shared by the CLI commands."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from releaseforge.config import ConfigError, ForgeSettings
from releaseforge.core.artifact_registry import ArtifactRegistry, UnknownPlatformError
from releaseforge.core.version_resolver import VersionResolver

console = Console()


def load_registry(settings: ForgeSettings, platforms: list[str] | None) -> ArtifactRegistry:
    """The default artifact table, optionally narrowed to *platforms*."""
    registry = ArtifactRegistry(product=settings.product_name)
    if not platforms:
        return registry
    try:
        return registry.subset(platforms)
    except UnknownPlatformError as exc:
        console.print(f"[bold red]Unknown platform:[/bold red] {exc}")
        raise typer.Exit(code=1)


def resolve_version(
    settings: ForgeSettings, version: str | None, version_file: Path | None
) -> str:
    try:
        return VersionResolver(
            version, source=version_file or settings.version_file
        ).resolve()
    except ConfigError as exc:
        console.print(f"[bold red]Version error:[/bold red] {exc}")
        raise typer.Exit(code=1)
