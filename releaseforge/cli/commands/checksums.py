"""``releaseforge checksums`` and ``releaseforge verify`` — the manifest on disk.

``checksums DIR`` hashes the expected artifacts found in DIR and writes
``SHA256SUMS.txt``; ``verify DIR`` is the ``sha256sum -c`` equivalent.
"""

from __future__ import annotations

from pathlib import Path

import typer

from releaseforge.cli.commands._shared import console, load_registry, resolve_version
from releaseforge.config import ForgeSettings
from releaseforge.core.checksums import ChecksumEngine, IncompleteArtifactSetError
from releaseforge.core.integrity import IntegrityVerifier, MismatchError
from releaseforge.models.artifacts import MANIFEST_FILENAME, Artifact, ChecksumManifest


def checksums_cmd(
    directory: Path = typer.Argument(
        ...,
        help="Directory holding the built artifacts.",
    ),
    version: str = typer.Option(
        None,
        "--version",
        "-V",
        help="Release version. Defaults to the configured version file.",
    ),
    version_file: Path = typer.Option(
        None,
        "--version-file",
        help="Read the version from this file.",
    ),
    platforms: list[str] = typer.Option(
        None,
        "--platform",
        "-p",
        help="Only include these platform keys (repeatable).",
    ),
    output: Path = typer.Option(
        None,
        "--output",
        "-o",
        help=f"Manifest path. Defaults to DIR/{MANIFEST_FILENAME}.",
    ),
) -> None:
    """Write a SHA-256 manifest covering every expected artifact in DIR."""
    settings = ForgeSettings()
    resolved = resolve_version(settings, version, version_file)
    registry = load_registry(settings, platforms)

    artifacts: list[Artifact] = []
    for spec in registry.all_specs():
        path = directory / registry.expected_name(spec, resolved)
        if path.is_file():
            artifacts.append(
                Artifact(
                    platform_key=spec.platform_key,
                    name=path.name,
                    content_type=spec.content_type,
                    data=path.read_bytes(),
                )
            )

    try:
        manifest = ChecksumEngine(registry.all_specs()).generate(artifacts)
    except IncompleteArtifactSetError as exc:
        console.print(f"[bold red]Missing artifacts in {directory}:[/bold red]")
        for key in exc.missing:
            console.print(f"  [red]- {registry.expected_name(registry.get(key), resolved)}[/red]")
        raise typer.Exit(code=1)

    target = output or directory / MANIFEST_FILENAME
    target.write_bytes(manifest.to_bytes())
    console.print(manifest.render(), end="", markup=False, highlight=False)
    console.print(f"[green]Wrote {target} ({len(manifest.entries)} entries)[/green]")


def verify_cmd(
    directory: Path = typer.Argument(
        ...,
        help="Directory holding the artifacts and the manifest.",
    ),
    manifest_path: Path = typer.Option(
        None,
        "--manifest",
        "-m",
        help=f"Manifest to check against. Defaults to DIR/{MANIFEST_FILENAME}.",
    ),
) -> None:
    """Recompute every digest listed in the manifest and compare."""
    path = manifest_path or directory / MANIFEST_FILENAME
    if not path.is_file():
        console.print(f"[bold red]Manifest not found:[/bold red] {path}")
        raise typer.Exit(code=1)

    try:
        manifest = ChecksumManifest.parse(path.read_text(encoding="utf-8"))
        verified = IntegrityVerifier().verify_directory(manifest, directory)
    except ValueError as exc:
        console.print(f"[bold red]Malformed manifest:[/bold red] {exc}")
        raise typer.Exit(code=1)
    except IncompleteArtifactSetError as exc:
        console.print(f"[bold red]Missing:[/bold red] {', '.join(exc.missing)}")
        raise typer.Exit(code=1)
    except MismatchError as exc:
        console.print(f"[bold red]{exc.artifact_name}: FAILED[/bold red]")
        raise typer.Exit(code=1)

    for name in verified:
        console.print(f"{name}: [green]OK[/green]")
