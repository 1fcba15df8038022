"""``releaseforge release`` — build every platform and publish one release.

Resolves the version, fans out one packaging task per platform, waits for
all of them, writes and verifies ``SHA256SUMS.txt``, then creates the
draft release, uploads every artifact plus the manifest, and finalizes.
Any build failure means nothing is published.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.panel import Panel

from releaseforge.cli.commands._shared import console
from releaseforge.config import ConfigError, ForgeSettings
from releaseforge.core.artifact_registry import UnknownPlatformError
from releaseforge.core.pipeline import ReleasePipeline
from releaseforge.monitor.renderer import ReleaseRenderer


def release_cmd(
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
        help="Only build these platform keys (repeatable).",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Publish to an in-memory release host instead of GitHub.",
    ),
    keep_draft: bool = typer.Option(
        False,
        "--keep-draft",
        help="Leave the finished release as a draft.",
    ),
    resume: bool = typer.Option(
        False,
        "--resume",
        help="Reattach to an existing draft for the tag instead of failing.",
    ),
) -> None:
    """Build every platform in parallel and publish the release.

    Exits non-zero if any build fails, if verification fails, or if the
    release host rejects the publish.
    """
    settings = ForgeSettings()
    if keep_draft:
        settings = settings.model_copy(update={"keep_draft": True})

    try:
        pipeline = ReleasePipeline.from_settings(
            settings,
            version=version,
            version_file=version_file,
            platforms=platforms or None,
            dry_run=dry_run,
            resume=resume,
        )
        report = pipeline.run()
    except (ConfigError, UnknownPlatformError) as exc:
        console.print(f"[bold red]Configuration error:[/bold red] {exc}")
        raise typer.Exit(code=1)
    except Exception as exc:
        console.print(f"[bold red]Release failed:[/bold red] {exc}")
        raise typer.Exit(code=1)

    renderer = ReleaseRenderer(console=console)
    console.print()
    renderer.print_report(report)

    if not report.ok:
        console.print(
            f"[bold red]Release {report.tag} not published: {report.status.value}[/bold red]"
        )
        raise typer.Exit(code=1)

    if pipeline.ledger is not None:
        renderer.print_chain_verification(report.run_id, pipeline.ledger.verify_chain(report.run_id))

    where = "in-memory host (dry run)" if dry_run else settings.github_repository
    console.print(
        Panel(
            "\n".join([
                "[bold green]Release complete![/bold green]",
                "",
                f"[bold]Tag:[/bold]     {report.tag}",
                f"[bold]Assets:[/bold]  {report.receipt.asset_count}",
                f"[bold]Host:[/bold]    {where}",
                f"[bold]Run ID:[/bold]  {report.run_id}",
            ]),
            title="[bold]Release[/bold]",
            border_style="green",
            padding=(1, 2),
        )
    )
