"""``releaseforge demo`` — run the whole pipeline with simulated builds.

Every platform "build" is a short sleep that writes a synthetic payload;
publishing goes to an in-memory release host. ``--fail`` makes chosen
platforms fail so the no-partial-release behaviour can be observed.
"""

from __future__ import annotations

import random
import time
from pathlib import Path

import typer
from rich.panel import Panel

from releaseforge.builders.base import BuildTaskError, CallableBuildTask
from releaseforge.cli.commands._shared import console, load_registry
from releaseforge.config import ConfigError, ForgeSettings
from releaseforge.core.pipeline import ReleasePipeline
from releaseforge.core.run_ledger import RunLedger
from releaseforge.core.version_resolver import VersionResolver
from releaseforge.models.builds import BuildRequest
from releaseforge.monitor.renderer import ReleaseRenderer
from releaseforge.publish.backends import InMemoryReleaseBackend


def _demo_build(delay: float, failing: set[str]):
    def _build(request: BuildRequest) -> bytes:
        time.sleep(random.uniform(0, delay))
        if request.platform_key in failing:
            raise BuildTaskError(request.platform_key, "simulated packaging failure")
        return f"{request.expected_name} built by releaseforge demo\n".encode()

    return _build


def demo_cmd(
    version: str = typer.Option(
        "1.0.0",
        "--version",
        "-V",
        help="Version to release.",
    ),
    fail: list[str] = typer.Option(
        None,
        "--fail",
        "-f",
        help="Platform key whose build should fail (repeatable).",
    ),
    delay: float = typer.Option(
        0.5,
        "--delay",
        "-d",
        help="Maximum simulated build time per platform, in seconds.",
    ),
    work_dir: Path = typer.Option(
        Path(".releaseforge/demo"),
        "--work-dir",
        help="Directory for demo artifacts, build output and ledger.",
    ),
) -> None:
    """Run a complete release with simulated builds and an in-memory host."""
    settings = ForgeSettings()
    registry = load_registry(settings, None)
    failing = set(fail or [])
    unknown = sorted(failing - set(registry.platform_keys))
    if unknown:
        console.print(f"[bold red]Unknown platform:[/bold red] {', '.join(unknown)}")
        raise typer.Exit(code=1)

    build = _demo_build(delay, failing)
    tasks = {key: CallableBuildTask(key, build) for key in registry.platform_keys}
    backend = InMemoryReleaseBackend()
    ledger = RunLedger(work_dir / "ledger.db")

    console.print()
    console.print(
        Panel(
            "[bold]Releaseforge Demo[/bold]\n\n"
            f"Building {len(registry)} platforms in parallel with simulated tasks.\n"
            "Publishing goes to an in-memory release host.",
            border_style="cyan",
            padding=(1, 2),
        )
    )

    try:
        pipeline = ReleasePipeline(
            VersionResolver(version),
            registry,
            tasks,
            backend,
            store_root=work_dir / "artifacts",
            output_root=work_dir / "build",
            ledger=ledger,
            release_body=settings.release_body,
        )
        report = pipeline.run()
    except ConfigError as exc:
        console.print(f"[bold red]Configuration error:[/bold red] {exc}")
        raise typer.Exit(code=1)
    except Exception as exc:
        console.print(f"[bold red]Demo release failed:[/bold red] {exc}")
        raise typer.Exit(code=1)

    renderer = ReleaseRenderer(console=console)
    console.print()
    renderer.print_report(report)
    renderer.print_chain_verification(report.run_id, ledger.verify_chain(report.run_id))

    release = backend.find_release(report.tag)
    console.print()
    console.print(
        Panel(
            "\n".join([
                "[bold green]Demo Complete![/bold green]" if report.ok
                else "[bold red]Demo release not published[/bold red]",
                "",
                f"[bold]Run ID:[/bold]    {report.run_id}",
                f"[bold]Builds:[/bold]    {len(report.run_result.succeeded)}/{len(registry)} succeeded",
                f"[bold]Release:[/bold]   {'none' if release is None else release.tag}",
                f"[bold]Assets:[/bold]    {report.receipt.asset_count if report.receipt else 0}",
            ]),
            title="[bold]Demo Summary[/bold]",
            border_style="green" if report.ok else "red",
            padding=(1, 2),
        )
    )
    if not report.ok:
        raise typer.Exit(code=1)
