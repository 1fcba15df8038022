"""Rich terminal renderer for release runs.

Turns ``RunResult``, ``PipelineReport`` and ledger entries into Rich
renderables, with color-coded build states.

Color scheme
------------
- green     : SUCCEEDED
- red       : FAILED
- yellow    : RUNNING
- dim       : PENDING
- magenta   : CANCELLED
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from releaseforge.models.builds import BuildState

if TYPE_CHECKING:
    from releaseforge.core.artifact_registry import ArtifactRegistry
    from releaseforge.core.pipeline import PipelineReport
    from releaseforge.models.artifacts import ChecksumManifest
    from releaseforge.models.builds import RunResult
    from releaseforge.models.ledger import LedgerEntry


# ---------------------------------------------------------------------------
# State -> Rich style mapping
# ---------------------------------------------------------------------------

_STATE_STYLES: dict[BuildState, str] = {
    BuildState.SUCCEEDED: "bold green",
    BuildState.FAILED: "bold red",
    BuildState.RUNNING: "bold yellow",
    BuildState.PENDING: "dim",
    BuildState.CANCELLED: "bold magenta",
}

_STATE_ICONS: dict[BuildState, str] = {
    BuildState.SUCCEEDED: "[green]SUCCEEDED[/green]",
    BuildState.FAILED: "[bold red]FAILED[/bold red]",
    BuildState.RUNNING: "[yellow]RUNNING[/yellow]",
    BuildState.PENDING: "[dim]PENDING[/dim]",
    BuildState.CANCELLED: "[magenta]CANCELLED[/magenta]",
}

_REPORT_BORDERS: dict[str, str] = {
    "published": "green",
    "build_failed": "red",
    "cancelled": "magenta",
}


class ReleaseRenderer:
    """Renders release pipeline state as Rich terminal output.

    Parameters
    ----------
    console:
        Rich Console instance.  A new one is created if not provided.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    # ------------------------------------------------------------------
    # Builds
    # ------------------------------------------------------------------

    def render_run_result(self, result: RunResult) -> Table:
        """One row per build task, in launch order."""
        table = Table(
            show_header=True,
            header_style="bold cyan",
            expand=True,
            show_lines=False,
        )
        table.add_column("Platform", min_width=20)
        table.add_column("State", min_width=12, justify="center")
        table.add_column("Artifact", min_width=20)
        table.add_column("Details", min_width=20)

        for record in result.records:
            style = _STATE_STYLES.get(record.state, "")
            artifact = record.artifact_path.name if record.artifact_path else "[dim]-[/dim]"
            details = f"[red]{record.error_detail}[/red]" if record.error_detail else "[dim]-[/dim]"
            if record.started_at and record.finished_at:
                elapsed = (record.finished_at - record.started_at).total_seconds()
                details += f" [dim]({elapsed:.1f}s)[/dim]"
            table.add_row(
                f"[{style}]{record.platform_key}[/{style}]",
                _STATE_ICONS.get(record.state, record.state.value),
                artifact,
                details,
            )
        return table

    # ------------------------------------------------------------------
    # Pipeline outcome
    # ------------------------------------------------------------------

    def render_report(self, report: PipelineReport) -> Panel:
        """The build table plus a summary footer for one pipeline run."""
        result = report.run_result
        summary_parts: list[str] = [
            f"[bold]Run:[/bold] {report.run_id}",
            f"[bold]Tag:[/bold] {report.tag}",
            f"[bold]Builds:[/bold] {len(result.succeeded)}/{len(result.records)}",
            f"[bold]Status:[/bold] {report.status.value}",
        ]
        if report.receipt is not None:
            summary_parts.append(f"[bold]Assets:[/bold] {report.receipt.asset_count}")
            if report.receipt.draft:
                summary_parts.append("[yellow]left as draft[/yellow]")

        parts = [self.render_run_result(result), Text("")]
        if report.manifest is not None:
            parts.append(self.render_manifest(report.manifest))
            parts.append(Text(""))
        parts.append(Text.from_markup("  |  ".join(summary_parts)))

        return Panel(
            Group(*parts),
            title=f"[bold]Release {report.tag}[/bold]",
            border_style=_REPORT_BORDERS.get(report.status.value, "blue"),
            padding=(1, 2),
        )

    def render_manifest(self, manifest: ChecksumManifest) -> Table:
        table = Table(show_header=True, header_style="bold cyan", expand=True)
        table.add_column("Artifact", min_width=20)
        table.add_column(manifest.algorithm.upper(), style="dim")
        for entry in manifest.entries:
            table.add_row(entry.artifact_name, entry.digest_hex)
        return table

    def render_specs(self, registry: ArtifactRegistry, version: str) -> Table:
        """The expected artifact table for *version*."""
        table = Table(
            title=f"Artifacts for {registry.product} {version}",
            show_header=True,
            header_style="bold cyan",
        )
        table.add_column("Platform key", style="cyan")
        table.add_column("Platform")
        table.add_column("Variant")
        table.add_column("Expected name", style="green")
        table.add_column("Content type", style="dim")
        for spec in registry.all_specs():
            table.add_row(
                spec.platform_key,
                spec.platform,
                spec.variant,
                registry.expected_name(spec, version),
                spec.content_type,
            )
        return table

    # ------------------------------------------------------------------
    # Ledger
    # ------------------------------------------------------------------

    def render_ledger(self, run_id: str, entries: list[LedgerEntry]) -> Table:
        table = Table(
            title=f"Ledger for {run_id}",
            show_header=True,
            header_style="bold cyan",
            expand=True,
        )
        table.add_column("Time", style="dim", width=10)
        table.add_column("Subject", style="cyan")
        table.add_column("Transition")
        table.add_column("Detail")
        table.add_column("Hash", style="dim", width=14)
        for entry in entries:
            table.add_row(
                entry.timestamp_utc.strftime("%H:%M:%S"),
                entry.subject,
                entry.state_transition,
                entry.detail or "[dim]-[/dim]",
                entry.entry_hash[:12],
            )
        return table

    # ------------------------------------------------------------------
    # Standalone print
    # ------------------------------------------------------------------

    def print_report(self, report: PipelineReport) -> None:
        self.console.print(self.render_report(report))

    def print_chain_verification(self, run_id: str, valid: bool) -> None:
        """Print a chain verification result."""
        if valid:
            self.console.print(
                f"[green]Hash chain for run {run_id} is valid.[/green]"
            )
        else:
            self.console.print(
                f"[bold red]Hash chain for run {run_id} is BROKEN![/bold red]"
            )
