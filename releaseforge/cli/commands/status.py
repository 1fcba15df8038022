"""``releaseforge status RUN_ID`` — read a run back from the audit ledger."""

from __future__ import annotations

from pathlib import Path

import typer

from releaseforge.cli.commands._shared import console
from releaseforge.config import ForgeSettings
from releaseforge.core.run_ledger import LedgerIntegrityError, RunLedger
from releaseforge.monitor.renderer import ReleaseRenderer


def status_cmd(
    run_id: str = typer.Argument(
        None,
        help="The run to show. Defaults to the most recent run.",
    ),
    ledger_db: Path = typer.Option(
        None,
        "--ledger",
        "-l",
        help="Path to the ledger SQLite database.",
    ),
) -> None:
    """Print every recorded transition of a run and check its hash chain."""
    db_path = ledger_db or ForgeSettings().ledger_path
    if not db_path.exists():
        console.print(f"[bold red]Ledger not found:[/bold red] {db_path}")
        raise typer.Exit(code=1)

    ledger = RunLedger(db_path)
    if run_id is None:
        run_ids = ledger.get_all_run_ids()
        if not run_ids:
            console.print("[dim]No runs recorded.[/dim]")
            return
        run_id = run_ids[0]

    entries = ledger.get_run_entries(run_id)
    if not entries:
        console.print(f"[bold red]No ledger entries for run {run_id}[/bold red]")
        raise typer.Exit(code=1)

    renderer = ReleaseRenderer(console=console)
    console.print(renderer.render_ledger(run_id, entries))

    try:
        valid = ledger.verify_chain(run_id)
    except LedgerIntegrityError as exc:
        renderer.print_chain_verification(run_id, False)
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)
    renderer.print_chain_verification(run_id, valid)
