"""Main Typer application — imports and registers all CLI commands.

Entry point: ``releaseforge`` (configured via pyproject.toml scripts).
"""

from __future__ import annotations

import logging

import typer
from rich.logging import RichHandler

from releaseforge.cli.commands.checksums import checksums_cmd, verify_cmd
from releaseforge.cli.commands.demo import demo_cmd
from releaseforge.cli.commands.release import release_cmd
from releaseforge.cli.commands.specs import specs_cmd
from releaseforge.cli.commands.status import status_cmd
from releaseforge.config import ForgeSettings

app = typer.Typer(
    name="releaseforge",
    help="Releaseforge: parallel multi-platform builds, one verified release.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

# Register subcommands
app.command(name="release", help="Build every platform and publish the release.")(release_cmd)
app.command(name="specs", help="Show the expected artifact table.")(specs_cmd)
app.command(name="checksums", help="Write SHA256SUMS.txt for built artifacts.")(checksums_cmd)
app.command(name="verify", help="Check a directory against SHA256SUMS.txt.")(verify_cmd)
app.command(name="status", help="Show a run's ledger and chain validity.")(status_cmd)
app.command(name="demo", help="Run the pipeline with simulated builds.")(demo_cmd)


def configure_logging(level: str) -> None:
    """Route all ``releaseforge`` loggers through a Rich handler."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )


@app.callback()
def main_callback(
    log_level: str = typer.Option(
        None,
        "--log-level",
        help="Override RELEASEFORGE_LOG_LEVEL (DEBUG, INFO, WARNING, ...).",
    ),
) -> None:
    """Releaseforge: parallel multi-platform builds, one verified release."""
    configure_logging(log_level or ForgeSettings().log_level)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
