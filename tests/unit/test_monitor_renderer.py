"""Tests for ReleaseRenderer — Rich output for runs, reports and ledgers."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from releaseforge.core.pipeline import PipelineReport, PipelineStatus
from releaseforge.models.artifacts import ChecksumManifest, ManifestEntry
from releaseforge.models.builds import BuildState, BuildTaskRecord, RunResult
from releaseforge.models.release import PublishReceipt
from releaseforge.monitor.renderer import ReleaseRenderer


@pytest.fixture
def console() -> Console:
    return Console(record=True, width=200, force_terminal=False)


@pytest.fixture
def renderer(console: Console) -> ReleaseRenderer:
    return ReleaseRenderer(console=console)


@pytest.fixture
def result() -> RunResult:
    now = datetime.now(timezone.utc)
    return RunResult(
        succeeded=frozenset({"win"}),
        failed=frozenset({"mac"}),
        records=(
            BuildTaskRecord(
                platform_key="win",
                state=BuildState.SUCCEEDED,
                artifact_path=Path("build/win/app-1.2.3.exe"),
                started_at=now,
                finished_at=now,
            ),
            BuildTaskRecord(
                platform_key="mac",
                state=BuildState.FAILED,
                error_detail="[mac] notarization rejected",
            ),
        ),
    )


class TestReleaseRenderer:
    def test_run_result_table(self, renderer, console, result):
        table = renderer.render_run_result(result)
        assert isinstance(table, Table)
        assert table.row_count == 2
        console.print(table)
        text = console.export_text()
        assert "app-1.2.3.exe" in text
        assert "FAILED" in text
        assert "notarization rejected" in text

    def test_report_panel(self, renderer, console, result):
        manifest = ChecksumManifest(
            entries=(ManifestEntry(artifact_name="app-1.2.3.exe", digest_hex="ab" * 32),)
        )
        report = PipelineReport(
            run_id="rf-1",
            version="1.2.3",
            tag="v1.2.3",
            status=PipelineStatus.PUBLISHED,
            run_result=result,
            manifest=manifest,
            receipt=PublishReceipt(
                tag="v1.2.3", release_id="1", draft=True, asset_names=("app-1.2.3.exe", "SHA256SUMS.txt")
            ),
        )
        panel = renderer.render_report(report)
        assert isinstance(panel, Panel)
        renderer.print_report(report)
        text = console.export_text()
        assert "Release v1.2.3" in text
        assert "ab" * 32 in text
        assert "left as draft" in text

    def test_chain_verification(self, renderer, console):
        renderer.print_chain_verification("rf-1", True)
        renderer.print_chain_verification("rf-2", False)
        text = console.export_text()
        assert "rf-1 is valid" in text
        assert "rf-2 is BROKEN" in text
