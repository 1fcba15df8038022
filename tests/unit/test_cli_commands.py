"""Unit tests for the CLI — command registration and end-to-end behavior.

Exercises every command through typer.testing.CliRunner against temp
directories, with simulated build tasks in place of the npm toolchain.
"""

from __future__ import annotations

from pathlib import Path

import pytest
from typer.testing import CliRunner

from releaseforge.builders.base import CallableBuildTask
from releaseforge.cli.app import app
from releaseforge.cli.commands import _shared
from releaseforge.core.artifact_registry import DEFAULT_ARTIFACT_SPECS
from releaseforge.models.builds import BuildRequest
from releaseforge.publish.backends import InMemoryReleaseBackend, UploadError

runner = CliRunner()


@pytest.fixture(autouse=True)
def _isolated(monkeypatch, tmp_path):
    """Run every command from a clean temp dir with a wide console."""
    monkeypatch.chdir(tmp_path)
    for var in ["RELEASEFORGE_GITHUB_TOKEN", "RELEASEFORGE_GITHUB_REPOSITORY", "RELEASEFORGE_ENVIRONMENT"]:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setattr(_shared.console, "width", 200)


@pytest.fixture
def fake_toolchain(monkeypatch):
    """Replace the npm-backed platform tasks with in-process builds."""

    def _build(request: BuildRequest) -> bytes:
        return f"{request.expected_name}\n".encode()

    def _tasks(**kwargs):
        return {s.platform_key: CallableBuildTask(s.platform_key, _build) for s in DEFAULT_ARTIFACT_SPECS}

    monkeypatch.setattr("releaseforge.core.pipeline.default_platform_tasks", _tasks)


def _write_artifacts(directory: Path, names: list[str]) -> None:
    directory.mkdir(parents=True, exist_ok=True)
    for name in names:
        (directory / name).write_bytes(f"contents of {name}".encode())


# ---------------------------------------------------------------------------
# Test: CLI help and registration
# ---------------------------------------------------------------------------


class TestCliApp:
    def test_no_args_shows_help(self):
        result = runner.invoke(app, [])
        # Typer's no_args_is_help may exit with 0 or 2 depending on version
        assert result.exit_code in (0, 2)
        assert "usage" in result.output.lower()

    def test_help_lists_commands(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ["release", "specs", "checksums", "verify", "status", "demo"]:
            assert command in result.output

    @pytest.mark.parametrize("command", ["release", "specs", "checksums", "verify", "status", "demo"])
    def test_command_help(self, command: str):
        assert runner.invoke(app, [command, "--help"]).exit_code == 0


# ---------------------------------------------------------------------------
# Test: specs
# ---------------------------------------------------------------------------


class TestSpecsCommand:
    def test_shows_expected_names(self):
        result = runner.invoke(app, ["specs", "--version", "1.2.3"])
        assert result.exit_code == 0
        assert "app-1.2.3.dmg" in result.output
        assert "app-1.2.3-x86_64.AppImage" in result.output

    def test_reads_version_file(self, tmp_path):
        (tmp_path / "package.json").write_text('{"version": "4.5.6"}')
        result = runner.invoke(app, ["specs", "-p", "mac"])
        assert result.exit_code == 0
        assert "app-4.5.6.dmg" in result.output

    def test_bad_version(self):
        result = runner.invoke(app, ["specs", "--version", "latest"])
        assert result.exit_code == 1

    def test_unknown_platform(self):
        result = runner.invoke(app, ["specs", "--version", "1.2.3", "-p", "solaris"])
        assert result.exit_code == 1


# ---------------------------------------------------------------------------
# Test: checksums / verify
# ---------------------------------------------------------------------------


class TestChecksumsAndVerify:
    def test_write_then_verify(self, tmp_path):
        out = tmp_path / "release"
        _write_artifacts(out, ["app-1.2.3.dmg", "app-1.2.3-amd64.deb"])

        result = runner.invoke(
            app, ["checksums", str(out), "--version", "1.2.3", "-p", "mac", "-p", "linux-deb"]
        )
        assert result.exit_code == 0, result.output
        lines = (out / "SHA256SUMS.txt").read_text().splitlines()
        assert [line.split("  ")[1] for line in lines] == ["app-1.2.3.dmg", "app-1.2.3-amd64.deb"]

        result = runner.invoke(app, ["verify", str(out)])
        assert result.exit_code == 0
        assert "app-1.2.3.dmg: OK" in result.output

    def test_checksums_missing_artifact(self, tmp_path):
        out = tmp_path / "release"
        _write_artifacts(out, ["app-1.2.3.dmg"])
        result = runner.invoke(
            app, ["checksums", str(out), "--version", "1.2.3", "-p", "mac", "-p", "linux-deb"]
        )
        assert result.exit_code == 1
        assert "app-1.2.3-amd64.deb" in result.output
        assert not (out / "SHA256SUMS.txt").exists()

    def test_verify_detects_corruption(self, tmp_path):
        out = tmp_path / "release"
        _write_artifacts(out, ["app-1.2.3.dmg"])
        runner.invoke(app, ["checksums", str(out), "--version", "1.2.3", "-p", "mac"])
        (out / "app-1.2.3.dmg").write_bytes(b"tampered")

        result = runner.invoke(app, ["verify", str(out)])
        assert result.exit_code == 1
        assert "FAILED" in result.output

    def test_verify_without_manifest(self, tmp_path):
        result = runner.invoke(app, ["verify", str(tmp_path)])
        assert result.exit_code == 1

    def test_verify_malformed_manifest(self, tmp_path):
        (tmp_path / "SHA256SUMS.txt").write_text("not a checksum line\n")
        result = runner.invoke(app, ["verify", str(tmp_path)])
        assert result.exit_code == 1
        assert "Malformed" in result.output


# ---------------------------------------------------------------------------
# Test: demo / status
# ---------------------------------------------------------------------------


class TestDemoAndStatus:
    def test_demo_publishes(self, tmp_path):
        result = runner.invoke(app, ["demo", "--delay", "0", "--work-dir", str(tmp_path / "demo")])
        assert result.exit_code == 0, result.output
        assert "Demo Complete" in result.output

    def test_demo_with_failure_publishes_nothing(self, tmp_path):
        result = runner.invoke(
            app, ["demo", "--delay", "0", "--fail", "mac", "--work-dir", str(tmp_path / "demo")]
        )
        assert result.exit_code == 1
        assert "not published" in result.output

    def test_demo_upload_error_exits_cleanly(self, tmp_path, monkeypatch):
        def _reject(self, release, name, content_type, data):
            raise UploadError(f"host rejected {name}")

        monkeypatch.setattr(InMemoryReleaseBackend, "upload_asset", _reject)
        result = runner.invoke(app, ["demo", "--delay", "0", "--work-dir", str(tmp_path / "demo")])
        assert result.exit_code == 1
        assert "Demo release failed" in result.output
        assert "host rejected" in result.output
        assert not isinstance(result.exception, UploadError)

    def test_demo_unknown_failing_platform(self, tmp_path):
        result = runner.invoke(app, ["demo", "--fail", "amiga", "--work-dir", str(tmp_path / "demo")])
        assert result.exit_code == 1

    def test_status_after_demo(self, tmp_path):
        work = tmp_path / "demo"
        runner.invoke(app, ["demo", "--delay", "0", "--work-dir", str(work)])
        result = runner.invoke(app, ["status", "--ledger", str(work / "ledger.db")])
        assert result.exit_code == 0
        assert "is valid" in result.output
        assert "release" in result.output

    def test_status_missing_ledger(self, tmp_path):
        result = runner.invoke(app, ["status", "run-x", "--ledger", str(tmp_path / "none.db")])
        assert result.exit_code == 1

    def test_status_unknown_run(self, tmp_path):
        work = tmp_path / "demo"
        runner.invoke(app, ["demo", "--delay", "0", "--work-dir", str(work)])
        result = runner.invoke(app, ["status", "rf-nope", "--ledger", str(work / "ledger.db")])
        assert result.exit_code == 1


# ---------------------------------------------------------------------------
# Test: release
# ---------------------------------------------------------------------------


class TestReleaseCommand:
    def test_dry_run_release(self, fake_toolchain):
        result = runner.invoke(
            app, ["release", "--dry-run", "--version", "1.2.3", "-p", "mac", "-p", "linux-deb"]
        )
        assert result.exit_code == 0, result.output
        assert "Release complete" in result.output
        assert "v1.2.3" in result.output

    def test_keep_draft(self, fake_toolchain):
        result = runner.invoke(
            app, ["release", "--dry-run", "--keep-draft", "--version", "1.2.3", "-p", "mac"]
        )
        assert result.exit_code == 0, result.output
        assert "left as draft" in result.output

    def test_github_release_requires_configuration(self, fake_toolchain):
        result = runner.invoke(app, ["release", "--version", "1.2.3"])
        assert result.exit_code == 1
        assert "Configuration error" in result.output

    def test_missing_version_file(self, fake_toolchain):
        result = runner.invoke(app, ["release", "--dry-run", "--version-file", "nope.json"])
        assert result.exit_code == 1
