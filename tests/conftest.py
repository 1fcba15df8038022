"""Shared test fixtures for Releaseforge."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from releaseforge.builders.base import BuildTaskError, CallableBuildTask
from releaseforge.core.artifact_registry import ArtifactRegistry
from releaseforge.core.artifact_store import ArtifactStore
from releaseforge.core.run_ledger import RunLedger
from releaseforge.models.artifacts import ArtifactSpec
from releaseforge.models.builds import BuildRequest
from releaseforge.publish.backends import InMemoryReleaseBackend

# The three-platform table used throughout: Windows installer, macOS disk
# image, Debian package.
THREE_SPECS: tuple[ArtifactSpec, ...] = (
    ArtifactSpec(
        platform_key="win",
        platform="windows",
        variant="x64",
        filename_template="{product}-{version}.exe",
        content_type="application/x-msdownload",
    ),
    ArtifactSpec(
        platform_key="mac",
        platform="macos",
        variant="dmg",
        filename_template="{product}-{version}.dmg",
    ),
    ArtifactSpec(
        platform_key="linux",
        platform="linux",
        variant="deb",
        filename_template="{product}-{version}-amd64.deb",
    ),
)


@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test artifacts."""
    return tmp_path


@pytest.fixture
def registry() -> ArtifactRegistry:
    """Provide the three-platform registry with product name ``app``."""
    return ArtifactRegistry(THREE_SPECS, product="app")


@pytest.fixture
def store(tmp_dir: Path, registry: ArtifactRegistry) -> ArtifactStore:
    """Provide a fresh ArtifactStore in a temp directory."""
    return ArtifactStore(tmp_dir / "artifacts", platform_order=registry.platform_keys)


@pytest.fixture
def ledger(tmp_dir: Path) -> RunLedger:
    """Provide a fresh RunLedger backed by a temp SQLite database."""
    return RunLedger(tmp_dir / "test_ledger.db")


@pytest.fixture
def backend() -> InMemoryReleaseBackend:
    """Provide an empty in-memory release host."""
    return InMemoryReleaseBackend()


@pytest.fixture
def run_id() -> str:
    """Provide a deterministic test run ID."""
    return "rf-test-run-001"


# ---------------------------------------------------------------------------
# Build task factories
# ---------------------------------------------------------------------------


def payload_for(request: BuildRequest) -> bytes:
    return f"payload of {request.expected_name}".encode()


@pytest.fixture
def make_tasks() -> Callable[..., dict[str, CallableBuildTask]]:
    """Factory fixture: one succeeding CallableBuildTask per key.

    Keys listed in ``failing`` raise ``BuildTaskError`` instead.
    """

    def _factory(
        keys: list[str],
        *,
        failing: set[str] | frozenset[str] = frozenset(),
    ) -> dict[str, CallableBuildTask]:
        def _build(request: BuildRequest) -> bytes:
            if request.platform_key in failing:
                raise BuildTaskError(request.platform_key, "simulated failure")
            return payload_for(request)

        return {key: CallableBuildTask(key, _build) for key in keys}

    return _factory
