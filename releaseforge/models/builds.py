"""Build task state models — one record per platform, plus the barrier result."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, SecretStr


class BuildState(str, Enum):
    """Lifecycle of a single build task."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_BUILD_STATES: frozenset[BuildState] = frozenset(
    {BuildState.SUCCEEDED, BuildState.FAILED, BuildState.CANCELLED}
)

# No retry edge: a failed task stays failed for the rest of the run.
VALID_BUILD_TRANSITIONS: dict[BuildState, set[BuildState]] = {
    BuildState.PENDING: {BuildState.RUNNING, BuildState.CANCELLED},
    BuildState.RUNNING: {
        BuildState.SUCCEEDED,
        BuildState.FAILED,
        BuildState.CANCELLED,
    },
    BuildState.SUCCEEDED: set(),
    BuildState.FAILED: set(),
    BuildState.CANCELLED: set(),
}


class BuildRequest(BaseModel):
    """Everything a build task receives from the coordinator.

    Credentials are opaque secrets; they are passed through to the
    packaging toolchain and never logged.
    """

    model_config = ConfigDict(frozen=True)

    version: str
    platform_key: str
    product: str = "app"
    expected_name: str
    output_dir: Path
    credentials: dict[str, SecretStr] = Field(default_factory=dict)


class BuildTaskRecord(BaseModel):
    """Point-in-time state of one build task."""

    model_config = ConfigDict(frozen=True)

    platform_key: str
    state: BuildState = BuildState.PENDING
    artifact_path: Path | None = None
    error_detail: str | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_BUILD_STATES


class RunResult(BaseModel):
    """What the barrier reports once every task is terminal."""

    model_config = ConfigDict(frozen=True)

    succeeded: frozenset[str] = frozenset()
    failed: frozenset[str] = frozenset()
    cancelled: frozenset[str] = frozenset()
    records: tuple[BuildTaskRecord, ...] = ()

    @property
    def ok(self) -> bool:
        """True iff every task succeeded."""
        return (
            not self.failed
            and not self.cancelled
            and len(self.succeeded) == len(self.records)
        )

    def record_for(self, platform_key: str) -> BuildTaskRecord | None:
        for record in self.records:
            if record.platform_key == platform_key:
                return record
        return None
