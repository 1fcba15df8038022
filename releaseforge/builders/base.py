"""Build task protocol and the in-process task variant.

A build task takes a ``BuildRequest`` (version, platform key, expected
file name, output directory, opaque credentials) and produces exactly one
file, or raises ``BuildTaskError``. Tasks never touch the artifact store;
the coordinator deposits on their behalf.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from pathlib import Path
from typing import Protocol, runtime_checkable

from releaseforge.models.builds import BuildRequest


class BuildTaskError(RuntimeError):
    """Raised when one platform's packaging failed."""

    def __init__(self, platform_key: str, message: str) -> None:
        self.platform_key = platform_key
        super().__init__(f"[{platform_key}] {message}")


class BuildTimeoutError(BuildTaskError):
    """Raised when a task exceeds its per-task timeout."""


class BuildCancelledError(BuildTaskError):
    """Raised by a task that stopped because the run was cancelled."""


@runtime_checkable
class BuildTask(Protocol):
    """Protocol for platform build tasks.

    ``cancel_event`` is set when the run is cancelled or the task timed
    out; long-running tasks should poll it and raise
    ``BuildCancelledError``.
    """

    platform_key: str

    def build(self, request: BuildRequest, cancel_event: threading.Event) -> Path:
        """Produce the artifact and return its path."""
        ...


BuildFunction = Callable[[BuildRequest], "bytes | Path | None"]


class CallableBuildTask:
    """Wraps a Python callable as a build task.

    The callable may return the artifact bytes (written to
    ``output_dir/expected_name``), a path to a file it produced, or
    ``None`` for "no artifact", which fails the task.
    """

    def __init__(self, platform_key: str, fn: BuildFunction) -> None:
        self.platform_key = platform_key
        self._fn = fn

    def __repr__(self) -> str:
        return f"CallableBuildTask({self.platform_key!r})"

    def build(self, request: BuildRequest, cancel_event: threading.Event) -> Path:
        if cancel_event.is_set():
            raise BuildCancelledError(self.platform_key, "cancelled before start")
        produced = self._fn(request)
        if produced is None:
            raise BuildTaskError(self.platform_key, "build produced no artifact")
        if isinstance(produced, (bytes, bytearray)):
            request.output_dir.mkdir(parents=True, exist_ok=True)
            path = request.output_dir / request.expected_name
            path.write_bytes(bytes(produced))
            return path
        return Path(produced)
