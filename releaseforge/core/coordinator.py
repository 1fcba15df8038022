"""Build coordinator — fan out one task per platform, then barrier.

Tasks run in a thread pool with no ordering between them. A failing task
never aborts its siblings; the barrier (``wait()``) returns only once every
task is terminal, and only then is the artifact store sealed and handed
to the aggregation stage.

Per-task timeouts and run cancellation both work by setting the task's
cancel event. A timeout records FAILED immediately and the barrier stops
waiting for that worker; a cancelled task is recorded when its worker
returns, so ``wait()`` blocks until every cancelled worker is done.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Mapping, Sequence
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import SecretStr

from releaseforge.builders.base import (
    BuildCancelledError,
    BuildTask,
    BuildTaskError,
    BuildTimeoutError,
)
from releaseforge.config import ConfigError
from releaseforge.core.artifact_registry import ArtifactRegistry
from releaseforge.core.artifact_store import ArtifactStore
from releaseforge.core.run_ledger import RunLedger
from releaseforge.core.transitions import check_transition
from releaseforge.models.artifacts import Artifact, ArtifactSpec
from releaseforge.models.builds import (
    VALID_BUILD_TRANSITIONS,
    BuildRequest,
    BuildState,
    BuildTaskRecord,
    RunResult,
)

logger = logging.getLogger(__name__)


class BuildCoordinator:
    """Launches every build task and exposes the completion barrier.

    Parameters
    ----------
    tasks:
        Build task per platform key.
    store:
        Artifact store the coordinator deposits into.
    registry:
        Artifact table, used for expected names.
    output_root:
        Each task gets ``output_root/<platform_key>`` as its own output dir.
    max_workers:
        Thread pool size; defaults to one worker per task.
    task_timeout:
        Seconds a task may run before it is failed with ``BuildTimeoutError``.
    credentials:
        Opaque signing secrets, passed to every task.
    ledger, run_id:
        Optional audit ledger; every transition is appended to it.
    """

    def __init__(
        self,
        tasks: Mapping[str, BuildTask],
        store: ArtifactStore,
        registry: ArtifactRegistry,
        *,
        output_root: Path,
        max_workers: int | None = None,
        task_timeout: float | None = None,
        credentials: Mapping[str, SecretStr] | None = None,
        ledger: RunLedger | None = None,
        run_id: str = "",
        poll_interval: float = 0.2,
    ) -> None:
        self._tasks = dict(tasks)
        self._store = store
        self._registry = registry
        self._output_root = Path(output_root)
        self._max_workers = max_workers
        self._task_timeout = task_timeout
        self._credentials = dict(credentials or {})
        self._ledger = ledger
        self._run_id = run_id
        self._poll_interval = poll_interval

        self._lock = threading.Lock()
        self._records: dict[str, BuildTaskRecord] = {}
        self._cancel_events: dict[str, threading.Event] = {}
        self._started_monotonic: dict[str, float] = {}
        self._futures: dict[Future, str] = {}
        self._pool: ThreadPoolExecutor | None = None
        self._version = ""
        self._cancelled = False
        self._result: RunResult | None = None

    # ------------------------------------------------------------------
    # Run lifecycle
    # ------------------------------------------------------------------

    def run(self, version: str, specs: Sequence[ArtifactSpec]) -> RunResult:
        """Launch every task and block until all are terminal."""
        self.start(version, specs)
        return self.wait()

    def start(self, version: str, specs: Sequence[ArtifactSpec]) -> None:
        """Launch one task per spec without waiting.

        Raises
        ------
        ConfigError
            If any spec has no registered build task, or two specs render
            to the same file name for *version* (nothing is launched).
        """
        if self._pool is not None:
            raise RuntimeError("BuildCoordinator.start() called twice")
        specs = tuple(specs)
        if not specs:
            raise ConfigError("No artifact specs to build")
        missing = [s.platform_key for s in specs if s.platform_key not in self._tasks]
        if missing:
            raise ConfigError(f"No build task registered for: {', '.join(missing)}")
        collisions = self._registry.colliding_names(version, specs)
        if collisions:
            raise ConfigError(
                f"Version {version} gives several artifacts the same name: "
                f"{', '.join(collisions)}"
            )

        self._version = version
        for spec in specs:
            self._records[spec.platform_key] = BuildTaskRecord(
                platform_key=spec.platform_key
            )
            self._cancel_events[spec.platform_key] = threading.Event()

        self._pool = ThreadPoolExecutor(
            max_workers=self._max_workers or len(specs),
            thread_name_prefix="releaseforge-build",
        )
        logger.info(
            "Launching %d build tasks for version %s: %s",
            len(specs),
            version,
            ", ".join(s.platform_key for s in specs),
        )
        for spec in specs:
            future = self._pool.submit(self._execute, spec, version)
            self._futures[future] = spec.platform_key

    def wait(self) -> RunResult:
        """The barrier: block until every task is terminal, then seal the store."""
        if self._pool is None:
            raise RuntimeError("BuildCoordinator.wait() called before start()")
        if self._result is not None:
            return self._result

        pending = self._unsettled({f for f in self._futures if not f.done()})
        while pending:
            _, pending = wait(
                pending, timeout=self._poll_interval, return_when=FIRST_COMPLETED
            )
            self._enforce_timeouts()
            pending = self._unsettled(pending)

        abandoned = [key for future, key in self._futures.items() if not future.done()]
        for future, key in self._futures.items():
            if not future.done() or future.cancelled():
                continue
            exc = future.exception()
            if exc is not None:
                # Bookkeeping itself blew up; still report the task as failed.
                self._finish(key, BuildState.FAILED, f"coordinator error: {exc}")

        if abandoned:
            logger.warning(
                "Not waiting for timed-out builds still running: %s", ", ".join(abandoned)
            )
            self._pool.shutdown(wait=False, cancel_futures=True)
        else:
            self._pool.shutdown(wait=True)
        self._store.seal()

        with self._lock:
            records = tuple(self._records[key] for key in self._records)
        self._result = RunResult(
            succeeded=frozenset(r.platform_key for r in records if r.state == BuildState.SUCCEEDED),
            failed=frozenset(r.platform_key for r in records if r.state == BuildState.FAILED),
            cancelled=frozenset(r.platform_key for r in records if r.state == BuildState.CANCELLED),
            records=records,
        )
        logger.info(
            "Build barrier open: %d succeeded, %d failed, %d cancelled",
            len(self._result.succeeded),
            len(self._result.failed),
            len(self._result.cancelled),
        )
        return self._result

    def cancel(self) -> None:
        """Signal every task to stop.

        Queued tasks become CANCELLED immediately; running ones are asked
        to stop and are recorded when they return. Call ``wait()`` after.
        """
        with self._lock:
            self._cancelled = True
            for event in self._cancel_events.values():
                event.set()
        for future, key in self._futures.items():
            if future.cancel():
                self._finish(key, BuildState.CANCELLED, "cancelled before start")
        logger.warning("Build run cancelled")

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def snapshot(self) -> list[BuildTaskRecord]:
        """Current records, in launch order."""
        with self._lock:
            return list(self._records.values())

    # ------------------------------------------------------------------
    # Worker
    # ------------------------------------------------------------------

    def _execute(self, spec: ArtifactSpec, version: str) -> None:
        key = spec.platform_key
        event = self._cancel_events[key]

        with self._lock:
            if event.is_set():
                self._transition(key, BuildState.CANCELLED, error_detail="cancelled before start")
                return
            self._started_monotonic[key] = time.monotonic()
            self._transition(key, BuildState.RUNNING, started_at=datetime.now(timezone.utc))

        request = BuildRequest(
            version=version,
            platform_key=key,
            product=self._registry.product,
            expected_name=self._registry.expected_name(spec, version),
            output_dir=self._output_root / key,
            credentials=self._credentials,
        )

        try:
            path = self._tasks[key].build(request, event)
            artifact = self._load_artifact(spec, request, Path(path))
        except BuildCancelledError as exc:
            self._finish(key, BuildState.CANCELLED, str(exc))
            return
        except Exception as exc:
            logger.error("[%s] build failed: %s", key, exc)
            self._finish(key, BuildState.FAILED, str(exc))
            return

        with self._lock:
            record = self._records[key]
            if record.is_terminal:
                logger.warning(
                    "[%s] discarding result that arrived after the task was %s",
                    key,
                    record.state.value,
                )
                return
            if self._cancelled:
                self._transition(
                    key, BuildState.CANCELLED, error_detail="result discarded, run cancelled"
                )
                return
            try:
                self._store.put(key, artifact)
            except Exception as exc:
                self._transition(key, BuildState.FAILED, error_detail=f"deposit failed: {exc}")
                return
            self._transition(key, BuildState.SUCCEEDED, artifact_path=path)

    def _load_artifact(
        self, spec: ArtifactSpec, request: BuildRequest, path: Path
    ) -> Artifact:
        if path.name != request.expected_name:
            raise BuildTaskError(
                spec.platform_key,
                f"produced {path.name!r}, expected {request.expected_name!r}",
            )
        if not path.is_file():
            raise BuildTaskError(spec.platform_key, f"artifact {path} does not exist")
        return Artifact(
            platform_key=spec.platform_key,
            name=request.expected_name,
            content_type=spec.content_type,
            data=path.read_bytes(),
        )

    # ------------------------------------------------------------------
    # State bookkeeping
    # ------------------------------------------------------------------

    def _unsettled(self, futures: set[Future]) -> set[Future]:
        """Drop futures whose task already has a terminal record.

        A timed-out task is FAILED as soon as the timeout fires; its worker
        may keep running, but its late result is discarded in ``_execute``.
        """
        with self._lock:
            return {f for f in futures if not self._records[self._futures[f]].is_terminal}

    def _enforce_timeouts(self) -> None:
        if self._task_timeout is None:
            return
        now = time.monotonic()
        with self._lock:
            for key, record in self._records.items():
                if record.state != BuildState.RUNNING:
                    continue
                elapsed = now - self._started_monotonic.get(key, now)
                if elapsed > self._task_timeout:
                    error = BuildTimeoutError(
                        key, f"exceeded timeout of {self._task_timeout:g}s"
                    )
                    logger.error("%s", error)
                    self._transition(key, BuildState.FAILED, error_detail=str(error))
                    self._cancel_events[key].set()

    def _finish(self, key: str, state: BuildState, detail: str) -> None:
        with self._lock:
            if self._records[key].is_terminal:
                return
            self._transition(key, state, error_detail=detail)

    def _transition(self, key: str, target: BuildState, **updates: Any) -> None:
        """Apply a validated transition. Caller holds ``self._lock``."""
        record = self._records[key]
        check_transition(VALID_BUILD_TRANSITIONS, key, record.state, target)
        if target in (BuildState.SUCCEEDED, BuildState.FAILED, BuildState.CANCELLED):
            updates.setdefault("finished_at", datetime.now(timezone.utc))
        self._records[key] = record.model_copy(update={"state": target, **updates})

        log = logger.info if target != BuildState.FAILED else logger.error
        log("[%s] %s -> %s", key, record.state.value, target.value)

        if self._ledger is not None:
            self._ledger.record(
                self._run_id,
                key,
                record.state.value,
                target.value,
                version=self._version,
                detail=updates.get("error_detail") or "",
            )
