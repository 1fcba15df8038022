"""Release pipeline — the end-to-end orchestrator.

    resolve version -> fan out builds -> barrier -> checksums -> verify
        -> draft release -> upload assets + manifest -> finalize

All run state travels in an explicit ``RunContext``. Build failures are
collected and reported; anything that goes wrong at or after the barrier
aborts the remaining steps by raising.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, SecretStr

from releaseforge.builders.base import BuildTask
from releaseforge.builders.platforms import default_platform_tasks
from releaseforge.config import ConfigError, ForgeSettings, enforce_production_constraints
from releaseforge.core.artifact_registry import ArtifactRegistry
from releaseforge.core.artifact_store import ArtifactStore
from releaseforge.core.checksums import ChecksumEngine
from releaseforge.core.coordinator import BuildCoordinator
from releaseforge.core.integrity import IntegrityVerifier
from releaseforge.core.run_ledger import RunLedger
from releaseforge.core.version_resolver import VersionResolver
from releaseforge.models.artifacts import (
    MANIFEST_CONTENT_TYPE,
    MANIFEST_FILENAME,
    Artifact,
    ArtifactSpec,
    ChecksumManifest,
)
from releaseforge.models.builds import RunResult
from releaseforge.models.ledger import PIPELINE_SUBJECT
from releaseforge.models.release import PublishReceipt
from releaseforge.publish.backends import (
    GitHubReleaseBackend,
    InMemoryReleaseBackend,
    ReleaseBackend,
)
from releaseforge.publish.publisher import (
    ReleaseNotFoundError,
    ReleasePublisher,
    release_tag,
)

logger = logging.getLogger(__name__)


CREDENTIAL_FIELDS: tuple[str, ...] = (
    "win_cert",
    "win_cert_pass",
    "macos_cert",
    "macos_cert_pass",
    "apple_id",
    "apple_id_pass",
)


def _github_backend(settings: ForgeSettings) -> GitHubReleaseBackend:
    if not settings.github_repository:
        raise ConfigError("RELEASEFORGE_GITHUB_REPOSITORY is not set")
    if settings.github_token is None or not settings.github_token.get_secret_value():
        raise ConfigError("RELEASEFORGE_GITHUB_TOKEN is not set")
    return GitHubReleaseBackend(
        settings.github_repository,
        settings.github_token.get_secret_value(),
        api_url=settings.github_api_url,
        timeout=settings.http_timeout_seconds,
    )


def new_run_id() -> str:
    ts = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    return f"rf-{ts}-{uuid.uuid4().hex[:6]}"


class RunContext(BaseModel):
    """Everything one run shares: id, version, artifact table, store."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    run_id: str
    version: str
    registry: ArtifactRegistry
    store: ArtifactStore

    @property
    def specs(self) -> tuple[ArtifactSpec, ...]:
        return self.registry.all_specs()

    @property
    def tag(self) -> str:
        return release_tag(self.version)

    def expected_names(self) -> list[str]:
        return self.registry.expected_names(self.version)


class PipelineStatus(str, Enum):
    PUBLISHED = "published"
    BUILD_FAILED = "build_failed"
    CANCELLED = "cancelled"


class PipelineReport(BaseModel):
    """Outcome of one pipeline run."""

    model_config = ConfigDict(frozen=True)

    run_id: str
    version: str
    tag: str
    status: PipelineStatus
    run_result: RunResult
    manifest: ChecksumManifest | None = None
    receipt: PublishReceipt | None = None

    @property
    def ok(self) -> bool:
        return self.status == PipelineStatus.PUBLISHED


class ReleasePipeline:
    """Wires resolver, coordinator, checksum engine, verifier and publisher.

    Parameters
    ----------
    resolver:
        Version source; resolved exactly once per ``run()``.
    registry:
        Artifact table.
    tasks:
        Build task per platform key.
    backend:
        Release host.
    store_root, output_root:
        Per-run subdirectories are created under these.
    undraft:
        Publish the release on finalize; ``False`` leaves it a draft.
    resume:
        Reattach to an existing draft for the tag instead of failing.
    """

    def __init__(
        self,
        resolver: VersionResolver,
        registry: ArtifactRegistry,
        tasks: Mapping[str, BuildTask],
        backend: ReleaseBackend,
        *,
        store_root: Path,
        output_root: Path,
        ledger: RunLedger | None = None,
        max_workers: int | None = None,
        task_timeout: float | None = None,
        credentials: Mapping[str, SecretStr] | None = None,
        release_body: str = "",
        undraft: bool = True,
        resume: bool = False,
        run_id: str | None = None,
    ) -> None:
        self.resolver = resolver
        self.registry = registry
        self.tasks = dict(tasks)
        self.backend = backend
        self.store_root = Path(store_root)
        self.output_root = Path(output_root)
        self.ledger = ledger
        self.max_workers = max_workers
        self.task_timeout = task_timeout
        self.credentials = dict(credentials or {})
        self.release_body = release_body
        self.undraft = undraft
        self.resume = resume
        self.run_id = run_id or new_run_id()
        self.verifier = IntegrityVerifier()
        self.coordinator: BuildCoordinator | None = None

    @classmethod
    def from_settings(
        cls,
        settings: ForgeSettings,
        *,
        version: str | None = None,
        version_file: Path | None = None,
        platforms: Sequence[str] | None = None,
        tasks: Mapping[str, BuildTask] | None = None,
        backend: ReleaseBackend | None = None,
        dry_run: bool = False,
        resume: bool = False,
    ) -> ReleasePipeline:
        """Assemble a pipeline from ``ForgeSettings``.

        ``dry_run`` swaps the GitHub backend for an in-memory one.
        """
        enforce_production_constraints(settings)

        registry = ArtifactRegistry(product=settings.product_name)
        if platforms:
            registry = registry.subset(platforms)

        if tasks is None:
            available = default_platform_tasks(cwd=settings.project_dir)
            tasks = {k: available[k] for k in registry.platform_keys if k in available}

        if backend is None:
            backend = InMemoryReleaseBackend() if dry_run else _github_backend(settings)

        credentials = {
            name: getattr(settings, name)
            for name in CREDENTIAL_FIELDS
            if getattr(settings, name) is not None
        }

        return cls(
            VersionResolver(version, source=version_file or settings.version_file),
            registry,
            tasks,
            backend,
            store_root=settings.artifact_store_path,
            output_root=settings.build_output_dir,
            ledger=RunLedger(settings.ledger_path),
            max_workers=settings.max_workers,
            task_timeout=settings.task_timeout_seconds,
            credentials=credentials,
            release_body=settings.release_body,
            undraft=not settings.keep_draft,
            resume=resume,
        )

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def new_context(self, version: str) -> RunContext:
        store = ArtifactStore(
            self.store_root / self.run_id,
            platform_order=self.registry.platform_keys,
        )
        return RunContext(
            run_id=self.run_id,
            version=version,
            registry=self.registry,
            store=store,
        )

    def run(self) -> PipelineReport:
        """Execute the whole pipeline.

        Returns a report with status ``published``, ``build_failed`` or
        ``cancelled``. ``ConfigError`` is raised before any build starts;
        checksum, verification and publish errors propagate.
        """
        version = self.resolver.resolve()
        context = self.new_context(version)
        logger.info("Run %s: releasing %s", context.run_id, context.tag)

        self.coordinator = BuildCoordinator(
            self.tasks,
            context.store,
            context.registry,
            output_root=self.output_root / context.run_id,
            max_workers=self.max_workers,
            task_timeout=self.task_timeout,
            credentials=self.credentials,
            ledger=self.ledger,
            run_id=context.run_id,
        )
        self.coordinator.start(context.version, context.specs)
        self._record("pending", "running", version)
        try:
            result = self.coordinator.wait()
        except KeyboardInterrupt:
            logger.warning("Interrupted; cancelling in-flight builds")
            self.coordinator.cancel()
            result = self.coordinator.wait()

        if self.coordinator.cancelled:
            self._record("running", PipelineStatus.CANCELLED.value, version)
            return self._report(context, PipelineStatus.CANCELLED, result)
        if not result.ok:
            logger.error(
                "Builds failed for %s; nothing will be published",
                ", ".join(sorted(result.failed | result.cancelled)),
            )
            self._record(
                "running",
                PipelineStatus.BUILD_FAILED.value,
                version,
                detail=", ".join(sorted(result.failed | result.cancelled)),
            )
            return self._report(context, PipelineStatus.BUILD_FAILED, result)

        try:
            manifest = ChecksumEngine(context.specs).generate(context.store.all_deposited())
            # Re-read from disk: catches corruption between generation and publish.
            verified = context.store.all_deposited()
            self.verifier.verify(manifest, verified)
            receipt = self.publish(context, manifest, verified)
        except Exception as exc:
            self._record("running", "failed", version, detail=str(exc))
            raise

        self._record("running", PipelineStatus.PUBLISHED.value, version, detail=receipt.tag)
        return self._report(
            context, PipelineStatus.PUBLISHED, result, manifest=manifest, receipt=receipt
        )

    def publish(
        self,
        context: RunContext,
        manifest: ChecksumManifest,
        artifacts: list[Artifact],
    ) -> PublishReceipt:
        """Create (or resume) the draft, upload everything, finalize."""
        publisher = ReleasePublisher(self.backend, ledger=self.ledger, run_id=context.run_id)
        if self.resume:
            try:
                handle = publisher.resume_draft(context.tag)
            except ReleaseNotFoundError:
                handle = publisher.create_draft(context.tag, body=self.release_body)
        else:
            handle = publisher.create_draft(context.tag, body=self.release_body)

        by_key = {a.platform_key: a for a in artifacts}
        for spec in context.specs:
            publisher.upload_artifact(handle, by_key[spec.platform_key])
        publisher.upload_asset(
            handle, MANIFEST_FILENAME, MANIFEST_CONTENT_TYPE, manifest.to_bytes()
        )
        return publisher.finalize(
            handle,
            context.expected_names() + [MANIFEST_FILENAME],
            undraft=self.undraft,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _report(
        self,
        context: RunContext,
        status: PipelineStatus,
        result: RunResult,
        **kwargs,
    ) -> PipelineReport:
        return PipelineReport(
            run_id=context.run_id,
            version=context.version,
            tag=context.tag,
            status=status,
            run_result=result,
            **kwargs,
        )

    def _record(self, from_state: str, to_state: str, version: str, *, detail: str = "") -> None:
        if self.ledger is not None:
            self.ledger.record(
                self.run_id,
                PIPELINE_SUBJECT,
                from_state,
                to_state,
                version=version,
                detail=detail,
            )
