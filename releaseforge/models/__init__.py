"""releaseforge data models — all Pydantic v2, all frozen (immutable)."""

from releaseforge.models.artifacts import (
    MANIFEST_CONTENT_TYPE,
    MANIFEST_FILENAME,
    Artifact,
    ArtifactSpec,
    ChecksumManifest,
    ManifestEntry,
)
from releaseforge.models.builds import (
    TERMINAL_BUILD_STATES,
    VALID_BUILD_TRANSITIONS,
    BuildRequest,
    BuildState,
    BuildTaskRecord,
    RunResult,
)
from releaseforge.models.ledger import LedgerEntry
from releaseforge.models.release import (
    VALID_RELEASE_TRANSITIONS,
    PublishReceipt,
    ReleaseState,
    RemoteAsset,
    RemoteRelease,
)

__all__ = [
    "MANIFEST_CONTENT_TYPE",
    "MANIFEST_FILENAME",
    "TERMINAL_BUILD_STATES",
    "VALID_BUILD_TRANSITIONS",
    "VALID_RELEASE_TRANSITIONS",
    "Artifact",
    "ArtifactSpec",
    "BuildRequest",
    "BuildState",
    "BuildTaskRecord",
    "ChecksumManifest",
    "LedgerEntry",
    "ManifestEntry",
    "PublishReceipt",
    "ReleaseState",
    "RemoteAsset",
    "RemoteRelease",
    "RunResult",
]
