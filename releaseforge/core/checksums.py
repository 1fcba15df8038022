"""Checksum manifest generation in fixed spec order.

Ordering follows the artifact table, not arrival order, so identical
artifacts always yield a byte-identical ``SHA256SUMS.txt``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from releaseforge.core.hasher import sha256_hex
from releaseforge.models.artifacts import (
    Artifact,
    ArtifactSpec,
    ChecksumManifest,
    ManifestEntry,
)

logger = logging.getLogger(__name__)


class IncompleteArtifactSetError(RuntimeError):
    """Raised when one or more specs have no corresponding artifact."""

    def __init__(self, missing: Iterable[str]) -> None:
        self.missing: tuple[str, ...] = tuple(missing)
        super().__init__(
            f"Incomplete artifact set, missing: {', '.join(self.missing)}"
        )


def index_by_platform(artifacts: Iterable[Artifact]) -> dict[str, Artifact]:
    """Map artifacts by platform key, rejecting duplicates."""
    by_key: dict[str, Artifact] = {}
    for artifact in artifacts:
        if artifact.platform_key in by_key:
            raise ValueError(f"Duplicate artifact for {artifact.platform_key}")
        by_key[artifact.platform_key] = artifact
    return by_key


class ChecksumEngine:
    """Computes a SHA-256 digest for every artifact of the spec table.

    Parameters
    ----------
    specs:
        The artifact table, in manifest order.
    """

    def __init__(self, specs: Sequence[ArtifactSpec]) -> None:
        self._specs = tuple(specs)

    def generate(self, artifacts: Iterable[Artifact]) -> ChecksumManifest:
        """Build the manifest: one entry per spec, in spec order.

        Raises
        ------
        IncompleteArtifactSetError
            If any spec has no artifact.
        ValueError
            If an artifact's platform key is not in the table.
        """
        by_key = index_by_platform(artifacts)
        known = {s.platform_key for s in self._specs}
        unexpected = sorted(set(by_key) - known)
        if unexpected:
            raise ValueError(f"Artifacts for unknown platforms: {unexpected}")

        missing = [s.platform_key for s in self._specs if s.platform_key not in by_key]
        if missing:
            raise IncompleteArtifactSetError(missing)

        entries = []
        for spec in self._specs:
            artifact = by_key[spec.platform_key]
            entries.append(
                ManifestEntry(
                    artifact_name=artifact.name,
                    digest_hex=sha256_hex(artifact.data),
                )
            )
        manifest = ChecksumManifest(entries=tuple(entries))
        logger.info("Generated checksum manifest with %d entries", len(entries))
        return manifest
