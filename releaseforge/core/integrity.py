"""Integrity verification — the last gate before anything is published.

A pure local check: digests are recomputed from the stored bytes and
compared against the manifest. Any mismatch is fatal to the run.
"""

from __future__ import annotations

import hmac
import logging
from collections.abc import Iterable
from pathlib import Path

from releaseforge.core.checksums import IncompleteArtifactSetError
from releaseforge.core.hasher import sha256_file, sha256_hex
from releaseforge.models.artifacts import Artifact, ChecksumManifest

logger = logging.getLogger(__name__)


class MismatchError(RuntimeError):
    """Raised when an artifact's bytes no longer match its manifest digest."""

    def __init__(self, artifact_name: str, expected: str = "", actual: str = "") -> None:
        self.artifact_name = artifact_name
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Checksum mismatch for {artifact_name}: "
            f"expected {expected or '?'}, got {actual or '?'}"
        )


def _digests_equal(a: str, b: str) -> bool:
    return hmac.compare_digest(a.lower().encode("ascii"), b.lower().encode("ascii"))


class IntegrityVerifier:
    """Recomputes digests and compares them with a ``ChecksumManifest``."""

    def verify(self, manifest: ChecksumManifest, artifacts: Iterable[Artifact]) -> None:
        """Return normally if every artifact matches its manifest entry.

        Raises
        ------
        IncompleteArtifactSetError
            If a manifest entry has no artifact, or artifacts are not listed.
        MismatchError
            On the first artifact whose bytes do not match.
        """
        by_name: dict[str, Artifact] = {}
        for artifact in artifacts:
            by_name[artifact.name] = artifact

        missing = [n for n in manifest.artifact_names if n not in by_name]
        if missing:
            raise IncompleteArtifactSetError(missing)
        unlisted = sorted(set(by_name) - set(manifest.artifact_names))
        if unlisted:
            raise IncompleteArtifactSetError(
                [f"{name} (not in manifest)" for name in unlisted]
            )

        for entry in manifest.entries:
            actual = sha256_hex(by_name[entry.artifact_name].data)
            if not _digests_equal(actual, entry.digest_hex):
                logger.error(
                    "Integrity check failed for %s: expected %s, got %s",
                    entry.artifact_name,
                    entry.digest_hex,
                    actual,
                )
                raise MismatchError(entry.artifact_name, entry.digest_hex, actual)

        logger.info("Integrity verified for %d artifacts", len(manifest.entries))

    def verify_directory(self, manifest: ChecksumManifest, directory: Path) -> list[str]:
        """Check files in *directory* against *manifest* (``sha256sum -c``).

        Returns the verified file names, in manifest order.
        """
        directory = Path(directory)
        missing = [
            e.artifact_name
            for e in manifest.entries
            if not (directory / e.artifact_name).is_file()
        ]
        if missing:
            raise IncompleteArtifactSetError(missing)

        verified: list[str] = []
        for entry in manifest.entries:
            actual = sha256_file(directory / entry.artifact_name)
            if not _digests_equal(actual, entry.digest_hex):
                raise MismatchError(entry.artifact_name, entry.digest_hex, actual)
            verified.append(entry.artifact_name)
        return verified
