"""Write-once, content-addressed artifact store keyed by platform.

Storage layout: {base_path}/{sha256[0:2]}/{sha256[2:4]}/{sha256}.dat
Each platform key may be deposited exactly once. The store is sealed when
the build barrier opens; only then may the aggregation stage enumerate it.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from releaseforge.core.hasher import sha256_hex
from releaseforge.models.artifacts import Artifact

logger = logging.getLogger(__name__)


class DuplicateArtifactError(RuntimeError):
    """Raised when a platform key already has a deposited artifact."""


class MissingArtifactError(RuntimeError):
    """Raised when no artifact was deposited for a platform key."""


class StoreSealedError(RuntimeError):
    """Raised on a deposit after the barrier closed the store."""


class StoreNotSealedError(RuntimeError):
    """Raised when the store is enumerated before the barrier opened."""


class _IndexEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    content_type: str
    digest: str
    size_bytes: int


class ArtifactStore:
    """Holding area where build tasks deposit their output.

    This is the only shared mutable state of a run. The lock guards the
    per-key check-and-set only; blob writes are content-addressed and
    never collide.

    Parameters
    ----------
    base_path:
        Root directory for blob storage.
    platform_order:
        Optional platform key order used by ``all_deposited()``. Keys not
        listed come last, in deposit order.
    """

    def __init__(
        self,
        base_path: Path,
        *,
        platform_order: list[str] | None = None,
    ) -> None:
        self._base = Path(base_path)
        self._base.mkdir(parents=True, exist_ok=True)
        self._order = list(platform_order or [])
        self._index: dict[str, _IndexEntry] = {}
        self._lock = threading.Lock()
        self._sealed = False

    @property
    def base_path(self) -> Path:
        return self._base

    @property
    def sealed(self) -> bool:
        return self._sealed

    def _blob_path(self, digest: str) -> Path:
        """Layout: {base}/{sha256[0:2]}/{sha256[2:4]}/{sha256}.dat"""
        return self._base / digest[:2] / digest[2:4] / f"{digest}.dat"

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    def put(self, platform_key: str, artifact: Artifact) -> Artifact:
        """Deposit *artifact* under *platform_key*.

        Returns the stored artifact with its digest filled in.

        Raises
        ------
        DuplicateArtifactError
            If *platform_key* already holds an artifact.
        StoreSealedError
            If the store was sealed by the barrier.
        """
        digest = sha256_hex(artifact.data)
        entry = _IndexEntry(
            name=artifact.name,
            content_type=artifact.content_type,
            digest=digest,
            size_bytes=len(artifact.data),
        )

        with self._lock:
            if self._sealed:
                raise StoreSealedError(
                    f"Store is sealed; refusing deposit for {platform_key}"
                )
            if platform_key in self._index:
                raise DuplicateArtifactError(
                    f"Artifact already deposited for {platform_key}: "
                    f"{self._index[platform_key].name}"
                )
            # Reserve the key before touching disk.
            self._index[platform_key] = entry

        path = self._blob_path(digest)
        try:
            if not path.exists():
                path.parent.mkdir(parents=True, exist_ok=True)
                tmp = path.with_suffix(f".{threading.get_ident()}.tmp")
                tmp.write_bytes(artifact.data)
                tmp.replace(path)
        except OSError:
            with self._lock:
                self._index.pop(platform_key, None)
            raise

        logger.info(
            "Deposited %s for %s (%d bytes, sha256=%s)",
            artifact.name,
            platform_key,
            entry.size_bytes,
            digest,
        )
        return artifact.model_copy(
            update={"platform_key": platform_key, "digest": digest}
        )

    def seal(self) -> None:
        """Close the store to deposits; called once by the barrier."""
        with self._lock:
            self._sealed = True
        logger.debug("Artifact store %s sealed (%d artifacts)", self._base, len(self._index))

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    def has(self, platform_key: str) -> bool:
        with self._lock:
            return platform_key in self._index

    def get(self, platform_key: str) -> Artifact:
        """Return the deposited artifact, re-read from disk.

        The returned ``digest`` is the one recorded at deposit time, not a
        recomputation, so disk corruption shows up as a mismatch later.
        """
        with self._lock:
            entry = self._index.get(platform_key)
        if entry is None:
            raise MissingArtifactError(platform_key)
        path = self._blob_path(entry.digest)
        if not path.exists():
            raise MissingArtifactError(
                f"{platform_key}: blob {entry.digest} missing from {self._base}"
            )
        return Artifact(
            platform_key=platform_key,
            name=entry.name,
            content_type=entry.content_type,
            data=path.read_bytes(),
            digest=entry.digest,
        )

    def blob_path(self, platform_key: str) -> Path:
        """Filesystem location of the bytes deposited for *platform_key*."""
        with self._lock:
            entry = self._index.get(platform_key)
        if entry is None:
            raise MissingArtifactError(platform_key)
        return self._blob_path(entry.digest)

    def deposited_keys(self) -> list[str]:
        with self._lock:
            keys = list(self._index)
        ranked = [k for k in self._order if k in keys]
        return ranked + [k for k in keys if k not in ranked]

    def all_deposited(self) -> list[Artifact]:
        """Every deposited artifact. Only callable after ``seal()``."""
        if not self._sealed:
            raise StoreNotSealedError(
                "all_deposited() called before the build barrier opened"
            )
        return [self.get(key) for key in self.deposited_keys()]
