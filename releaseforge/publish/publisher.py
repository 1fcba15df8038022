"""Release publisher — idempotent draft creation and asset upload.

State machine per release handle::

    not_created -> draft -> assets_uploading -> complete
                      \\__________\\_____________-> failed (absorbing)

A failure during upload leaves the remote release as a draft, which is
invisible to end users; ``resume_draft()`` reattaches to it so the
uploads can be completed without creating a second release for the tag.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from pydantic import BaseModel, ConfigDict

from releaseforge.core.run_ledger import RunLedger
from releaseforge.core.transitions import check_transition
from releaseforge.models.artifacts import Artifact
from releaseforge.models.ledger import RELEASE_SUBJECT
from releaseforge.models.release import (
    VALID_RELEASE_TRANSITIONS,
    PublishReceipt,
    ReleaseState,
    RemoteRelease,
)
from releaseforge.publish.backends import (
    ReleaseBackend,
    ReleaseHostError,
    UploadError,
)

logger = logging.getLogger(__name__)


class ReleaseExistsError(RuntimeError):
    """Raised when the tag already has a release."""


class ReleaseNotFoundError(LookupError):
    """Raised by ``resume_draft`` when the tag has no release."""


class IncompleteReleaseError(RuntimeError):
    """Raised by ``finalize`` when expected assets are not attached."""

    def __init__(self, tag: str, missing: Iterable[str]) -> None:
        self.tag = tag
        self.missing: tuple[str, ...] = tuple(missing)
        super().__init__(
            f"Release {tag} is missing assets: {', '.join(self.missing)}"
        )


class ReleaseHandle(BaseModel):
    """Reference to a release the publisher created or resumed."""

    model_config = ConfigDict(frozen=True)

    tag: str
    release_id: str
    remote: RemoteRelease


def release_tag(version: str) -> str:
    """The tag for a release version: ``"v" + version``."""
    return f"v{version}"


class ReleasePublisher:
    """Creates a draft release, uploads assets, and finalizes it.

    Parameters
    ----------
    backend:
        The release host.
    ledger, run_id:
        Optional audit ledger for release state transitions.
    """

    def __init__(
        self,
        backend: ReleaseBackend,
        *,
        ledger: RunLedger | None = None,
        run_id: str = "",
    ) -> None:
        self._backend = backend
        self._ledger = ledger
        self._run_id = run_id
        self._states: dict[str, ReleaseState] = {}
        self._uploaded: dict[str, list[str]] = {}

    @property
    def backend(self) -> ReleaseBackend:
        return self._backend

    def state(self, handle: ReleaseHandle) -> ReleaseState:
        return self._states.get(handle.release_id, ReleaseState.NOT_CREATED)

    def uploaded_names(self, handle: ReleaseHandle) -> list[str]:
        """Names uploaded through this publisher, in upload order."""
        return list(self._uploaded.get(handle.release_id, []))

    # ------------------------------------------------------------------
    # Create / resume
    # ------------------------------------------------------------------

    def create_draft(
        self, tag: str, *, title: str | None = None, body: str = ""
    ) -> ReleaseHandle:
        """Create a draft release for *tag*.

        Raises
        ------
        ReleaseExistsError
            If the tag already has a release (draft or published).
        """
        existing = self._backend.find_release(tag)
        if existing is not None:
            raise ReleaseExistsError(
                f"Tag {tag} already has a release (id={existing.release_id}, "
                f"draft={existing.draft})"
            )
        remote = self._backend.create_release(
            tag, title=title or f"Release {tag}", body=body, draft=True
        )
        handle = ReleaseHandle(tag=tag, release_id=remote.release_id, remote=remote)
        self._uploaded[handle.release_id] = []
        self._transition(handle, ReleaseState.DRAFT)
        logger.info("Draft release %s created (id=%s)", tag, remote.release_id)
        return handle

    def resume_draft(self, tag: str) -> ReleaseHandle:
        """Reattach to the draft left behind by an interrupted publish."""
        existing = self._backend.find_release(tag)
        if existing is None:
            raise ReleaseNotFoundError(f"No release for tag {tag}")
        if not existing.draft:
            raise ReleaseExistsError(f"Release {tag} is already published")
        handle = ReleaseHandle(tag=tag, release_id=existing.release_id, remote=existing)
        self._uploaded[handle.release_id] = []
        self._states.pop(handle.release_id, None)
        self._transition(handle, ReleaseState.DRAFT, detail="resumed")
        logger.info("Resumed draft release %s (id=%s)", tag, existing.release_id)
        return handle

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    def upload_asset(
        self,
        handle: ReleaseHandle,
        name: str,
        content_type: str,
        data: bytes,
    ) -> None:
        """Attach an asset, replacing any existing asset of the same name.

        Safe to repeat: the release ends up with exactly one asset named
        *name*. On failure the handle moves to FAILED and the remote
        release stays a draft.
        """
        self._transition(handle, ReleaseState.ASSETS_UPLOADING, detail=name)
        try:
            for asset in self._backend.list_assets(handle.remote):
                if asset.name == name:
                    logger.info("Replacing existing asset %s on %s", name, handle.tag)
                    self._backend.delete_asset(handle.remote, asset)
            self._backend.upload_asset(handle.remote, name, content_type, data)
        except ReleaseHostError as exc:
            self._transition(handle, ReleaseState.FAILED, detail=str(exc))
            if isinstance(exc, UploadError):
                raise
            raise UploadError(f"Upload of {name} to {handle.tag} failed: {exc}") from exc

        uploaded = self._uploaded.setdefault(handle.release_id, [])
        if name not in uploaded:
            uploaded.append(name)
        logger.info("Uploaded %s to %s (%d bytes)", name, handle.tag, len(data))

    def upload_artifact(self, handle: ReleaseHandle, artifact: Artifact) -> None:
        self.upload_asset(handle, artifact.name, artifact.content_type, artifact.data)

    # ------------------------------------------------------------------
    # Finalize
    # ------------------------------------------------------------------

    def finalize(
        self,
        handle: ReleaseHandle,
        expected_names: Iterable[str],
        *,
        undraft: bool = True,
    ) -> PublishReceipt:
        """Mark the release complete once every expected asset is attached.

        With ``undraft=False`` the release stays a draft on the host (so a
        human can write the changelog) but is still complete here.
        """
        expected = list(expected_names)
        try:
            attached = [a.name for a in self._backend.list_assets(handle.remote)]
        except ReleaseHostError as exc:
            self._transition(handle, ReleaseState.FAILED, detail=str(exc))
            raise
        missing = [n for n in expected if n not in attached]
        if missing:
            error = IncompleteReleaseError(handle.tag, missing)
            self._transition(handle, ReleaseState.FAILED, detail=str(error))
            raise error

        remote = handle.remote
        if undraft:
            try:
                remote = self._backend.publish_release(handle.remote)
            except ReleaseHostError as exc:
                self._transition(handle, ReleaseState.FAILED, detail=str(exc))
                raise

        self._transition(handle, ReleaseState.COMPLETE, detail=f"{len(attached)} assets")
        logger.info(
            "Release %s complete with %d assets (draft=%s)",
            handle.tag,
            len(attached),
            remote.draft,
        )
        return PublishReceipt(
            tag=handle.tag,
            release_id=handle.release_id,
            draft=remote.draft,
            asset_names=tuple(attached),
        )

    # ------------------------------------------------------------------
    # State bookkeeping
    # ------------------------------------------------------------------

    def _transition(
        self, handle: ReleaseHandle, target: ReleaseState, *, detail: str = ""
    ) -> None:
        current = self.state(handle)
        check_transition(VALID_RELEASE_TRANSITIONS, handle.tag, current, target)
        self._states[handle.release_id] = target
        if self._ledger is not None and current != target:
            self._ledger.record(
                self._run_id,
                RELEASE_SUBJECT,
                current.value,
                target.value,
                version=handle.tag,
                detail=detail,
            )
