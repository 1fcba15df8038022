"""Release publishing models (draft -> uploading -> complete)."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class ReleaseState(str, Enum):
    """Publisher-side lifecycle of one release."""

    NOT_CREATED = "not_created"
    DRAFT = "draft"
    ASSETS_UPLOADING = "assets_uploading"
    COMPLETE = "complete"
    FAILED = "failed"


# FAILED is absorbing; a stranded draft is picked up again via resume_draft().
VALID_RELEASE_TRANSITIONS: dict[ReleaseState, set[ReleaseState]] = {
    ReleaseState.NOT_CREATED: {ReleaseState.DRAFT, ReleaseState.FAILED},
    ReleaseState.DRAFT: {
        ReleaseState.ASSETS_UPLOADING,
        ReleaseState.COMPLETE,
        ReleaseState.FAILED,
    },
    ReleaseState.ASSETS_UPLOADING: {
        ReleaseState.ASSETS_UPLOADING,
        ReleaseState.COMPLETE,
        ReleaseState.FAILED,
    },
    ReleaseState.COMPLETE: set(),
    ReleaseState.FAILED: set(),
}


class RemoteAsset(BaseModel):
    """An asset as the release host reports it."""

    model_config = ConfigDict(frozen=True)

    asset_id: str
    name: str
    content_type: str
    size_bytes: int


class RemoteRelease(BaseModel):
    """A release record as the release host reports it."""

    model_config = ConfigDict(frozen=True)

    release_id: str
    tag: str
    title: str = ""
    body: str = ""
    draft: bool = True
    upload_url: str = ""


class PublishReceipt(BaseModel):
    """Externally observable outcome of a publish: tag + asset count."""

    model_config = ConfigDict(frozen=True)

    tag: str
    release_id: str
    draft: bool
    asset_names: tuple[str, ...] = ()

    @property
    def asset_count(self) -> int:
        return len(self.asset_names)
