"""Release publishing: the publisher state machine and release host backends."""

from releaseforge.publish.backends import (
    GitHubReleaseBackend,
    InMemoryReleaseBackend,
    ReleaseBackend,
    ReleaseHostError,
    UploadError,
)
from releaseforge.publish.publisher import (
    IncompleteReleaseError,
    ReleaseExistsError,
    ReleaseHandle,
    ReleaseNotFoundError,
    ReleasePublisher,
    release_tag,
)

__all__ = [
    "GitHubReleaseBackend",
    "InMemoryReleaseBackend",
    "ReleaseBackend",
    "ReleaseHostError",
    "UploadError",
    "IncompleteReleaseError",
    "ReleaseExistsError",
    "ReleaseHandle",
    "ReleaseNotFoundError",
    "ReleasePublisher",
    "release_tag",
]
