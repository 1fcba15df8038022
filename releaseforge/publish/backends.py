"""Release host backends.

``ReleaseBackend`` is the narrow surface the publisher needs from a release
host. ``GitHubReleaseBackend`` speaks the GitHub REST API through
``requests``; ``InMemoryReleaseBackend`` backs dry runs and tests.
"""

from __future__ import annotations

import itertools
import logging
import threading
from typing import Any, Protocol, runtime_checkable

import requests

from releaseforge.models.release import RemoteAsset, RemoteRelease

logger = logging.getLogger(__name__)


class ReleaseHostError(RuntimeError):
    """Raised when the release host rejects a request or is unreachable."""


class UploadError(ReleaseHostError):
    """Raised when an asset upload (or its replacement) fails."""


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


@runtime_checkable
class ReleaseBackend(Protocol):
    """Protocol for release hosts."""

    def find_release(self, tag: str) -> RemoteRelease | None:
        """Return the release for *tag*, drafts included, or ``None``."""
        ...

    def create_release(
        self, tag: str, *, title: str, body: str, draft: bool = True
    ) -> RemoteRelease:
        ...

    def list_assets(self, release: RemoteRelease) -> list[RemoteAsset]:
        ...

    def upload_asset(
        self, release: RemoteRelease, name: str, content_type: str, data: bytes
    ) -> RemoteAsset:
        ...

    def delete_asset(self, release: RemoteRelease, asset: RemoteAsset) -> None:
        ...

    def publish_release(self, release: RemoteRelease) -> RemoteRelease:
        """Flip the release out of draft."""
        ...


# ---------------------------------------------------------------------------
# In-memory
# ---------------------------------------------------------------------------


class InMemoryReleaseBackend:
    """Release host kept in process memory.

    Behaves like GitHub for the parts the publisher relies on: one release
    per tag, drafts listed, assets keyed by id with free-form duplicate
    names (replacement is the publisher's job).
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self.releases: dict[str, RemoteRelease] = {}
        self.assets: dict[str, list[tuple[RemoteAsset, bytes]]] = {}
        self.fail_uploads: set[str] = set()

    def find_release(self, tag: str) -> RemoteRelease | None:
        with self._lock:
            for release in self.releases.values():
                if release.tag == tag:
                    return release
        return None

    def create_release(
        self, tag: str, *, title: str, body: str, draft: bool = True
    ) -> RemoteRelease:
        with self._lock:
            if any(r.tag == tag for r in self.releases.values()):
                raise ReleaseHostError(f"Release for tag {tag} already exists")
            release = RemoteRelease(
                release_id=str(next(self._ids)),
                tag=tag,
                title=title,
                body=body,
                draft=draft,
            )
            self.releases[release.release_id] = release
            self.assets[release.release_id] = []
        return release

    def list_assets(self, release: RemoteRelease) -> list[RemoteAsset]:
        with self._lock:
            return [asset for asset, _ in self.assets.get(release.release_id, [])]

    def asset_bytes(self, release: RemoteRelease, name: str) -> bytes:
        with self._lock:
            for asset, data in self.assets.get(release.release_id, []):
                if asset.name == name:
                    return data
        raise KeyError(name)

    def upload_asset(
        self, release: RemoteRelease, name: str, content_type: str, data: bytes
    ) -> RemoteAsset:
        if name in self.fail_uploads:
            raise UploadError(f"Simulated upload failure for {name}")
        with self._lock:
            if release.release_id not in self.releases:
                raise UploadError(f"Unknown release {release.release_id}")
            asset = RemoteAsset(
                asset_id=str(next(self._ids)),
                name=name,
                content_type=content_type,
                size_bytes=len(data),
            )
            self.assets[release.release_id].append((asset, bytes(data)))
        return asset

    def delete_asset(self, release: RemoteRelease, asset: RemoteAsset) -> None:
        with self._lock:
            self.assets[release.release_id] = [
                (a, d)
                for a, d in self.assets.get(release.release_id, [])
                if a.asset_id != asset.asset_id
            ]

    def publish_release(self, release: RemoteRelease) -> RemoteRelease:
        with self._lock:
            published = self.releases[release.release_id].model_copy(
                update={"draft": False}
            )
            self.releases[release.release_id] = published
        return published


# ---------------------------------------------------------------------------
# GitHub
# ---------------------------------------------------------------------------


class GitHubReleaseBackend:
    """GitHub Releases over the REST API.

    Parameters
    ----------
    repository:
        ``"owner/repo"``.
    token:
        Token with ``contents: write`` on the repository.
    api_url:
        API root, overridable for GitHub Enterprise.
    timeout:
        Per-request timeout in seconds.
    """

    _PAGE_SIZE = 100
    _MAX_PAGES = 20

    def __init__(
        self,
        repository: str,
        token: str,
        *,
        api_url: str = "https://api.github.com",
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        if repository.count("/") != 1:
            raise ValueError(f"Repository must be 'owner/repo', got {repository!r}")
        self.repository = repository
        self._api = api_url.rstrip("/")
        self._timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            }
        )

    def _repo_url(self, path: str) -> str:
        return f"{self._api}/repos/{self.repository}{path}"

    def _request(
        self,
        method: str,
        url: str,
        *,
        error: type[ReleaseHostError] = ReleaseHostError,
        **kwargs: Any,
    ) -> requests.Response:
        kwargs.setdefault("timeout", self._timeout)
        try:
            r = self._session.request(method, url, **kwargs)
        except requests.RequestException as exc:
            raise error(f"GitHub {method} {url} failed: {exc}") from exc
        if r.status_code >= 400:
            raise error(f"GitHub {method} {url} -> {r.status_code} {r.text}")
        return r

    @staticmethod
    def _to_release(data: dict[str, Any]) -> RemoteRelease:
        return RemoteRelease(
            release_id=str(data["id"]),
            tag=data.get("tag_name", ""),
            title=data.get("name") or "",
            body=data.get("body") or "",
            draft=bool(data.get("draft", False)),
            upload_url=(data.get("upload_url") or "").split("{", 1)[0],
        )

    @staticmethod
    def _to_asset(data: dict[str, Any]) -> RemoteAsset:
        return RemoteAsset(
            asset_id=str(data["id"]),
            name=data["name"],
            content_type=data.get("content_type") or "application/octet-stream",
            size_bytes=int(data.get("size") or 0),
        )

    def find_release(self, tag: str) -> RemoteRelease | None:
        # /releases/tags/{tag} hides drafts, so walk the listing instead.
        for page in range(1, self._MAX_PAGES + 1):
            r = self._request(
                "GET",
                self._repo_url("/releases"),
                params={"per_page": self._PAGE_SIZE, "page": page},
            )
            items = r.json()
            for item in items:
                if item.get("tag_name") == tag:
                    return self._to_release(item)
            if len(items) < self._PAGE_SIZE:
                break
        return None

    def create_release(
        self, tag: str, *, title: str, body: str, draft: bool = True
    ) -> RemoteRelease:
        r = self._request(
            "POST",
            self._repo_url("/releases"),
            json={"tag_name": tag, "name": title, "body": body, "draft": draft},
        )
        release = self._to_release(r.json())
        logger.info("Created GitHub release %s (id=%s, draft=%s)", tag, release.release_id, draft)
        return release

    def list_assets(self, release: RemoteRelease) -> list[RemoteAsset]:
        r = self._request(
            "GET",
            self._repo_url(f"/releases/{release.release_id}/assets"),
            params={"per_page": self._PAGE_SIZE},
        )
        return [self._to_asset(item) for item in r.json()]

    def upload_asset(
        self, release: RemoteRelease, name: str, content_type: str, data: bytes
    ) -> RemoteAsset:
        if not release.upload_url:
            raise UploadError(f"Release {release.tag} has no upload URL")
        r = self._request(
            "POST",
            release.upload_url,
            error=UploadError,
            params={"name": name},
            headers={"Content-Type": content_type},
            data=data,
        )
        return self._to_asset(r.json())

    def delete_asset(self, release: RemoteRelease, asset: RemoteAsset) -> None:
        self._request(
            "DELETE",
            self._repo_url(f"/releases/assets/{asset.asset_id}"),
            error=UploadError,
        )

    def publish_release(self, release: RemoteRelease) -> RemoteRelease:
        r = self._request(
            "PATCH",
            self._repo_url(f"/releases/{release.release_id}"),
            json={"draft": False},
        )
        return self._to_release(r.json())
