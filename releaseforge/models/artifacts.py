"""Artifact models — the expected-artifact table and the deposited blobs."""

from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict, Field

MANIFEST_FILENAME = "SHA256SUMS.txt"
MANIFEST_CONTENT_TYPE = "text/plain"

_HEX_DIGEST = re.compile(r"[0-9a-fA-F]{64}")


class ArtifactSpec(BaseModel):
    """One row of the expected-artifact table.

    ``filename_template`` may use the ``{product}`` and ``{version}``
    placeholders; see ``ArtifactRegistry.expected_name``.
    """

    model_config = ConfigDict(frozen=True)

    platform_key: str  # e.g. "win-x64", "linux-deb"
    platform: str  # "windows" | "macos" | "linux"
    variant: str
    filename_template: str
    content_type: str = "application/octet-stream"


class Artifact(BaseModel):
    """A single built file, owned by the ArtifactStore once deposited.

    ``digest`` stays ``None`` until the store or the checksum engine
    computes it.
    """

    model_config = ConfigDict(frozen=True)

    platform_key: str
    name: str
    content_type: str = "application/octet-stream"
    data: bytes = Field(repr=False)
    digest: str | None = None

    @property
    def size_bytes(self) -> int:
        return len(self.data)


class ManifestEntry(BaseModel):
    """A single ``<digest>  <name>`` line of the checksum manifest."""

    model_config = ConfigDict(frozen=True)

    artifact_name: str
    digest_hex: str


class ChecksumManifest(BaseModel):
    """Ordered SHA-256 manifest, one entry per artifact spec.

    Renders to (and parses from) the ``sha256sum`` text format so any
    standard tool can check the published files.
    """

    model_config = ConfigDict(frozen=True)

    algorithm: str = "sha256"
    entries: tuple[ManifestEntry, ...]

    @property
    def artifact_names(self) -> list[str]:
        return [e.artifact_name for e in self.entries]

    def digest_for(self, artifact_name: str) -> str | None:
        for entry in self.entries:
            if entry.artifact_name == artifact_name:
                return entry.digest_hex
        return None

    def render(self) -> str:
        """Serialize as ``<hex>  <name>`` lines, in entry order."""
        return "".join(
            f"{e.digest_hex}  {e.artifact_name}\n" for e in self.entries
        )

    def to_bytes(self) -> bytes:
        return self.render().encode("utf-8")

    @classmethod
    def parse(cls, text: str) -> ChecksumManifest:
        """Parse ``sha256sum`` output.

        Accepts both the text-mode separator (two spaces) and the
        binary-mode one (``" *"``). Blank lines are ignored.
        """
        entries: list[ManifestEntry] = []
        for lineno, raw in enumerate(text.splitlines(), start=1):
            line = raw.strip()
            if not line:
                continue
            digest, sep, name = line.partition(" ")
            name = name[1:] if name.startswith((" ", "*")) else name
            if not sep or not name or not _HEX_DIGEST.fullmatch(digest):
                raise ValueError(
                    f"Malformed checksum line {lineno}: {raw!r}"
                )
            entries.append(
                ManifestEntry(artifact_name=name, digest_hex=digest.lower())
            )
        return cls(entries=tuple(entries))
