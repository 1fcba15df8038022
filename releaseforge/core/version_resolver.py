"""Version resolution — read the release version exactly once per run.

Every artifact name and the release tag derive from the value returned
here; no other component reads the version source on its own.
"""

from __future__ import annotations

import json
import logging
import re
import tomllib
from pathlib import Path

from releaseforge.config import ConfigError

logger = logging.getLogger(__name__)

# MAJOR.MINOR[.PATCH][-prerelease][+build]
_VERSION_RE = re.compile(
    r"^(0|[1-9]\d*)\.(0|[1-9]\d*)(?:\.(0|[1-9]\d*))?"
    r"(?:-[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*)?"
    r"(?:\+[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*)?$"
)


def normalize_version(raw: object) -> str:
    """Validate and normalize a raw version value.

    Strips surrounding whitespace and a single leading ``v``.

    Raises
    ------
    ConfigError
        If the value is not a non-empty, semver-like string.
    """
    if not isinstance(raw, str):
        raise ConfigError(f"Version must be a string, got {type(raw).__name__}")
    value = raw.strip()
    if value[:1] in ("v", "V"):
        value = value[1:]
    if not value:
        raise ConfigError("Version string is empty")
    if not _VERSION_RE.match(value):
        raise ConfigError(f"Malformed version string: {raw!r}")
    return value


class VersionResolver:
    """Resolves the release version from a literal or a version file.

    Supported files:

    - ``*.json`` with a top-level ``"version"`` key (``package.json``)
    - ``*.toml`` with ``[project].version`` (``pyproject.toml``)
    - anything else: first non-empty line of a plain text file

    The result is cached, so repeated calls within a run return the
    identical string even if the file changes underneath.

    Parameters
    ----------
    version:
        Explicit version string. Takes precedence over *source*.
    source:
        Path to the version file.
    """

    def __init__(
        self,
        version: str | None = None,
        *,
        source: Path | None = None,
    ) -> None:
        if version is None and source is None:
            raise ConfigError("No version source configured")
        self._literal = version
        self._source = Path(source) if source is not None else None
        self._resolved: str | None = None

    @property
    def source_description(self) -> str:
        if self._literal is not None:
            return "literal"
        return str(self._source)

    def resolve(self) -> str:
        """Return the release version, reading the source on first call only."""
        if self._resolved is None:
            raw = self._literal if self._literal is not None else self._read_source()
            self._resolved = normalize_version(raw)
            logger.info(
                "Resolved release version %s (source=%s)",
                self._resolved,
                self.source_description,
            )
        return self._resolved

    # ------------------------------------------------------------------
    # Source readers
    # ------------------------------------------------------------------

    def _read_source(self) -> object:
        assert self._source is not None
        path = self._source
        if not path.is_file():
            raise ConfigError(f"Version source not found: {path}")
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise ConfigError(f"Cannot read version source {path}: {exc}") from exc

        suffix = path.suffix.lower()
        if suffix == ".json":
            return self._from_json(path, text)
        if suffix == ".toml":
            return self._from_toml(path, text)
        for line in text.splitlines():
            if line.strip():
                return line
        raise ConfigError(f"Version source {path} is empty")

    @staticmethod
    def _from_json(path: Path, text: str) -> object:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Malformed JSON in {path}: {exc}") from exc
        if not isinstance(data, dict) or "version" not in data:
            raise ConfigError(f"No top-level 'version' key in {path}")
        return data["version"]

    @staticmethod
    def _from_toml(path: Path, text: str) -> object:
        try:
            data = tomllib.loads(text)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"Malformed TOML in {path}: {exc}") from exc
        project = data.get("project")
        if not isinstance(project, dict) or "version" not in project:
            raise ConfigError(f"No [project].version in {path}")
        return project["version"]
