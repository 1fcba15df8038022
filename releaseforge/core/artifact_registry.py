"""Static table of expected artifacts — the definition of "done" for a run.

The coordinator, checksum engine, verifier and publisher all consult the
same registry. Adding a target platform means adding one spec here and
one build task; no orchestrator logic changes.
"""

from __future__ import annotations

import string
from collections.abc import Iterable

from releaseforge.models.artifacts import ArtifactSpec

_ALLOWED_FIELDS = frozenset({"product", "version"})

DEFAULT_ARTIFACT_SPECS: tuple[ArtifactSpec, ...] = (
    ArtifactSpec(
        platform_key="win-x64",
        platform="windows",
        variant="x64",
        filename_template="{product}-{version}.exe",
        content_type="application/x-msdownload",
    ),
    ArtifactSpec(
        platform_key="win-arm64",
        platform="windows",
        variant="arm64",
        filename_template="{product}-{version}-arm64.exe",
        content_type="application/x-msdownload",
    ),
    ArtifactSpec(
        platform_key="mac",
        platform="macos",
        variant="dmg",
        filename_template="{product}-{version}.dmg",
    ),
    ArtifactSpec(
        platform_key="linux-deb",
        platform="linux",
        variant="deb",
        filename_template="{product}-{version}-amd64.deb",
    ),
    ArtifactSpec(
        platform_key="linux-rpm",
        platform="linux",
        variant="rpm",
        filename_template="{product}-{version}-x86_64.rpm",
    ),
    ArtifactSpec(
        platform_key="linux-appimage-i386",
        platform="linux",
        variant="appimage-i386",
        filename_template="{product}-{version}-i386.AppImage",
    ),
    ArtifactSpec(
        platform_key="linux-appimage-x64",
        platform="linux",
        variant="appimage-x86_64",
        filename_template="{product}-{version}-x86_64.AppImage",
    ),
)


class UnknownPlatformError(KeyError):
    """Raised when a platform key is not in the registry."""


def _template_fields(template: str) -> set[str]:
    return {
        field for _, field, _, _ in string.Formatter().parse(template) if field
    }


class ArtifactRegistry:
    """Ordered, validated collection of ``ArtifactSpec`` rows.

    Construction fails with ``ValueError`` when two specs share a platform
    key, when a template uses an unknown placeholder or omits
    ``{version}``, or when two templates would render to the same name.

    Parameters
    ----------
    specs:
        The artifact table, in publication order.
    product:
        Value substituted for ``{product}`` in every template.
    """

    def __init__(
        self,
        specs: Iterable[ArtifactSpec] = DEFAULT_ARTIFACT_SPECS,
        *,
        product: str = "app",
    ) -> None:
        self._specs: tuple[ArtifactSpec, ...] = tuple(specs)
        self._product = product
        self._by_key: dict[str, ArtifactSpec] = {}

        if not self._specs:
            raise ValueError("Artifact registry must contain at least one spec")

        for spec in self._specs:
            if spec.platform_key in self._by_key:
                raise ValueError(f"Duplicate platform key: {spec.platform_key}")
            fields = _template_fields(spec.filename_template)
            unknown = fields - _ALLOWED_FIELDS
            if unknown:
                raise ValueError(
                    f"Template for {spec.platform_key} uses unknown "
                    f"placeholders: {sorted(unknown)}"
                )
            if "version" not in fields:
                raise ValueError(
                    f"Template for {spec.platform_key} must contain {{version}}"
                )
            self._by_key[spec.platform_key] = spec

        # Same template text (after product substitution) means the names
        # collide for every version.
        seen: dict[str, str] = {}
        for spec in self._specs:
            sample = self.expected_name(spec, "0.0.0")
            if sample in seen:
                raise ValueError(
                    f"Specs {seen[sample]} and {spec.platform_key} "
                    f"produce the same artifact name {sample!r}"
                )
            seen[sample] = spec.platform_key

    @property
    def product(self) -> str:
        return self._product

    @property
    def platform_keys(self) -> list[str]:
        return [s.platform_key for s in self._specs]

    def __len__(self) -> int:
        return len(self._specs)

    def __iter__(self):
        return iter(self._specs)

    def all_specs(self) -> tuple[ArtifactSpec, ...]:
        """Return every spec, in fixed table order."""
        return self._specs

    def get(self, platform_key: str) -> ArtifactSpec:
        try:
            return self._by_key[platform_key]
        except KeyError:
            raise UnknownPlatformError(platform_key) from None

    def expected_name(self, spec: ArtifactSpec, version: str) -> str:
        """Pure template substitution: the artifact file name for *version*."""
        return spec.filename_template.format(product=self._product, version=version)

    def expected_names(self, version: str) -> list[str]:
        return [self.expected_name(s, version) for s in self._specs]

    def colliding_names(
        self, version: str, specs: Iterable[ArtifactSpec] | None = None
    ) -> list[str]:
        """Names that two or more *specs* render to for *version*.

        Templates such as ``1.0-{version}.bin`` and ``{version}-1.0.bin`` are
        distinct but coincide for some versions, so this is checked per run.
        """
        names = [self.expected_name(s, version) for s in (self._specs if specs is None else specs)]
        return sorted({n for n in names if names.count(n) > 1})

    def subset(self, platform_keys: Iterable[str]) -> ArtifactRegistry:
        """A registry restricted to *platform_keys*, keeping table order."""
        wanted = set(platform_keys)
        missing = wanted - set(self._by_key)
        if missing:
            raise UnknownPlatformError(", ".join(sorted(missing)))
        return ArtifactRegistry(
            [s for s in self._specs if s.platform_key in wanted],
            product=self._product,
        )
