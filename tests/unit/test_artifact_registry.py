"""Tests for ArtifactRegistry — the closed table of expected artifacts."""

from __future__ import annotations

import pytest

from releaseforge.core.artifact_registry import (
    DEFAULT_ARTIFACT_SPECS,
    ArtifactRegistry,
    UnknownPlatformError,
)
from releaseforge.models.artifacts import ArtifactSpec


def _spec(key: str, template: str) -> ArtifactSpec:
    return ArtifactSpec(platform_key=key, platform="linux", variant=key, filename_template=template)


class TestExpectedNames:
    def test_expected_name_substitutes_product_and_version(self, registry: ArtifactRegistry):
        spec = registry.get("linux")
        assert registry.expected_name(spec, "1.2.3") == "app-1.2.3-amd64.deb"

    def test_expected_name_is_deterministic(self, registry: ArtifactRegistry):
        first = registry.expected_names("1.2.3")
        assert registry.expected_names("1.2.3") == first

    def test_expected_names_are_unique(self):
        registry = ArtifactRegistry(product="Widget")
        for version in ("1.0.0", "2.3.4-rc.1", "10.0"):
            names = registry.expected_names(version)
            assert len(names) == len(set(names)) == len(DEFAULT_ARTIFACT_SPECS)

    def test_table_order_is_fixed(self, registry: ArtifactRegistry):
        assert registry.platform_keys == ["win", "mac", "linux"]
        assert [s.platform_key for s in registry.all_specs()] == ["win", "mac", "linux"]

    def test_default_table_matches_release_matrix(self):
        names = ArtifactRegistry(product="app").expected_names("1.0.0")
        assert names == [
            "app-1.0.0.exe",
            "app-1.0.0-arm64.exe",
            "app-1.0.0.dmg",
            "app-1.0.0-amd64.deb",
            "app-1.0.0-x86_64.rpm",
            "app-1.0.0-i386.AppImage",
            "app-1.0.0-x86_64.AppImage",
        ]


class TestRegistryValidation:
    def test_empty_registry_rejected(self):
        with pytest.raises(ValueError):
            ArtifactRegistry([])

    def test_duplicate_platform_key_rejected(self):
        with pytest.raises(ValueError, match="Duplicate"):
            ArtifactRegistry([_spec("deb", "{version}.deb"), _spec("deb", "{version}.rpm")])

    def test_colliding_templates_rejected(self):
        with pytest.raises(ValueError, match="same artifact name"):
            ArtifactRegistry([_spec("a", "{product}-{version}.deb"), _spec("b", "{product}-{version}.deb")])

    def test_templates_colliding_for_one_version(self):
        registry = ArtifactRegistry([_spec("a", "1.0-{version}.bin"), _spec("b", "{version}-1.0.bin")])
        assert registry.colliding_names("2.0.0") == []
        assert registry.colliding_names("1.0") == ["1.0-1.0.bin"]

    def test_default_table_never_collides(self):
        registry = ArtifactRegistry(product="Widget")
        assert registry.colliding_names("1.0") == []

    def test_template_without_version_rejected(self):
        with pytest.raises(ValueError, match="version"):
            ArtifactRegistry([_spec("a", "{product}.deb")])

    def test_unknown_placeholder_rejected(self):
        with pytest.raises(ValueError, match="unknown"):
            ArtifactRegistry([_spec("a", "{product}-{version}-{arch}.deb")])


class TestLookup:
    def test_get_unknown_key(self, registry: ArtifactRegistry):
        with pytest.raises(UnknownPlatformError):
            registry.get("solaris")

    def test_subset_keeps_table_order(self, registry: ArtifactRegistry):
        sub = registry.subset(["linux", "win"])
        assert sub.platform_keys == ["win", "linux"]
        assert sub.product == registry.product

    def test_subset_unknown_key(self, registry: ArtifactRegistry):
        with pytest.raises(UnknownPlatformError):
            registry.subset(["win", "beos"])

    def test_len_and_iter(self, registry: ArtifactRegistry):
        assert len(registry) == 3
        assert [s.platform_key for s in registry] == registry.platform_keys
