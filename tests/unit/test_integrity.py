"""Tests for IntegrityVerifier — recompute and compare before publishing."""

from __future__ import annotations

from pathlib import Path

import pytest

from releaseforge.core.artifact_registry import ArtifactRegistry
from releaseforge.core.checksums import ChecksumEngine, IncompleteArtifactSetError
from releaseforge.core.integrity import IntegrityVerifier, MismatchError
from releaseforge.models.artifacts import Artifact, ChecksumManifest


@pytest.fixture
def artifacts(registry: ArtifactRegistry) -> list[Artifact]:
    return [
        Artifact(
            platform_key=spec.platform_key,
            name=registry.expected_name(spec, "1.2.3"),
            data=f"{spec.platform_key} installer contents".encode(),
        )
        for spec in registry.all_specs()
    ]


@pytest.fixture
def manifest(registry: ArtifactRegistry, artifacts: list[Artifact]) -> ChecksumManifest:
    return ChecksumEngine(registry.all_specs()).generate(artifacts)


def _flip_byte(data: bytes, index: int) -> bytes:
    mutated = bytearray(data)
    mutated[index] ^= 0x01
    return bytes(mutated)


class TestVerify:
    def test_unmodified_artifacts_verify(self, manifest, artifacts):
        IntegrityVerifier().verify(manifest, artifacts)

    @pytest.mark.parametrize("index", [0, 5, -1])
    def test_single_byte_mutation_names_the_artifact(self, manifest, artifacts, index):
        target = artifacts[1]
        artifacts[1] = target.model_copy(update={"data": _flip_byte(target.data, index)})
        with pytest.raises(MismatchError) as excinfo:
            IntegrityVerifier().verify(manifest, artifacts)
        assert excinfo.value.artifact_name == target.name

    def test_missing_artifact(self, manifest, artifacts):
        with pytest.raises(IncompleteArtifactSetError):
            IntegrityVerifier().verify(manifest, artifacts[:2])

    def test_unlisted_artifact(self, manifest, artifacts):
        extra = Artifact(platform_key="extra", name="stray.bin", data=b"?")
        with pytest.raises(IncompleteArtifactSetError, match="stray.bin"):
            IntegrityVerifier().verify(manifest, artifacts + [extra])


class TestVerifyDirectory:
    def _write(self, directory: Path, artifacts: list[Artifact]) -> None:
        for artifact in artifacts:
            (directory / artifact.name).write_bytes(artifact.data)

    def test_directory_verifies(self, tmp_dir, manifest, artifacts):
        self._write(tmp_dir, artifacts)
        assert IntegrityVerifier().verify_directory(manifest, tmp_dir) == manifest.artifact_names

    def test_directory_mismatch(self, tmp_dir, manifest, artifacts):
        self._write(tmp_dir, artifacts)
        (tmp_dir / artifacts[2].name).write_bytes(b"rebuilt")
        with pytest.raises(MismatchError) as excinfo:
            IntegrityVerifier().verify_directory(manifest, tmp_dir)
        assert excinfo.value.artifact_name == artifacts[2].name

    def test_directory_missing_file(self, tmp_dir, manifest, artifacts):
        self._write(tmp_dir, artifacts[1:])
        with pytest.raises(IncompleteArtifactSetError) as excinfo:
            IntegrityVerifier().verify_directory(manifest, tmp_dir)
        assert excinfo.value.missing == (artifacts[0].name,)
