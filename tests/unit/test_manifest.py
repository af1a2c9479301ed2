"""
Unit tests for the pack build manifest.

Tests cover:
- Manifest model defaults and validation
- Writing and reading back
- Write failures reported as warnings
"""

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from packforge.errors import ERROR_MANIFEST_WRITE
from packforge.manifest import (
    MANIFEST_VERSION,
    PackBuildManifest,
    default_manifest_name,
    load_manifest,
    write_manifest,
)


class TestPackBuildManifest:
    """Tests for the PackBuildManifest model."""

    def test_defaults(self) -> None:
        """Only the pack name is required."""
        manifest = PackBuildManifest(pack_name="Vanilla")
        assert manifest.version == MANIFEST_VERSION == "1.0.0"
        assert manifest.labels == []

    def test_extra_fields_rejected(self) -> None:
        """Unknown fields are rejected."""
        with pytest.raises(ValidationError):
            PackBuildManifest(pack_name="Vanilla", unknown="x")

    def test_frozen(self) -> None:
        """Manifests are immutable."""
        manifest = PackBuildManifest(pack_name="Vanilla")
        with pytest.raises(ValidationError):
            manifest.pack_name = "Other"

    def test_default_name(self) -> None:
        assert default_manifest_name("Vanilla") == "Vanilla.manifest.json"


class TestWriteManifest:
    """Tests for write_manifest."""

    def test_write_and_load(self, temp_dir: Path) -> None:
        """A written manifest reads back equal."""
        manifest = PackBuildManifest(
            pack_name="Vanilla",
            build_target="StandaloneWindows64",
            profile_name="Default",
            catalog_remote_url="{InstalledAssetsToken}/Addressables/Vanilla/catalog.json",
            catalog_local_path=str(temp_dir / "catalog.json"),
            bundles_local_path=str(temp_dir),
            labels=["vanilla"],
        )
        result = write_manifest(manifest, temp_dir)

        assert result.success is True
        assert result.path == temp_dir / "Vanilla.manifest.json"
        assert load_manifest(result.path) == manifest

        data = json.loads(result.path.read_text(encoding="utf-8"))
        assert data["pack_name"] == "Vanilla"
        assert data["version"] == "1.0.0"

    def test_custom_file_name(self, temp_dir: Path) -> None:
        """The file name override is honoured."""
        result = write_manifest(PackBuildManifest(pack_name="Vanilla"), temp_dir, "pack.json")
        assert result.path.name == "pack.json"
        assert result.path.exists()

    def test_creates_folder(self, temp_dir: Path) -> None:
        """The output folder is created when missing."""
        result = write_manifest(PackBuildManifest(pack_name="Vanilla"), temp_dir / "new" / "dir")
        assert result.success is True

    def test_failure_is_warning(self, temp_dir: Path) -> None:
        """A write failure is reported on the result, not raised."""
        blocker = temp_dir / "blocker"
        blocker.write_text("a file, not a folder")

        result = write_manifest(PackBuildManifest(pack_name="Vanilla"), blocker)

        assert result.success is False
        assert result.error is not None
        assert result.error.code == ERROR_MANIFEST_WRITE
        assert result.warnings
