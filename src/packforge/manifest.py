"""
Pack build manifest.

A small JSON descriptor written next to a pack's bundles, telling the
runtime (and humans) where the catalog lives and how to load it.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from packforge.errors import ManifestWriteError

logger = logging.getLogger(__name__)

MANIFEST_VERSION = "1.0.0"


def default_manifest_name(pack_name: str) -> str:
    """Default manifest file name for a pack."""
    return f"{pack_name}.manifest.json"


class PackBuildManifest(BaseModel):
    """
    Descriptor of one pack build's outputs.

    Attributes:
        pack_name: The pack
        version: Manifest format version
        build_target: Target platform label
        profile_name: Profile the build used
        player_version_override: Global version string at build time
        catalog_remote_url: Runtime load expression for the catalog
        catalog_local_path: Catalog path on disk
        bundles_remote_root: Runtime root the bundles load from
        bundles_local_path: Bundle folder on disk
        labels: Runtime labels of the pack
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    pack_name: str = Field(..., min_length=1)
    version: str = Field(default=MANIFEST_VERSION)
    build_target: str = Field(default="")
    profile_name: str = Field(default="")
    player_version_override: str = Field(default="")
    catalog_remote_url: str = Field(default="")
    catalog_local_path: str = Field(default="")
    bundles_remote_root: str = Field(default="")
    bundles_local_path: str = Field(default="")
    labels: list[str] = Field(default_factory=list)


@dataclass
class ManifestResult:
    """
    Outcome of writing a manifest.

    Attributes:
        path: Where the manifest was (or would have been) written
        success: Whether the file was written
        error: What went wrong (None on success)
    """

    path: Path
    success: bool = False
    error: ManifestWriteError | None = None
    warnings: list[str] = field(default_factory=list)


def write_manifest(
    manifest: PackBuildManifest,
    output_dir: Path | str,
    file_name: str | None = None,
) -> ManifestResult:
    """
    Write a manifest into the pack's output folder.

    Failures are reported on the result, never raised.

    Args:
        manifest: The descriptor to write
        output_dir: The pack's output folder
        file_name: Override for <pack>.manifest.json

    Returns:
        ManifestResult
    """
    path = Path(output_dir) / (file_name or default_manifest_name(manifest.pack_name))
    result = ManifestResult(path=path)

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(manifest.model_dump(mode="json"), indent=2) + "\n", encoding="utf-8")
        result.success = True
        logger.info("Wrote pack manifest -> %s", path)
    except (OSError, TypeError, ValueError) as e:
        error = ManifestWriteError(path=str(path), underlying_error=str(e))
        logger.warning("%s", error.message)
        result.error = error
        result.warnings.append(error.message)

    return result


def load_manifest(path: Path | str) -> PackBuildManifest:
    """Read a manifest written by write_manifest."""
    with Path(path).open(encoding="utf-8") as f:
        return PackBuildManifest.model_validate(json.load(f))
