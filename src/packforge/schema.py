"""
Schema definitions for packforge.

This module defines the Pydantic models used throughout packforge:
- ContentPack: Which groups make up a pack and where it is written
- BuildOptions: How a single pack build behaves
- AssetEntry/AssetGroup/BundledGroupSchema: The group registry
- Profile: A named set of path variable values
- BuildState/BuildWarning/BuildResult: Runtime record of one build

Design Decisions:
    - Value objects (packs, options) are frozen
    - Registry models (groups, entries, profiles) are mutable, since a build
      rebinds them for its duration and restores them afterwards
    - Unknown fields are rejected everywhere (extra="forbid")
"""

import re
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from packforge.errors import PackFileError
from packforge.paths import DEFAULT_INSTALLED_ASSETS_MARKER, DEFAULT_INSTALLED_ASSETS_TOKEN


# =============================================================================
# Enums
# =============================================================================


class BuildState(str, Enum):
    """Phases of a pack build."""

    IDLE = "idle"
    PREPARING = "preparing"
    BOUND = "bound"
    BUILDING = "building"
    REWRITING = "rewriting"
    RESTORING = "restoring"
    DONE = "done"
    FAILED = "failed"


# =============================================================================
# Pack Models
# =============================================================================


class ContentPack(BaseModel):
    """
    A named collection of groups packaged together.

    Attributes:
        name: Pack name, used for output folder, variable names, and manifest
        group_names: Groups that belong to this pack (defaults to [name])
        labels: Optional runtime labels used to query the pack's assets
        output_subfolder: Optional subfolder under the output root
        remote_build_root_override: Optional build root override
        remote_load_root_override: Optional load root override
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(
        ...,
        description="Pack name",
        min_length=1,
        max_length=128,
    )
    group_names: list[str] = Field(
        default_factory=list,
        description="Exact group names that belong to this pack",
    )
    labels: list[str] = Field(
        default_factory=list,
        description="Optional labels for runtime queries",
    )
    output_subfolder: str | None = Field(
        default=None,
        description="Subfolder under the output root; pack name when empty",
    )
    remote_build_root_override: str | None = Field(
        default=None,
        description="Overrides the output root for this pack",
    )
    remote_load_root_override: str | None = Field(
        default=None,
        description="Overrides the runtime load root recorded in the manifest",
    )

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Pack names end up in folder and variable names."""
        if not re.match(r"^[A-Za-z0-9][A-Za-z0-9 _.-]*$", v):
            msg = (
                f"Invalid pack name: {v}. "
                "Must start with a letter or digit and contain only letters, "
                "digits, spaces, dots, hyphens, and underscores."
            )
            raise ValueError(msg)
        return v

    @property
    def selected_groups(self) -> list[str]:
        """Group names in scope for a build."""
        return list(self.group_names) if self.group_names else [self.name]

    @property
    def subfolder(self) -> str:
        """Folder name under the output root."""
        return self.output_subfolder or self.name


class BuildOptions(BaseModel):
    """
    Options for building one pack.

    Attributes:
        profile_id: Profile whose variables are mutated (active profile if None)
        enable_remote_catalog: Force the global remote catalog flag on
        disable_other_groups: Only the pack's groups are included in the build
        write_manifest_json: Emit <pack>.manifest.json
        manifest_file_name: Override for the manifest file name
        set_player_version_override: Set the global version string to the pack name
        output_root_override: Authoritative absolute output folder
        force_local_paths: Bind groups to the local path variables before rebinding
        catalog_pattern: Glob for catalog files under the pack folder
        installed_assets_marker: Marker identifying the installed-assets root
        installed_assets_token: Runtime token for the installed-assets root
        build_target: Target platform label recorded in the manifest
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    profile_id: str | None = Field(
        default=None,
        description="Profile whose variables are mutated",
    )
    enable_remote_catalog: bool = Field(
        default=False,
        description="Force-enable the global remote catalog flag",
    )
    disable_other_groups: bool = Field(
        default=False,
        description="Exclude every group outside the pack from the build",
    )
    write_manifest_json: bool = Field(
        default=False,
        description="Emit the pack manifest",
    )
    manifest_file_name: str | None = Field(
        default=None,
        description="Manifest file name; <pack>.manifest.json when empty",
    )
    set_player_version_override: bool = Field(
        default=False,
        description="Set the global version override string to the pack name",
    )
    output_root_override: str | None = Field(
        default=None,
        description="Absolute output folder",
    )
    force_local_paths: bool = Field(
        default=False,
        description="Bind groups to local path variables before rebinding",
    )
    catalog_pattern: str = Field(
        default="catalog*.json",
        description="Glob pattern for catalog files",
        min_length=1,
    )
    installed_assets_marker: str = Field(
        default=DEFAULT_INSTALLED_ASSETS_MARKER,
        description="Marker identifying the installed-assets root",
    )
    installed_assets_token: str = Field(
        default=DEFAULT_INSTALLED_ASSETS_TOKEN,
        description="Runtime token for the installed-assets root",
    )
    build_target: str = Field(
        default="StandaloneWindows64",
        description="Target platform label",
    )

    @field_validator("installed_assets_marker")
    @classmethod
    def validate_marker(cls, v: str) -> str:
        """Markers are matched as whole path segments."""
        if not v.startswith("/") or not v.endswith("/") or len(v) < 3:
            msg = f"Invalid installed_assets_marker: {v}. Expected '/Name/'"
            raise ValueError(msg)
        return v


# =============================================================================
# Group Registry Models
# =============================================================================


class AssetEntry(BaseModel):
    """
    One addressable item.

    Attributes:
        guid: Stable content identifier
        address: Public address used to load the item
        path: Source file path (derived from the guid by the asset database)
        is_folder: Whether the entry points at a folder
    """

    model_config = ConfigDict(extra="forbid")

    guid: str = Field(default="", description="Stable content identifier")
    address: str = Field(default="", description="Public address")
    path: str | None = Field(default=None, description="Source file path")
    is_folder: bool = Field(default=False, description="Entry is a folder")


class BundledGroupSchema(BaseModel):
    """
    Packaging configuration of a group.

    Attributes:
        build_path: Identifier of the variable holding the build folder
        load_path: Identifier of the variable holding the load URL
        include_in_build: Whether the group is packaged
    """

    model_config = ConfigDict(extra="forbid")

    build_path: str | None = Field(default=None, description="Build path variable")
    load_path: str | None = Field(default=None, description="Load path variable")
    include_in_build: bool = Field(default=True, description="Group is packaged")


class AssetGroup(BaseModel):
    """
    A named set of entries sharing build/load path configuration.

    Groups without a bundled schema (e.g. built-in data groups) are never
    packaged or rebound.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    name: str = Field(..., min_length=1, description="Group name")
    entries: list[AssetEntry] = Field(default_factory=list)
    bundled_schema: BundledGroupSchema | None = Field(
        default=None,
        alias="schema",
        description="Packaging configuration",
    )
    modified: bool = Field(
        default=False,
        exclude=True,
        description="Set when entries changed and the group needs saving",
    )


class Profile(BaseModel):
    """A named set of variable values."""

    model_config = ConfigDict(extra="forbid")

    id: str = Field(..., min_length=1)
    name: str = Field(default="")
    values: dict[str, str | None] = Field(default_factory=dict)


class VariableReference(BaseModel):
    """A setting bound to a profile variable by identifier."""

    model_config = ConfigDict(extra="forbid")

    variable: str | None = Field(default=None)


# =============================================================================
# Runtime Models
# =============================================================================


class BuildWarning(BaseModel):
    """A non-fatal problem found during a build."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    phase: BuildState
    message: str
    code: int = 0


class BuildResult(BaseModel):
    """
    Outcome of one pack build.

    Attributes:
        pack_name: The pack that was built
        profile_id: Profile whose variables were used
        output_dir: Folder the bundles were written to
        state: Final state (done or failed)
        history: States visited, in order
        warnings: Post-build and restore warnings
        addresses_changed: Entries renamed by the address simplifier
        catalog_path: First catalog found, if any
        catalog_url: Runtime load expression for the catalog
        hash_path: Catalog hash file, if the catalog was rewritten
        token_base: Installed-assets token base, if under the root
        manifest_path: Manifest file, if written
        restore_failures: Restore steps that failed
    """

    model_config = ConfigDict(extra="forbid")

    pack_name: str
    profile_id: str = ""
    output_dir: str = ""
    state: BuildState = BuildState.IDLE
    history: list[BuildState] = Field(default_factory=list)
    warnings: list[BuildWarning] = Field(default_factory=list)
    addresses_changed: int = 0
    catalog_path: str | None = None
    catalog_url: str | None = None
    hash_path: str | None = None
    token_base: str | None = None
    manifest_path: str | None = None
    restore_failures: list[str] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        """Whether the bundles were produced."""
        return self.state == BuildState.DONE

    def enter(self, state: BuildState) -> None:
        """Record a state transition."""
        self.state = state
        self.history.append(state)

    def warn(self, phase: BuildState, message: str, code: int = 0) -> None:
        """Record a warning."""
        self.warnings.append(BuildWarning(phase=phase, message=message, code=code))


# =============================================================================
# YAML Loading Helpers
# =============================================================================


def load_pack(path: Path | str) -> ContentPack:
    """
    Load a content pack from a YAML file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValidationError: If the YAML doesn't match the schema
    """
    path = Path(path)
    with path.open() as f:
        data = yaml.safe_load(f)

    return ContentPack.model_validate(data)


def load_packs(path: Path | str) -> list[ContentPack]:
    """
    Load one or more packs from a YAML file.

    The file holds either a single pack mapping or a mapping with a
    ``packs`` list.

    Raises:
        PackFileError: If the file is missing, not YAML, or invalid
    """
    path = Path(path)
    try:
        with path.open() as f:
            data = yaml.safe_load(f)

        if isinstance(data, dict) and "packs" in data:
            return [ContentPack.model_validate(item) for item in data["packs"] or []]
        return [ContentPack.model_validate(data)]
    except (OSError, yaml.YAMLError, ValidationError) as e:
        raise PackFileError(path=str(path), underlying_error=str(e)) from e


def load_options(path: Path | str) -> BuildOptions:
    """Load build options from a YAML file."""
    path = Path(path)
    with path.open() as f:
        data: Any = yaml.safe_load(f)

    return BuildOptions.model_validate(data or {})


def load_pack_from_string(content: str) -> ContentPack:
    """Load a content pack from a YAML string."""
    data = yaml.safe_load(content)
    return ContentPack.model_validate(data)
