"""
Packaging settings store.

The settings hold everything a pack build temporarily mutates:
- Profiles and their path variable values
- The group registry (entries, build/load bindings, include flags)
- Global remote catalog bindings and flags

The build pipeline only talks to profiles through the narrow ProfileStore
interface, so tests and embedding code can substitute their own store.
PackagingSettings is the default implementation, persisted as YAML.
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from packforge.errors import SettingsLoadError, SettingsSaveError
from packforge.schema import AssetGroup, Profile, VariableReference

logger = logging.getLogger(__name__)

# Built-in variable names
LOCAL_BUILD_PATH = "LocalBuildPath"
LOCAL_LOAD_PATH = "LocalLoadPath"
REMOTE_BUILD_PATH = "RemoteBuildPath"
REMOTE_LOAD_PATH = "RemoteLoadPath"

DEFAULT_SETTINGS_FILE = "packforge.yaml"


class ProfileStore(ABC):
    """
    Variable storage addressed by profile id and variable name.

    Each profile holds its own value for a variable. Profiles may disagree
    on which variables they define, so existence is checked per profile.
    """

    @abstractmethod
    def profile_ids(self) -> list[str]:
        """Ids of every profile, in order."""
        ...

    @abstractmethod
    def has_profile(self, profile_id: str) -> bool:
        """Whether the profile exists."""
        ...

    @abstractmethod
    def profile_name(self, profile_id: str) -> str | None:
        """Display name of a profile."""
        ...

    @abstractmethod
    def has_variable(self, name: str, profile_id: str | None = None) -> bool:
        """
        Whether a variable exists.

        With a profile id, only that profile is checked; otherwise any
        profile counts.
        """
        ...

    @abstractmethod
    def create_value(self, name: str, default_value: str | None) -> None:
        """
        Create a variable in every profile that lacks it.

        Profiles that already define the variable keep their value.

        Raises:
            ValueError: If every profile already defines the variable
        """
        ...

    @abstractmethod
    def remove_variable(self, name: str, profile_id: str | None = None) -> None:
        """Remove a variable from one profile, or from every profile."""
        ...

    @abstractmethod
    def get_value(self, profile_id: str, name: str) -> str | None:
        """Value of a variable in a profile (None when unset)."""
        ...

    @abstractmethod
    def set_value(self, profile_id: str, name: str, value: str | None) -> None:
        """
        Set a variable's value in a profile.

        Raises:
            KeyError: If the profile or variable does not exist
        """
        ...


class PackagingSettings(BaseModel, ProfileStore):
    """
    Project-wide packaging configuration.

    Attributes:
        active_profile_id: Profile used when a build names none
        profiles: All profiles
        groups: The group registry
        build_remote_catalog: Whether a remote catalog is produced
        override_player_version: Version string embedded in catalog names
        remote_catalog_build_path: Variable the catalog is written to
        remote_catalog_load_path: Variable the catalog is loaded from
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    active_profile_id: str = Field(default="default")
    profiles: list[Profile] = Field(
        default_factory=lambda: [Profile(id="default", name="Default")],
    )
    groups: list[AssetGroup] = Field(default_factory=list)
    build_remote_catalog: bool = Field(default=False)
    override_player_version: str = Field(default="")
    remote_catalog_build_path: VariableReference | None = Field(
        default_factory=lambda: VariableReference(variable=REMOTE_BUILD_PATH),
    )
    remote_catalog_load_path: VariableReference | None = Field(
        default_factory=lambda: VariableReference(variable=REMOTE_LOAD_PATH),
    )

    # -------------------------------------------------------------------------
    # Groups
    # -------------------------------------------------------------------------

    def find_group(self, name: str) -> AssetGroup | None:
        """Look up a group by exact name."""
        for group in self.groups:
            if group.name == name:
                return group
        return None

    @property
    def modified_groups(self) -> list[AssetGroup]:
        """Groups whose entries changed since loading."""
        return [g for g in self.groups if g.modified]

    # -------------------------------------------------------------------------
    # ProfileStore
    # -------------------------------------------------------------------------

    def _profile(self, profile_id: str) -> Profile:
        for profile in self.profiles:
            if profile.id == profile_id:
                return profile
        raise KeyError(f"Profile not found: {profile_id}")

    def profile_ids(self) -> list[str]:
        return [p.id for p in self.profiles]

    def has_profile(self, profile_id: str) -> bool:
        return any(p.id == profile_id for p in self.profiles)

    def profile_name(self, profile_id: str) -> str | None:
        try:
            profile = self._profile(profile_id)
        except KeyError:
            return None
        return profile.name or profile.id

    def has_variable(self, name: str, profile_id: str | None = None) -> bool:
        if profile_id is not None:
            return self.has_profile(profile_id) and name in self._profile(profile_id).values
        return any(name in p.values for p in self.profiles)

    def create_value(self, name: str, default_value: str | None) -> None:
        missing = [p for p in self.profiles if name not in p.values]
        if not missing:
            raise ValueError(f"Variable already exists: {name}")
        for profile in missing:
            profile.values[name] = default_value

    def remove_variable(self, name: str, profile_id: str | None = None) -> None:
        if profile_id is not None:
            self._profile(profile_id).values.pop(name, None)
            return
        for profile in self.profiles:
            profile.values.pop(name, None)

    def get_value(self, profile_id: str, name: str) -> str | None:
        return self._profile(profile_id).values.get(name)

    def set_value(self, profile_id: str, name: str, value: str | None) -> None:
        profile = self._profile(profile_id)
        if name not in profile.values:
            raise KeyError(f"Variable not found: {name}")
        profile.values[name] = value

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def to_document(self) -> dict[str, Any]:
        """Serializable form, as written to the settings file."""
        return self.model_dump(mode="json", by_alias=True)


def load_settings(path: Path | str) -> PackagingSettings:
    """
    Load packaging settings from a YAML file.

    Raises:
        SettingsLoadError: If the file is missing, not YAML, or invalid
    """
    path = Path(path)
    try:
        with path.open() as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise SettingsLoadError(path=str(path), underlying_error=str(e)) from e

    try:
        settings = PackagingSettings.model_validate(data or {})
    except ValidationError as e:
        raise SettingsLoadError(path=str(path), underlying_error=str(e)) from e

    logger.debug(
        "Loaded settings %s (%d profiles, %d groups)",
        path,
        len(settings.profiles),
        len(settings.groups),
    )
    return settings


def save_settings(settings: PackagingSettings, path: Path | str) -> None:
    """
    Write packaging settings to a YAML file.

    The file is replaced atomically and group modification flags are cleared.

    Raises:
        SettingsSaveError: If the file cannot be written
    """
    path = Path(path)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tmp_path.open("w", encoding="utf-8") as f:
            yaml.safe_dump(settings.to_document(), f, sort_keys=False)
        tmp_path.replace(path)
    except OSError as e:
        raise SettingsSaveError(path=str(path), underlying_error=str(e)) from e

    for group in settings.groups:
        group.modified = False
    logger.info("Saved settings %s", path)
