"""
Exception hierarchy for packforge.

All packforge exceptions inherit from PackforgeError, allowing callers to
catch every packforge-specific failure with a single except clause.

Exception Categories:
    - ConfigurationError: Pre-flight rejection, raised before any mutation
    - BuildInvocationError: The external bundle build failed
    - PostBuildWarning: Catalog/manifest problems reported as warnings
    - SettingsError: Settings or pack files could not be read or written

Design Principles:
    - All errors have error codes for programmatic handling
    - All errors include context (pack, path, variable where applicable)
    - Post-build problems are carried as warnings, not raised out of a build
"""

from dataclasses import dataclass, field
from typing import Any


# =============================================================================
# Error Codes
# =============================================================================

# Configuration errors: 1xxx
ERROR_CONFIG_INVALID = 1001
ERROR_CONFIG_OUTPUT_ROOT_EMPTY = 1002
ERROR_CONFIG_NO_VALID_GROUPS = 1003
ERROR_CONFIG_PROFILE_NOT_FOUND = 1004
ERROR_CONFIG_OUTPUT_FOLDER = 1005
ERROR_CONFIG_BUILD_IN_PROGRESS = 1006

# Build errors: 2xxx
ERROR_BUILD_FAILED = 2001
ERROR_BUILD_TIMEOUT = 2002

# Post-build warnings: 3xxx
ERROR_POST_BUILD = 3001
ERROR_CATALOG_NOT_FOUND = 3002
ERROR_CATALOG_REWRITE = 3003
ERROR_MANIFEST_WRITE = 3004

# Settings errors: 4xxx
ERROR_SETTINGS_LOAD = 4001
ERROR_SETTINGS_SAVE = 4002
ERROR_PACK_FILE = 4003


# =============================================================================
# Base Exception
# =============================================================================


@dataclass
class PackforgeError(Exception):
    """
    Base exception for all packforge errors.

    Attributes:
        message: Human-readable error description
        code: Numeric error code for programmatic handling
        suggestion: Optional hint for how to resolve the error
        context: Optional dict with additional debugging info
    """

    message: str = ""
    code: int = 0
    suggestion: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        """Format error for display."""
        parts = [f"[E{self.code}] {self.message}"]
        if self.suggestion:
            parts.append(f"\nSuggestion: {self.suggestion}")
        return "".join(parts)

    def __repr__(self) -> str:
        """Format error for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code}, "
            f"context={self.context!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "suggestion": self.suggestion,
            "context": self.context,
        }


# =============================================================================
# Configuration Errors
# =============================================================================


@dataclass
class ConfigurationError(PackforgeError):
    """
    Raised when a build is rejected during pre-flight.

    No configuration has been mutated when this is raised, so there is
    nothing to restore.

    Attributes:
        pack_name: Name of the pack being built
    """

    pack_name: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if self.code == 0:
            self.code = ERROR_CONFIG_INVALID
        self.context["pack_name"] = self.pack_name


@dataclass
class OutputRootEmptyError(ConfigurationError):
    """Raised when no output root was given."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = "Build location is empty"
        if self.code == 0:
            self.code = ERROR_CONFIG_OUTPUT_ROOT_EMPTY
        if not self.suggestion:
            self.suggestion = "Pass an absolute output folder with --out"
        super().__post_init__()


@dataclass
class NoValidGroupsError(ConfigurationError):
    """Raised when none of the pack's groups carries a bundled schema."""

    group_names: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Pack {self.pack_name}: no valid groups with a bundled schema"
        if self.code == 0:
            self.code = ERROR_CONFIG_NO_VALID_GROUPS
        if not self.suggestion:
            self.suggestion = "Check the pack's group names against the settings file"
        super().__post_init__()
        self.context["group_names"] = self.group_names


@dataclass
class ProfileNotFoundError(ConfigurationError):
    """Raised when the requested profile does not exist."""

    profile_id: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Profile not found: {self.profile_id}"
        if self.code == 0:
            self.code = ERROR_CONFIG_PROFILE_NOT_FOUND
        super().__post_init__()
        self.context["profile_id"] = self.profile_id


@dataclass
class OutputFolderError(ConfigurationError):
    """Raised when the output folder is relative or not writable."""

    path: str = ""
    reason: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Build output folder is not usable: {self.path} ({self.reason})"
        if self.code == 0:
            self.code = ERROR_CONFIG_OUTPUT_FOLDER
        super().__post_init__()
        self.context.update({
            "path": self.path,
            "reason": self.reason,
        })


@dataclass
class BuildInProgressError(ConfigurationError):
    """Raised when a builder is asked to build while a build is running."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"A build is already in progress (requested: {self.pack_name})"
        if self.code == 0:
            self.code = ERROR_CONFIG_BUILD_IN_PROGRESS
        if not self.suggestion:
            self.suggestion = "Builds must run one at a time"
        super().__post_init__()


# =============================================================================
# Build Errors
# =============================================================================


@dataclass
class BuildInvocationError(PackforgeError):
    """
    Raised when the external bundle build fails.

    Bindings are always restored before this reaches the caller.

    Attributes:
        pack_name: Name of the pack being built
        underlying_error: Description of the underlying failure
        return_code: Process exit code, when the build ran as a command
    """

    pack_name: str = ""
    underlying_error: str = ""
    return_code: int | None = None

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Build of {self.pack_name} failed: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_BUILD_FAILED
        self.context.update({
            "pack_name": self.pack_name,
            "underlying_error": self.underlying_error,
            "return_code": self.return_code,
        })


# =============================================================================
# Post-build Warnings
# =============================================================================


@dataclass
class PostBuildWarning(PackforgeError):
    """
    Base class for problems found after a successful build.

    These never escape a build. They are collected on the BuildResult.

    Attributes:
        path: File or folder the problem relates to
    """

    path: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if self.code == 0:
            self.code = ERROR_POST_BUILD
        self.context["path"] = self.path


@dataclass
class CatalogNotFoundError(PostBuildWarning):
    """No catalog was produced under the pack output folder."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Build finished but no catalog was found under: {self.path}"
        if self.code == 0:
            self.code = ERROR_CATALOG_NOT_FOUND
        if not self.suggestion:
            self.suggestion = "Check that the remote catalog is enabled and paths are bound"
        super().__post_init__()


@dataclass
class RewriteError(PostBuildWarning):
    """The catalog could not be rewritten; its hash file was removed."""

    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Failed to rewrite catalog or update hash: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_CATALOG_REWRITE
        super().__post_init__()
        self.context["underlying_error"] = self.underlying_error


@dataclass
class ManifestWriteError(PostBuildWarning):
    """The pack manifest could not be written."""

    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Failed to write pack manifest: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_MANIFEST_WRITE
        super().__post_init__()
        self.context["underlying_error"] = self.underlying_error


# =============================================================================
# Settings Errors
# =============================================================================


@dataclass
class SettingsError(PackforgeError):
    """
    Base class for settings and pack file errors.

    Attributes:
        path: The file that could not be processed
    """

    path: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        self.context["path"] = self.path


@dataclass
class SettingsLoadError(SettingsError):
    """Raised when a settings file cannot be read or validated."""

    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Failed to load settings {self.path}: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_SETTINGS_LOAD
        super().__post_init__()
        self.context["underlying_error"] = self.underlying_error


@dataclass
class SettingsSaveError(SettingsError):
    """Raised when a settings file cannot be written."""

    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Failed to save settings {self.path}: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_SETTINGS_SAVE
        super().__post_init__()
        self.context["underlying_error"] = self.underlying_error


@dataclass
class PackFileError(SettingsError):
    """Raised when a pack definition file is missing or invalid."""

    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Invalid pack file {self.path}: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_PACK_FILE
        super().__post_init__()
        self.context["underlying_error"] = self.underlying_error
