"""
Path and token utilities.

Pure helpers shared by the build pipeline:
- Separator normalization and file:// URL conversion
- Installed-assets root detection and token base computation
- Catalog URL guessing
- Content hashing for catalog integrity files
- Output folder resolution and validation

Catalog paths are always compared with forward slashes; the runtime token
form uses backslashes, matching how the catalog stores internal ids.
"""

import hashlib
import os
from pathlib import Path

from packforge.errors import OutputFolderError

DEFAULT_INSTALLED_ASSETS_MARKER = "/StreamingAssets/"
DEFAULT_INSTALLED_ASSETS_TOKEN = "{InstalledAssetsToken}"
FILE_URL_PREFIX = "file://"
WRITE_PROBE_NAME = ".write_probe.tmp"


def normalize_separators(path: str) -> str:
    """Replace every backslash with a forward slash."""
    return path.replace("\\", "/")


def relative_under_root(
    path: str,
    marker: str = DEFAULT_INSTALLED_ASSETS_MARKER,
) -> str | None:
    """
    Locate the installed-assets root inside a path.

    The marker is matched case-insensitively after separator normalization.

    Args:
        path: Absolute filesystem path
        marker: Root marker with surrounding slashes (e.g. "/StreamingAssets/")

    Returns:
        The remainder after the marker ("" when the path is the root itself),
        or None when the path is not under the root.
    """
    if not path:
        return None

    norm = normalize_separators(path)
    lowered = norm.lower()
    needle = marker.lower()

    idx = lowered.find(needle)
    if idx >= 0:
        return norm[idx + len(needle):]

    # "/game/StreamingAssets" names the root without a trailing slash
    if lowered.endswith(needle.rstrip("/")):
        return ""

    return None


def compute_token_base(
    remainder: str,
    token: str = DEFAULT_INSTALLED_ASSETS_TOKEN,
) -> str:
    """
    Build the runtime token base for a root-relative remainder.

    Example:
        >>> compute_token_base("Addressables/Customization")
        '{InstalledAssetsToken}\\\\Addressables\\\\Customization'
    """
    after = remainder.strip("/").replace("/", "\\") if remainder else ""
    if after:
        return token + "\\" + after
    return token


def to_file_url(path: str) -> str:
    """Convert a filesystem path to a file:/// URL."""
    if not path:
        return path
    p = normalize_separators(path)
    if not p.startswith(FILE_URL_PREFIX):
        return "file:///" + p.lstrip("/")
    return p


def combine_url(base_url: str, segment: str) -> str:
    """Join a URL base and a segment with exactly one slash."""
    if not base_url:
        return segment
    if base_url.endswith("/"):
        return base_url + segment
    return base_url + "/" + segment


def guess_catalog_url(load_root: str | None, catalog_path: str | Path | None) -> str:
    """
    Guess the runtime URL of a catalog.

    Args:
        load_root: Runtime load root (URL or token form)
        catalog_path: Local catalog path; "catalog.json" is assumed when empty

    Returns:
        load_root joined with the catalog's file name, forward slashes only
    """
    file_name = Path(catalog_path).name if catalog_path else "catalog.json"
    base_url = normalize_separators(load_root or "")
    return combine_url(base_url, file_name)


def json_escape_backslashes(text: str) -> str:
    """Double every backslash so text can sit inside a JSON string literal."""
    return text.replace("\\", "\\\\")


def compute_content_hash(data: str | bytes) -> str:
    """Compute the SHA256 hex digest of text (UTF-8) or bytes."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def to_absolute_output_path(path: str, project_root: str | Path) -> str | None:
    """
    Resolve an output folder to an absolute, forward-slash path.

    Relative paths are resolved against the project root.

    Returns:
        The absolute path, or None for a blank input
    """
    if not path or not path.strip():
        return None

    path = normalize_separators(path.strip())
    if os.path.isabs(path):
        return normalize_separators(os.path.abspath(path))

    return normalize_separators(os.path.abspath(os.path.join(str(project_root), path)))


def ensure_writable_folder(path: str | Path | None) -> Path:
    """
    Create the output folder and prove it is writable.

    Args:
        path: Absolute folder path

    Returns:
        The folder as a Path

    Raises:
        OutputFolderError: If the path is empty, relative, or not writable
    """
    if path is None or not str(path).strip():
        raise OutputFolderError(path="", reason="Build output folder is empty")

    raw = str(path)
    if not os.path.isabs(raw):
        raise OutputFolderError(path=raw, reason="Build output must be an absolute path")

    folder = Path(raw)
    try:
        folder.mkdir(parents=True, exist_ok=True)
        probe = folder / WRITE_PROBE_NAME
        probe.write_text("ok")
        probe.unlink()
    except OSError as e:
        raise OutputFolderError(path=raw, reason=f"not writable: {e}") from e

    return folder
