"""
Catalog discovery and rewriting.

After a build into a folder under the installed-assets root, the catalog
still embeds the absolute build-time folder. rewrite_catalog replaces that
prefix with a relocatable token form and rewrites the sibling .hash file so
it matches the new bytes.

The rewrite is plain text substitution; the catalog is never parsed as JSON.
The physical prefix always appears inside JSON string literals, so the token
replacement is JSON-escaped (backslashes doubled) before substitution. After
JSON parsing at runtime it reads as a single-backslash path:

    {InstalledAssetsToken}\\Addressables\\Customization\\Vanilla\\

Hash invariant:
    The .hash file either describes exactly the catalog bytes on disk or
    does not exist. Any failure deletes it.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from packforge.errors import RewriteError
from packforge.paths import compute_content_hash, json_escape_backslashes, normalize_separators

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_PATTERN = "catalog*.json"
HASH_SUFFIX = ".hash"


@dataclass
class RewriteResult:
    """
    Outcome of a catalog rewrite.

    Attributes:
        catalog_path: The catalog that was processed
        hash_path: Its sibling hash file
        success: Whether the catalog and hash were both written
        replacements: Number of physical prefixes replaced
        hash_value: The hash written (None on failure)
        error: What went wrong (None on success)
    """

    catalog_path: Path
    hash_path: Path
    success: bool = False
    replacements: int = 0
    hash_value: str | None = None
    error: RewriteError | None = None
    warnings: list[str] = field(default_factory=list)


def find_catalogs(
    folder: Path | str,
    pattern: str = DEFAULT_CATALOG_PATTERN,
    exclude: Iterable[str] = (),
) -> list[Path]:
    """
    Find catalog files anywhere under a folder.

    Files named in exclude are skipped, so a manifest such as
    catalog.manifest.json is never mistaken for the catalog.

    Returns:
        Sorted catalog paths (empty when the folder is missing)
    """
    folder = Path(folder)
    if not folder.is_dir():
        return []
    skipped = set(exclude)
    return sorted(p for p in folder.rglob(pattern) if p.is_file() and p.name not in skipped)


def hash_path_for(catalog_path: Path | str) -> Path:
    """Sibling hash file of a catalog (same base name, .hash extension)."""
    return Path(catalog_path).with_suffix(HASH_SUFFIX)


def replacement_prefix(token_base: str, pack_name: str, json_escaped: bool = True) -> str:
    """
    Token prefix substituted for the physical pack folder.

    Args:
        token_base: e.g. "{InstalledAssetsToken}\\Addressables"
        pack_name: Pack folder name
        json_escaped: Double the backslashes for embedding in JSON strings
    """
    raw = token_base + "\\" + pack_name + "\\"
    return json_escape_backslashes(raw) if json_escaped else raw


def physical_prefixes(physical_output_dir: str | Path) -> list[str]:
    """
    Spellings of the physical folder prefix that may appear in a catalog.

    Both slash conventions, plus the JSON-escaped backslash form.
    """
    base = normalize_separators(str(physical_output_dir)).rstrip("/")
    forward = base + "/"
    backward = base.replace("/", "\\") + "\\"
    escaped = json_escape_backslashes(backward)
    return [escaped, forward, backward]


def _read_text(path: Path) -> str:
    with path.open(encoding="utf-8", newline="") as f:
        return f.read()


def _write_text(path: Path, text: str) -> None:
    with path.open("w", encoding="utf-8", newline="") as f:
        f.write(text)


def _delete_stale_hash(hash_path: Path) -> None:
    try:
        hash_path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning("Could not delete stale hash %s: %s", hash_path, e)


def rewrite_catalog(
    catalog_path: Path | str,
    physical_output_dir: str | Path,
    token_base: str,
    pack_name: str,
) -> RewriteResult:
    """
    Rewrite a catalog's physical paths into token form and refresh its hash.

    Never raises: failures delete the hash file and are reported on the
    result.

    Args:
        catalog_path: Catalog JSON file
        physical_output_dir: The pack's physical output folder
        token_base: Token base for the output root
        pack_name: Pack folder name appended to the token base

    Returns:
        RewriteResult describing what happened
    """
    catalog_path = Path(catalog_path)
    hash_path = hash_path_for(catalog_path)
    result = RewriteResult(catalog_path=catalog_path, hash_path=hash_path)

    try:
        text = _read_text(catalog_path)

        replacement = replacement_prefix(token_base, pack_name)
        for prefix in physical_prefixes(physical_output_dir):
            count = text.count(prefix)
            if count:
                text = text.replace(prefix, replacement)
                result.replacements += count

        _write_text(catalog_path, text)

        hash_value = compute_content_hash(text)
        _write_text(hash_path, hash_value)

        result.hash_value = hash_value
        result.success = True
        logger.info(
            "Rewrote catalog %s (%d path(s)) and updated hash %s",
            catalog_path,
            result.replacements,
            hash_path,
        )
    except Exception as e:
        error = RewriteError(path=str(catalog_path), underlying_error=str(e))
        logger.warning("%s", error.message)
        _delete_stale_hash(hash_path)
        result.error = error
        result.warnings.append(error.message)

    return result


def verify_catalog_hash(catalog_path: Path | str) -> bool:
    """Whether a catalog's hash file exists and matches its bytes."""
    catalog_path = Path(catalog_path)
    hash_path = hash_path_for(catalog_path)
    if not catalog_path.is_file() or not hash_path.is_file():
        return False
    expected = _read_text(hash_path).strip()
    return compute_content_hash(_read_text(catalog_path)) == expected
