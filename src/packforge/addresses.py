"""
Address simplification for pack groups.

Before a pack is built, every entry in its groups gets a short, globally
unique address: the file name of its source asset without directory or
extension. Duplicates get _2, _3, ... suffixes in first-seen order, across
all groups passed in one call.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from pathlib import Path, PurePosixPath

from packforge.paths import normalize_separators
from packforge.schema import AssetEntry, AssetGroup

logger = logging.getLogger(__name__)


class AssetResolver(ABC):
    """Resolves an entry to the source file backing it."""

    @abstractmethod
    def resolve(self, entry: AssetEntry) -> str | None:
        """
        Return the entry's source file path.

        Returns None for folders and for entries whose file cannot be found.
        """
        ...


class EntryPathResolver(AssetResolver):
    """Trusts the path and folder flag recorded on the entry."""

    def resolve(self, entry: AssetEntry) -> str | None:
        if not entry.path or entry.is_folder:
            return None
        return entry.path


class ProjectAssetResolver(AssetResolver):
    """
    Resolves entry paths against a project folder on disk.

    Directories count as folders; missing files are unresolvable.
    """

    def __init__(self, project_root: Path | str) -> None:
        self.project_root = Path(project_root)

    def resolve(self, entry: AssetEntry) -> str | None:
        if not entry.path or entry.is_folder:
            return None
        full = self.project_root / normalize_separators(entry.path)
        if not full.is_file():
            return None
        return entry.path


def address_for_path(path: str) -> str:
    """Bare file name of a path, without directory or extension."""
    return PurePosixPath(normalize_separators(path)).stem


def simplify_addresses(
    groups: Iterable[AssetGroup | None],
    resolver: AssetResolver | None = None,
) -> int:
    """
    Rewrite entry addresses to unique bare file names.

    Entries that already carry their target address are left untouched.
    Groups with at least one rewritten entry are marked modified.

    Args:
        groups: Groups in scope, in order
        resolver: Source file resolver (EntryPathResolver by default)

    Returns:
        Number of entries whose address changed
    """
    resolver = resolver or EntryPathResolver()
    used: set[str] = set()
    changed = 0

    for group in groups:
        if group is None:
            continue

        any_changed = False
        for entry in group.entries:
            if not entry.guid:
                continue

            path = resolver.resolve(entry)
            if not path:
                continue

            name = address_for_path(path)
            if not name:
                continue

            candidate = name
            n = 2
            while candidate in used:
                candidate = f"{name}_{n}"
                n += 1

            if entry.address != candidate:
                logger.debug("%s: %r -> %r", group.name, entry.address, candidate)
                entry.address = candidate
                any_changed = True
                changed += 1
            used.add(candidate)

        if any_changed:
            group.modified = True

    if changed:
        logger.info("Simplified %d entry address(es)", changed)
    return changed
