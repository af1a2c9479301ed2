"""
Variable binding management for pack builds.

A pack build points its groups, and the global remote catalog, at a pair of
pack-scoped path variables, and may flip a few global flags. Every such
mutation goes through BindingManager, which snapshots the previous state and
pushes a matching restore step onto an UndoStack. Unwinding the stack runs
the restore steps in reverse order. Each one is independent: a failing
step is logged and the rest still run.

Design Decisions:
    - ensure_variable never raises; the store may already hold the variable
    - An absent original group binding is left alone on restore rather than
      being bound to nothing
    - Pack-scoped values are restored verbatim, including empty snapshots
    - Variables created for the build are removed again on unwind, from the
      profiles they were created in, unless a binding still refers to them
    - Group snapshots are keyed by group object; names are not unique
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass

from packforge.schema import AssetGroup
from packforge.settings import PackagingSettings, ProfileStore

logger = logging.getLogger(__name__)


def ensure_variable(
    store: ProfileStore,
    name: str,
    default_value: str | None,
    profile_id: str | None = None,
) -> str:
    """
    Create a variable if it does not exist yet.

    With a profile id the variable must exist in that profile; otherwise
    any profile will do. Creation failures are logged, never raised.

    Returns:
        The variable name
    """
    try:
        if not store.has_variable(name, profile_id):
            store.create_value(name, default_value)
            logger.debug("Created variable %s = %r", name, default_value)
    except Exception as e:
        logger.warning("Could not create variable %s: %s", name, e)
    return name


# =============================================================================
# Undo Stack
# =============================================================================


@dataclass(frozen=True)
class UndoStep:
    """A labelled restore action."""

    label: str
    action: Callable[[], None]


class UndoStack:
    """
    Restore actions accumulated during the mutation phase.

    Usage:
        undo = UndoStack()
        undo.push("flag", lambda: setattr(obj, "flag", old))
        ...
        failures = undo.unwind()
    """

    def __init__(self) -> None:
        self._steps: list[UndoStep] = []

    def __len__(self) -> int:
        return len(self._steps)

    def push(self, label: str, action: Callable[[], None]) -> None:
        """Register a restore action."""
        self._steps.append(UndoStep(label=label, action=action))

    def unwind(self) -> list[str]:
        """
        Run every restore action, most recent first.

        Returns:
            One message per failed action (empty when all succeeded)
        """
        failures: list[str] = []
        while self._steps:
            step = self._steps.pop()
            try:
                step.action()
            except Exception as e:
                message = f"{step.label}: {e}"
                logger.warning("Restore failed for %s", message)
                failures.append(message)
        return failures


# =============================================================================
# Binding Manager
# =============================================================================


class BindingManager:
    """
    Snapshots and temporarily overwrites packaging bindings.

    Every bind/set method records the previous state and pushes the matching
    restore onto the undo stack, so unwind() returns the settings to their
    exact prior state.

    Attributes:
        settings: The packaging settings being mutated
        undo: Restore actions for everything mutated so far
    """

    def __init__(self, settings: PackagingSettings, undo: UndoStack | None = None) -> None:
        self.settings = settings
        self.undo = undo if undo is not None else UndoStack()
        self._group_originals: dict[int, tuple[str | None, str | None]] = {}
        self._value_snapshots: dict[tuple[int, str, str], str | None] = {}

    # -------------------------------------------------------------------------
    # Variables
    # -------------------------------------------------------------------------

    def ensure_pack_variable(
        self,
        store: ProfileStore,
        name: str,
        default_value: str | None,
        profile_id: str | None = None,
    ) -> str:
        """
        ensure_variable, removing the variable on unwind where it was created here.

        Profiles that already defined the variable keep it.
        """
        try:
            missing = [p for p in store.profile_ids() if not store.has_variable(name, p)]
        except Exception as e:
            logger.warning("Could not query variable %s: %s", name, e)
            missing = []

        ensure_variable(store, name, default_value, profile_id)

        if missing:
            self.undo.push(
                f"remove variable {name}",
                lambda: self.remove_created_variable(store, name, missing),
            )
        return name

    def remove_created_variable(self, store: ProfileStore, name: str, profile_ids: list[str]) -> None:
        """Remove a build-created variable unless a binding still points at it."""
        if self.is_referenced(name):
            logger.info("Keeping variable %s: still bound after restore", name)
            return
        for profile_id in profile_ids:
            store.remove_variable(name, profile_id)

    def is_referenced(self, name: str) -> bool:
        """Whether any group or the remote catalog is bound to a variable."""
        for group in self.settings.groups:
            schema = group.bundled_schema
            if schema is not None and name in (schema.build_path, schema.load_path):
                return True
        for ref in (self.settings.remote_catalog_build_path, self.settings.remote_catalog_load_path):
            if ref is not None and ref.variable == name:
                return True
        return False

    def set_pack_scoped_value(
        self,
        store: ProfileStore,
        profile_id: str,
        name: str,
        value: str | None,
    ) -> None:
        """Snapshot then overwrite a variable's value in one profile."""
        key = (id(store), profile_id, name)
        previous = store.get_value(profile_id, name)
        store.set_value(profile_id, name, value)
        self._value_snapshots[key] = previous
        self.undo.push(
            f"value {name} in profile {profile_id}",
            lambda: self.restore_value(store, profile_id, name),
        )
        logger.debug("Set %s = %r in profile %s", name, value, profile_id)

    def restore_value(self, store: ProfileStore, profile_id: str, name: str) -> None:
        """Write a value snapshot back verbatim."""
        key = (id(store), profile_id, name)
        if key not in self._value_snapshots:
            return
        store.set_value(profile_id, name, self._value_snapshots.pop(key))

    # -------------------------------------------------------------------------
    # Groups
    # -------------------------------------------------------------------------

    def bind_group_paths(self, group: AssetGroup, build_var: str, load_var: str) -> None:
        """Rebind a group's build and load path variables."""
        schema = group.bundled_schema
        if schema is None:
            return

        if id(group) not in self._group_originals:
            self._group_originals[id(group)] = (schema.build_path, schema.load_path)
            self.undo.push(f"group {group.name} paths", lambda: self.restore(group))

        schema.build_path = build_var
        schema.load_path = load_var

    def restore(self, group: AssetGroup) -> None:
        """
        Rebind a group to its recorded build and load variables.

        A missing original leaves the current binding in place.
        """
        originals = self._group_originals.pop(id(group), None)
        schema = group.bundled_schema
        if originals is None or schema is None:
            return

        orig_build, orig_load = originals
        if orig_build:
            schema.build_path = orig_build
        if orig_load:
            schema.load_path = orig_load

    def set_include_in_build(self, group: AssetGroup, include: bool) -> None:
        """Temporarily set a group's include-in-build flag."""
        schema = group.bundled_schema
        if schema is None:
            return

        previous = schema.include_in_build

        def _restore() -> None:
            schema.include_in_build = previous

        self.undo.push(f"group {group.name} include_in_build", _restore)
        schema.include_in_build = include

    # -------------------------------------------------------------------------
    # Globals
    # -------------------------------------------------------------------------

    def bind_remote_catalog(self, build_var: str, load_var: str) -> None:
        """Point the global remote catalog build/load references at new variables."""
        for attr, var in (
            ("remote_catalog_build_path", build_var),
            ("remote_catalog_load_path", load_var),
        ):
            ref = getattr(self.settings, attr)
            if ref is None:
                continue

            previous = ref.variable

            def _restore(ref=ref, previous=previous) -> None:
                if previous:
                    ref.variable = previous

            self.undo.push(attr, _restore)
            ref.variable = var

    def set_build_remote_catalog(self, enabled: bool) -> None:
        """Temporarily set the global remote catalog flag."""
        previous = self.settings.build_remote_catalog

        def _restore() -> None:
            self.settings.build_remote_catalog = previous

        self.undo.push("build_remote_catalog", _restore)
        self.settings.build_remote_catalog = enabled

    def set_player_version_override(self, version: str) -> None:
        """Temporarily set the global version override string."""
        previous = self.settings.override_player_version

        def _restore() -> None:
            self.settings.override_player_version = previous

        self.undo.push("override_player_version", _restore)
        self.settings.override_player_version = version

    # -------------------------------------------------------------------------
    # Restore
    # -------------------------------------------------------------------------

    def unwind(self) -> list[str]:
        """Restore everything this manager changed."""
        return self.undo.unwind()
