"""
Pack build orchestration.

PackBuilder composes the pipeline for one pack:

    1. Preparing: resolve profile, output root, and groups (no mutation yet)
    2. Bound: simplify addresses, create the pack-scoped variables, rebind
       groups and the remote catalog, set global flags, isolate groups
    3. Building: invoke the external build exactly once
    4. Rewriting: locate the catalog, rewrite it to token form when the
       output is under the installed-assets root, write the manifest
    5. Restoring: unwind every binding change, always, even after a failure

Error handling:
    - ConfigurationError: raised from Preparing, nothing to restore
    - BuildInvocationError: raised from Building, after restoring
    - Post-build problems: recorded as warnings, the build still succeeds
    - Restore problems: logged and recorded, never raised

Concurrency:
    A PackBuilder runs one build at a time. Snapshots live on the call, not
    on a stack, so a nested build on the same builder is rejected.
"""

import logging
import os
from pathlib import Path

from packforge.addresses import AssetResolver, simplify_addresses
from packforge.bindings import BindingManager
from packforge.catalog import find_catalogs, replacement_prefix, rewrite_catalog
from packforge.errors import (
    BuildInProgressError,
    BuildInvocationError,
    CatalogNotFoundError,
    ConfigurationError,
    NoValidGroupsError,
    OutputFolderError,
    OutputRootEmptyError,
    ProfileNotFoundError,
)
from packforge.invoker import BuildContext, BuildInvoker
from packforge.manifest import PackBuildManifest, default_manifest_name, write_manifest
from packforge.paths import (
    compute_token_base,
    guess_catalog_url,
    normalize_separators,
    relative_under_root,
    to_file_url,
)
from packforge.schema import AssetGroup, BuildOptions, BuildResult, BuildState, ContentPack
from packforge.settings import LOCAL_BUILD_PATH, LOCAL_LOAD_PATH, PackagingSettings, ProfileStore

logger = logging.getLogger(__name__)


def pack_variable_names(pack_name: str) -> tuple[str, str]:
    """Names of the pack-scoped build and load path variables."""
    return f"Pack_{pack_name}_BuildPath", f"Pack_{pack_name}_LoadPath"


class PackBuilder:
    """
    Builds content packs against a packaging settings store.

    Usage:
        builder = PackBuilder(settings, CommandBuildInvoker(["make", "bundles"]))
        result = builder.build(pack, BuildOptions(output_root_override="/out"))
        print(result.catalog_url)

    Attributes:
        settings: Packaging settings (groups and global bindings)
        invoker: External bundle build
        store: Variable store (the settings themselves by default)
        resolver: Source file resolver for address simplification
        last_result: Result of the most recent build, including failed ones
    """

    def __init__(
        self,
        settings: PackagingSettings,
        invoker: BuildInvoker,
        store: ProfileStore | None = None,
        resolver: AssetResolver | None = None,
    ) -> None:
        self.settings = settings
        self.invoker = invoker
        self.store = store if store is not None else settings
        self.resolver = resolver
        self.last_result: BuildResult | None = None
        self._in_progress = False

    @property
    def in_progress(self) -> bool:
        """Whether a build is currently running."""
        return self._in_progress

    def build(self, pack: ContentPack, options: BuildOptions | None = None) -> BuildResult:
        """
        Build one pack.

        Args:
            pack: The pack to build
            options: Build options (defaults apply when None)

        Returns:
            BuildResult in state DONE

        Raises:
            ConfigurationError: Pre-flight rejection, nothing was mutated
            BuildInvocationError: The external build failed; bindings restored
        """
        if self._in_progress:
            raise BuildInProgressError(pack_name=pack.name)

        self._in_progress = True
        try:
            return self._build(pack, options or BuildOptions())
        finally:
            self._in_progress = False

    # -------------------------------------------------------------------------
    # Phases
    # -------------------------------------------------------------------------

    def _preflight(self, pack: ContentPack, options: BuildOptions, result: BuildResult) -> tuple[str, str, list[AssetGroup]]:
        """Resolve profile, output root, and groups without mutating anything."""
        profile_id = options.profile_id or self.settings.active_profile_id
        if not self.store.has_profile(profile_id):
            raise ProfileNotFoundError(pack_name=pack.name, profile_id=profile_id)
        result.profile_id = profile_id

        output_root = normalize_separators(
            (options.output_root_override or pack.remote_build_root_override or "").strip()
        )
        if not output_root:
            raise OutputRootEmptyError(pack_name=pack.name)
        if not os.path.isabs(output_root):
            raise OutputFolderError(
                pack_name=pack.name,
                path=output_root,
                reason="Build output must be an absolute path",
            )

        selected = set(pack.selected_groups)
        tracked = [
            g for g in self.settings.groups
            if g is not None and g.name in selected and g.bundled_schema is not None
        ]
        if not tracked:
            raise NoValidGroupsError(pack_name=pack.name, group_names=sorted(selected))

        return profile_id, output_root, tracked

    def _build(self, pack: ContentPack, options: BuildOptions) -> BuildResult:
        result = BuildResult(pack_name=pack.name)
        self.last_result = result
        result.enter(BuildState.PREPARING)
        logger.info("Preparing pack '%s'", pack.name)

        try:
            profile_id, output_root, tracked = self._preflight(pack, options, result)
        except ConfigurationError as e:
            logger.error("%s", e.message)
            result.enter(BuildState.FAILED)
            raise

        sub = pack.subfolder
        pack_folder = output_root.rstrip("/") + "/" + sub
        result.output_dir = pack_folder

        manager = BindingManager(self.settings)
        failed = False
        try:
            build_value, load_value, token_base = self._bind(
                pack, options, profile_id, output_root, pack_folder, tracked, manager, result
            )

            result.enter(BuildState.BUILDING)
            build_var, load_var = pack_variable_names(pack.name)
            context = BuildContext(
                pack_name=pack.name,
                profile_id=profile_id,
                output_dir=Path(pack_folder),
                build_path_variable=build_var,
                load_path_variable=load_var,
                build_path=build_value,
                load_path=load_value,
                group_names=[g.name for g in tracked],
                settings=self.settings,
            )
            logger.info("Building pack '%s' with %s", pack.name, self.invoker.name)
            try:
                self.invoker.build(context)
            except BuildInvocationError:
                raise
            except Exception as e:
                raise BuildInvocationError(pack_name=pack.name, underlying_error=str(e)) from e

            result.enter(BuildState.REWRITING)
            self._post_build(pack, options, profile_id, pack_folder, load_value, token_base, result)
        except Exception as e:
            failed = True
            logger.error("Pack '%s' failed: %s", pack.name, e)
            result.enter(BuildState.FAILED)
            raise
        finally:
            result.enter(BuildState.RESTORING)
            failures = manager.unwind()
            result.restore_failures = failures
            for failure in failures:
                result.warn(BuildState.RESTORING, f"Restore failed: {failure}")
            logger.info("Restored settings for pack '%s' (%d failure(s))", pack.name, len(failures))
            if failed:
                result.state = BuildState.FAILED
            else:
                result.enter(BuildState.DONE)

        return result

    def _bind(
        self,
        pack: ContentPack,
        options: BuildOptions,
        profile_id: str,
        output_root: str,
        pack_folder: str,
        tracked: list[AssetGroup],
        manager: BindingManager,
        result: BuildResult,
    ) -> tuple[str, str, str | None]:
        """Apply every temporary binding; returns build value, load value, token base."""
        if options.force_local_paths:
            for group in tracked:
                schema = group.bundled_schema
                if schema is not None:
                    schema.build_path = LOCAL_BUILD_PATH
                    schema.load_path = LOCAL_LOAD_PATH
                    group.modified = True

        result.addresses_changed = simplify_addresses(tracked, self.resolver)

        try:
            Path(pack_folder).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning("Could not create %s: %s", pack_folder, e)

        build_value = pack_folder
        load_value = to_file_url(pack_folder)

        build_var, load_var = pack_variable_names(pack.name)
        manager.ensure_pack_variable(self.store, build_var, build_value, profile_id)
        manager.ensure_pack_variable(self.store, load_var, load_value, profile_id)
        manager.set_pack_scoped_value(self.store, profile_id, build_var, build_value)
        manager.set_pack_scoped_value(self.store, profile_id, load_var, load_value)

        if options.enable_remote_catalog:
            manager.set_build_remote_catalog(True)
        if options.set_player_version_override:
            manager.set_player_version_override(pack.name)

        manager.bind_remote_catalog(build_var, load_var)

        for group in tracked:
            manager.bind_group_paths(group, build_var, load_var)

        if options.disable_other_groups:
            selected = set(pack.selected_groups)
            for group in self.settings.groups:
                if group is None or group.bundled_schema is None:
                    continue
                manager.set_include_in_build(group, group.name in selected)

        token_base = None
        remainder = relative_under_root(output_root, options.installed_assets_marker)
        if remainder is not None:
            token_base = compute_token_base(remainder, options.installed_assets_token)
        result.token_base = token_base

        result.enter(BuildState.BOUND)
        logger.info("Profile '%s' (%s)", self.store.profile_name(profile_id), profile_id)
        logger.info("BuildPath var '%s' -> %s", build_var, build_value)
        logger.info("LoadPath var '%s' -> %s", load_var, load_value)
        return build_value, load_value, token_base

    def _post_build(
        self,
        pack: ContentPack,
        options: BuildOptions,
        profile_id: str,
        pack_folder: str,
        load_value: str,
        token_base: str | None,
        result: BuildResult,
    ) -> None:
        """Catalog rewrite and manifest; every problem becomes a warning."""
        sub = pack.subfolder

        try:
            manifest_name = options.manifest_file_name or default_manifest_name(pack.name)
            catalogs = find_catalogs(pack_folder, options.catalog_pattern, exclude=[manifest_name])
        except OSError as e:
            result.warn(BuildState.REWRITING, f"Catalog search failed: {e}")
            catalogs = []

        catalog_local = str(catalogs[0]) if catalogs else ""
        catalog_url = guess_catalog_url(load_value, catalog_local)

        if catalog_local:
            result.catalog_path = catalog_local
            if len(catalogs) > 1:
                logger.info("Found %d catalogs, using %s", len(catalogs), catalog_local)

            if token_base is not None:
                rewrite = rewrite_catalog(catalog_local, pack_folder, token_base, sub)
                if rewrite.success:
                    result.hash_path = str(rewrite.hash_path)
                    runtime_root = replacement_prefix(token_base, sub, json_escaped=False)
                    catalog_url = guess_catalog_url(normalize_separators(runtime_root), catalog_local)
                else:
                    for warning in rewrite.warnings:
                        result.warn(BuildState.REWRITING, warning, rewrite.error.code if rewrite.error else 0)
        else:
            missing = CatalogNotFoundError(path=pack_folder)
            logger.warning("%s", missing.message)
            result.warn(BuildState.REWRITING, missing.message, missing.code)

        result.catalog_url = catalog_url

        if options.write_manifest_json:
            if pack.remote_load_root_override:
                bundles_remote_root = pack.remote_load_root_override.replace("{pack}", sub)
            elif token_base is not None:
                bundles_remote_root = normalize_separators(token_base) + "/" + sub
            else:
                bundles_remote_root = load_value

            manifest = PackBuildManifest(
                pack_name=pack.name,
                build_target=options.build_target,
                profile_name=self.store.profile_name(profile_id) or profile_id,
                player_version_override=self.settings.override_player_version,
                catalog_remote_url=catalog_url,
                catalog_local_path=catalog_local,
                bundles_remote_root=bundles_remote_root,
                bundles_local_path=pack_folder,
                labels=list(pack.labels),
            )
            written = write_manifest(manifest, pack_folder, options.manifest_file_name)
            if written.success:
                result.manifest_path = str(written.path)
            else:
                for warning in written.warnings:
                    result.warn(BuildState.REWRITING, warning, written.error.code if written.error else 0)

        if catalog_local:
            logger.info("Pack '%s' built. Catalog: %s. Load at runtime: %s", pack.name, catalog_local, catalog_url)
