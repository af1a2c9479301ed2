"""
Batch building of several packs into one output folder.

Mirrors the automation entry point of the content pipeline: the output
folder is validated once, every pack is built with the standard automation
options, and a failing pack is logged and skipped so the rest still build.
"""

import logging
from collections.abc import Iterable
from pathlib import Path

from packforge.builder import PackBuilder
from packforge.errors import PackforgeError
from packforge.paths import ensure_writable_folder, normalize_separators
from packforge.schema import BuildOptions, BuildResult, ContentPack

logger = logging.getLogger(__name__)


def automation_options(output_root: str, profile_id: str | None = None) -> BuildOptions:
    """Options used for unattended builds."""
    return BuildOptions(
        profile_id=profile_id,
        enable_remote_catalog=True,
        disable_other_groups=True,
        write_manifest_json=True,
        set_player_version_override=True,
        output_root_override=output_root,
    )


def build_packs(
    builder: PackBuilder,
    packs: Iterable[ContentPack | None],
    output_root: str | Path,
    options: BuildOptions | None = None,
) -> list[BuildResult]:
    """
    Build several packs one after another.

    Args:
        builder: Builder bound to the settings and invoker
        packs: Packs to build; None entries are skipped
        output_root: Absolute output folder shared by all packs
        options: Base options; output_root_override is always replaced

    Returns:
        Results of the packs that built successfully

    Raises:
        OutputFolderError: If the output folder is empty, relative, or not writable
    """
    pack_list = [p for p in packs if p is not None]
    if not pack_list:
        logger.warning("No packs to build.")
        return []

    folder = ensure_writable_folder(output_root)
    root = normalize_separators(str(folder))

    if options is None:
        options = automation_options(root)
    else:
        options = options.model_copy(update={"output_root_override": root})

    built: list[BuildResult] = []
    for pack in pack_list:
        try:
            result = builder.build(pack, options)
        except PackforgeError as e:
            logger.error("Failed building '%s': %s", pack.name, e)
            continue
        except Exception:
            logger.exception("Unexpected error building '%s'", pack.name)
            continue
        logger.info("Built pack '%s'.", pack.name)
        built.append(result)

    if built:
        logger.info("Built %d content pack(s).", len(built))
    else:
        logger.info("Nothing built.")
    return built
