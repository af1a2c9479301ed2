"""
Pytest configuration and fixtures for packforge tests.

This module provides shared fixtures used across unit and integration tests:
an in-memory settings store with a few groups, and a fake build invoker that
writes bundles and a catalog embedding the physical output folder.
"""

import logging
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Generator

import pytest

from packforge.invoker import BuildContext, BuildInvoker
from packforge.paths import compute_content_hash
from packforge.schema import AssetEntry, AssetGroup, BundledGroupSchema, Profile
from packforge.settings import PackagingSettings


@pytest.fixture(autouse=True)
def reset_packforge_logger() -> Generator[None, None, None]:
    """Undo CLI logging configuration between tests."""
    yield
    logger = logging.getLogger("packforge")
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def install_root(temp_dir: Path) -> Path:
    """An output root under an installed-assets folder."""
    root = temp_dir / "Game" / "StreamingAssets" / "Addressables" / "Customization"
    root.mkdir(parents=True)
    return root


def make_group(name: str, *paths: str, include: bool = True) -> AssetGroup:
    """A group with a bundled schema bound to the remote path variables."""
    entries = [
        AssetEntry(guid=f"{name}-{i}", address=Path(p).stem, path=p)
        for i, p in enumerate(paths)
    ]
    return AssetGroup(
        name=name,
        entries=entries,
        bundled_schema=BundledGroupSchema(
            build_path="RemoteBuildPath",
            load_path="RemoteLoadPath",
            include_in_build=include,
        ),
    )


@pytest.fixture
def settings() -> PackagingSettings:
    """Settings with two profiles, a pack group, an unrelated group, and a data group."""
    return PackagingSettings(
        active_profile_id="default",
        profiles=[
            Profile(
                id="default",
                name="Default",
                values={
                    "LocalBuildPath": "Library/local",
                    "LocalLoadPath": "{runtime}/local",
                    "RemoteBuildPath": "ServerData/remote",
                    "RemoteLoadPath": "http://cdn/remote",
                },
            ),
            Profile(
                id="release",
                name="Release",
                values={
                    "LocalBuildPath": "Library/local",
                    "LocalLoadPath": "{runtime}/local",
                    "RemoteBuildPath": "ServerData/release",
                    "RemoteLoadPath": "http://cdn/release",
                },
            ),
        ],
        groups=[
            make_group(
                "Vanilla",
                "Assets/Packs/Vanilla/Sword.prefab",
                "Assets/Packs/Vanilla/Shield.prefab",
            ),
            make_group("Other", "Assets/Other/Sword.prefab", include=False),
            AssetGroup(name="Built In Data"),
        ],
        build_remote_catalog=False,
        override_player_version="base",
    )


class CatalogWritingInvoker(BuildInvoker):
    """
    Fake build that writes a bundle and a catalog into the output folder.

    The catalog embeds the physical folder in the three spellings a real
    build may produce. Every context it was called with is recorded, along
    with a snapshot of the bindings seen during the build.
    """

    def __init__(self, catalog_name: str = "catalog_2024.json", write_catalog: bool = True) -> None:
        self.catalog_name = catalog_name
        self.write_catalog = write_catalog
        self.calls: list[BuildContext] = []
        self.seen: list[dict] = []

    def build(self, context: BuildContext) -> None:
        self.calls.append(context)
        settings = context.settings
        if settings is not None:
            self.seen.append({
                "groups": {
                    g.name: (g.bundled_schema.build_path, g.bundled_schema.load_path, g.bundled_schema.include_in_build)
                    for g in settings.groups
                    if g.bundled_schema is not None
                },
                "remote_catalog": settings.build_remote_catalog,
                "version": settings.override_player_version,
                "catalog_build": settings.remote_catalog_build_path.variable,
                "catalog_load": settings.remote_catalog_load_path.variable,
            })

        out = Path(context.output_dir)
        out.mkdir(parents=True, exist_ok=True)
        (out / "vanilla_assets.bundle").write_bytes(b"bundle")
        if not self.write_catalog:
            return

        forward = str(context.output_dir).replace("\\", "/").rstrip("/") + "/"
        backward = forward.replace("/", "\\")
        escaped = backward.replace("\\", "\\\\")
        text = (
            "{\n"
            f'  "m_InternalIds": ["{escaped}vanilla_assets.bundle", "{forward}a.bundle"],\n'
            f'  "m_Raw": "{backward}b.bundle"\n'
            "}\n"
        )
        catalog = out / self.catalog_name
        catalog.write_text(text, encoding="utf-8")
        catalog.with_suffix(".hash").write_text(compute_content_hash(text), encoding="utf-8")


class FailingInvoker(BuildInvoker):
    """Fake build that raises after observing the bound settings."""

    def __init__(self, error: Exception | None = None) -> None:
        self.error = error or RuntimeError("compiler exploded")
        self.calls = 0

    def build(self, context: BuildContext) -> None:
        self.calls += 1
        raise self.error


@pytest.fixture
def catalog_invoker() -> CatalogWritingInvoker:
    """A fake build writing a catalog."""
    return CatalogWritingInvoker()


@pytest.fixture
def invoker_factory() -> type[CatalogWritingInvoker]:
    """The catalog-writing fake, for tests that need custom arguments."""
    return CatalogWritingInvoker


@pytest.fixture
def failing_invoker() -> FailingInvoker:
    """A fake build that always fails."""
    return FailingInvoker()


@pytest.fixture
def group_factory() -> Callable[..., AssetGroup]:
    """Builds groups bound to the remote path variables."""
    return make_group


@pytest.fixture
def snapshot() -> Callable[[PackagingSettings], dict]:
    """Serializes settings for before/after comparisons."""

    def _snapshot(s: PackagingSettings) -> dict:
        return s.to_document()

    return _snapshot
