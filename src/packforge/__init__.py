"""
packforge - Build content packs into isolated bundle folders with relocatable catalogs.

packforge packages one named content pack at a time:
- Rebinds the pack's groups to a dedicated output folder for one build
- Runs the external bundle build
- Rewrites the catalog into installed-assets token form and refreshes its hash
- Restores every temporary setting afterwards, even when the build fails

Example usage:
    $ packforge build packs/vanilla.yaml --settings packforge.yaml \\
        --out /game/StreamingAssets/Addressables --command "make bundles"
    $ packforge hash /game/StreamingAssets/Addressables/Vanilla/catalog.json --verify
"""

__version__ = "0.1.0"
__author__ = "packforge Contributors"

__all__ = [
    "__version__",
    "__author__",
]
