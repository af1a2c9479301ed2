"""
CLI entry point for packforge.

This module provides the Typer-based command-line interface for packforge.

Commands:
    build       Build one or more content packs
    rewrite     Rewrite an existing catalog into token form
    hash        Print (or verify) a catalog content hash
    vars        List profile variables from a settings file

Architecture Note:
    The CLI is thin - it loads files, configures logging, and delegates to
    PackBuilder / build_packs. The pipeline is usable without the CLI.
"""

import json
import logging
import shlex
import traceback
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from packforge import __version__
from packforge.batch import automation_options, build_packs
from packforge.builder import PackBuilder
from packforge.catalog import hash_path_for, rewrite_catalog, verify_catalog_hash
from packforge.errors import PackforgeError
from packforge.invoker import CommandBuildInvoker
from packforge.paths import (
    DEFAULT_INSTALLED_ASSETS_MARKER,
    DEFAULT_INSTALLED_ASSETS_TOKEN,
    compute_content_hash,
    compute_token_base,
    normalize_separators,
    relative_under_root,
)
from packforge.schema import BuildResult, BuildState, load_options, load_packs
from packforge.settings import load_settings, save_settings

app = typer.Typer(
    name="packforge",
    help="Build content packs into isolated bundle folders with relocatable catalogs.",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()


def configure_logging(verbose: bool = False, quiet: bool = False) -> None:
    """Route packforge logs through rich. Quiet mode keeps only warnings."""
    logger = logging.getLogger("packforge")
    logger.handlers.clear()
    handler = RichHandler(console=Console(stderr=True), show_path=False, markup=False)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    if quiet:
        logger.setLevel(logging.WARNING)
    else:
        logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.propagate = False


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]packforge[/bold] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """
    packforge - Content pack builder.

    Builds each pack into its own folder, rewrites catalogs for relocation,
    and always restores the packaging settings afterwards.
    """
    pass


@app.command()
def build(
    pack_path: Annotated[
        Path,
        typer.Argument(
            help="Pack YAML file (a single pack or a 'packs' list).",
            exists=True,
            readable=True,
            resolve_path=True,
        ),
    ],
    settings_path: Annotated[
        Path,
        typer.Option(
            "--settings",
            "-s",
            help="Packaging settings YAML file.",
            exists=True,
            readable=True,
            resolve_path=True,
        ),
    ],
    command: Annotated[
        str,
        typer.Option(
            "--command",
            "-c",
            help="External build command, e.g. \"make bundles OUT={output_dir}\".",
        ),
    ],
    output: Annotated[
        Optional[str],
        typer.Option(
            "--out",
            "-o",
            help="Absolute output folder; each pack builds into <out>/<pack>.",
        ),
    ] = None,
    options_path: Annotated[
        Optional[Path],
        typer.Option(
            "--options",
            help="Build options YAML file (defaults to unattended build options).",
            exists=True,
            readable=True,
            resolve_path=True,
        ),
    ] = None,
    profile: Annotated[
        Optional[str],
        typer.Option("--profile", "-p", help="Profile id (defaults to the active profile)."),
    ] = None,
    remote_catalog: Annotated[
        Optional[bool],
        typer.Option("--remote-catalog/--no-remote-catalog", help="Force the remote catalog on."),
    ] = None,
    isolate: Annotated[
        Optional[bool],
        typer.Option("--isolate/--keep-other-groups", help="Exclude groups outside the pack."),
    ] = None,
    manifest: Annotated[
        Optional[bool],
        typer.Option("--manifest/--no-manifest", help="Write <pack>.manifest.json."),
    ] = None,
    manifest_name: Annotated[
        Optional[str],
        typer.Option("--manifest-name", help="Override the manifest file name."),
    ] = None,
    version_override: Annotated[
        Optional[bool],
        typer.Option("--version-override/--no-version-override", help="Set the version string to the pack name."),
    ] = None,
    force_local_paths: Annotated[
        bool,
        typer.Option("--force-local-paths", help="Move pack groups onto the local path variables first."),
    ] = False,
    timeout: Annotated[
        Optional[float],
        typer.Option("--timeout", help="Build command timeout in seconds."),
    ] = None,
    no_save: Annotated[
        bool,
        typer.Option("--no-save", help="Do not write simplified addresses back to the settings file."),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Enable verbose output for debugging."),
    ] = False,
    debug: Annotated[
        bool,
        typer.Option("--debug", help="Enable debug mode with full error tracebacks."),
    ] = False,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output results in JSON format."),
    ] = False,
) -> None:
    """
    Build content packs.

    Example:
        $ packforge build packs.yaml -s packforge.yaml -o /game/StreamingAssets/Addr -c "make bundles"
    """
    configure_logging(verbose, quiet=json_output)

    try:
        packs = load_packs(pack_path)
        settings = load_settings(settings_path)
        options = load_options(options_path) if options_path else automation_options(output or "", profile)
    except Exception as e:
        if json_output:
            _output_json_error("load_error", str(e), debug)
        else:
            console.print(f"[red]Error loading input: {e}[/red]")
            if debug:
                console.print(f"[dim]{traceback.format_exc()}[/dim]")
        raise typer.Exit(code=1)

    updates = {
        key: value
        for key, value in {
            "profile_id": profile,
            "enable_remote_catalog": remote_catalog,
            "disable_other_groups": isolate,
            "write_manifest_json": manifest,
            "manifest_file_name": manifest_name,
            "set_player_version_override": version_override,
            "force_local_paths": force_local_paths or None,
        }.items()
        if value is not None
    }
    options = options.model_copy(update=updates)
    output_root = output or options.output_root_override

    try:
        invoker = CommandBuildInvoker(shlex.split(command), cwd=Path.cwd(), timeout_seconds=timeout)
        builder = PackBuilder(settings, invoker)
        results = build_packs(builder, packs, output_root, options)
    except PackforgeError as e:
        if json_output:
            _output_json_error(type(e).__name__, str(e), debug)
        else:
            console.print(f"[red]{e}[/red]")
            if debug:
                console.print(f"[dim]{traceback.format_exc()}[/dim]")
        raise typer.Exit(code=1)
    except Exception as e:
        if json_output:
            _output_json_error("build_error", str(e), debug)
        else:
            console.print(f"[red]Build error: {e}[/red]")
            if debug:
                console.print(f"[dim]{traceback.format_exc()}[/dim]")
        raise typer.Exit(code=1)

    if settings.modified_groups and not no_save:
        try:
            save_settings(settings, settings_path)
        except PackforgeError as e:
            console.print(f"[yellow]{e}[/yellow]")

    built_names = {r.pack_name for r in results}
    failed = [p.name for p in packs if p.name not in built_names]

    if json_output:
        _output_json_results(results, failed)
    else:
        for result in results:
            _display_build_result(result, verbose)
        for name in failed:
            console.print(f"[red]✗[/red] Pack [bold]{name}[/bold]: [red]failed[/red]")

    raise typer.Exit(code=1 if failed else 0)


def _display_build_result(result: BuildResult, verbose: bool) -> None:
    """Display one build result."""
    if result.state == BuildState.DONE:
        console.print(f"[green]✓[/green] Pack [bold]{result.pack_name}[/bold]: [green]built[/green]")
    else:
        console.print(f"[red]✗[/red] Pack [bold]{result.pack_name}[/bold]: [red]{result.state.value}[/red]")

    table = Table(show_header=False, box=None)
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    table.add_row("Output", result.output_dir)
    table.add_row("Catalog", result.catalog_path or "[yellow]none[/yellow]")
    table.add_row("Load at runtime", result.catalog_url or "")
    if result.token_base:
        table.add_row("Token base", result.token_base)
    if result.hash_path:
        table.add_row("Hash", result.hash_path)
    if result.manifest_path:
        table.add_row("Manifest", result.manifest_path)
    if verbose:
        table.add_row("Addresses changed", str(result.addresses_changed))
        table.add_row("Phases", " → ".join(s.value for s in result.history))
    console.print(table)

    for warning in result.warnings:
        console.print(f"  [yellow]![/yellow] [{warning.phase.value}] {warning.message}")
    console.print()


def _output_json_results(results: list[BuildResult], failed: list[str]) -> None:
    """Output build results in JSON format."""
    output = {
        "success": not failed,
        "built": [r.model_dump(mode="json") for r in results],
        "failed": failed,
    }
    print(json.dumps(output, indent=2, default=str))


def _output_json_error(error_type: str, message: str, include_traceback: bool = False) -> None:
    """Output an error in JSON format."""
    output = {
        "error": True,
        "error_type": error_type,
        "message": message,
    }
    if include_traceback:
        output["traceback"] = traceback.format_exc()
    print(json.dumps(output, indent=2))


@app.command()
def rewrite(
    catalog_path: Annotated[
        Path,
        typer.Argument(
            help="Catalog JSON file to rewrite.",
            exists=True,
            dir_okay=False,
            resolve_path=True,
        ),
    ],
    physical_dir: Annotated[
        str,
        typer.Option("--physical-dir", "-d", help="Pack folder the catalog was built into."),
    ],
    pack_name: Annotated[
        Optional[str],
        typer.Option("--pack", help="Pack folder name (defaults to the last segment of --physical-dir)."),
    ] = None,
    marker: Annotated[
        str,
        typer.Option("--marker", help="Installed-assets root marker."),
    ] = DEFAULT_INSTALLED_ASSETS_MARKER,
    token: Annotated[
        str,
        typer.Option("--token", help="Installed-assets runtime token."),
    ] = DEFAULT_INSTALLED_ASSETS_TOKEN,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output results in JSON format."),
    ] = False,
) -> None:
    """
    Rewrite a built catalog into installed-assets token form.

    Example:
        $ packforge rewrite Vanilla/catalog.json -d /game/StreamingAssets/Addr/Vanilla
    """
    configure_logging(quiet=json_output)

    folder = normalize_separators(physical_dir).rstrip("/")
    root, _, last = folder.rpartition("/")
    name = pack_name or last

    remainder = relative_under_root(root, marker)
    if remainder is None:
        message = f"{root} is not under the installed-assets root ({marker})"
        if json_output:
            _output_json_error("not_under_root", message)
        else:
            console.print(f"[red]{message}[/red]")
        raise typer.Exit(code=1)

    token_base = compute_token_base(remainder, token)
    result = rewrite_catalog(catalog_path, folder, token_base, name)

    if json_output:
        print(json.dumps({
            "success": result.success,
            "catalog_path": str(result.catalog_path),
            "hash_path": str(result.hash_path),
            "hash": result.hash_value,
            "replacements": result.replacements,
            "token_base": token_base,
            "warnings": result.warnings,
        }, indent=2))
    elif result.success:
        console.print(f"[green]✓[/green] Rewrote {result.replacements} path(s) → [cyan]{token_base}[/cyan]")
        console.print(f"[dim]Hash: {result.hash_value} ({result.hash_path})[/dim]")
    else:
        for warning in result.warnings:
            console.print(f"[yellow]{warning}[/yellow]")

    raise typer.Exit(code=0 if result.success else 1)


@app.command("hash")
def hash_command(
    file_path: Annotated[
        Path,
        typer.Argument(help="File to hash.", exists=True, dir_okay=False, resolve_path=True),
    ],
    verify: Annotated[
        bool,
        typer.Option("--verify", help="Check the file against its sibling .hash file."),
    ] = False,
) -> None:
    """Print the content hash of a catalog, or verify it against its .hash file."""
    if verify:
        ok = verify_catalog_hash(file_path)
        if ok:
            console.print(f"[green]✓[/green] {hash_path_for(file_path)} matches")
        else:
            console.print(f"[red]✗[/red] {hash_path_for(file_path)} is missing or stale")
        raise typer.Exit(code=0 if ok else 1)

    print(compute_content_hash(file_path.read_bytes()))


@app.command("vars")
def list_vars(
    settings_path: Annotated[
        Path,
        typer.Option(
            "--settings",
            "-s",
            help="Packaging settings YAML file.",
            exists=True,
            readable=True,
            resolve_path=True,
        ),
    ],
    profile: Annotated[
        Optional[str],
        typer.Option("--profile", "-p", help="Only show this profile."),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output in JSON format."),
    ] = False,
) -> None:
    """List profile variables and their values."""
    try:
        settings = load_settings(settings_path)
    except PackforgeError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1)

    profiles = [p for p in settings.profiles if profile is None or p.id == profile]
    if profile is not None and not profiles:
        console.print(f"[red]Profile not found: {profile}[/red]")
        raise typer.Exit(code=1)

    if json_output:
        print(json.dumps({p.id: p.values for p in profiles}, indent=2))
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Profile", style="cyan")
    table.add_column("Variable")
    table.add_column("Value")
    for p in profiles:
        active = " [green](active)[/green]" if p.id == settings.active_profile_id else ""
        for name, value in p.values.items():
            table.add_row(f"{p.name or p.id}{active}", name, value or "[dim]<empty>[/dim]")
    console.print(table)
