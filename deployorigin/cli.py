"""deployorigin CLI — inspect and edit deployment origin files."""

from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from dataclasses import dataclass

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from deployorigin import __version__
from deployorigin.config import DEFAULT_LOG_LEVEL, ORIGIN_FILE_ENVVAR, VALID_LOG_LEVELS
from deployorigin.errors import KeyFileError, OriginError

console = Console()


@dataclass
class CliState:
    """Options shared by every subcommand."""

    origin_path: str | None
    dry_run: bool = False


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--origin",
    "-o",
    "origin_path",
    envvar=ORIGIN_FILE_ENVVAR,
    type=click.Path(dir_okay=False),
    help=f"Origin file to operate on (default: ${ORIGIN_FILE_ENVVAR})",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--dry-run", is_flag=True, help="Print the resulting origin instead of saving it")
@click.pass_context
def main(ctx: click.Context, origin_path: str | None, verbose: bool, dry_run: bool):
    """deployorigin — manage how a deployment was derived.

    Reads an origin file (refspec, layered packages, overrides, initramfs
    settings), applies the requested change, and writes it back.
    """
    level = "DEBUG" if verbose else DEFAULT_LOG_LEVEL
    if level not in VALID_LOG_LEVELS:
        level = "WARNING"
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")
    ctx.obj = CliState(origin_path=origin_path, dry_run=dry_run)


# ── Helpers ──────────────────────────────────────────────────────────


def _fail(message: str) -> None:
    console.print(f"[red]Error:[/] {escape(message)}")
    sys.exit(1)


def _load(state: CliState):
    from deployorigin.origin.store import OriginStore

    if not state.origin_path:
        raise click.UsageError(f"No origin file given; use --origin or set {ORIGIN_FILE_ENVVAR}")

    store = OriginStore(state.origin_path)
    try:
        return store, store.load()
    except FileNotFoundError as e:
        _fail(str(e))
    except (OriginError, KeyFileError) as e:
        _fail(f"Failed to parse {state.origin_path}: {e}")


@contextmanager
def _edit_origin(state: CliState):
    """Yield the loaded origin; save it afterwards unless the edit failed."""
    store, origin = _load(state)
    try:
        yield origin
    except ValueError as e:
        # OriginError and KeyFileError are ValueErrors, as are contract violations
        _fail(str(e))

    if state.dry_run:
        click.echo(origin.to_text(), nl=False)
    else:
        store.save(origin)


def _report(changed: bool, origin) -> None:
    if not changed:
        console.print("No changes.")
        return
    assembly = "[yellow]required[/]" if origin.requires_local_assembly else "[green]not required[/]"
    console.print(f"[green]Origin updated.[/] Local assembly: {assembly}")


# ── Show ─────────────────────────────────────────────────────────────


@main.command()
@click.option("--format", "fmt", default="text", type=click.Choice(["text", "json", "yaml"]))
@click.pass_obj
def show(state: CliState, fmt: str):
    """Show the parsed origin."""
    _, origin = _load(state)
    data = origin.to_dict()

    if fmt == "json":
        import json

        click.echo(json.dumps(data, indent=2))
        return

    if fmt == "yaml":
        import yaml

        click.echo(yaml.safe_dump(data, sort_keys=False), nl=False)
        return

    table = Table(title=f"Origin: {escape(state.origin_path)}")
    table.add_column("Field", style="cyan")
    table.add_column("Value")

    custom = origin.custom_origin
    rows = [
        ("Refspec", origin.refspec_target),
        ("Kind", origin.refspec_kind.value),
        ("Local assembly", "yes" if origin.requires_local_assembly else "no"),
        ("Override commit", origin.override_commit or ""),
        ("Custom origin", f"{custom.description} ({custom.url})" if custom else ""),
        ("Requested", ", ".join(sorted(origin.requested_packages))),
        ("Requested (local)", ", ".join(sorted(origin.requested_local_packages))),
        ("Removed", ", ".join(sorted(origin.overrides_remove))),
        ("Replaced (local)", ", ".join(sorted(origin.overrides_local_replace))),
        ("Initramfs", " ".join(["regenerate", *origin.initramfs_args]) if origin.regenerate_initramfs else ""),
        ("Initramfs /etc", ", ".join(sorted(origin.initramfs_etc_files))),
        ("CLI wrap", "yes" if origin.cliwrap else "no"),
        ("Unconfigured", origin.unconfigured_state or ""),
    ]
    for name, value in rows:
        table.add_row(name, escape(value))

    console.print(table)


# ── Packages ─────────────────────────────────────────────────────────


@main.command()
@click.argument("packages", nargs=-1, required=True)
@click.option("--local", is_flag=True, help="Packages are local, given as SHA256:NEVRA")
@click.option("--idempotent", is_flag=True, help="Do nothing if a package is already requested")
@click.pass_obj
def install(state: CliState, packages: tuple, local: bool, idempotent: bool):
    """Request packages to layer on top of the base."""
    with _edit_origin(state) as origin:
        changed = origin.add_packages(packages, local=local, allow_existing=idempotent)
    _report(changed, origin)


@main.command()
@click.argument("packages", nargs=-1)
@click.option("--all", "remove_all", is_flag=True, help="Remove all package requests")
@click.option("--allow-noent", is_flag=True, help="Ignore packages that are not requested")
@click.pass_obj
def uninstall(state: CliState, packages: tuple, remove_all: bool, allow_noent: bool):
    """Drop package requests (by request string, NEVRA, or package name)."""
    if not packages and not remove_all:
        raise click.UsageError("Give at least one package, or --all")

    with _edit_origin(state) as origin:
        if remove_all:
            changed = origin.remove_all_packages()
        else:
            changed = origin.remove_packages(packages, allow_noent=allow_noent)
    _report(changed, origin)


# ── Overrides ────────────────────────────────────────────────────────


@main.group()
def override():
    """Manage overrides of base packages."""


@override.command(name="remove")
@click.argument("packages", nargs=-1, required=True)
@click.pass_obj
def override_remove(state: CliState, packages: tuple):
    """Remove base packages by name."""
    from deployorigin.origin.models import OverrideKind

    with _edit_origin(state) as origin:
        origin.add_overrides(packages, OverrideKind.REMOVE)
    _report(True, origin)


@override.command(name="replace")
@click.argument("packages", nargs=-1, required=True)
@click.pass_obj
def override_replace(state: CliState, packages: tuple):
    """Replace base packages with local ones, given as SHA256:NEVRA."""
    from deployorigin.origin.models import OverrideKind

    with _edit_origin(state) as origin:
        origin.add_overrides(packages, OverrideKind.REPLACE_LOCAL)
    _report(True, origin)


@override.command(name="reset")
@click.argument("packages", nargs=-1)
@click.option("--all", "reset_all", is_flag=True, help="Reset all overrides")
@click.pass_obj
def override_reset(state: CliState, packages: tuple, reset_all: bool):
    """Drop overrides, by package name or replacement NEVRA."""
    from deployorigin.identifiers.nevra import package_name
    from deployorigin.origin.models import OverrideKind

    if not packages and not reset_all:
        raise click.UsageError("Give at least one package, or --all")

    with _edit_origin(state) as origin:
        if reset_all:
            changed = origin.remove_all_overrides()
        else:
            for pkg in packages:
                if origin.remove_override(pkg, OverrideKind.REMOVE):
                    continue
                if origin.remove_override(pkg, OverrideKind.REPLACE_LOCAL):
                    continue
                by_name = [n for n in origin.overrides_local_replace if package_name(n) == pkg]
                if not by_name:
                    raise ValueError(f"No override found for package '{pkg}'")
                origin.remove_override(by_name[0], OverrideKind.REPLACE_LOCAL)
            changed = True
    _report(changed, origin)


# ── Refspec ──────────────────────────────────────────────────────────


@main.command()
@click.argument("refspec")
@click.option("--custom-url", default=None, help="URL describing a custom pinned origin")
@click.option("--custom-description", default=None, help="Description of a custom pinned origin")
@click.pass_obj
def rebase(state: CliState, refspec: str, custom_url: str | None, custom_description: str | None):
    """Switch to a new refspec. Clears any pinned override commit."""
    from deployorigin.origin.models import CustomOrigin

    with _edit_origin(state) as origin:
        custom = None
        if custom_url is not None or custom_description is not None:
            custom = CustomOrigin(url=custom_url or "", description=custom_description or "")
        origin.rebase(refspec, custom)
    console.print(f"[green]Rebased[/] to {escape(origin.refspec_target)} ({origin.refspec_kind.value})")


@main.command()
@click.argument("checksum", required=False)
@click.option("--version", "version_label", default=None, help="Version label for the pinned commit")
@click.pass_obj
def pin(state: CliState, checksum: str | None, version_label: str | None):
    """Pin the deployment to CHECKSUM, or unpin when omitted."""
    with _edit_origin(state) as origin:
        origin.set_override_commit(checksum, version_label)
    if checksum:
        console.print(f"[green]Pinned[/] to {escape(checksum)}")
    else:
        console.print("[green]Unpinned[/]")


@main.command(name="cleanup-transient")
@click.pass_obj
def cleanup_transient(state: CliState):
    """Drop deployment-specific state (pinned commit, unlock state)."""
    with _edit_origin(state) as origin:
        origin.remove_transient_state()
    console.print("[green]Transient state removed.[/]")


# ── Initramfs ────────────────────────────────────────────────────────


@main.command()
@click.option("--enable/--disable", default=None, help="Regenerate the initramfs client-side")
@click.option("--arg", "args", multiple=True, help="Extra argument for initramfs generation")
@click.pass_obj
def initramfs(state: CliState, enable: bool | None, args: tuple):
    """Enable or disable client-side initramfs regeneration."""
    if enable is None:
        if args:
            raise click.UsageError("--arg requires --enable")
        _, origin = _load(state)
        status = "enabled" if origin.regenerate_initramfs else "disabled"
        console.print(f"Initramfs regeneration: {status} {escape(' '.join(origin.initramfs_args))}")
        return

    if args and not enable:
        raise click.UsageError("--arg cannot be combined with --disable")

    with _edit_origin(state) as origin:
        changed = origin.regenerate_initramfs != enable or origin.initramfs_args != args
        origin.set_regenerate_initramfs(enable, list(args))
    _report(changed, origin)


@main.command(name="initramfs-etc")
@click.option("--track", multiple=True, help="Path under /etc to include in the initramfs")
@click.option("--untrack", multiple=True, help="Path to stop including")
@click.option("--untrack-all", is_flag=True, help="Stop including all tracked paths")
@click.pass_obj
def initramfs_etc(state: CliState, track: tuple, untrack: tuple, untrack_all: bool):
    """Track or untrack /etc files in the initramfs."""
    if not (track or untrack or untrack_all):
        raise click.UsageError("Give --track, --untrack or --untrack-all")

    with _edit_origin(state) as origin:
        changed = False
        if untrack_all:
            changed = origin.untrack_all_etc_files() or changed
        if untrack:
            changed = origin.untrack_etc_files(untrack) or changed
        if track:
            changed = origin.track_etc_files(track) or changed
    _report(changed, origin)


@main.command()
@click.option("--enable/--disable", required=True, help="Wrap package manager CLIs")
@click.pass_obj
def cliwrap(state: CliState, enable: bool):
    """Enable or disable CLI wrapping."""
    with _edit_origin(state) as origin:
        changed = origin.cliwrap != enable
        origin.set_cliwrap(enable)
    _report(changed, origin)


if __name__ == "__main__":
    main()
