"""hubstore CLI — manage the libraries served by an H5P content type hub."""

from __future__ import annotations

import logging
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from hubstore import __version__
from hubstore.config import load_config

console = Console()
err_console = Console(stderr=True)


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "config_path", default=None, help="Path to a YAML config file")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
@click.pass_context
def main(ctx: click.Context, config_path: str | None, verbose: bool):
    """hubstore — versioned library store for H5P content types.

    Lists, installs, removes and exports libraries and checks their
    dependencies.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
    )

    config = load_config(config_path)
    config.ensure_directories()
    ctx.obj = config


def _store(config):
    from hubstore.library.store import LibraryStore

    return LibraryStore(config.libraries_path, public_url=config.public_url)


# ── Libraries ────────────────────────────────────────────────────────


@main.command(name="list")
@click.option("--runnable-only", is_flag=True, help="Only list content types")
@click.option("--machine-name", "-m", default=None, help="Only list this machine name")
@click.pass_obj
def list_libraries(config, runnable_only: bool, machine_name: str | None):
    """List installed libraries."""
    store = _store(config)
    identities = store.list_identities(runnable_only=runnable_only, machine_name=machine_name)

    if not identities:
        console.print("[yellow]No libraries found.[/]")
        return

    for identity in identities:
        console.print(f"  [cyan]{identity}[/]")


@main.command()
@click.argument("archive", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_obj
def add(config, archive: Path):
    """Install the libraries contained in an .h5p or .zip ARCHIVE."""
    from hubstore.distribution.importer import Importer
    from hubstore.errors import UpdateInProgressError
    from hubstore.utils.fs import update_lock

    store = _store(config)
    importer = Importer(store, config.temp_path, allowed_dir=archive.absolute().parent)

    try:
        with update_lock(config.lock_path):
            ok = importer.import_archive(archive)
    except UpdateInProgressError as e:
        console.print(f"[red]{e}[/]")
        raise SystemExit(1)

    if not ok:
        console.print("[red]Import failed. See errors above.[/]")
        raise SystemExit(1)

    console.print("[green]Import done.[/]")


@main.command()
@click.argument("uber_name")
@click.pass_obj
def remove(config, uber_name: str):
    """Remove an installed library, e.g. 'H5P.Example 1.2'."""
    from hubstore.distribution.exporter import Exporter
    from hubstore.errors import MalformedIdentityError, UpdateInProgressError
    from hubstore.library.identity import parse_folder_name, parse_identity
    from hubstore.utils.fs import update_lock

    try:
        identity = parse_identity(uber_name)
    except MalformedIdentityError as e:
        console.print(f"[red]{e}[/]")
        raise SystemExit(1)

    store = _store(config)
    relevant = []
    for folder_name in store.library_folder_names():
        try:
            folder = parse_folder_name(folder_name)
        except MalformedIdentityError:
            continue
        if folder.machine_name != identity.machine_name:
            continue
        if identity.has_minor_line and (folder.major_version, folder.minor_version) != (
            identity.major_version,
            identity.minor_version,
        ):
            continue
        relevant.append(folder_name)

    if len(relevant) > 1:
        console.print(f"[red]There are multiple library folders for {identity.machine_name}:[/]")
        for item in store.list_identities(machine_name=identity.machine_name):
            console.print(f"[red]- {item}[/]")
        console.print("[red]Please specify the major.minor version to remove.[/]")
        raise SystemExit(1)

    if not relevant:
        message = f"No library folder found for {uber_name}."
        if not identity.machine_name.startswith("H5P."):
            message += f" Did you mean H5P.{uber_name}?"
        console.print(f"[red]{message}[/]")
        raise SystemExit(1)

    folder = parse_folder_name(relevant[0])
    try:
        with update_lock(config.lock_path):
            removed = store.remove(relevant[0])
            if removed:
                Exporter(store, config.temp_path, config.exports_path).remove(folder.minor_line)
    except UpdateInProgressError as e:
        console.print(f"[red]{e}[/]")
        raise SystemExit(1)

    if not removed:
        console.print(f"[red]Could not remove {relevant[0]}: its library.json is unreadable.[/]")
        raise SystemExit(1)

    console.print("[blue]Library folder removed.[/]")


# ── Dependencies ─────────────────────────────────────────────────────


@main.command()
@click.argument("uber_name")
@click.option(
    "--kind",
    default="all",
    type=click.Choice(["mandatory", "optional", "all"]),
    help="Which dependencies to list",
)
@click.pass_obj
def deps(config, uber_name: str, kind: str):
    """List the direct dependencies of a library."""
    from hubstore.resolver.dependency_resolver import DependencyResolver
    from hubstore.resolver.models import DependencyKind

    store = _store(config)
    resolver = DependencyResolver(store)
    own = store.minor_line_for(uber_name)
    dependencies = sorted(resolver.direct_dependencies(uber_name, DependencyKind(kind)) - {own})

    console.print(f"\n[bold blue]Dependencies for {uber_name}:[/]")
    for dependency in dependencies:
        console.print(f"  [cyan]- {dependency}[/]")


@main.command(name="total-deps")
@click.argument("uber_name")
@click.pass_obj
def total_deps(config, uber_name: str):
    """List every library a library needs, directly or indirectly."""
    from hubstore.resolver.dependency_resolver import DependencyResolver

    store = _store(config)
    resolver = DependencyResolver(store)
    own = store.minor_line_for(uber_name)
    closure = sorted(resolver.transitive_closure(uber_name) - {own})

    console.print(f"\n[bold blue]All dependencies for {uber_name}:[/]")
    for dependency in closure:
        installed = "" if store.get(dependency, exact=True) else " [red](not installed)[/]"
        console.print(f"  [cyan]- {dependency}[/]{installed}")


@main.command()
@click.argument("uber_name")
@click.pass_obj
def check(config, uber_name: str):
    """Check a library for dependency conflicts, missing and outdated dependencies."""
    from hubstore.errors import MalformedIdentityError
    from hubstore.library.identity import parse_identity
    from hubstore.resolver.dependency_resolver import DependencyResolver
    from hubstore.resolver.models import Severity

    try:
        identity = parse_identity(uber_name)
    except MalformedIdentityError as e:
        console.print(f"[red]{e}[/]")
        raise SystemExit(1)

    store = _store(config)
    # A requested major.minor must be installed itself, not just a later line
    if store.get(uber_name, exact=identity.has_minor_line) is None:
        console.print(f"[red]Library not installed: {uber_name}[/]")
        raise SystemExit(1)

    result = DependencyResolver(store).check(uber_name)

    if result.findings:
        table = Table(title=f"Dependency check ({len(result.findings)} findings)")
        table.add_column("Level", width=7)
        table.add_column("Code", style="dim")
        table.add_column("Message")

        for finding in result.findings:
            level = "[red]error[/]" if finding.severity == Severity.ERROR else "[yellow]warning[/]"
            table.add_row(level, finding.code, finding.message)

        console.print(table)

    console.print(result.summary())
    if not result.passed:
        raise SystemExit(1)


# ── Export ───────────────────────────────────────────────────────────


@main.command(name="export")
@click.argument("uber_name")
@click.pass_obj
def export_library(config, uber_name: str):
    """Write a self-contained .h5p archive for a library."""
    from hubstore.distribution.exporter import Exporter
    from hubstore.errors import LibraryNotFoundError, UpdateInProgressError
    from hubstore.utils.fs import update_lock

    store = _store(config)
    exporter = Exporter(store, config.temp_path, config.exports_path)

    try:
        with update_lock(config.lock_path):
            path = exporter.export(uber_name)
    except (LibraryNotFoundError, UpdateInProgressError) as e:
        console.print(f"[red]{e}[/]")
        raise SystemExit(1)

    console.print(f"[green]Export written to:[/] {path}")


@main.command(name="update-exports")
@click.argument("uber_names", nargs=-1)
@click.pass_obj
def update_exports(config, uber_names: tuple[str, ...]):
    """Rebuild export files, for all content types or only UBER_NAMES."""
    from hubstore.distribution.exporter import Exporter
    from hubstore.errors import LibraryNotFoundError, MalformedIdentityError, UpdateInProgressError
    from hubstore.utils.fs import update_lock

    store = _store(config)
    exporter = Exporter(store, config.temp_path, config.exports_path)

    console.print("[blue]Updating export files ...[/]")
    try:
        with update_lock(config.lock_path):
            paths = exporter.export_all(list(uber_names))
    except (LibraryNotFoundError, MalformedIdentityError, UpdateInProgressError) as e:
        console.print(f"[red]{e}[/]")
        raise SystemExit(1)

    for path in paths:
        console.print(f"  [cyan]- {path.name}[/]")
    console.print(f"[blue]Done updating {len(paths)} export files.[/]")


if __name__ == "__main__":
    main()
