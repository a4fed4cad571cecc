"""Command-line interface for modsync."""

import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .api import CatalogAPIError
from .config import Settings
from .downloader import Downloader, create_download_progress
from .identity import ModIdentity
from .instance import InstanceError, InstanceFiles
from .service import ModSyncService
from .state import StateError
from .versions import supports_catalog

console = Console()


def _format_size(size_bytes: int) -> str:
    if size_bytes >= 1024 * 1024:
        return f"{size_bytes / (1024 * 1024):.1f} MB"
    if size_bytes >= 1024:
        return f"{size_bytes / 1024:.1f} KB"
    return f"{size_bytes} B"


def _open(ctx: click.Context, mods_dir: Path, downloader: Downloader | None = None) -> ModSyncService:
    """Open the instance in mods_dir or exit with an error."""
    settings: Settings = ctx.obj["settings"]
    service = ModSyncService(settings)
    store = InstanceFiles(mods_dir, downloader or Downloader(timeout=settings.timeout))
    try:
        instance = service.open_instance(mods_dir, store=store)
    except StateError as e:
        console.print(f"[red]Error:[/red] {e}")
        console.print("Run 'init' first to describe the instance.")
        sys.exit(1)

    console.print(
        f"[bold]Instance:[/bold] {instance.name} "
        f"[dim]({instance.loader or 'vanilla'} {instance.game_version})[/dim]"
    )
    return service


def _refresh(service: ModSyncService) -> list[ModIdentity]:
    with console.status("[dim]Identifying installed mods...[/dim]"):
        return service.refresh()


@click.group()
@click.option(
    "--api-url",
    envvar="MODSYNC_API_URL",
    help="Catalog API base URL (or set MODSYNC_API_URL env var)",
)
@click.option(
    "--workers",
    envvar="MODSYNC_MAX_WORKERS",
    type=int,
    help="Concurrent catalog lookups (or set MODSYNC_MAX_WORKERS env var)",
)
@click.option("-v", "--verbose", is_flag=True, help="Show debug logging")
@click.pass_context
def main(ctx: click.Context, api_url: str | None, workers: int | None, verbose: bool) -> None:
    """Identify installed mods and keep them up to date."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
    )

    settings = Settings.from_env()
    if api_url:
        settings.api_url = api_url.rstrip("/")
    if workers:
        settings.max_workers = max(1, workers)

    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings


@main.command()
@click.argument("mods_dir", type=click.Path(file_okay=False, path_type=Path))
@click.option("--name", help="Instance name (defaults to the parent directory name)")
@click.option(
    "--loader",
    default="",
    help="Mod loader: fabric, quilt, forge or neoforge (empty for vanilla)",
)
@click.option("--version", "version", required=True, help="Instance version string")
@click.pass_context
def init(ctx: click.Context, mods_dir: Path, name: str | None, loader: str, version: str) -> None:
    """
    Record which loader and game version an instance uses.

    MODS_DIR: The instance's mods directory
    """
    service = ModSyncService(ctx.obj["settings"])
    instance = service.init_instance(
        mods_dir,
        name=name or mods_dir.resolve().parent.name,
        loader=loader,
        version=version,
    )
    console.print(f"[green]Initialized[/green] {instance.name}")
    console.print(f"[bold]Loader:[/bold] {instance.loader or 'vanilla'}")
    console.print(f"[bold]Game version:[/bold] {instance.game_version}")
    if not supports_catalog(instance.loader):
        console.print("[yellow]Update checks are not available for this loader.[/yellow]")


@main.command(name="list")
@click.argument("mods_dir", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.pass_context
def list_mods(ctx: click.Context, mods_dir: Path) -> None:
    """
    Show installed mods with their catalog metadata.

    MODS_DIR: The instance's mods directory
    """
    service = _open(ctx, mods_dir)
    identities = _refresh(service)

    if not identities:
        console.print("[yellow]No mods installed.[/yellow]")
        return

    table = Table(title="Installed Mods")
    table.add_column("File", style="cyan")
    table.add_column("Mod")
    table.add_column("Author")
    table.add_column("Version", style="blue")
    table.add_column("Size", justify="right")
    table.add_column("State")

    for mod in identities:
        table.add_row(
            mod.filename[:50],
            mod.name or "[dim]unknown[/dim]",
            mod.author or "-",
            mod.current_version_number or "-",
            _format_size(mod.size_bytes),
            "[red]Disabled[/red]" if mod.disabled else "[green]Enabled[/green]",
        )

    console.print(table)
    identified = sum(1 for m in identities if m.project_id)
    console.print(f"[dim]{identified} of {len(identities)} mods identified.[/dim]")


@main.command()
@click.argument("mods_dir", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.pass_context
def check(ctx: click.Context, mods_dir: Path) -> None:
    """
    List mods with a newer compatible version.

    MODS_DIR: The instance's mods directory
    """
    service = _open(ctx, mods_dir)
    _refresh(service)

    with console.status("[dim]Checking for updates...[/dim]"):
        updates = service.check_updates()

    if not updates:
        console.print("[green]Everything is up to date![/green]")
        return

    table = Table(title="Available Updates")
    table.add_column("Mod", style="cyan")
    table.add_column("Installed", style="green")
    table.add_column("Latest", style="blue")
    table.add_column("New file")
    for update in updates:
        table.add_row(
            (update.name or update.filename)[:40],
            update.current_version_number or "-",
            update.latest.version_number or "-",
            update.latest.filename,
        )
    console.print(table)


@main.command()
@click.argument("mods_dir", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--dry-run", is_flag=True, help="Show what would be updated without downloading")
@click.pass_context
def update(ctx: click.Context, mods_dir: Path, dry_run: bool) -> None:
    """
    Download newer versions of installed mods.

    MODS_DIR: The instance's mods directory
    """
    downloader = Downloader(timeout=ctx.obj["settings"].timeout)
    service = _open(ctx, mods_dir, downloader)
    _refresh(service)

    with console.status("[dim]Checking for updates...[/dim]"):
        updates = service.check_updates()

    if not updates:
        console.print("[green]Everything is up to date![/green]")
        return

    console.print(f"\n[bold]Mods to update:[/bold] {len(updates)}")
    for u in updates:
        old_ver = u.current_version_number or "?"
        console.print(f"  ~ {u.name or u.filename} ({old_ver} -> {u.latest.version_number})")

    if dry_run:
        console.print("\n[yellow]Dry run - no changes made.[/yellow]")
        return

    console.print("\n[bold]Downloading...[/bold]")
    with create_download_progress() as progress:
        downloader.progress = progress
        result = service.apply_updates()

    for warning in result.warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning}")
    for error in result.errors:
        console.print(f"[red]Error:[/red] {error}")

    if result.fail_count:
        console.print(
            f"\n[yellow]Updated {result.success_count} mods, "
            f"{result.fail_count} failed.[/yellow]"
        )
    else:
        console.print(f"\n[green]Updated {result.success_count} mods![/green]")


@main.command()
@click.argument("mods_dir", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.argument("filename")
@click.pass_context
def toggle(ctx: click.Context, mods_dir: Path, filename: str) -> None:
    """
    Enable a disabled mod, or disable an enabled one.

    MODS_DIR: The instance's mods directory
    FILENAME: Mod file name, without the .disabled suffix
    """
    service = _open(ctx, mods_dir)
    try:
        disabled = service.toggle(filename, refresh=False)
    except InstanceError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    state = "[red]disabled[/red]" if disabled else "[green]enabled[/green]"
    console.print(f"{filename} is now {state}.")


@main.command()
@click.argument("mods_dir", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.argument("filename")
@click.option("--yes", is_flag=True, help="Don't ask for confirmation")
@click.pass_context
def remove(ctx: click.Context, mods_dir: Path, filename: str, yes: bool) -> None:
    """
    Delete an installed mod.

    MODS_DIR: The instance's mods directory
    FILENAME: Mod file name, without the .disabled suffix
    """
    service = _open(ctx, mods_dir)
    if not yes and not click.confirm(f"Delete {filename}?"):
        console.print("[dim]Cancelled.[/dim]")
        return

    try:
        service.delete(filename, refresh=False)
    except InstanceError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    console.print(f"[green]Removed[/green] {filename}")


def run() -> None:
    try:
        main()
    except CatalogAPIError as e:
        console.print(f"[red]API Error:[/red] {e}")
        sys.exit(1)


if __name__ == "__main__":
    run()
