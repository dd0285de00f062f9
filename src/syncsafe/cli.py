"""Command-line interface for the SyncSafe backup application."""

import sys
import time
from pathlib import Path
from typing import Optional

import click
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from . import __version__
from .config.settings import DEFAULT_CONFIG_PATH, BackupConfig, BackupRecord, RemotePlatform
from .destinations.git_remote import GitRemoteSync
from .exceptions import SyncSafeError
from .sync.backup_manager import BackupManager
from .sync.watcher import WatchCoordinator
from .utils.file_utils import FileHelper
from .utils.history_export import export_history_csv
from .utils.logging import get_logger, setup_logging

console = Console()
logger = get_logger("cli")

config_option = click.option(
    '--config', '-c',
    type=click.Path(dir_okay=False, path_type=Path),
    default=DEFAULT_CONFIG_PATH,
    show_default=True,
    help='Path to configuration file',
)


def _print_status(message: str) -> None:
    console.print(f"[cyan]•[/cyan] {message}")


@click.group()
@click.version_option(version=__version__)
@click.option('--log-level',
              type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'], case_sensitive=False),
              default='WARNING',
              help='Console log level')
@click.option('--log-file',
              type=click.Path(dir_okay=False, path_type=Path),
              default=None,
              help='Also write a rotating log file here')
def cli(log_level: str, log_file: Optional[Path]):
    """SyncSafe folder backup tool

    Copies a source folder into timestamped backup folders, tracks what
    changed between runs, and can commit and push the source folder to a
    GitHub or Gitee repository.
    """
    setup_logging(log_level=log_level, log_file=log_file)


@cli.command()
@config_option
@click.option('--source', '-s',
              type=click.Path(exists=True, file_okay=False, path_type=Path),
              help='Folder to back up')
@click.option('--destination', '-d',
              type=click.Path(file_okay=False, path_type=Path),
              help='Folder receiving the backups')
def init(config: Path, source: Optional[Path], destination: Optional[Path]):
    """Create or update the configuration file."""
    backup_config = BackupConfig.from_json(config)

    if source is not None:
        backup_config.source_path = str(source.resolve())
    if destination is not None:
        backup_config.destination_path = str(destination.resolve())

    backup_config.to_json(config)
    console.print(f"✅ Configuration saved to {config}", style="green")
    if not backup_config.source_path or not backup_config.destination_path:
        console.print("📝 Set both --source and --destination before running a backup", style="yellow")


@cli.command()
@config_option
@click.option('--platform', type=click.Choice([p.value for p in RemotePlatform]),
              help='Hosting platform')
@click.option('--repo-url', help='Remote repository URL')
@click.option('--token', help='Access token used when pushing')
@click.option('--user-name', help='Committer name')
@click.option('--user-email', help='Committer email')
@click.option('--branch', help='Default branch name')
@click.option('--enable/--disable', default=None, help='Turn remote synchronization on or off')
def remote(config: Path, platform: Optional[str], repo_url: Optional[str], token: Optional[str],
           user_name: Optional[str], user_email: Optional[str], branch: Optional[str],
           enable: Optional[bool]):
    """Configure synchronization to a git remote."""
    try:
        backup_config = BackupConfig.from_json(config)
        settings = backup_config.remote

        updates = {
            'platform': RemotePlatform(platform) if platform else None,
            'repo_url': repo_url,
            'access_token': token,
            'user_name': user_name,
            'user_email': user_email,
            'branch': branch,
            'enabled': enable,
        }
        settings = settings.model_validate(
            {**settings.model_dump(), **{k: v for k, v in updates.items() if v is not None}}
        )
        backup_config.remote = settings

        if settings.enabled:
            settings.validate_identity()
            if not backup_config.source_path:
                raise SyncSafeError("Configure the source folder before enabling remote sync")
            created = GitRemoteSync(default_branch=settings.branch).ensure_repository(
                Path(backup_config.source_path), settings.user_name, settings.user_email, settings.repo_url
            )
            if created:
                console.print(f"✅ Initialized git repository in {backup_config.source_path}", style="green")

        backup_config.to_json(config)
        console.print(f"✅ Remote settings updated: {settings.summary()}", style="green")

    except SyncSafeError as e:
        console.print(f"❌ Error: {e}", style="red bold")
        sys.exit(1)


@cli.command()
@config_option
def backup(config: Path):
    """Run a backup now."""
    try:
        backup_config = BackupConfig.from_json(config)
        manager = BackupManager(backup_config, config_path=config, status=_print_status)
        record = manager.run_backup()
    except SyncSafeError as e:
        logger.error(f"Backup could not start: {e}")
        console.print(f"❌ Error: {e}", style="red bold")
        sys.exit(1)

    _display_records([record], title="Backup Result")
    if not record.success:
        console.print(f"❌ {record.error_message}", style="red")
        sys.exit(1)


@cli.command()
@config_option
@click.option('--debounce', type=float, default=None,
              help='Seconds of quiet before a backup runs (default from config)')
def watch(config: Path, debounce: Optional[float]):
    """Watch the source folder and back up after changes settle."""
    backup_config = BackupConfig.from_json(config)
    manager = BackupManager(backup_config, config_path=config, status=_print_status)
    coordinator = WatchCoordinator(manager, debounce_seconds=debounce, status=_print_status)

    try:
        coordinator.start()
    except SyncSafeError as e:
        logger.error(f"Watch could not start: {e}")
        console.print(f"❌ Error: {e}", style="red bold")
        sys.exit(1)

    console.print("👀 Press Ctrl+C to stop watching", style="dim")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        logger.info("Watch interrupted by user")
    finally:
        coordinator.stop()
        backup_config.to_json(config)


@cli.command()
@config_option
def status(config: Path):
    """Show configuration and backup statistics."""
    backup_config = BackupConfig.from_json(config)

    console.print("📁 [bold]Folders:[/bold]")
    rprint(f"   • Source: {backup_config.source_path or '[yellow]not set[/yellow]'}")
    rprint(f"   • Destination: {backup_config.destination_path or '[yellow]not set[/yellow]'}")
    rprint(f"   • Watching: {'yes' if backup_config.is_watching else 'no'}")

    console.print("\n☁️ [bold]Remote:[/bold]")
    rprint(f"   • {backup_config.remote.summary()}")

    console.print("\n📊 [bold]History:[/bold]")
    rprint(f"   • Total runs: {len(backup_config.history)}")
    rprint(f"   • Successful: [green]{backup_config.successful_backups}[/green]")
    rprint(f"   • Failed: [red]{backup_config.failed_backups}[/red]")
    if backup_config.last_backup_time:
        rprint(f"   • Last backup: {backup_config.last_backup_time:%Y-%m-%d %H:%M:%S}")


@cli.command()
@config_option
@click.option('--search', '-s', default='', help='Filter by path or error text')
@click.option('--failed', is_flag=True, help='Only show failed runs')
def history(config: Path, search: str, failed: bool):
    """List recorded backup runs."""
    backup_config = BackupConfig.from_json(config)
    records = backup_config.search_history(search)
    if failed:
        records = [r for r in records if not r.success]

    if not records:
        console.print("No backup runs recorded", style="yellow")
        return
    _display_records(records, title="Backup History")


@cli.command('export-history')
@config_option
@click.argument('output', type=click.Path(dir_okay=False, path_type=Path))
def export_history(config: Path, output: Path):
    """Export the backup history to a CSV file."""
    backup_config = BackupConfig.from_json(config)
    count = export_history_csv(backup_config.history, output)
    console.print(f"✅ Exported {count} records to {output}", style="green")


def _display_records(records, title: str) -> None:
    """Display backup records in a table."""
    table = Table(title=title)
    table.add_column("Time", style="cyan")
    table.add_column("Status", style="magenta")
    table.add_column("Backup Folder")
    table.add_column("Files", justify="right")
    table.add_column("New", justify="right", style="green")
    table.add_column("Modified", justify="right", style="yellow")
    table.add_column("Deleted", justify="right", style="red")
    table.add_column("Size", justify="right")
    table.add_column("Duration", justify="right")

    for record in records:
        table.add_row(*_record_cells(record))

    console.print(table)


def _record_cells(record: BackupRecord) -> list:
    status_style = "green" if record.success else "red"
    status_text = "success" if record.success else "failed"
    return [
        record.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
        f"[{status_style}]{status_text}[/{status_style}]",
        record.dest_path,
        str(record.file_count),
        str(record.new_files),
        str(record.modified_files),
        str(record.deleted_files),
        FileHelper.format_file_size(record.total_size_bytes),
        f"{record.duration_ms / 1000:.1f}s",
    ]


if __name__ == '__main__':
    cli()
