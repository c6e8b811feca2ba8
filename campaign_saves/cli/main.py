#!/usr/bin/env python3
"""
Command-line interface for campaign-saves.

Provides commands to save, load, list, delete and export campaign saves.
Storage backend and retention come from settings (environment or --env-file).
"""

from __future__ import annotations

import asyncio
import traceback
from collections.abc import Coroutine
from pathlib import Path
from typing import Any, TypeVar

import pydantic
import typer

from campaign_saves.bootstrap import ArchiveContext, build_context
from campaign_saves.cli.logger import CLILogger
from campaign_saves.config import StorageSettings, get_settings
from campaign_saves.exceptions import CampaignSaveError
from campaign_saves.types import from_epoch_ms

app = typer.Typer(
    name='campaign-saves',
    help='Manage tiered campaign saves',
    add_completion=False,
)

T = TypeVar('T')


def _build_context(env_file: str | None) -> ArchiveContext:
    """Load settings and wire services, exiting with a readable message on bad configuration."""
    try:
        settings = get_settings(StorageSettings, env_file=env_file)
    except (pydantic.ValidationError, FileNotFoundError) as e:
        typer.secho(f'Error: invalid configuration: {e}', fg=typer.colors.RED, err=True)
        raise typer.Exit(1)
    return build_context(settings)


def _run(coro: Coroutine[Any, Any, T], logger: CLILogger, action: str) -> T:
    """Run an async command body, mapping failures to exit code 1."""
    try:
        return asyncio.run(coro)
    except (CampaignSaveError, ValueError, FileNotFoundError) as e:
        typer.secho(f'Error: {e}', fg=typer.colors.RED, err=True)
    except Exception as e:
        asyncio.run(logger.error(f'Failed to {action}: {e}'))
        if logger.verbose:
            traceback.print_exc()
    raise typer.Exit(1)


def _format_ms(value: int) -> str:
    return from_epoch_ms(value).strftime('%Y-%m-%d %H:%M:%S UTC')


@app.command()
def save(
    campaign_id: str = typer.Argument(..., help='Campaign ID'),
    snapshot_file: Path = typer.Argument(..., help='Snapshot JSON file (plain or .zst)'),
    env_file: str | None = typer.Option(None, '--env-file', help='Settings .env file (or LOAD_ENV_FILE env)'),
    verbose: bool = typer.Option(False, '--verbose', '-v', help='Verbose output'),
) -> None:
    """Save a snapshot file as the campaign's current save."""
    logger = CLILogger(verbose=verbose)
    context = _build_context(env_file)

    async def body():
        snapshot = context.backup_service.import_snapshot(snapshot_file)
        return await context.archive_service.save(campaign_id, snapshot, logger=logger)

    result = _run(body(), logger, 'save campaign')

    typer.secho('✓ Saved', fg=typer.colors.GREEN)
    typer.echo(f'  Campaign: {result.campaign_id}')
    typer.echo(f'  Saved at: {_format_ms(result.saved_at)}')
    if result.demoted:
        typer.echo(f"  Archived previous: '{result.demoted.save_name}' ({result.demoted.timestamp})")
    if result.evicted:
        typer.echo(f'  Pruned: {", ".join(str(ts) for ts in result.evicted)}')
    for issue in result.issues:
        typer.secho(f'  ! {issue.stage}: {issue.message}', fg=typer.colors.YELLOW, err=True)


@app.command()
def load(
    campaign_id: str = typer.Argument(..., help='Campaign ID'),
    timestamp: int | None = typer.Option(None, '--timestamp', '-t', help='Archived save timestamp (default: current)'),
    output: Path | None = typer.Option(None, '--output', '-o', help='Write snapshot JSON here (default: stdout)'),
    env_file: str | None = typer.Option(None, '--env-file', help='Settings .env file (or LOAD_ENV_FILE env)'),
    verbose: bool = typer.Option(False, '--verbose', '-v', help='Verbose output'),
) -> None:
    """Load the current save or an archived save."""
    logger = CLILogger(verbose=verbose)
    context = _build_context(env_file)

    snapshot = _run(context.archive_service.load(campaign_id, timestamp), logger, 'load save')
    document = snapshot.model_dump_json(by_alias=True, indent=2)

    if output is None:
        typer.echo(document)
        return

    output.write_text(document)
    typer.secho(f"✓ Loaded '{snapshot.save_name}' → {output}", fg=typer.colors.GREEN)


@app.command('list')
def list_saves(
    campaign_id: str = typer.Argument(..., help='Campaign ID'),
    env_file: str | None = typer.Option(None, '--env-file', help='Settings .env file (or LOAD_ENV_FILE env)'),
    verbose: bool = typer.Option(False, '--verbose', '-v', help='Verbose output'),
) -> None:
    """List saves of a campaign, newest first."""
    logger = CLILogger(verbose=verbose)
    context = _build_context(env_file)

    saves = _run(context.archive_service.list_saves(campaign_id), logger, 'list saves')
    if not saves:
        typer.echo(f'No saves for campaign {campaign_id}')
        return

    for meta in saves:
        tier = typer.style(f'{meta.tier:<4}', fg=typer.colors.CYAN if meta.tier == 'hot' else typer.colors.BLUE)
        compressed = ' (compressed)' if meta.is_compressed else ''
        typer.echo(f'{tier}  {meta.timestamp:>14}  {_format_ms(meta.saved_at)}  {meta.save_name}{compressed}')


@app.command()
def delete(
    campaign_id: str = typer.Argument(..., help='Campaign ID'),
    timestamp: int = typer.Argument(..., help='Archived save timestamp'),
    env_file: str | None = typer.Option(None, '--env-file', help='Settings .env file (or LOAD_ENV_FILE env)'),
    verbose: bool = typer.Option(False, '--verbose', '-v', help='Verbose output'),
) -> None:
    """Delete one archived save."""
    logger = CLILogger(verbose=verbose)
    context = _build_context(env_file)

    _run(context.archive_service.delete_save(campaign_id, timestamp), logger, 'delete save')
    typer.secho(f'✓ Deleted archived save {timestamp}', fg=typer.colors.GREEN)


@app.command()
def export(
    campaign_id: str = typer.Argument(..., help='Campaign ID'),
    directory: Path = typer.Argument(..., help='Destination directory'),
    timestamp: int | None = typer.Option(None, '--timestamp', '-t', help='Archived save timestamp (default: current)'),
    compress: bool = typer.Option(False, '--compress', '-z', help='Compress the exported file'),
    env_file: str | None = typer.Option(None, '--env-file', help='Settings .env file (or LOAD_ENV_FILE env)'),
    verbose: bool = typer.Option(False, '--verbose', '-v', help='Verbose output'),
) -> None:
    """Export a save to a file."""
    logger = CLILogger(verbose=verbose)
    context = _build_context(env_file)

    async def body():
        snapshot = await context.archive_service.load(campaign_id, timestamp)
        return context.backup_service.export_snapshot(snapshot, directory, compress=compress)

    path = _run(body(), logger, 'export save')
    typer.secho(f'✓ Exported → {path}', fg=typer.colors.GREEN)


@app.command()
def backup(
    campaign_id: str = typer.Argument(..., help='Campaign ID'),
    turn: int = typer.Option(0, '--turn', help='Current turn number'),
    force: bool = typer.Option(False, '--force', '-f', help='Back up regardless of turn frequency'),
    env_file: str | None = typer.Option(None, '--env-file', help='Settings .env file (or LOAD_ENV_FILE env)'),
    verbose: bool = typer.Option(False, '--verbose', '-v', help='Verbose output'),
) -> None:
    """Back up the current save to the configured backup folder."""
    logger = CLILogger(verbose=verbose)
    context = _build_context(env_file)
    backups = context.backup_service

    if not backups.configured:
        typer.secho('Error: BACKUP_DIR is not set', fg=typer.colors.RED, err=True)
        raise typer.Exit(1)

    if not force and not backups.should_backup(campaign_id, turn):
        typer.echo(f'No backup needed (last backup at turn {backups.last_backup_turn(campaign_id)})')
        return

    async def body():
        snapshot = await context.archive_service.load(campaign_id)
        if force:
            return await backups.manual_backup(campaign_id, snapshot, logger=logger)
        return await backups.perform_backup(campaign_id, snapshot, turn, logger=logger)

    result = _run(body(), logger, 'back up campaign')
    typer.secho(f'✓ Backup written → {result.file_path}', fg=typer.colors.GREEN)
    if result.pruned:
        typer.echo(f'  Removed: {", ".join(result.pruned)}')
    if result.prune_error:
        typer.secho(f'  ! cleanup failed: {result.prune_error}', fg=typer.colors.YELLOW, err=True)


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == '__main__':
    main()
