"""Main CLI entry point for GitHub Organization Migration Tool."""

import sys
import asyncio
import signal
from typing import Optional
from pathlib import Path

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .. import __version__
from ..config.config import Config
from ..utils.logging import setup_logging
from ..migration.engine import MigrationEngine
from ..migration.orchestrator import MigrationSummary

console = Console()

DEFAULT_CONFIG_PATHS = ['config.yaml', 'config.yml', '.github-org-migrate.yaml']


@click.group()
@click.version_option(version=__version__, prog_name='github-org-migrate')
@click.option(
    '--config',
    '-c',
    type=click.Path(exists=True),
    help='Path to configuration file',
)
@click.option(
    '--verbose',
    '-v',
    is_flag=True,
    help='Enable verbose logging',
)
@click.pass_context
def cli(ctx: click.Context, config: Optional[str], verbose: bool) -> None:
    """GitHub Organization Migration Tool - Move repositories, teams, members and webhooks between organizations."""
    ctx.ensure_object(dict)

    if config:
        ctx.obj['config_path'] = config
    ctx.obj['verbose'] = verbose

    # Basic logging first, refined once the config is loaded
    setup_logging('DEBUG' if verbose else 'INFO')


@cli.command()
@click.option(
    '--output',
    '-o',
    default='config.yaml',
    help='Output configuration file path',
)
def init(output: str) -> None:
    """Initialize a new configuration file."""
    console.print(
        Panel.fit(
            '[bold green]GitHub Organization Migration Tool[/bold green]\n'
            'Initializing configuration...',
            border_style='green',
        )
    )

    try:
        Config.create_template(output)

        console.print(f'[green]✓[/green] Configuration template created at: {output}')
        console.print(
            f'[yellow]Please edit {output} with your organizations and token[/yellow]'
        )

    except Exception as e:
        console.print(f'[red]✗[/red] Failed to create configuration: {e}')
        sys.exit(1)


@cli.command()
@click.option(
    '--dry-run',
    is_flag=True,
    help='Perform a dry run without making changes',
)
@click.option(
    '--skip-decommission',
    is_flag=True,
    help='Do not remove members from or archive source organizations',
)
@click.pass_context
def migrate(ctx: click.Context, dry_run: bool, skip_decommission: bool) -> None:
    """Start the migration process."""
    console.print(
        Panel.fit(
            '[bold blue]GitHub Organization Migration Tool[/bold blue]\n'
            'Starting migration process...',
            border_style='blue',
        )
    )

    if dry_run:
        console.print(
            '[yellow]Running in dry-run mode - no changes will be made[/yellow]'
        )

    try:
        config = _load_config(ctx)
        _setup_logging_with_config(ctx, config)

        if dry_run:
            config.migration.dry_run = True
        if skip_decommission:
            config.migration.decommission = False

        asyncio.run(_run_migration(config, dry_run))

    except Exception as e:
        console.print(f'[red]✗[/red] Migration failed: {e}')
        if ctx.obj.get('verbose'):
            console.print_exception()
        sys.exit(1)


@cli.command()
@click.pass_context
def verify(ctx: click.Context) -> None:
    """Compare source and target repository and team names."""
    console.print(
        Panel.fit(
            '[bold cyan]GitHub Organization Migration Tool[/bold cyan]\n'
            'Verifying migration...',
            border_style='cyan',
        )
    )

    try:
        config = _load_config(ctx)
        _setup_logging_with_config(ctx, config)

        engine = MigrationEngine(config)
        summary = asyncio.run(engine.verify())
        _display_verification(summary)

    except Exception as e:
        console.print(f'[red]✗[/red] Verification failed: {e}')
        if ctx.obj.get('verbose'):
            console.print_exception()
        sys.exit(1)


@cli.command()
@click.pass_context
def validate(ctx: click.Context) -> None:
    """Validate configuration and connectivity."""
    console.print(
        Panel.fit(
            '[bold cyan]GitHub Organization Migration Tool[/bold cyan]\n'
            'Validating configuration...',
            border_style='cyan',
        )
    )

    try:
        config = _load_config(ctx)

        engine = MigrationEngine(config)
        try:
            engine._test_connectivity()
        finally:
            engine.client.close()

        console.print('[green]✓[/green] Connectivity validation passed')
        console.print('[green]✓[/green] Configuration validation completed')

    except Exception as e:
        console.print(f'[red]✗[/red] Validation failed: {e}')
        if ctx.obj.get('verbose'):
            console.print_exception()
        sys.exit(1)


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show the effective migration configuration."""
    console.print(
        Panel.fit(
            '[bold magenta]GitHub Organization Migration Tool[/bold magenta]\n'
            'Migration Status',
            border_style='magenta',
        )
    )

    try:
        config = _load_config(ctx)
        _setup_logging_with_config(ctx, config)

        migration = config.migration

        table = Table(title='Migration Configuration')
        table.add_column('Setting', style='cyan')
        table.add_column('Value', style='green')

        table.add_row('API URL', config.github.url)
        table.add_row('Source Organizations', ', '.join(migration.source_orgs))
        table.add_row('Target Organization', migration.target_org)
        table.add_row('Repository Topics', ', '.join(migration.repo_topics) or '-')
        for label, enabled in [
            ('Transfer Repositories', migration.transfer),
            ('Migrate Teams', migration.teams),
            ('Invite Members', migration.members),
            ('Migrate Webhooks', migration.webhooks),
            ('Normalize Settings', migration.settings),
            ('Verify', migration.verify),
            ('Decommission Sources', migration.decommission),
        ]:
            table.add_row(label, '✓' if enabled else '✗')
        table.add_row('Max Workers', str(migration.max_workers))
        table.add_row('Dry Run', '✓' if migration.dry_run else '✗')

        console.print(table)

    except Exception as e:
        console.print(f'[red]✗[/red] Failed to load status: {e}')
        if ctx.obj.get('verbose'):
            console.print_exception()
        sys.exit(1)


def _load_config(ctx: click.Context) -> Config:
    """Load configuration from file or environment."""
    config_path = ctx.obj.get('config_path')

    if config_path:
        return Config.from_file(config_path)

    for path in DEFAULT_CONFIG_PATHS:
        if Path(path).exists():
            return Config.from_file(path)

    try:
        return Config.from_env()
    except ValueError as e:
        raise FileNotFoundError(
            'No configuration found. Use --config to specify a file, set '
            'GITHUB_TOKEN, SOURCE_ORGS and TARGET_ORG, or run '
            f'"github-org-migrate init" to create one. ({e})'
        )


def _setup_logging_with_config(ctx: click.Context, config: Config) -> None:
    """Setup logging with configuration from config file."""
    verbose = ctx.obj.get('verbose', False)

    log_level = 'DEBUG' if verbose else config.logging.level
    setup_logging(
        level=log_level, log_file=config.logging.file, log_format=config.logging.format
    )


async def _run_migration(config: Config, dry_run: bool = False) -> None:
    """Run the migration, cancelling cooperatively on SIGINT."""
    engine = MigrationEngine(config)

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, engine.cancel)
    except (NotImplementedError, RuntimeError):
        # Signal handlers are unavailable on some platforms and threads
        pass

    try:
        with console.status(
            '[yellow]Dry run in progress...' if dry_run else '[blue]Migration in progress...'
        ):
            if dry_run:
                summary = await engine.dry_run()
            else:
                summary = await engine.migrate()
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError):
            pass

    if summary.cancelled:
        console.print('[yellow]Migration cancelled before completion[/yellow]')
    elif dry_run:
        console.print('[green]✓[/green] Dry run completed')
    else:
        console.print('[green]✓[/green] Migration completed')

    _display_migration_summary(summary)


def _display_migration_summary(summary: MigrationSummary) -> None:
    """Display migration summary results."""
    table = Table(title='Migration Summary')
    table.add_column('Phase', style='cyan')
    table.add_column('Total', style='blue')
    table.add_column('Successful', style='green')
    table.add_column('Failed', style='red')
    table.add_column('Skipped', style='yellow')
    table.add_column('Phase Error', style='red')

    for ledger in summary.ledgers:
        table.add_row(
            ledger.phase.title(),
            str(ledger.total),
            str(ledger.successful),
            str(ledger.failed),
            str(ledger.skipped),
            ledger.error or '',
        )

    console.print(table)

    if summary.completed_at:
        duration = summary.completed_at - summary.started_at
        console.print(f'\n[blue]Migration Duration:[/blue] {duration}')

    errors = [
        f'{result.entity_type} {result.entity_id}: {result.error_message}'
        for result in summary.failures
    ]
    if errors:
        console.print(f'\n[red]Errors ({len(errors)}):[/red]')
        for error in errors[:10]:
            console.print(f'  • {error}')
        if len(errors) > 10:
            console.print(f'  ... and {len(errors) - 10} more errors (see log)')

    _display_verification(summary)


def _display_verification(summary: MigrationSummary) -> None:
    """Display the verification outcome, if verification ran."""
    report = summary.verification
    if report is None:
        if summary.ledger('verification') is not None:
            console.print('[red]✗[/red] Verification could not be completed')
        return

    if report.succeeded:
        console.print('[green]✓[/green] All repositories and teams are present')
        return

    if report.missing_repositories:
        console.print(
            '[yellow]Missing repositories:[/yellow] '
            + ', '.join(report.missing_repositories)
        )
    if report.missing_teams:
        console.print('[yellow]Missing teams:[/yellow] ' + ', '.join(report.missing_teams))


def main() -> None:
    """Main entry point for the CLI application."""
    try:
        cli()
    except KeyboardInterrupt:
        console.print('\n[red]Migration interrupted by user[/red]')
        sys.exit(1)
    except Exception as e:
        console.print(f'[red]Error: {e}[/red]')
        sys.exit(1)


if __name__ == '__main__':
    main()
