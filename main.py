#!/usr/bin/env python3
"""
ContentSync - Gaming Content Sync Service
=========================================

Main application entry point with CLI interface for management and operations.

Usage:
    python main.py --help                    # Show all commands
    python main.py check-config              # Validate configuration
    python main.py init-db                   # Initialize database
    python main.py sync platform-news        # Run a sync job once
    python main.py stats                     # Execution statistics
    python main.py drafts                    # Review queue
    python main.py serve                     # Start the HTTP API
"""

import sys
import asyncio
import logging
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from contentsync.config.settings import get_settings
from contentsync.context import AppContext
from contentsync.database.models import Actor, AdminIdentity
from contentsync.database.schema import DatabaseSchema
from contentsync.monitoring.sync_monitor import SyncMonitor
from contentsync.processing.pipeline import SyncPipeline
from contentsync.services.review_service import ReviewService
from contentsync.utils.logging import configure_application_logging
from contentsync.utils.exceptions import ContentSyncError, handle_exception, is_retryable_error

console = Console()
logger = logging.getLogger(__name__)

JOB_ALIASES = {
    "platform-news": "sync-platform-news",
    "releases": "sync-releases",
    "clips": "sync-clips",
}


def _setup(debug: bool):
    settings = get_settings()
    configure_application_logging(
        log_level="DEBUG" if debug else settings.get_effective_log_level(),
        log_file=settings.logging.file_path,
        enable_console=settings.logging.console_logging,
        structured_logging=settings.logging.structured_logging,
    )
    return settings


@click.group(invoke_without_command=True)
@click.option('--debug', is_flag=True, help='Enable debug mode')
@click.pass_context
def cli(ctx, debug):
    """ContentSync - gaming news, releases and clips sync service."""
    ctx.ensure_object(dict)
    ctx.obj['debug'] = debug

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command()
def check_config():
    """Validate configuration and show which sources are configured."""
    console.print("[bold blue]🔧 Checking ContentSync Configuration[/bold blue]")

    try:
        settings = get_settings()
    except ContentSyncError as e:
        console.print(f"[bold red]❌ Configuration error: {e}[/bold red]")
        sys.exit(1)

    table = Table(title="Configuration Status")
    table.add_column("Component", style="cyan")
    table.add_column("Status", style="green")
    table.add_column("Details")

    table.add_row("Database", "✅ Valid", f"Path: {settings.database.path}")
    table.add_row(
        "Logging", "✅ Valid",
        f"Level: {settings.get_effective_log_level()}, Console: {settings.logging.console_logging}",
    )
    feeds = settings.feed_sources()
    table.add_row(
        "Platform feeds",
        "✅ Valid" if feeds else "❌ Missing",
        ", ".join(name for name, _ in feeds) or "No feeds configured",
    )
    table.add_row(
        "Primary catalog",
        "✅ Valid" if settings.igdb_client_id and settings.igdb_client_secret else "⚠️ Not configured",
        "IGDB_CLIENT_ID / IGDB_CLIENT_SECRET",
    )
    table.add_row(
        "Secondary catalog",
        "✅ Valid" if settings.rawg_api_key else "⚠️ Not configured",
        "RAWG_API_KEY",
    )
    table.add_row(
        "Clips",
        "✅ Valid" if settings.twitch_client_id and settings.twitch_client_secret else "⚠️ Not configured",
        "TWITCH_CLIENT_ID / TWITCH_CLIENT_SECRET",
    )
    table.add_row(
        "Automation secret",
        "✅ Valid" if settings.cron_secret else "⚠️ Not configured",
        "CRON_SECRET (cron requests are rejected without it)",
    )
    table.add_row("Allowed origins", "✅ Valid", ", ".join(settings.allowed_origin_list))
    console.print(table)

    missing = settings.missing_credentials()
    if missing:
        console.print(f"[yellow]Unset: {', '.join(missing)}[/yellow]")
    if not feeds:
        sys.exit(1)
    console.print("[bold green]✅ Configuration loaded[/bold green]")


@cli.command()
def init_db():
    """Initialize database with schema."""
    console.print("[bold blue]🗄️ Initializing ContentSync Database[/bold blue]")

    try:
        settings = get_settings()
        Path(settings.database.path).parent.mkdir(parents=True, exist_ok=True)
        schema = DatabaseSchema(settings.database.path)
        schema.create_tables()

        if not schema.verify_schema():
            console.print("[bold red]❌ Database schema verification failed[/bold red]")
            sys.exit(1)

        console.print("[bold green]✅ Database initialized successfully![/bold green]")
        context = AppContext(settings)
        info = context.db.get_database_info()
        context.close()

        info_table = Table(title="Database Information")
        info_table.add_column("Property", style="cyan")
        info_table.add_column("Value", style="green")
        info_table.add_row("Database Path", settings.database.path)
        info_table.add_row("Size", f"{info['database_size_mb']:.2f} MB")
        for table_name, count in info["table_counts"].items():
            info_table.add_row(table_name, str(count))
        console.print(info_table)

    except ContentSyncError as e:
        console.print(f"[bold red]❌ Database initialization error: {e}[/bold red]")
        sys.exit(1)


@cli.command()
@click.argument('job', type=click.Choice(sorted(JOB_ALIASES)))
@click.pass_context
def sync(ctx, job):
    """Run one sync job now, as the automation principal."""
    settings = _setup(ctx.obj.get('debug'))
    console.print(f"[bold blue]🔄 Running {job} sync[/bold blue]")

    async def run():
        context = AppContext.create(settings)
        try:
            return await SyncPipeline(context).run(JOB_ALIASES[job])
        finally:
            context.close()

    try:
        result = asyncio.run(run())
    except Exception as e:
        error = handle_exception(e, logger, f"sync {job}")
        console.print(f"[bold red]❌ {error.user_message}[/bold red]")
        if is_retryable_error(error):
            console.print("[yellow]The failure is transient; the next scheduled run should recover[/yellow]")
        sys.exit(1)

    table = Table(title=f"{job} result")
    table.add_column("Source", style="cyan")
    table.add_column("Fetched")
    table.add_column("Inserted", style="green")
    table.add_column("Updated", style="green")
    table.add_column("Skipped", style="yellow")
    table.add_column("Failure", style="red")
    for source in result.sources:
        table.add_row(
            source.source, str(source.fetched), str(source.inserted),
            str(source.updated), str(source.skipped), source.failure_kind or "",
        )
    console.print(table)

    for attempt in result.attempted:
        console.print(f"  {attempt['source']}: {attempt['outcome']} {attempt.get('failure_kind', '')}")
    for error in result.errors[:10]:
        console.print(f"  [red]• {error}[/red]")

    if result.success:
        console.print(f"[bold green]✅ Sync complete ({result.execution_id})[/bold green]")
    else:
        console.print(f"[bold red]❌ {result.error}[/bold red]")
        sys.exit(1)


@cli.command()
@click.option('--hours', default=24, help='Window for recent failures (default: 24)')
def stats(hours):
    """Show execution statistics per job and recent failures."""
    settings = get_settings()
    context = AppContext.create(settings)
    try:
        monitor = SyncMonitor(context.executions)
        job_stats = monitor.job_stats()
        failures = monitor.recent_failures(hours)
    finally:
        context.close()

    if not job_stats:
        console.print("[yellow]⚠️ No executions recorded yet[/yellow]")
        return

    table = Table(title="Sync Jobs")
    table.add_column("Job", style="cyan")
    table.add_column("Runs")
    table.add_column("Success rate", style="green")
    table.add_column("Failed", style="red")
    table.add_column("Avg ms")
    table.add_column("Last execution")
    for row in job_stats:
        table.add_row(
            row["job_name"], str(row["total"]), f"{row['success_rate']:.0%}",
            str(row["failed"]), str(row["avg_duration_ms"]), str(row["last_execution"]),
        )
    console.print(table)

    if failures:
        console.print(f"[bold red]Failures in the last {hours}h:[/bold red]")
        for execution in failures:
            console.print(f"  {execution.started_at:%Y-%m-%d %H:%M} {execution.job_name}: {execution.error_message}")


@cli.command()
@click.option('--content-type', help='Only this content type')
@click.option('--limit', default=50, help='Maximum items to show (default: 50)')
def drafts(content_type, limit):
    """Show the review queue."""
    settings = get_settings()
    context = AppContext.create(settings)
    try:
        items = ReviewService(context.content, context.audit).list_drafts(content_type, limit)
    except ContentSyncError as e:
        console.print(f"[bold red]❌ {e.user_message}[/bold red]")
        sys.exit(1)
    finally:
        context.close()

    if not items:
        console.print("[green]No drafts waiting for review[/green]")
        return

    table = Table(title="Drafts")
    table.add_column("ID", style="cyan")
    table.add_column("Type")
    table.add_column("Title")
    table.add_column("Source", style="yellow")
    table.add_column("Created")
    for item in items:
        title = item.title[:50] + "..." if len(item.title) > 50 else item.title
        table.add_row(str(item.id), item.content_type.value, title, item.source.value, str(item.created_at))
    console.print(table)


@cli.command()
@click.argument('content_type')
@click.argument('item_id', type=int)
@click.option('--admin-id', required=True, help='Admin user id recorded in the audit log')
def publish(content_type, item_id, admin_id):
    """Publish a draft on behalf of an admin."""
    settings = get_settings()
    context = AppContext.create(settings)
    try:
        admin = context.admins.get_active(admin_id)
        if admin is None:
            console.print(f"[bold red]❌ {admin_id} is not an active admin[/bold red]")
            sys.exit(1)
        item = ReviewService(context.content, context.audit).publish(
            content_type, item_id, Actor.from_admin(admin, user_agent="contentsync-cli")
        )
        console.print(f"[bold green]✅ Published {item.title}[/bold green]")
    except ContentSyncError as e:
        console.print(f"[bold red]❌ {e.user_message}[/bold red]")
        sys.exit(1)
    finally:
        context.close()


@cli.command()
@click.argument('user_id')
@click.argument('email')
@click.option('--role', default='editor', help='Admin role (default: editor)')
@click.option('--inactive', is_flag=True, help='Register the admin as inactive')
def add_admin(user_id, email, role, inactive):
    """Register an identity-provider user as an admin."""
    settings = get_settings()
    context = AppContext.create(settings)
    try:
        context.admins.save(AdminIdentity(id=user_id, email=email, role=role, is_active=not inactive))
        console.print(f"[bold green]✅ Saved admin {email}[/bold green]")
    finally:
        context.close()


@cli.command()
@click.option('--days', default=30, help='Keep executions newer than this (default: 30)')
def cleanup(days):
    """Prune old execution log rows."""
    settings = get_settings()
    context = AppContext.create(settings)
    try:
        deleted = context.executions.prune_older_than(days)
        console.print(f"[bold green]✅ Deleted {deleted} execution rows older than {days} days[/bold green]")
    finally:
        context.close()


@cli.command()
@click.option('--host', default='127.0.0.1', help='Bind address')
@click.option('--port', default=8000, help='Port')
@click.pass_context
def serve(ctx, host, port):
    """Start the HTTP API."""
    import uvicorn
    from contentsync.api.app import create_app

    settings = _setup(ctx.obj.get('debug'))
    console.print(f"[bold blue]🚀 Starting ContentSync API on {host}:{port}[/bold blue]")
    uvicorn.run(create_app(AppContext.create(settings)), host=host, port=port, log_config=None)


if __name__ == "__main__":
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n[yellow]👋 ContentSync interrupted by user[/yellow]")
        sys.exit(130)
    except Exception as e:
        console.print(f"\n[bold red]❌ Unexpected error: {e}[/bold red]")
        sys.exit(1)
