"""Backup table listing and restore commands.

Registered by the main CLI as ``backups`` and ``restore``.

Usage:
    table-reconciler backups item
    table-reconciler restore item item_backup_20250102_030405 --dry-run
    table-reconciler restore item item_backup_20250102_030405 --confirm
"""

import argparse
import asyncio

from rich.console import Console
from rich.table import Table

from table_reconciler.backup.backup_restore import list_backup_tables, restore_from_backup
from table_reconciler.factory import ProfileNotFoundError, get_adapter

console = Console()


async def _async_backups(args: argparse.Namespace) -> int:
    """Async implementation for backups command."""
    try:
        adapter = await get_adapter(args.profile, env_prefix=args.env_prefix)
    except (ProfileNotFoundError, FileNotFoundError, KeyError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    try:
        backups = await list_backup_tables(adapter, args.table)
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] Listing backups failed: {e}")
        return 1
    finally:
        await adapter.close()

    if not backups:
        console.print(f"[dim]No backups of {args.table}.[/dim]")
        return 0

    table = Table(title=f"Backups of {args.table}", show_header=True, header_style="bold")
    table.add_column("Backup table")
    for name in backups:
        table.add_row(name)
    console.print(table)
    return 0


async def _async_restore(args: argparse.Namespace) -> int:
    """Async implementation for restore command."""
    if not args.confirm and not args.dry_run:
        console.print(
            f"[red]Error: restore deletes every row of {args.table}.[/red] "
            "[dim]Add[/dim] [cyan]--confirm[/cyan] [dim]or[/dim] [cyan]--dry-run[/cyan]"
        )
        return 1

    try:
        adapter = await get_adapter(args.profile, env_prefix=args.env_prefix)
    except (ProfileNotFoundError, FileNotFoundError, KeyError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    try:
        result = await restore_from_backup(
            adapter,
            args.table,
            args.backup_table,
            confirm=args.confirm,
            dry_run=args.dry_run,
        )
    finally:
        await adapter.close()

    if not result.success:
        for error in result.errors:
            console.print(f"[bold red]x[/bold red] {error}")
        return 1

    console.print(
        f"[bold green]v[/bold green] Restored {result.restored_rows} rows of "
        f"[bold cyan]{result.table}[/bold cyan] from {result.backup_table} "
        f"({result.deleted_rows} rows replaced)"
    )
    if result.dry_run:
        console.print("[bold yellow]DRY RUN[/bold yellow] - No changes made.")
    return 0


def cmd_backups(args: argparse.Namespace) -> int:
    """List backup tables of a table.  Wraps the async implementation."""
    return asyncio.run(_async_backups(args))


def cmd_restore(args: argparse.Namespace) -> int:
    """Restore a table from a backup table.

    Wraps the async implementation with ``asyncio.run()``.

    Args:
        args: Parsed CLI arguments.

    Returns:
        0 on success, 1 on failure.
    """
    return asyncio.run(_async_restore(args))
