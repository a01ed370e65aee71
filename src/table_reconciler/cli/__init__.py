"""CLI for client/server table reconciliation.

Provides commands for database profile management, schema scanning, table
matching, manual overrides, row sync and table backups.

Usage:
    DB_PROFILE=local table-reconciler connect
    table-reconciler status
    table-reconciler disconnect
    table-reconciler profiles
    table-reconciler scan --side client
    table-reconciler match --unmatched
    table-reconciler override add client_item_misc_2 item_misc
    table-reconciler sync client_item --mode incremental --dry-run
    table-reconciler sync client_item --mode full_sync --confirm
    table-reconciler cascade client_item --dry-run
    table-reconciler replace client_item --confirm
    table-reconciler backups item
    table-reconciler restore item item_backup_20250102_030405 --confirm

Commands:
    connect    - Connect to database and scan tables
    status     - Show current connection status
    disconnect - Forget the connected profile
    profiles   - List available profiles
    scan       - List scanned tables with hierarchy level
    match      - Match client tables to server tables
    override   - Add, remove or list manual table mappings
    sync       - Keyed sync of one matched table pair
    cascade    - Sync a root table pair and all its child tables
    replace    - Delete all target rows and copy the source rows
    backups    - List backup tables of a table
    restore    - Restore a table from one of its backup tables
"""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path

from rich.console import Console
from rich.table import Table

from table_reconciler.cli.backup import cmd_backups, cmd_restore
from table_reconciler.config.loader import load_config
from table_reconciler.config.models import ReconcilerConfig
from table_reconciler.factory import (
    ProfileNotFoundError,
    clear_profile_lock,
    connect_and_scan,
    create_matcher,
    get_active_profile,
    get_adapter,
    read_profile_lock,
    scan_profile,
)
from table_reconciler.matching.matcher import (
    METHOD_UNMATCHED,
    TablePairResult,
    match_summary,
)
from table_reconciler.matching.overrides import OverrideMap
from table_reconciler.schema.models import TableInfo
from table_reconciler.sync.engine import sync_main_table, sync_main_table_with_children
from table_reconciler.sync.legacy import sync_client_to_server, sync_server_to_client
from table_reconciler.sync.models import (
    CascadeSyncResult,
    ReplaceOptions,
    SyncMode,
    SyncOptions,
    SyncResult,
)

console = Console()


# ============================================================================
# Shared helpers
# ============================================================================


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


async def _scan(args: argparse.Namespace) -> tuple[ReconcilerConfig, list[TableInfo]] | None:
    """Scan the active profile, printing the error and returning None on failure."""
    env_prefix = getattr(args, "env_prefix", "")
    try:
        config, _, tables = await scan_profile(
            getattr(args, "profile", None), env_prefix=env_prefix
        )
    except (ProfileNotFoundError, FileNotFoundError, KeyError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return None
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] Scan failed: {e}")
        return None
    return config, tables


def _find_pair(
    tables: list[TableInfo],
    pairs: list[TablePairResult],
    client_name: str,
    server_name: str | None,
) -> tuple[TableInfo, TableInfo] | None:
    """Resolve the client table and its server table (explicit or matched)."""
    by_name = {t.name: t for t in tables}
    client = by_name.get(client_name)
    if client is None:
        console.print(f"[red]Error: table not found: {client_name}[/red]")
        return None

    if server_name is not None:
        server = by_name.get(server_name)
        if server is None:
            console.print(f"[red]Error: table not found: {server_name}[/red]")
            return None
        return client, server

    for pair in pairs:
        if pair.client_table.name == client_name and pair.server_table is not None:
            return client, pair.server_table

    console.print(
        f"[yellow]{client_name} is not matched.[/yellow] "
        "[dim]Pass --server or add an override.[/dim]"
    )
    return None


def _resolve_pair(
    config: ReconcilerConfig, tables: list[TableInfo], args: argparse.Namespace
) -> tuple[TableInfo, TableInfo] | None:
    """Match the scanned tables and find the pair named on the command line."""
    try:
        matcher = create_matcher(config)
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        return None
    return _find_pair(tables, matcher.build_pairs(tables), args.table, args.server)


def _sync_options(config: ReconcilerConfig, args: argparse.Namespace) -> SyncOptions:
    settings = config.sync
    return SyncOptions(
        mode=SyncMode(getattr(args, "mode", SyncMode.INCREMENTAL.value)),
        backup=args.backup or settings.backup,
        dry_run=args.dry_run,
        confirm=args.confirm,
        include_fields=args.fields.split(",") if args.fields else None,
        exclude_fields=settings.exclude_fields,
        batch_size=settings.batch_size,
        timeout=settings.timeout,
        create_missing_keys=settings.create_missing_keys and not args.no_create_keys,
    )


def _print_sync_result(result: SyncResult) -> None:
    marker = "[bold green]v[/bold green]" if result.success else "[bold red]x[/bold red]"
    console.print(f"{marker} {result.source_table} -> {result.target_table}: {result.message}")

    if result.success:
        table = Table(show_header=True, header_style="bold")
        table.add_column("Inserted", justify="right", style="green")
        table.add_column("Updated", justify="right", style="yellow")
        table.add_column("Unchanged", justify="right", style="dim")
        table.add_column("Skipped", justify="right")
        table.add_column("Deleted", justify="right", style="red")
        table.add_column("Total", justify="right")
        table.add_row(
            str(result.inserted_rows),
            str(result.updated_rows),
            str(result.unchanged_rows),
            str(result.skipped_rows),
            str(result.deleted_rows),
            str(result.total_rows),
        )
        console.print(table)

    if result.key_columns:
        console.print(f"  Key: [cyan]{', '.join(result.key_columns)}[/cyan]")
    for update in result.schema_updates:
        console.print(f"  Schema: {update}")
    if result.backup_table:
        console.print(f"  Backup: [cyan]{result.backup_table}[/cyan]")
    for warning in result.warnings:
        console.print(f"  [yellow]Warning:[/yellow] {warning}")
    for error in result.errors:
        console.print(f"  [red]Error:[/red] {error}")


def _print_cascade_result(result: CascadeSyncResult) -> None:
    if result.main_result is not None:
        _print_sync_result(result.main_result)

    if result.child_results:
        console.print()
        table = Table(title="Child Tables", show_header=True, header_style="bold")
        table.add_column("", width=2)
        table.add_column("Source")
        table.add_column("Target")
        table.add_column("Inserted", justify="right", style="green")
        table.add_column("Updated", justify="right", style="yellow")
        table.add_column("Skipped", justify="right")
        table.add_column("Message", style="dim")
        for name, child in result.child_results.items():
            table.add_row(
                "[bold green]v[/bold green]" if child.success else "[bold red]x[/bold red]",
                name,
                child.target_table,
                str(child.inserted_rows),
                str(child.updated_rows),
                str(child.skipped_rows),
                child.message,
            )
        console.print(table)

    style = "bold green" if result.success else "bold red"
    console.print(f"\n[{style}]{result.message}[/{style}]")


# ============================================================================
# Async command implementations
# ============================================================================


async def _async_connect(args: argparse.Namespace) -> int:
    """Async implementation for connect command.

    Args:
        args: Parsed arguments with profile and env_prefix.

    Returns:
        0 on success, 1 on failure.
    """
    env_prefix = getattr(args, "env_prefix", "")

    previous_profile = read_profile_lock()

    console.print("Connecting to database...", style="dim")

    result = await connect_and_scan(profile_name=args.profile, env_prefix=env_prefix)

    if not result.success:
        console.print()
        console.print(f"[bold red]x[/bold red] {result.error}")
        return 1

    console.print()
    console.print(
        f"[bold green]v[/bold green] Connected to profile: "
        f"[bold cyan]{result.profile_name}[/bold cyan]"
    )
    console.print(
        f"  Tables: {result.table_count} "
        f"([cyan]{result.client_table_count}[/cyan] client, "
        f"[cyan]{result.server_table_count}[/cyan] server)"
    )

    if previous_profile and previous_profile != result.profile_name:
        console.print(
            f"\n[dim]Switched from[/dim] [bold]{previous_profile}[/bold] "
            f"[dim]to[/dim] [bold cyan]{result.profile_name}[/bold cyan]"
        )
    return 0


async def _async_scan(args: argparse.Namespace) -> int:
    """Async implementation for scan command."""
    scanned = await _scan(args)
    if scanned is None:
        return 1
    _, tables = scanned

    if args.side == "client":
        tables = [t for t in tables if t.is_client_side]
    elif args.side == "server":
        tables = [t for t in tables if not t.is_client_side]

    table = Table(title="Scanned Tables", show_header=True, header_style="bold")
    table.add_column("Table")
    table.add_column("Side", style="dim")
    table.add_column("Level")
    table.add_column("Parent", style="dim")
    table.add_column("Columns", justify="right")
    table.add_column("Rows (est.)", justify="right")
    table.add_column("Primary key")

    for info in tables:
        table.add_row(
            info.name,
            "client" if info.is_client_side else "server",
            info.level.display_name,
            info.hierarchy.parent_name or "",
            str(len(info.columns)) if info.columns else "[yellow]0[/yellow]",
            str(info.row_count),
            ", ".join(info.primary_keys),
        )

    console.print(table)
    return 0


async def _async_match(args: argparse.Namespace) -> int:
    """Async implementation for match command."""
    scanned = await _scan(args)
    if scanned is None:
        return 1
    config, tables = scanned

    try:
        matcher = create_matcher(config)
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    all_pairs = matcher.build_pairs(tables)
    pairs = [p for p in all_pairs if not p.is_matched] if args.unmatched else all_pairs

    table = Table(title="Table Matches", show_header=True, header_style="bold")
    table.add_column("Client table")
    table.add_column("Server table")
    table.add_column("Method")
    table.add_column("Similarity", justify="right")
    table.add_column("Quality", justify="right")
    table.add_column("Common", justify="right")

    for pair in pairs:
        quality = pair.quality
        server = pair.server_name or "[dim]-[/dim]"
        if pair.is_multiple_match:
            server = f"[yellow]{server} (multiple)[/yellow]"
        table.add_row(
            pair.client_table.name,
            server,
            pair.match_method,
            f"{pair.similarity:.2f}",
            f"{quality.overall_quality:.2f} ({quality.quality_level})" if quality else "",
            str(quality.common_field_count) if quality else "",
        )

    console.print(table)

    if args.suggest:
        servers = [t for t in tables if not t.is_client_side]
        for pair in pairs:
            if pair.match_method != METHOD_UNMATCHED:
                continue
            suggestions = matcher.suggest(pair.client_table, servers)
            if suggestions:
                listed = ", ".join(f"{name} ({sim:.2f})" for name, sim in suggestions)
                console.print(f"  [dim]{pair.client_table.name}:[/dim] {listed}")

    summary = match_summary(all_pairs)
    console.print(
        f"\n{summary.get('matched', 0)}/{summary.get('total', 0)} matched, "
        f"{summary.get('multiple', 0)} sharing a server table"
    )
    return 0


async def _async_sync(args: argparse.Namespace) -> int:
    """Async implementation for sync command."""
    scanned = await _scan(args)
    if scanned is None:
        return 1
    config, tables = scanned

    found = _resolve_pair(config, tables, args)
    if found is None:
        return 1
    client_table, server_table = found
    source, target = (
        (client_table, server_table)
        if args.direction == "client-to-server"
        else (server_table, client_table)
    )

    options = _sync_options(config, args)
    if options.mode.is_destructive and not (options.confirm or options.dry_run):
        console.print(
            f"[red]Error: {options.mode.display_name} deletes target rows.[/red] "
            "[dim]Add[/dim] [cyan]--confirm[/cyan] [dim]or[/dim] [cyan]--dry-run[/cyan]"
        )
        return 1

    console.print(
        f"{options.mode.display_name}: [bold]{source.name}[/bold] -> "
        f"[bold cyan]{target.name}[/bold cyan]",
        style="dim",
    )

    adapter = await get_adapter(args.profile, env_prefix=args.env_prefix)
    try:
        result = await sync_main_table(adapter, source, target, options)
    finally:
        await adapter.close()

    _print_sync_result(result)
    if result.dry_run and result.success:
        console.print("\n[bold yellow]DRY RUN[/bold yellow] - No changes made.")
    return 0 if result.success else 1


async def _async_cascade(args: argparse.Namespace) -> int:
    """Async implementation for cascade command."""
    scanned = await _scan(args)
    if scanned is None:
        return 1
    config, tables = scanned

    found = _resolve_pair(config, tables, args)
    if found is None:
        return 1
    client_table, server_table = found
    source, target = (
        (client_table, server_table)
        if args.direction == "client-to-server"
        else (server_table, client_table)
    )

    options = _sync_options(config, args)
    adapter = await get_adapter(args.profile, env_prefix=args.env_prefix)
    try:
        result = await sync_main_table_with_children(
            adapter, source, target, tables, options, client_prefix=config.scan.client_prefix
        )
    finally:
        await adapter.close()

    _print_cascade_result(result)
    if options.dry_run:
        console.print("[bold yellow]DRY RUN[/bold yellow] - No changes made.")
    return 0 if result.success else 1


async def _async_replace(args: argparse.Namespace) -> int:
    """Async implementation for replace command."""
    scanned = await _scan(args)
    if scanned is None:
        return 1
    config, tables = scanned

    found = _resolve_pair(config, tables, args)
    if found is None:
        return 1
    client_table, server_table = found

    if not args.confirm and not args.dry_run:
        target = server_table if args.direction == "client-to-server" else client_table
        console.print(
            f"[red]Error: replace deletes every row of {target.name}.[/red] "
            "[dim]Add[/dim] [cyan]--confirm[/cyan] [dim]or[/dim] [cyan]--dry-run[/cyan]"
        )
        return 1

    options = ReplaceOptions(
        backup=not args.no_backup,
        dry_run=args.dry_run,
        confirm=args.confirm,
        include_fields=args.fields.split(",") if args.fields else None,
        exclude_fields=config.sync.exclude_fields,
        batch_size=config.sync.batch_size,
        timeout=config.sync.timeout,
    )
    replace = (
        sync_client_to_server if args.direction == "client-to-server" else sync_server_to_client
    )

    adapter = await get_adapter(args.profile, env_prefix=args.env_prefix)
    try:
        result = await replace(adapter, client_table, server_table, options)
    finally:
        await adapter.close()

    _print_sync_result(result)
    return 0 if result.success else 1


# ============================================================================
# Command wrappers (cmd_status, cmd_profiles, cmd_override read local files only)
# ============================================================================


def cmd_connect(args: argparse.Namespace) -> int:
    """Connect to database and scan tables.

    Wraps the async implementation with ``asyncio.run()``.

    Args:
        args: Parsed CLI arguments.

    Returns:
        0 on success, 1 on failure.
    """
    return asyncio.run(_async_connect(args))


def cmd_status(args: argparse.Namespace) -> int:
    """Show current connection status.

    Reads only local files (lock file and TOML config) -- no database calls.
    The profile is resolved the way every other command resolves it: the
    ``{env_prefix}DB_PROFILE`` env var first, then the lock file.

    Args:
        args: Parsed CLI arguments.

    Returns:
        0 always (informational command).
    """
    env_var = f"{getattr(args, 'env_prefix', '')}DB_PROFILE"

    try:
        name, profile = get_active_profile(getattr(args, "env_prefix", ""))
    except ProfileNotFoundError:
        console.print("[yellow]No connected profile.[/yellow]")
        console.print(f"[dim]Run:[/dim] [cyan]{env_var}=<name> table-reconciler connect[/cyan]")
        return 0
    except FileNotFoundError:
        console.print("[yellow]Warning:[/yellow] reconciler.toml not found")
        return 0
    except KeyError as e:
        console.print(f"[yellow]Warning:[/yellow] {e.args[0]}")
        return 0

    table = Table(title="Connection Status", show_header=False)
    table.add_column("Key", style="dim")
    table.add_column("Value")

    table.add_row("Current profile", f"[bold cyan]{name}[/bold cyan]")
    if os.environ.get(env_var):
        table.add_row("Profile source", f"{env_var} (environment)")
    else:
        table.add_row("Profile source", ".db-profile (connected)")
    table.add_row("Provider", profile.provider)
    if profile.description:
        table.add_row("Description", profile.description)

    config = load_config()
    table.add_row("Schema", config.scan.schema_name)
    table.add_row("Client prefix", config.scan.client_prefix)

    console.print(table)
    return 0


def cmd_disconnect(args: argparse.Namespace) -> int:
    """Forget the connected profile by removing the lock file.

    Returns:
        0 always.
    """
    previous = read_profile_lock()
    clear_profile_lock()
    if previous:
        console.print(f"Disconnected from [bold cyan]{previous}[/bold cyan]")
    else:
        console.print("[dim]No connected profile.[/dim]")
    return 0



def cmd_profiles(args: argparse.Namespace) -> int:
    """List available profiles from reconciler.toml.

    Reads only local TOML config -- no database calls.

    Args:
        args: Parsed CLI arguments.

    Returns:
        0 on success, 1 if reconciler.toml not found.
    """
    try:
        config = load_config()
    except FileNotFoundError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    current = read_profile_lock()

    table = Table(title="Database Profiles", show_header=True, header_style="bold")
    table.add_column("", width=2)
    table.add_column("Profile")
    table.add_column("Provider")
    table.add_column("Description")

    for name, profile in config.profiles.items():
        marker = "[bold green]*[/bold green]" if name == current else " "
        name_style = "bold cyan" if name == current else ""
        table.add_row(
            marker,
            f"[{name_style}]{name}[/{name_style}]" if name_style else name,
            profile.provider,
            profile.description or "",
        )

    console.print(table)

    if current:
        console.print("\n[bold green]*[/bold green] = current profile")

    return 0


def cmd_scan(args: argparse.Namespace) -> int:
    """List scanned tables.  Wraps the async implementation."""
    return asyncio.run(_async_scan(args))


def cmd_match(args: argparse.Namespace) -> int:
    """Match client tables to server tables.  Wraps the async implementation."""
    return asyncio.run(_async_match(args))


def cmd_sync(args: argparse.Namespace) -> int:
    """Keyed sync of one table pair.

    Wraps the async implementation with ``asyncio.run()``.

    Args:
        args: Parsed CLI arguments.

    Returns:
        0 on success, 1 on failure.
    """
    return asyncio.run(_async_sync(args))


def cmd_cascade(args: argparse.Namespace) -> int:
    """Sync a root table pair and its children.  Wraps the async implementation."""
    return asyncio.run(_async_cascade(args))


def cmd_replace(args: argparse.Namespace) -> int:
    """Full replace of one table pair.  Wraps the async implementation."""
    return asyncio.run(_async_replace(args))


def cmd_override(args: argparse.Namespace) -> int:
    """Add, remove or list manual client -> server mappings.

    Edits the override file named in ``[matching].override_file``.

    Args:
        args: Parsed CLI arguments with override_command.

    Returns:
        0 on success, 1 on failure.
    """
    try:
        config = load_config()
        path = Path(config.matching.override_file)
        overrides = OverrideMap.load(path)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    if args.override_command == "add":
        overrides.set(args.client_table, args.server_table)
        overrides.save(path)
        console.print(
            f"[bold green]v[/bold green] {args.client_table} -> "
            f"[bold cyan]{args.server_table}[/bold cyan]"
        )
        console.print("[dim]Takes effect on the next match run.[/dim]")
        return 0

    if args.override_command == "remove":
        if not overrides.remove(args.client_table):
            console.print(f"[yellow]No override for {args.client_table}.[/yellow]")
            return 1
        overrides.save(path)
        console.print(f"[bold green]v[/bold green] Removed override for {args.client_table}")
        return 0

    mappings = overrides.items()
    if not mappings:
        console.print("[dim]No overrides.[/dim]")
        return 0

    table = Table(title="Manual Overrides", show_header=True, header_style="bold")
    table.add_column("Client table")
    table.add_column("Server table")
    for client_table, server_table in sorted(mappings.items()):
        table.add_row(client_table, server_table)
    console.print(table)
    return 0


# ============================================================================
# Main entry point
# ============================================================================


def _add_pair_arguments(parser: argparse.ArgumentParser) -> None:
    """Arguments shared by sync, cascade and replace."""
    parser.add_argument("table", help="Client table to sync")
    parser.add_argument(
        "--server",
        help="Server table (default: the table the client table is matched to)",
    )
    parser.add_argument(
        "--direction",
        choices=["client-to-server", "server-to-client"],
        default="client-to-server",
        help="Which side is the source (default: client-to-server)",
    )
    parser.add_argument(
        "--fields",
        help="Comma-separated list of columns to copy (default: all common columns)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Run the sync and roll it back",
    )
    parser.add_argument(
        "--confirm",
        action="store_true",
        help="Required for destructive operations",
    )


def _add_keyed_sync_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--mode",
        choices=[m.value for m in SyncMode],
        default=SyncMode.INCREMENTAL.value,
        help="Row consistency mode (default: incremental)",
    )
    parser.add_argument(
        "--backup",
        action="store_true",
        help="Back up the target table before writing",
    )
    parser.add_argument(
        "--no-create-keys",
        action="store_true",
        help="Do not add a primary key to a target that has none",
    )


def main() -> int:
    """Main CLI entry point.

    Parses command line arguments and dispatches to appropriate handler.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = argparse.ArgumentParser(
        prog="table-reconciler",
        description="Match and sync client and server game-data tables",
    )

    # Global options
    parser.add_argument(
        "--env-prefix",
        default="",
        help=(
            "Prefix for environment variable lookup "
            "(e.g., --env-prefix APP_ reads APP_DB_PROFILE)"
        ),
    )
    parser.add_argument(
        "--profile",
        "-p",
        help="Profile from reconciler.toml (default: DB_PROFILE or .db-profile)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Show debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # connect command
    p_connect = subparsers.add_parser("connect", help="Connect to database and scan tables")
    p_connect.set_defaults(func=cmd_connect)

    # status command
    p_status = subparsers.add_parser("status", help="Show current connection status")
    p_status.set_defaults(func=cmd_status)

    # disconnect command
    p_disconnect = subparsers.add_parser("disconnect", help="Forget the connected profile")
    p_disconnect.set_defaults(func=cmd_disconnect)

    # profiles command
    p_profiles = subparsers.add_parser("profiles", help="List available profiles")
    p_profiles.set_defaults(func=cmd_profiles)

    # scan command
    p_scan = subparsers.add_parser("scan", help="List scanned tables")
    p_scan.add_argument(
        "--side",
        choices=["all", "client", "server"],
        default="all",
        help="Which tables to list (default: all)",
    )
    p_scan.set_defaults(func=cmd_scan)

    # match command
    p_match = subparsers.add_parser("match", help="Match client tables to server tables")
    p_match.add_argument(
        "--unmatched",
        action="store_true",
        help="Only list client tables without a match",
    )
    p_match.add_argument(
        "--suggest",
        action="store_true",
        help="Suggest candidates for unmatched tables",
    )
    p_match.set_defaults(func=cmd_match)

    # override command
    p_override = subparsers.add_parser("override", help="Manage manual table mappings")
    override_sub = p_override.add_subparsers(dest="override_command", required=True)
    p_add = override_sub.add_parser("add", help="Map a client table to a server table")
    p_add.add_argument("client_table")
    p_add.add_argument("server_table")
    p_remove = override_sub.add_parser("remove", help="Remove a mapping")
    p_remove.add_argument("client_table")
    override_sub.add_parser("list", help="List mappings")
    p_override.set_defaults(func=cmd_override)

    # sync command
    p_sync = subparsers.add_parser("sync", help="Keyed sync of one matched table pair")
    _add_pair_arguments(p_sync)
    _add_keyed_sync_arguments(p_sync)
    p_sync.set_defaults(func=cmd_sync)

    # cascade command
    p_cascade = subparsers.add_parser(
        "cascade", help="Sync a root table pair and all its child tables"
    )
    _add_pair_arguments(p_cascade)
    _add_keyed_sync_arguments(p_cascade)
    p_cascade.set_defaults(func=cmd_cascade)

    # replace command
    p_replace = subparsers.add_parser(
        "replace", help="Delete all target rows and copy the source rows"
    )
    _add_pair_arguments(p_replace)
    p_replace.add_argument(
        "--no-backup",
        action="store_true",
        help="Skip the backup table (for testing only)",
    )
    p_replace.set_defaults(func=cmd_replace)

    # backups command
    p_backups = subparsers.add_parser("backups", help="List backup tables of a table")
    p_backups.add_argument("table", help="Table whose backups to list")
    p_backups.set_defaults(func=cmd_backups)

    # restore command
    p_restore = subparsers.add_parser("restore", help="Restore a table from a backup table")
    p_restore.add_argument("table", help="Table to restore")
    p_restore.add_argument("backup_table", help="Backup table to restore from")
    p_restore.add_argument(
        "--dry-run",
        action="store_true",
        help="Run the restore and roll it back",
    )
    p_restore.add_argument(
        "--confirm",
        action="store_true",
        help="Required: the restore deletes all current rows",
    )
    p_restore.set_defaults(func=cmd_restore)

    args = parser.parse_args()
    _configure_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
