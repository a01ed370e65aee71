"""In-database table backup and restore.

A backup is a sibling table named ``{table}_backup_{YYYYmmdd_HHMMSS}``
created with ``CREATE TABLE ... (LIKE ... INCLUDING ALL)`` and filled with
``INSERT ... SELECT *``.  Backups are taken inside the caller's
transaction, so they commit or roll back with the sync that made them.

Usage:
    from table_reconciler.backup.backup_restore import (
        create_backup_table,
        list_backup_tables,
        restore_from_backup,
    )

    async with client.session() as session:
        name = await create_backup_table(session, "server_item")
        await session.commit()

    backups = await list_backup_tables(client, "server_item")
    result = await restore_from_backup(client, "server_item", backups[0], confirm=True)
"""

import logging
import re
from datetime import datetime

from table_reconciler.adapters.base import DatabaseClient, SyncSession
from table_reconciler.adapters.postgres import quote_ident
from table_reconciler.adapters.transaction import Outcome, run_in_transaction
from table_reconciler.backup.models import RestoreResult

logger = logging.getLogger(__name__)

BACKUP_INFIX = "_backup_"

_BACKUP_NAME = re.compile(rf"{BACKUP_INFIX}\d{{8}}_\d{{6}}$")

# PostgreSQL truncates identifiers longer than this
MAX_IDENTIFIER_LENGTH = 63


def backup_table_name(table: str, now: datetime | None = None) -> str:
    """Timestamped backup table name, trimmed to fit an identifier.

    Example:
        >>> backup_table_name("item", datetime(2025, 1, 2, 3, 4, 5))
        'item_backup_20250102_030405'
    """
    suffix = f"{BACKUP_INFIX}{(now or datetime.now()):%Y%m%d_%H%M%S}"
    return table[: MAX_IDENTIFIER_LENGTH - len(suffix)] + suffix


def is_backup_table(table: str) -> bool:
    """True for names made by ``backup_table_name``."""
    return _BACKUP_NAME.search(table) is not None


async def create_backup_table(session: SyncSession, table: str) -> str:
    """Copy a table's structure and rows into a new backup table.

    Args:
        session: Open session; the backup is part of its transaction.
        table: Table to back up.

    Returns:
        Name of the created backup table.

    Raises:
        StatementError: If the table cannot be copied.
    """
    backup = backup_table_name(table)
    await session.execute(
        f"CREATE TABLE {quote_ident(backup)} (LIKE {quote_ident(table)} INCLUDING ALL)"
    )
    copied = await session.execute(
        f"INSERT INTO {quote_ident(backup)} SELECT * FROM {quote_ident(table)}"
    )
    logger.info(f"Backed up {copied} rows of {table} to {backup}")
    return backup


async def list_backup_tables(client: DatabaseClient, table: str) -> list[str]:
    """Backup tables of ``table`` in the current schema, newest first."""
    pattern = (
        table.replace("\\", "\\\\").replace("_", "\\_").replace("%", "\\%")
        + BACKUP_INFIX.replace("_", "\\_")
        + "%"
    )
    async with client.session() as session:
        rows = await session.fetch(
            "SELECT tablename FROM pg_tables "
            "WHERE schemaname = current_schema() AND tablename LIKE :pattern "
            "ORDER BY tablename DESC",
            {"pattern": pattern},
        )
    return [row["tablename"] for row in rows]


async def restore_from_backup(
    client: DatabaseClient,
    table: str,
    backup_table: str,
    confirm: bool = False,
    dry_run: bool = False,
) -> RestoreResult:
    """Replace all rows of ``table`` with the rows of one of its backups.

    Destructive: requires ``confirm=True`` unless ``dry_run``.

    Args:
        client: Database client.
        table: Table to restore.
        backup_table: Backup table name (must belong to ``table``).
        confirm: Acknowledge that current rows are deleted.
        dry_run: Run in a transaction that is rolled back.

    Returns:
        RestoreResult with row counts and errors.
    """
    result = RestoreResult(table=table, backup_table=backup_table, dry_run=dry_run)

    if not backup_table.startswith(table + BACKUP_INFIX):
        result.errors.append(f"{backup_table} is not a backup of {table}")
        return result
    if not confirm and not dry_run:
        result.errors.append("Restore deletes all current rows: pass confirm=True or dry_run=True")
        return result

    async def apply(session: SyncSession) -> Outcome:
        result.deleted_rows = await session.delete(table)
        result.restored_rows = await session.execute(
            f"INSERT INTO {quote_ident(table)} SELECT * FROM {quote_ident(backup_table)}"
        )
        return Outcome.success()

    outcome = await run_in_transaction(client, apply, dry_run=dry_run)
    if not outcome.ok:
        result.deleted_rows = 0
        result.restored_rows = 0
        result.errors.append(f"Restore failed: {outcome.error}")
        return result

    result.success = True
    logger.info(
        f"Restored {result.restored_rows} rows of {table} from {backup_table}"
        + (" (dry run)" if dry_run else "")
    )
    return result
