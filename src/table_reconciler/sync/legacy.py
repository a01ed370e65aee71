"""Full-replace sync between a client table and its server table (async).

The older, non-hierarchy-aware path: delete every target row, then copy
all source rows for the common columns in batches.  Both steps run in one
transaction, after an optional backup of the target.

Usage:
    from table_reconciler.sync.legacy import sync_client_to_server
    from table_reconciler.sync.models import ReplaceOptions

    result = await sync_client_to_server(
        client, client_item, server_item, ReplaceOptions(confirm=True)
    )
    print(result.backup_table)  # restore with restore_from_backup() if needed
"""

from __future__ import annotations

import logging
import time

from table_reconciler.adapters.base import DatabaseClient, RowWriteError, StatementError, SyncSession
from table_reconciler.adapters.transaction import Outcome, run_in_transaction
from table_reconciler.backup.backup_restore import create_backup_table
from table_reconciler.schema.comparator import compare_fields
from table_reconciler.schema.models import TableInfo
from table_reconciler.sync.models import ReplaceOptions, SyncResult

logger = logging.getLogger(__name__)


def _precheck(source: TableInfo, target: TableInfo, options: ReplaceOptions) -> list[str]:
    """Return the columns to copy, or raise ValueError describing the problem."""
    if not options.confirm and not options.dry_run:
        raise ValueError(
            f"Replacing {target.name} deletes all its rows: pass confirm=True or dry_run=True"
        )
    if source.level != target.level:
        raise ValueError(
            f"Level mismatch: {source.name} is {source.level.display_name}, "
            f"{target.name} is {target.level.display_name}"
        )
    if not source.primary_keys or not target.primary_keys:
        missing = source.name if not source.primary_keys else target.name
        raise ValueError(f"{missing} has no primary key")
    if source.primary_keys != target.primary_keys:
        raise ValueError(
            f"Primary key mismatch: {source.name} ({', '.join(source.primary_keys)}) "
            f"vs {target.name} ({', '.join(target.primary_keys)})"
        )

    common = compare_fields(source, target).common_names
    excluded = set(options.exclude_fields)
    columns = [c for c in common if c not in excluded or c in target.primary_keys]
    if options.include_fields is not None:
        included = set(options.include_fields) | set(target.primary_keys)
        columns = [c for c in columns if c in included]
    if not columns:
        raise ValueError(f"{source.name} and {target.name} have no common columns")
    return columns


async def _replace(
    client: DatabaseClient,
    source: TableInfo,
    target: TableInfo,
    options: ReplaceOptions | None,
) -> SyncResult:
    options = options or ReplaceOptions()
    started = time.monotonic()
    result = SyncResult(
        source_table=source.name,
        target_table=target.name,
        key_columns=list(target.primary_keys),
        dry_run=options.dry_run,
    )

    try:
        columns = _precheck(source, target, options)
    except ValueError as e:
        result.errors.append(str(e))
        result.message = str(e)
        logger.error(f"Replace {source.name} -> {target.name} rejected: {e}")
        return result

    async def prepare(session: SyncSession) -> Outcome:
        await session.count(source.name)
        if options.backup:
            try:
                result.backup_table = await create_backup_table(session, target.name)
            except StatementError as e:
                return Outcome.failure(f"Backup of {target.name} failed: {e}")
        return Outcome.success()

    async def apply(session: SyncSession) -> Outcome:
        result.deleted_rows = await session.delete(target.name)
        rows = await session.select(source.name, columns, order_by=source.primary_keys or columns)
        result.total_rows = len(rows)
        for start in range(0, len(rows), options.batch_size):
            batch = rows[start : start + options.batch_size]
            try:
                result.inserted_rows += await session.insert_many(target.name, batch)
            except RowWriteError as e:
                return Outcome.failure(f"Copy into {target.name} failed at row {start}: {e}")
            logger.debug(f"Copied {result.inserted_rows}/{len(rows)} rows into {target.name}")
        return Outcome.success()

    outcome = await run_in_transaction(
        client, apply, prepare=prepare, dry_run=options.dry_run, timeout=options.timeout
    )
    result.duration_ms = int((time.monotonic() - started) * 1000)
    if options.dry_run:
        result.backup_table = None

    if not outcome.ok:
        result.deleted_rows = result.inserted_rows = 0
        result.errors.append(outcome.error or "Replace failed")
        result.message = result.errors[-1]
        logger.error(f"Replace {source.name} -> {target.name} failed: {result.message}")
        return result

    result.success = True
    result.message = (
        f"Replaced {result.deleted_rows} rows with {result.inserted_rows}"
        + (" (dry run)" if options.dry_run else "")
    )
    logger.info(f"Replace {source.name} -> {target.name}: {result.message}")
    return result


async def sync_client_to_server(
    client: DatabaseClient,
    client_table: TableInfo,
    server_table: TableInfo,
    options: ReplaceOptions | None = None,
) -> SyncResult:
    """Replace all rows of the server table with the client table's rows.

    Args:
        client: Database client.
        client_table: Source table.
        server_table: Target table; every row is deleted first.
        options: Backup (on by default), confirm, dry run, field selection.

    Returns:
        SyncResult with ``mode=None``.
    """
    return await _replace(client, client_table, server_table, options)


async def sync_server_to_client(
    client: DatabaseClient,
    client_table: TableInfo,
    server_table: TableInfo,
    options: ReplaceOptions | None = None,
) -> SyncResult:
    """Replace all rows of the client table with the server table's rows."""
    return await _replace(client, server_table, client_table, options)
