"""Keyed row synchronization between matched tables (async).

Every call follows the same phases on one connection:

``PreCheck -> (Backup) -> SchemaEvolve -> Savepoint -> RowSync -> Commit``

Prechecks run before the transaction opens and never write.  Backup,
column widening and key creation make up the ``prepare`` phase; row
mutation is the ``apply`` phase, run under the ``sync_start`` savepoint by
``run_in_transaction``.

Rows are identified by a logical key: the target primary key, a key the
sync creates on the target (``create_missing_keys``), or the source primary
key columns when the target has none.  Child tables are keyed by their
foreign key plus a row-identity column (``id``, ``idx`` or ``seq``).

Usage:
    from table_reconciler.sync.engine import (
        sync_main_table,
        sync_main_table_with_children,
    )
    from table_reconciler.sync.models import SyncMode, SyncOptions

    result = await sync_main_table(
        client, client_item, server_item, SyncOptions(mode=SyncMode.INCREMENTAL)
    )

    cascade = await sync_main_table_with_children(
        client, client_item, server_item, all_tables, SyncOptions(dry_run=True)
    )
    for name, child in cascade.child_results.items():
        print(name, child.inserted_rows, child.skipped_rows)
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from table_reconciler.adapters.base import (
    DatabaseClient,
    RowWriteError,
    StatementError,
    SyncSession,
)
from table_reconciler.adapters.transaction import Outcome, run_in_transaction
from table_reconciler.backup.backup_restore import create_backup_table
from table_reconciler.schema.comparator import compare_fields
from table_reconciler.schema.evolution import PrimaryKeyFix, apply_key_fix, widen_columns
from table_reconciler.schema.hierarchy import (
    CLIENT_PREFIX,
    DELIMITER,
    child_path,
    delimiter_count,
    root_name,
    strip_client_prefix,
)
from table_reconciler.schema.models import TableInfo, TableLevel
from table_reconciler.sync.models import CascadeSyncResult, SyncMode, SyncOptions, SyncResult

logger = logging.getLogger(__name__)

BATCH_SAVEPOINT = "sync_batch"
ROW_SAVEPOINT = "sync_row"

ROW_IDENTITY_COLUMNS = ("id", "idx", "seq")
INDEX_COLUMN = "idx"

# Only the first few offending values are listed in a warning
_MAX_LISTED_VALUES = 10


class SyncPreconditionError(Exception):
    """A sync call cannot start: nothing has been written."""


RowTransform = Callable[[dict], "dict | None"]


@dataclass
class KeyPlan:
    """How rows of a sync target are identified.

    Attributes:
        key_columns: Target columns forming the logical key.
        fix: Primary key to add to the target before row sync, if any.
        generated_column: Key column the source does not have; its values
            are numbered per foreign-key group during row sync.
        warnings: Notes about the chosen key.
    """

    key_columns: list[str]
    fix: PrimaryKeyFix | None = None
    generated_column: str | None = None
    warnings: list[str] = field(default_factory=list)


@dataclass
class _RowCounts:
    total: int = 0
    inserted: int = 0
    updated: int = 0
    unchanged: int = 0
    skipped: int = 0
    deleted: int = 0
    warnings: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Prechecks and key planning
# ---------------------------------------------------------------------------


def _check_pair(source: TableInfo, target: TableInfo) -> list[str]:
    """Level agreement and common columns; returns the common column names."""
    if source.name == target.name:
        raise SyncPreconditionError(f"Source and target are the same table: {source.name}")
    if source.level != target.level:
        raise SyncPreconditionError(
            f"Level mismatch: {source.name} is {source.level.display_name}, "
            f"{target.name} is {target.level.display_name}"
        )
    common = compare_fields(source, target).common_names
    if not common:
        raise SyncPreconditionError(f"{source.name} and {target.name} have no common columns")
    return common


def select_sync_columns(common: list[str], options: SyncOptions) -> list[str]:
    """Apply include/exclude lists to the common columns, keeping their order."""
    excluded = set(options.exclude_fields)
    columns = [c for c in common if c not in excluded]
    if options.include_fields is not None:
        included = set(options.include_fields)
        columns = [c for c in columns if c in included]
    return columns


def plan_main_key(
    source: TableInfo, target: TableInfo, create_missing_keys: bool = True
) -> KeyPlan:
    """Choose the logical key of a root table sync.

    Raises:
        SyncPreconditionError: If no usable key exists or the keys disagree.
    """
    source_columns = set(source.column_names)
    target_pk = target.primary_keys

    if target_pk:
        if source.primary_keys and source.primary_keys != target_pk:
            raise SyncPreconditionError(
                f"Primary key mismatch: {source.name} ({', '.join(source.primary_keys)}) "
                f"vs {target.name} ({', '.join(target_pk)})"
            )
        missing = [c for c in target_pk if c not in source_columns]
        if missing:
            raise SyncPreconditionError(
                f"Key columns of {target.name} missing from {source.name}: {', '.join(missing)}"
            )
        return KeyPlan(key_columns=list(target_pk))

    if create_missing_keys and "id" in source_columns:
        if target.get_column("id") is not None:
            fix = PrimaryKeyFix(table=target.name, key_columns=["id"])
        else:
            fix = PrimaryKeyFix(table=target.name, key_columns=["id"], serial_column="id")
        return KeyPlan(key_columns=["id"], fix=fix)

    source_pk = source.primary_keys
    if source_pk and all(target.get_column(c) is not None for c in source_pk):
        return KeyPlan(
            key_columns=list(source_pk),
            warnings=[
                f"{target.name} has no primary key; rows matched on "
                f"{', '.join(source_pk)} without a constraint"
            ],
        )

    raise SyncPreconditionError(
        f"No usable key: {target.name} has no primary key"
        + ("" if create_missing_keys else " and key creation is disabled")
    )


def infer_foreign_key_column(
    parent_name: str, columns: list[str], client_prefix: str = CLIENT_PREFIX
) -> str | None:
    """Find the column referencing ``parent_name`` by naming convention.

    Tries, case-insensitively: ``{P}_id``, ``{P}id``, ``{P}_key``,
    ``fk_{P}``, the same four for the prefix-stripped parent name and for
    its last nesting segment, then ``parent_id`` and ``parentId``.

    Returns:
        The matching column name as spelled in ``columns``, or None.

    Example:
        >>> infer_foreign_key_column("client_item", ["idx", "item_id", "value"])
        'item_id'
    """
    by_lower = {c.lower(): c for c in columns}
    base = strip_client_prefix(parent_name, client_prefix)

    candidates: list[str] = []
    last = base.rsplit(DELIMITER, 1)[-1]
    for name in dict.fromkeys((parent_name, base, last)):
        candidates += [f"{name}_id", f"{name}id", f"{name}_key", f"fk_{name}"]
    candidates += ["parent_id", "parentId"]

    for candidate in candidates:
        column = by_lower.get(candidate.lower())
        if column is not None:
            return column
    return None


def plan_child_key(
    source: TableInfo,
    target: TableInfo,
    foreign_key: str | None,
    create_missing_keys: bool = True,
) -> KeyPlan:
    """Choose the logical key of a child table sync.

    A target primary key wins.  Otherwise the key is the foreign key plus the
    first row-identity column both sides share, or a new ``idx`` column.

    Raises:
        SyncPreconditionError: If no usable key exists.
    """
    source_columns = set(source.column_names)
    target_columns = set(target.column_names)
    target_pk = target.primary_keys

    if target_pk:
        missing = [c for c in target_pk if c not in source_columns]
        if not missing:
            return KeyPlan(key_columns=list(target_pk))
        generated = missing[0]
        if len(missing) == 1 and generated in ROW_IDENTITY_COLUMNS and foreign_key in target_pk:
            return KeyPlan(
                key_columns=list(target_pk),
                generated_column=generated,
                warnings=[f"{generated} of {target.name} numbered per {foreign_key}"],
            )
        raise SyncPreconditionError(
            f"Key columns of {target.name} missing from {source.name}: {', '.join(missing)}"
        )

    if foreign_key is not None and create_missing_keys:
        for column in ROW_IDENTITY_COLUMNS:
            if column in source_columns and column in target_columns:
                fix = PrimaryKeyFix(table=target.name, key_columns=[foreign_key, column])
                return KeyPlan(key_columns=[foreign_key, column], fix=fix)

        if INDEX_COLUMN not in target_columns:
            fix = PrimaryKeyFix(
                table=target.name,
                key_columns=[foreign_key, INDEX_COLUMN],
                index_column=INDEX_COLUMN,
                partition_column=foreign_key,
            )
            return KeyPlan(
                key_columns=[foreign_key, INDEX_COLUMN],
                fix=fix,
                generated_column=None if INDEX_COLUMN in source_columns else INDEX_COLUMN,
            )

    source_pk = source.primary_keys
    if source_pk and all(c in target_columns for c in source_pk):
        return KeyPlan(
            key_columns=list(source_pk),
            warnings=[
                f"{target.name} has no primary key; rows matched on "
                f"{', '.join(source_pk)} without a constraint"
            ],
        )

    if foreign_key is None:
        raise SyncPreconditionError(
            f"No usable key: {target.name} has no primary key and no foreign key "
            f"to {source.hierarchy.parent_name} was found"
        )
    raise SyncPreconditionError(
        f"No usable key: {target.name} has no primary key"
        + ("" if create_missing_keys else " and key creation is disabled")
    )


def _check_mode(options: SyncOptions) -> None:
    if options.mode.is_destructive and not (options.confirm or options.dry_run):
        raise SyncPreconditionError(
            f"{options.mode.display_name} deletes target rows: pass confirm=True or dry_run=True"
        )


# ---------------------------------------------------------------------------
# Row sync
# ---------------------------------------------------------------------------


def _key_of(row: dict, key_columns: list[str]) -> tuple | None:
    """Comparable key tuple; None when any key value is NULL."""
    values = tuple(row.get(c) for c in key_columns)
    if any(v is None for v in values):
        return None
    return tuple(str(v) for v in values)


def _values_equal(a: Any, b: Any) -> bool:
    if a == b:
        return True
    if a is None or b is None:
        return False
    return str(a) == str(b)


def _list_values(values: list[Any]) -> str:
    listed = ", ".join(str(v) for v in values[:_MAX_LISTED_VALUES])
    if len(values) > _MAX_LISTED_VALUES:
        listed += f", ... ({len(values)} total)"
    return listed


async def _insert_rows(
    session: SyncSession, table: str, rows: list[dict], batch_size: int, counts: _RowCounts
) -> None:
    """Insert in batches; a rejected batch is retried row by row."""
    for start in range(0, len(rows), batch_size):
        batch = rows[start : start + batch_size]
        await session.savepoint(BATCH_SAVEPOINT)
        try:
            counts.inserted += await session.insert_many(table, batch)
        except RowWriteError as e:
            await session.rollback_to(BATCH_SAVEPOINT)
            logger.warning(f"Batch insert into {table} failed, retrying row by row: {e}")
            for row in batch:
                await _write_row(
                    session, counts, lambda row=row: session.insert_many(table, [row]), "insert"
                )
            continue
        await session.release(BATCH_SAVEPOINT)


async def _write_row(
    session: SyncSession,
    counts: _RowCounts,
    write: Callable[[], Awaitable[int]],
    action: str,
) -> bool:
    """Run one row write under its own savepoint; failures skip the row."""
    await session.savepoint(ROW_SAVEPOINT)
    try:
        affected = await write()
    except RowWriteError as e:
        await session.rollback_to(ROW_SAVEPOINT)
        counts.skipped += 1
        counts.warnings.append(f"Row {action} skipped: {e}")
        logger.warning(f"Row {action} skipped: {e}")
        return False
    await session.release(ROW_SAVEPOINT)
    if action == "insert":
        counts.inserted += affected
    elif action == "update":
        counts.updated += 1
    else:
        counts.deleted += affected
    return True


async def sync_rows(
    session: SyncSession,
    source: str,
    target: str,
    columns: list[str],
    key_columns: list[str],
    mode: SyncMode,
    batch_size: int = 1000,
    transform: RowTransform | None = None,
    order_by: list[str] | None = None,
) -> _RowCounts:
    """Reconcile target rows with source rows by logical key.

    Args:
        session: Open session inside the ``sync_start`` savepoint.
        source: Source table name.
        target: Target table name.
        columns: Columns read from the source and written to the target.
        key_columns: Logical key.  Key columns missing from ``columns`` must
            be filled in by ``transform``.
        mode: Row consistency policy.
        batch_size: Rows per INSERT batch.
        transform: Per-row rewrite (foreign key translation); returning None
            skips the row.
        order_by: Source read order.

    Returns:
        Row counters and warnings.
    """
    counts = _RowCounts()
    write_columns = columns + [c for c in key_columns if c not in columns]

    source_rows = await session.select(source, columns, order_by=order_by)
    target_rows = await session.select(target, write_columns)
    counts.total = len(source_rows)

    existing: dict[tuple, dict] = {}
    for row in target_rows:
        key = _key_of(row, key_columns)
        if key is not None:
            existing[key] = row

    seen: set[tuple] = set()
    duplicates: list[tuple] = []
    inserts: list[dict] = []
    updates: list[tuple[dict, dict]] = []

    for row in source_rows:
        if transform is not None:
            row = transform(row)
            if row is None:
                counts.skipped += 1
                continue

        key = _key_of(row, key_columns)
        if key is None:
            counts.skipped += 1
            counts.warnings.append(f"Row with NULL key skipped: {row}")
            continue
        if key in seen:
            counts.skipped += 1
            duplicates.append(key)
            continue
        seen.add(key)

        current = existing.get(key)
        if current is None:
            if mode is SyncMode.UPDATE_ONLY:
                counts.skipped += 1
            else:
                inserts.append(row)
            continue

        if mode is SyncMode.INSERT_ONLY:
            counts.skipped += 1
            continue
        changed = {
            c: row[c]
            for c in write_columns
            if c not in key_columns and c in row and not _values_equal(row[c], current.get(c))
        }
        if changed:
            updates.append((changed, current))
        else:
            counts.unchanged += 1

    if duplicates:
        counts.warnings.append(
            f"{len(duplicates)} duplicate source keys skipped: {_list_values(duplicates)}"
        )

    await _insert_rows(session, target, inserts, batch_size, counts)

    for changed, current in updates:
        filters = {c: current[c] for c in key_columns}
        await _write_row(
            session,
            counts,
            lambda changed=changed, filters=filters: session.update(target, changed, filters),
            "update",
        )

    if mode is SyncMode.FULL_SYNC:
        for key, current in existing.items():
            if key in seen:
                continue
            filters = {c: current[c] for c in key_columns}
            await _write_row(
                session, counts, lambda filters=filters: session.delete(target, filters), "delete"
            )

    logger.debug(
        f"{source} -> {target}: {counts.inserted} inserted, {counts.updated} updated, "
        f"{counts.unchanged} unchanged, {counts.skipped} skipped, {counts.deleted} deleted"
    )
    return counts


# ---------------------------------------------------------------------------
# Shared call driver
# ---------------------------------------------------------------------------


def _finish(result: SyncResult, started: float) -> SyncResult:
    result.duration_ms = int((time.monotonic() - started) * 1000)
    if result.success:
        result.message = (
            f"{result.inserted_rows} inserted, {result.updated_rows} updated, "
            f"{result.unchanged_rows} unchanged, {result.skipped_rows} skipped"
            + (f", {result.deleted_rows} deleted" if result.mode is SyncMode.FULL_SYNC else "")
            + (" (dry run)" if result.dry_run else "")
        )
        logger.info(f"Synced {result.source_table} -> {result.target_table}: {result.message}")
    else:
        result.message = result.errors[0] if result.errors else "Sync failed"
        logger.error(
            f"Sync {result.source_table} -> {result.target_table} failed: {result.message}"
        )
    return result


async def _run_sync(
    client: DatabaseClient,
    source: TableInfo,
    target: TableInfo,
    columns: list[str],
    plan: KeyPlan,
    options: SyncOptions,
    result: SyncResult,
    transform: RowTransform | None = None,
) -> None:
    """Run prepare/apply for one table pair and fill ``result``."""
    result.key_columns = list(plan.key_columns)
    result.warnings.extend(plan.warnings)
    read_columns = [c for c in columns if c != plan.generated_column]

    async def prepare(session: SyncSession) -> Outcome:
        await session.count(source.name)

        if options.backup:
            try:
                result.backup_table = await create_backup_table(session, target.name)
            except StatementError as e:
                return Outcome.failure(f"Backup of {target.name} failed: {e}")

        widened, warnings = await widen_columns(session, source, target)
        result.schema_updates.extend(fix.describe() for fix in widened)
        result.warnings.extend(warnings)

        if plan.fix is not None:
            try:
                await apply_key_fix(session, plan.fix)
            except StatementError as e:
                return Outcome.failure(f"Could not add {plan.fix.describe()}: {e}")
            result.schema_updates.append(plan.fix.describe())
        return Outcome.success()

    async def apply(session: SyncSession) -> Outcome:
        counts = await sync_rows(
            session,
            source.name,
            target.name,
            read_columns,
            plan.key_columns,
            options.mode,
            batch_size=options.batch_size,
            transform=transform,
            order_by=source.primary_keys or read_columns,
        )
        result.total_rows = counts.total
        result.inserted_rows = counts.inserted
        result.updated_rows = counts.updated
        result.unchanged_rows = counts.unchanged
        result.skipped_rows = counts.skipped
        result.deleted_rows = counts.deleted
        result.warnings.extend(counts.warnings)
        return Outcome.success()

    outcome = await run_in_transaction(
        client, apply, prepare=prepare, dry_run=options.dry_run, timeout=options.timeout
    )
    if options.dry_run:
        # Rolled back with everything else
        result.backup_table = None
    if outcome.ok:
        result.success = True
        return

    result.inserted_rows = result.updated_rows = result.deleted_rows = 0
    result.unchanged_rows = result.skipped_rows = 0
    result.errors.append(outcome.error or "Sync failed")


def _new_result(source: TableInfo, target: TableInfo, options: SyncOptions) -> SyncResult:
    return SyncResult(
        source_table=source.name,
        target_table=target.name,
        mode=options.mode,
        dry_run=options.dry_run,
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def sync_main_table(
    client: DatabaseClient,
    source: TableInfo,
    target: TableInfo,
    options: SyncOptions | None = None,
) -> SyncResult:
    """Sync a root table into its matched counterpart.

    Args:
        client: Database client; one session is used for the whole call.
        source: Table rows are read from.
        target: Table rows are written to.
        options: Mode, backup, dry run and field selection.

    Returns:
        SyncResult.  Precondition failures return ``success=False`` before
        anything is written.
    """
    options = options or SyncOptions()
    started = time.monotonic()
    result = _new_result(source, target, options)

    try:
        _check_mode(options)
        common = _check_pair(source, target)
        plan = plan_main_key(source, target, options.create_missing_keys)
    except SyncPreconditionError as e:
        result.errors.append(str(e))
        return _finish(result, started)

    columns = select_sync_columns(common, options)
    columns += [c for c in plan.key_columns if c not in columns]

    await _run_sync(client, source, target, columns, plan, options, result)
    return _finish(result, started)


async def sync_sub_table(
    client: DatabaseClient,
    source: TableInfo,
    target: TableInfo,
    parent_key_map: dict[str, Any] | None,
    options: SyncOptions | None = None,
    client_prefix: str = CLIENT_PREFIX,
) -> SyncResult:
    """Sync a child table, translating its foreign key through the parent map.

    Args:
        client: Database client.
        source: Child table rows are read from.
        target: Child table rows are written to.
        parent_key_map: ``str(source parent key) -> target parent key``.
            None copies foreign keys unchanged.  A dict, even an empty one,
            is enforced: rows whose foreign key has no entry are skipped and
            reported, never guessed.
        options: Mode, backup, dry run and field selection.
        client_prefix: Prefix stripped from the parent name when looking
            for the foreign key column.

    Returns:
        SyncResult.
    """
    options = options or SyncOptions()
    started = time.monotonic()
    result = _new_result(source, target, options)

    try:
        _check_mode(options)
        if source.hierarchy.is_root:
            raise SyncPreconditionError(f"{source.name} is not a child table")
        common = _check_pair(source, target)
        foreign_key = infer_foreign_key_column(
            source.hierarchy.parent_name or "", common, client_prefix
        )
        if parent_key_map is not None and foreign_key is None:
            raise SyncPreconditionError(
                f"No foreign key to {source.hierarchy.parent_name} found in {source.name}"
            )
        plan = plan_child_key(source, target, foreign_key, options.create_missing_keys)
    except SyncPreconditionError as e:
        result.errors.append(str(e))
        return _finish(result, started)

    columns = select_sync_columns(common, options)
    columns += [c for c in plan.key_columns if c not in columns]
    if foreign_key is not None and foreign_key not in columns:
        columns.append(foreign_key)

    rows = _ChildRows(foreign_key, parent_key_map, plan.generated_column)
    transform = rows if (parent_key_map is not None or plan.generated_column) else None
    await _run_sync(client, source, target, columns, plan, options, result, transform)
    if result.success and rows.orphans:
        result.warnings.append(
            f"{len(rows.orphans)} rows skipped: {foreign_key} has no parent mapping "
            f"({_list_values(rows.orphans)})"
        )
    return _finish(result, started)


class _ChildRows:
    """Per-row foreign key translation and index numbering of a child sync."""

    def __init__(
        self,
        foreign_key: str | None,
        parent_key_map: dict[str, Any] | None,
        generated_column: str | None,
    ) -> None:
        self.foreign_key = foreign_key
        self.parent_key_map = parent_key_map
        self.generated_column = generated_column
        self.orphans: list[Any] = []
        self._next_index: dict[str, int] = {}

    def __call__(self, row: dict) -> dict | None:
        row = dict(row)
        fk = self.foreign_key

        if self.parent_key_map is not None and fk is not None:
            value = row.get(fk)
            if value is None or str(value) not in self.parent_key_map:
                self.orphans.append(value)
                logger.debug(f"Orphan row skipped: {fk}={value}")
                return None
            row[fk] = self.parent_key_map[str(value)]

        if self.generated_column is not None:
            group = str(row.get(fk)) if fk is not None else ""
            index = self._next_index.get(group, 0)
            row[self.generated_column] = index
            self._next_index[group] = index + 1
        return row


async def _select_key_values(client: DatabaseClient, table: str, column: str) -> list[Any]:
    async with client.session() as session:
        rows = await session.select(table, [column])
    return [row[column] for row in rows]


async def _key_mapping(
    client: DatabaseClient, source: str, source_key: str, target: str, target_key: str
) -> dict[str, Any]:
    target_values = {str(v): v for v in await _select_key_values(client, target, target_key)}
    mapping: dict[str, Any] = {}
    for value in await _select_key_values(client, source, source_key):
        if value is not None and str(value) in target_values:
            mapping[str(value)] = target_values[str(value)]
    logger.info(f"Key mapping {source} -> {target}: {len(mapping)} keys")
    return mapping


async def build_primary_key_mapping(
    client: DatabaseClient, source_root: TableInfo, target_root: TableInfo
) -> dict[str, Any]:
    """Map source primary key values to equal target primary key values.

    This is an inner join on equal key values: an identity assumption, not
    a heuristic.  Keys are compared as strings so ``int``/``bigint``/text
    keys line up.

    Returns:
        ``{str(source key): target key}``.  Empty when either side lacks a
        single-column primary key.

    Raises:
        Exception: If either table cannot be read.
    """
    source_pk = source_root.primary_keys
    target_pk = target_root.primary_keys
    if len(source_pk) != 1 or len(target_pk) != 1:
        logger.warning(
            f"No single-column primary key on {source_root.name} or {target_root.name}, "
            "key mapping is empty"
        )
        return {}
    return await _key_mapping(client, source_root.name, source_pk[0], target_root.name, target_pk[0])


def find_child_pairs(
    source_root: TableInfo,
    target_root: TableInfo,
    all_tables: list[TableInfo],
    client_prefix: str = CLIENT_PREFIX,
) -> list[tuple[TableInfo, TableInfo]]:
    """Pair child tables of two roots by equal child path.

    ``client_item__effect__param`` pairs with ``item__effect__param`` when
    the roots are ``client_item`` and ``item``.  Level-1 pairs come first.
    """

    def children(root: TableInfo) -> dict[str, TableInfo]:
        return {
            child_path(t.name, client_prefix): t
            for t in all_tables
            if t.is_client_side == root.is_client_side
            and delimiter_count(t.name, client_prefix) > 0
            and root_name(t.name, client_prefix) == root.name
        }

    source_children = children(source_root)
    target_children = children(target_root)

    pairs = [
        (source_children[path], target_children[path])
        for path in source_children
        if path in target_children
    ]
    unpaired = sorted(set(source_children) - set(target_children))
    if unpaired:
        logger.info(f"Children of {source_root.name} without counterpart: {', '.join(unpaired)}")

    pairs.sort(key=lambda p: (p[0].level != TableLevel.LEVEL_1, p[0].name))
    return pairs


async def sync_main_table_with_children(
    client: DatabaseClient,
    source_root: TableInfo,
    target_root: TableInfo,
    all_tables: list[TableInfo],
    options: SyncOptions | None = None,
    client_prefix: str = CLIENT_PREFIX,
) -> CascadeSyncResult:
    """Sync a root table, then every paired child table.

    The root is synced first; if it fails no child is touched.  Each child
    runs in its own transaction, so children fail independently.  Level-1
    children translate their foreign key through the root key mapping;
    level-2 children through their level-1 parent's mapping.  In a dry run
    the mapping reflects the unchanged target, so children of new root rows
    show up as skipped.

    Args:
        client: Database client.
        source_root: Root table rows are read from.
        target_root: Root table rows are written to.
        all_tables: Scanned tables to find children in.
        options: Applied to the root and every child.
        client_prefix: Client-side table prefix the tables were scanned with.

    Returns:
        CascadeSyncResult with per-child results.
    """
    options = options or SyncOptions()
    started = time.monotonic()
    cascade = CascadeSyncResult()

    main = await sync_main_table(client, source_root, target_root, options)
    cascade.main_result = main
    cascade.total_inserted = main.inserted_rows
    cascade.total_updated = main.updated_rows

    if not main.success:
        cascade.message = f"Root sync failed, children not synced: {main.message}"
        cascade.duration_ms = int((time.monotonic() - started) * 1000)
        logger.error(cascade.message)
        return cascade

    # Source parent name -> (key mapping or None, warning)
    mappings: dict[str, tuple[dict[str, Any] | None, str | None]] = {}
    mappings[source_root.name] = await _mapping_for(
        client, source_root.name, target_root.name, main
    )

    for source, target in find_child_pairs(source_root, target_root, all_tables, client_prefix):
        parent = source.hierarchy.parent_name or source_root.name
        if parent not in mappings:
            child = _new_result(source, target, options)
            child.errors.append(f"Parent table {parent} was not synced")
            cascade.child_results[source.name] = _finish(child, time.monotonic())
            cascade.failed_children += 1
            continue

        parent_map, note = mappings[parent]
        child = await sync_sub_table(
            client, source, target, parent_map, options, client_prefix
        )
        if note:
            child.warnings.insert(0, note)
        cascade.child_results[source.name] = child

        if child.success:
            cascade.successful_children += 1
            cascade.total_inserted += child.inserted_rows
            cascade.total_updated += child.updated_rows
            if source.level == TableLevel.LEVEL_1:
                mappings[source.name] = await _mapping_for(client, source.name, target.name, child)
        else:
            cascade.failed_children += 1

    cascade.success = cascade.failed_children == 0
    cascade.duration_ms = int((time.monotonic() - started) * 1000)
    cascade.message = (
        f"Root synced, {cascade.successful_children} children synced, "
        f"{cascade.failed_children} failed"
    )
    log = logger.info if cascade.success else logger.warning
    log(f"Cascade {source_root.name} -> {target_root.name}: {cascade.message}")
    return cascade


async def _mapping_for(
    client: DatabaseClient, source: str, target: str, result: SyncResult
) -> tuple[dict[str, Any] | None, str | None]:
    """Key mapping for the children of a synced table.

    Only a single-column key can be translated; children of a table with a
    composite key copy their foreign keys unchanged.
    """
    if len(result.key_columns) != 1:
        return None, (
            f"{source} has a composite key ({', '.join(result.key_columns)}); "
            "foreign keys copied without translation"
        )
    key = result.key_columns[0]
    return await _key_mapping(client, source, key, target, key), None
