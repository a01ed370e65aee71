"""Non-destructive schema evolution of sync targets.

Two kinds of change are ever made to a target table:

- Widening a string column whose declared length is smaller than the
  source column's (same base type only).  The new length also covers the
  longest value already stored in the target.  A failed widen is reported
  as a warning and the column keeps its type.
- Adding a primary key to a target that has none, creating an ``id``
  (``SERIAL``) or ``idx`` column when needed.  Failure here is fatal to
  the sync call.

Data columns are never added or dropped.

Usage:
    widened, warnings = await widen_columns(session, source, target)
    fix = PrimaryKeyFix(table="item", key_columns=["id"], serial_column="id")
    await apply_key_fix(session, fix)
"""

import logging
from dataclasses import dataclass, field

from table_reconciler.adapters.base import StatementError, SyncSession
from table_reconciler.adapters.postgres import quote_ident
from table_reconciler.schema.comparator import compare_fields
from table_reconciler.schema.models import FieldPair, TableInfo

logger = logging.getLogger(__name__)

EVOLVE_SAVEPOINT = "schema_evolve"

_LENGTH_STEPS = (50, 100, 200, 500, 1000, 2000, 5000)


# ------------------------------------------------------------------
# Fix data classes
# ------------------------------------------------------------------


@dataclass
class ColumnWiden:
    """A column type change to a longer length.

    Example:
        fix = ColumnWiden("item", "name", "varchar(32)", "varchar(64)")
        fix.to_sql()
        # 'ALTER TABLE "item" ALTER COLUMN "name" TYPE varchar(64)'
    """

    table: str
    column: str
    old_type: str
    new_type: str

    def to_sql(self) -> str:
        return (
            f"ALTER TABLE {quote_ident(self.table)} "
            f"ALTER COLUMN {quote_ident(self.column)} TYPE {self.new_type}"
        )

    def describe(self) -> str:
        return f"{self.table}.{self.column}: {self.old_type} -> {self.new_type}"


@dataclass
class PrimaryKeyFix:
    """A primary key to add to a table that has none.

    Attributes:
        table: Target table.
        key_columns: Columns of the new key, in order.
        serial_column: Column to create as ``SERIAL`` first (main tables).
        index_column: Column to create as ``INTEGER NOT NULL DEFAULT 0``
            first (child tables).  Existing rows are numbered 0, 1, 2, ...
            within each ``partition_column`` group so the key is unique.
        partition_column: Foreign-key column the index restarts on.
    """

    table: str
    key_columns: list[str] = field(default_factory=list)
    serial_column: str | None = None
    index_column: str | None = None
    partition_column: str | None = None

    def statements(self) -> list[str]:
        table = quote_ident(self.table)
        statements: list[str] = []

        if self.serial_column:
            statements.append(
                f"ALTER TABLE {table} ADD COLUMN {quote_ident(self.serial_column)} SERIAL"
            )

        if self.index_column:
            index = quote_ident(self.index_column)
            statements.append(f"ALTER TABLE {table} ADD COLUMN {index} INTEGER NOT NULL DEFAULT 0")
            partition = (
                f"PARTITION BY {quote_ident(self.partition_column)} "
                if self.partition_column
                else ""
            )
            statements.append(
                f"UPDATE {table} AS t SET {index} = n.rn "
                f"FROM (SELECT ctid, row_number() OVER ({partition}ORDER BY ctid) - 1 AS rn "
                f"FROM {table}) AS n WHERE t.ctid = n.ctid"
            )

        columns = ", ".join(quote_ident(c) for c in self.key_columns)
        statements.append(f"ALTER TABLE {table} ADD PRIMARY KEY ({columns})")
        return statements

    def to_sql(self) -> str:
        return ";\n".join(self.statements()) + ";"

    def describe(self) -> str:
        created = [c for c in (self.serial_column, self.index_column) if c]
        suffix = f" (created {', '.join(created)})" if created else ""
        return f"{self.table}: primary key ({', '.join(self.key_columns)}){suffix}"


# ------------------------------------------------------------------
# Column widening
# ------------------------------------------------------------------


def optimal_length(actual_length: int) -> int:
    """Round a stored length plus 20% headroom up to a tidy column length.

    Example:
        >>> optimal_length(40), optimal_length(90), optimal_length(4500)
        (50, 200, 6000)
    """
    with_buffer = int(actual_length * 1.2)
    for step in _LENGTH_STEPS:
        if with_buffer <= step:
            return step
    return (with_buffer // 1000 + 1) * 1000


def widen_candidates(source: TableInfo, target: TableInfo) -> list[FieldPair]:
    """Common string columns whose source length exceeds the target length."""
    candidates = []
    for pair in compare_fields(source, target).common_fields:
        src, dst = pair.client_column, pair.server_column
        if not (src.is_string_type and src.base_type == dst.base_type):
            continue
        if src.length is None or dst.length is None:
            continue
        if src.length > dst.length:
            candidates.append(pair)
    return candidates


async def widen_columns(
    session: SyncSession, source: TableInfo, target: TableInfo
) -> tuple[list[ColumnWiden], list[str]]:
    """Widen target columns to fit source data.

    Each ALTER runs under its own savepoint, so one failure leaves the
    transaction usable.

    Returns:
        Tuple of (applied fixes, warnings for fixes that failed).
    """
    applied: list[ColumnWiden] = []
    warnings: list[str] = []

    for pair in widen_candidates(source, target):
        src, dst = pair.client_column, pair.server_column
        new_length = src.length or 0
        stored = await session.max_length(target.name, dst.name)
        if stored > new_length:
            logger.warning(
                f"{target.name}.{dst.name} stores values of length {stored}, "
                f"longer than source length {new_length}"
            )
            new_length = optimal_length(stored)

        fix = ColumnWiden(target.name, dst.name, dst.column_type, f"{dst.base_type}({new_length})")

        await session.savepoint(EVOLVE_SAVEPOINT)
        try:
            await session.execute(fix.to_sql())
        except StatementError as e:
            await session.rollback_to(EVOLVE_SAVEPOINT)
            warnings.append(f"Could not widen {fix.describe()}: {e}")
            logger.warning(f"Could not widen {fix.describe()}: {e}")
            continue
        await session.release(EVOLVE_SAVEPOINT)

        logger.info(f"Widened {fix.describe()}")
        applied.append(fix)

    return applied, warnings


async def apply_key_fix(session: SyncSession, fix: PrimaryKeyFix) -> None:
    """Run the statements of a primary-key fix.

    Raises:
        StatementError: If any statement fails.
    """
    for statement in fix.statements():
        await session.execute(statement)
    logger.info(f"Added {fix.describe()}")
