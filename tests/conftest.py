"""Shared fixtures: table model builders and an in-memory database client.

``FakeClient`` implements the ``DatabaseClient`` protocol over plain dicts
so the sync engine can be exercised without PostgreSQL.  Each session works
on a copy of the committed tables; ``commit()`` publishes it, savepoints
are snapshots.  The DDL statements the engine emits (widen, key creation,
backup copy) are interpreted just enough to keep rows and keys consistent.
"""

import copy
import re
from collections.abc import Callable
from contextlib import asynccontextmanager
from typing import Any

import pytest

from table_reconciler.adapters.base import RowWriteError, StatementError
from table_reconciler.schema.hierarchy import CLIENT_PREFIX, classify, has_client_prefix
from table_reconciler.schema.models import ColumnInfo, TableInfo


# ------------------------------------------------------------------
# Table model builders
# ------------------------------------------------------------------


def make_table(
    name: str,
    columns: list[str],
    primary_keys: list[str] | None = None,
    is_client_side: bool | None = None,
    row_count: int = 0,
    client_prefix: str = CLIENT_PREFIX,
) -> TableInfo:
    """Build a TableInfo from ``"name"`` or ``"name:type"`` column specs.

    Columns default to ``integer``.  Example::

        make_table("item", ["id", "name:varchar(32)"], primary_keys=["id"])
    """
    primary_keys = primary_keys or []
    infos = []
    for position, spec in enumerate(columns, start=1):
        column_name, _, column_type = spec.partition(":")
        column_type = column_type or "integer"
        infos.append(
            ColumnInfo(
                name=column_name,
                data_type=column_type.split("(")[0],
                column_type=column_type,
                is_primary_key=column_name in primary_keys,
                ordinal_position=position,
            )
        )
    if is_client_side is None:
        is_client_side = has_client_prefix(name, client_prefix)
    return TableInfo(
        name=name,
        columns=infos,
        row_count=row_count,
        is_client_side=is_client_side,
        hierarchy=classify(name, client_prefix),
    )


# ------------------------------------------------------------------
# In-memory database client
# ------------------------------------------------------------------


_IDENT = r'"((?:[^"]|"")+)"'


def _unquote(name: str) -> str:
    return name.replace('""', '"')


def _like_to_regex(pattern: str) -> str:
    """Translate a LIKE pattern with backslash escapes to a regex."""
    parts: list[str] = []
    chars = iter(pattern)
    for char in chars:
        if char == "\\":
            parts.append(re.escape(next(chars, "\\")))
        elif char == "%":
            parts.append(".*")
        elif char == "_":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return "".join(parts)


class FakeSession:
    """``SyncSession`` over a working copy of ``FakeClient`` tables."""

    def __init__(self, client: "FakeClient") -> None:
        self.client = client
        self.tables: dict[str, list[dict]] = copy.deepcopy(client.tables)
        self.keys: dict[str, list[str]] = copy.deepcopy(client.keys)
        self._savepoints: dict[str, tuple[dict, dict]] = {}

    # -- queries -------------------------------------------------------

    def _rows(self, table: str) -> list[dict]:
        if table not in self.tables:
            raise RuntimeError(f'relation "{table}" does not exist')
        return self.tables[table]

    @staticmethod
    def _matches(row: dict, filters: dict[str, Any] | None) -> bool:
        if not filters:
            return True
        return all(row.get(k) == v for k, v in filters.items())

    async def select(
        self,
        table: str,
        columns: list[str] | None = None,
        filters: dict[str, Any] | None = None,
        order_by: list[str] | None = None,
    ) -> list[dict]:
        rows = [r for r in self._rows(table) if self._matches(r, filters)]
        if order_by:
            rows = sorted(rows, key=lambda r: tuple(str(r.get(c)) for c in order_by))
        if columns is None:
            return [dict(r) for r in rows]
        for row in rows:
            missing = [c for c in columns if c not in row]
            if missing:
                raise RuntimeError(f'column "{missing[0]}" does not exist')
        return [{c: r[c] for c in columns} for r in rows]

    async def count(self, table: str) -> int:
        return len(self._rows(table))

    async def max_length(self, table: str, column: str) -> int:
        values = [r.get(column) for r in self._rows(table)]
        return max((len(str(v)) for v in values if v is not None), default=0)

    async def fetch(self, sql: str, params: dict | None = None) -> list[dict]:
        if "pg_tables" in sql:
            regex = _like_to_regex((params or {}).get("pattern", "%"))
            names = sorted((n for n in self.tables if re.fullmatch(regex, n)), reverse=True)
            return [{"tablename": n} for n in names]
        raise RuntimeError(f"Unsupported query: {sql}")

    # -- writes --------------------------------------------------------

    def _check_row(self, table: str, row: dict, ignore: dict | None = None) -> None:
        if self.client.reject_row is not None and self.client.reject_row(table, row):
            raise RowWriteError(f"Row rejected by {table}: {row}")
        key = self.keys.get(table)
        if key:
            values = tuple(row.get(c) for c in key)
            for other in self.tables[table]:
                if other is not ignore and tuple(other.get(c) for c in key) == values:
                    raise RowWriteError(f"Duplicate key {values} in {table}")

    async def insert_many(self, table: str, rows: list[dict]) -> int:
        rows_before = list(self._rows(table))
        template = self.client.columns.get(table, [])
        if rows_before:
            template = template + list(rows_before[0])
        try:
            for row in rows:
                self._check_row(table, row)
                self.tables[table].append({**dict.fromkeys(template), **row})
        except RowWriteError:
            self.tables[table] = rows_before
            raise
        self.client.write_calls += 1
        return len(rows)

    async def update(self, table: str, data: dict, filters: dict[str, Any]) -> int:
        affected = 0
        for row in self._rows(table):
            if self._matches(row, filters):
                self._check_row(table, {**row, **data}, ignore=row)
                row.update(data)
                affected += 1
        self.client.write_calls += 1
        return affected

    async def delete(self, table: str, filters: dict[str, Any] | None = None) -> int:
        rows = self._rows(table)
        kept = [r for r in rows if not self._matches(r, filters)]
        self.tables[table] = kept
        self.client.write_calls += 1
        return len(rows) - len(kept)

    async def execute(self, sql: str, params: dict | None = None) -> int:
        self.client.statements.append(sql)
        for fragment in self.client.fail_statements:
            if fragment in sql:
                raise StatementError(f"Statement failed: {fragment}")

        if m := re.fullmatch(rf"CREATE TABLE {_IDENT} \(LIKE {_IDENT} INCLUDING ALL\)", sql):
            self.tables[_unquote(m[1])] = []
            return 0
        if m := re.fullmatch(rf"INSERT INTO {_IDENT} SELECT \* FROM {_IDENT}", sql):
            copied = copy.deepcopy(self._rows(_unquote(m[2])))
            self.tables[_unquote(m[1])].extend(copied)
            return len(copied)
        if m := re.fullmatch(rf"ALTER TABLE {_IDENT} ADD COLUMN {_IDENT} SERIAL", sql):
            for n, row in enumerate(self._rows(_unquote(m[1])), start=1):
                row[_unquote(m[2])] = n
            return 0
        if m := re.fullmatch(
            rf"ALTER TABLE {_IDENT} ADD COLUMN {_IDENT} INTEGER NOT NULL DEFAULT 0", sql
        ):
            for row in self._rows(_unquote(m[1])):
                row[_unquote(m[2])] = 0
            return 0
        if m := re.match(rf"UPDATE {_IDENT} AS t SET {_IDENT} = n\.rn", sql):
            partition = re.search(rf"PARTITION BY {_IDENT}", sql)
            counters: dict[Any, int] = {}
            for row in self._rows(_unquote(m[1])):
                group = row.get(_unquote(partition[1])) if partition else None
                row[_unquote(m[2])] = counters.get(group, 0)
                counters[group] = counters.get(group, 0) + 1
            return len(self.tables[_unquote(m[1])])
        if m := re.fullmatch(rf"ALTER TABLE {_IDENT} ADD PRIMARY KEY \((.+)\)", sql):
            table = _unquote(m[1])
            key = [_unquote(c) for c in re.findall(_IDENT, m[2])]
            values = [tuple(r.get(c) for c in key) for r in self._rows(table)]
            if len(values) != len(set(values)):
                raise StatementError(f"could not create unique index on {table}")
            self.keys[table] = key
            return 0
        if re.fullmatch(rf"ALTER TABLE {_IDENT} ALTER COLUMN {_IDENT} TYPE .+", sql):
            return 0
        raise StatementError(f"Unsupported statement: {sql}")

    # -- transaction control ------------------------------------------

    async def savepoint(self, name: str) -> None:
        if name in self._savepoints:
            raise ValueError(f"Savepoint {name} already open")
        self._savepoints[name] = (copy.deepcopy(self.tables), copy.deepcopy(self.keys))

    async def rollback_to(self, name: str) -> None:
        self.tables, self.keys = self._savepoints.pop(name)

    async def release(self, name: str) -> None:
        self._savepoints.pop(name)

    async def commit(self) -> None:
        self._savepoints.clear()
        self.client.tables = copy.deepcopy(self.tables)
        self.client.keys = copy.deepcopy(self.keys)
        self.client.commits += 1

    async def rollback(self) -> None:
        self._savepoints.clear()
        self.tables = copy.deepcopy(self.client.tables)
        self.keys = copy.deepcopy(self.client.keys)
        self.client.rollbacks += 1


class FakeClient:
    """In-memory ``DatabaseClient``.

    Attributes:
        tables: Committed rows per table.
        keys: Committed primary key columns per table.
        reject_row: Predicate ``(table, row) -> bool`` failing row writes.
        fail_statements: Substrings that make ``execute`` raise.
        statements: Every statement passed to ``execute``.
    """

    def __init__(
        self,
        tables: dict[str, list[dict]] | None = None,
        keys: dict[str, list[str]] | None = None,
    ) -> None:
        self.tables: dict[str, list[dict]] = copy.deepcopy(tables or {})
        self.keys: dict[str, list[str]] = dict(keys or {})
        # Columns per table, for filling NULLs into rows inserted without them
        self.columns: dict[str, list[str]] = {
            table: list(dict.fromkeys(c for row in rows for c in row))
            for table, rows in self.tables.items()
        }
        self.reject_row: Callable[[str, dict], bool] | None = None
        self.fail_statements: list[str] = []
        self.statements: list[str] = []
        self.sessions_opened = 0
        self.sessions_closed = 0
        self.commits = 0
        self.rollbacks = 0
        self.write_calls = 0

    @asynccontextmanager
    async def session(self):
        self.sessions_opened += 1
        try:
            yield FakeSession(self)
        finally:
            self.sessions_closed += 1

    async def test_connection(self) -> bool:
        return True

    async def close(self) -> None:
        pass

    def rows(self, table: str, order_by: str = "id") -> list[dict]:
        """Committed rows of a table, sorted by one column."""
        return sorted(self.tables[table], key=lambda r: str(r.get(order_by)))


@pytest.fixture
def fake_client() -> FakeClient:
    return FakeClient()
