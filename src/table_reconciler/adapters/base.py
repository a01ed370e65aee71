"""Database client protocol.

Defines the interface the sync engine talks to.  A ``DatabaseClient``
hands out ``SyncSession`` objects; each session owns one connection with an
open transaction for its whole lifetime and is released on every exit path
of its ``async with`` block.

Table and column names are passed unquoted; implementations quote them.

Usage:
    async with client.session() as session:
        rows = await session.select("item", ["id", "name"])
        await session.savepoint("sync_start")
        await session.insert_many("server_item", rows)
        await session.commit()
"""

from contextlib import AbstractAsyncContextManager
from typing import Any, Protocol, runtime_checkable


class AdapterError(Exception):
    """Base class for statement failures reported by an adapter."""


class RowWriteError(AdapterError):
    """A row-level INSERT/UPDATE/DELETE failed (type, length or constraint).

    The session is left usable once the enclosing savepoint is rolled back.
    """


class StatementError(AdapterError):
    """A DDL or raw statement failed without losing the connection."""


@runtime_checkable
class SyncSession(Protocol):
    """One connection with an open transaction."""

    async def select(
        self,
        table: str,
        columns: list[str] | None = None,
        filters: dict[str, Any] | None = None,
        order_by: list[str] | None = None,
    ) -> list[dict]:
        """Select rows from a table.

        Args:
            table: Table name.
            columns: Column names to return.  ``None`` selects all columns.
            filters: Equality filters combined with AND.
            order_by: Column names to sort by, ascending.

        Returns:
            List of row dicts keyed by column name.
        """
        ...

    async def count(self, table: str) -> int:
        """Return ``count(*)`` of a table."""
        ...

    async def max_length(self, table: str, column: str) -> int:
        """Longest stored value of a column in characters (0 when empty)."""
        ...

    async def insert_many(self, table: str, rows: list[dict]) -> int:
        """Insert rows sharing the same keys.

        Raises:
            RowWriteError: If any row is rejected.  No row of the call is
                kept once the caller rolls back its savepoint.
        """
        ...

    async def update(self, table: str, data: dict, filters: dict[str, Any]) -> int:
        """Update matching rows and return the affected row count.

        Raises:
            RowWriteError: If the database rejects the new values.
        """
        ...

    async def delete(self, table: str, filters: dict[str, Any] | None = None) -> int:
        """Delete matching rows (all rows when ``filters`` is None).

        Raises:
            RowWriteError: If the database rejects the delete.
        """
        ...

    async def execute(self, sql: str, params: dict | None = None) -> int:
        """Execute a raw statement and return its row count.

        Raises:
            StatementError: If the statement fails.
        """
        ...

    async def fetch(self, sql: str, params: dict | None = None) -> list[dict]:
        """Run a raw query and return row dicts."""
        ...

    async def savepoint(self, name: str) -> None:
        """Open a named savepoint."""
        ...

    async def rollback_to(self, name: str) -> None:
        """Roll back to a named savepoint and discard it."""
        ...

    async def release(self, name: str) -> None:
        """Keep the work done since a named savepoint and discard it."""
        ...

    async def commit(self) -> None:
        ...

    async def rollback(self) -> None:
        ...


@runtime_checkable
class DatabaseClient(Protocol):
    """Source of sessions for one database."""

    def session(self) -> AbstractAsyncContextManager[SyncSession]:
        """Acquire a connection with an open transaction.

        Leaving the block rolls back anything not committed and returns the
        connection to the pool.
        """
        ...

    async def test_connection(self) -> bool:
        ...

    async def close(self) -> None:
        """Close the client and release pooled connections."""
        ...
