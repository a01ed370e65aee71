"""Tests for PostgreSQL catalog scanning.

The psycopg connection is mocked: ``cursor()`` returns an async context
manager yielding one cursor whose ``fetchall`` results are consumed in query
order (table list first, then one column list per table).
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import psycopg
import pytest

from table_reconciler.schema.models import TableLevel
from table_reconciler.schema.scanner import SchemaScanner, get_client_tables, get_server_tables


def _column(name, data_type, column_type, position, is_pk=False, nullable="YES"):
    return (name, data_type, column_type, nullable, None, "", is_pk, position)


def _mock_connection(fetchall_results: list) -> tuple[MagicMock, AsyncMock]:
    mock_cursor = AsyncMock()
    mock_cursor.fetchall.side_effect = fetchall_results

    mock_conn = MagicMock()
    mock_ctx = MagicMock()
    mock_ctx.__aenter__ = AsyncMock(return_value=mock_cursor)
    mock_ctx.__aexit__ = AsyncMock(return_value=None)
    mock_conn.cursor.return_value = mock_ctx
    return mock_conn, mock_cursor


class TestScan:
    """scan() builds one TableInfo per table."""

    def test_scan_builds_tables(self) -> None:
        scanner = SchemaScanner("postgresql://localhost/game")
        scanner._conn, _ = _mock_connection(
            [
                [
                    ("client_item", "Client items", 3),
                    ("item", "", 5),
                    ("item__attr", "", 0),
                ],
                [
                    _column("id", "integer", "integer", 1, is_pk=True, nullable="NO"),
                    _column("name", "character varying", "character varying(32)", 2),
                ],
                [
                    _column("id", "integer", "integer", 1, is_pk=True, nullable="NO"),
                    _column("name", "character varying", "character varying(64)", 2),
                ],
                [
                    _column("item_id", "integer", "integer", 1),
                    _column("value", "text", "text", 2),
                ],
            ]
        )

        tables = asyncio.run(scanner.scan())

        assert [t.name for t in tables] == ["client_item", "item", "item__attr"]
        client_item = tables[0]
        assert client_item.is_client_side
        assert client_item.comment == "Client items"
        assert client_item.row_count == 3
        assert client_item.primary_keys == ["id"]
        assert client_item.get_column("id").nullable is False
        assert client_item.get_column("name").column_type == "varchar(32)"
        assert client_item.get_column("name").data_type == "varchar"
        assert client_item.get_column("name").length == 32
        assert tables[2].level is TableLevel.LEVEL_1
        assert tables[2].hierarchy.parent_name == "item"
        assert [t.name for t in get_client_tables(tables)] == ["client_item"]
        assert [t.name for t in get_server_tables(tables)] == ["item", "item__attr"]

    def test_excluded_tables_skipped(self) -> None:
        scanner = SchemaScanner("postgresql://localhost/game", excluded_tables={"audit_log"})
        scanner._conn, _ = _mock_connection(
            [
                [("audit_log", "", 0), ("item", "", 0)],
                [_column("id", "integer", "integer", 1)],
            ]
        )

        tables = asyncio.run(scanner.scan())

        assert [t.name for t in tables] == ["item"]

    def test_backup_tables_skipped(self) -> None:
        scanner = SchemaScanner("postgresql://localhost/game")
        scanner._conn, mock_cursor = _mock_connection(
            [
                [
                    ("client_item", "", 0),
                    ("client_item_backup_20250102_030405", "", 0),
                    ("item_backup_20250102_030405", "", 0),
                    ("item_backup_notes", "", 0),
                ],
                [_column("id", "integer", "integer", 1)],
                [_column("note", "text", "text", 1)],
            ]
        )

        tables = asyncio.run(scanner.scan())

        assert [t.name for t in tables] == ["client_item", "item_backup_notes"]
        assert mock_cursor.fetchall.await_count == 3

    def test_failed_column_query_keeps_table(self) -> None:
        scanner = SchemaScanner("postgresql://localhost/game")
        scanner._conn, _ = _mock_connection(
            [
                [("broken", "", 0), ("item", "", 0)],
                psycopg.Error("permission denied"),
                [_column("id", "integer", "integer", 1)],
            ]
        )

        tables = asyncio.run(scanner.scan())

        assert [t.name for t in tables] == ["broken", "item"]
        assert tables[0].columns == []
        assert tables[1].column_names == ["id"]

    def test_special_client_table(self) -> None:
        scanner = SchemaScanner("postgresql://localhost/game")
        scanner._conn, _ = _mock_connection([[("quest", "", 0)], []])

        tables = asyncio.run(scanner.scan())

        assert tables[0].is_client_side
        assert scanner.server_name_for("quest") == "server_quest"
        assert scanner.client_name_for("server_quest") == "quest"
        assert scanner.client_name_for("item") == "client_item"

    def test_scan_requires_connection(self) -> None:
        scanner = SchemaScanner("postgresql://localhost/game")

        with pytest.raises(RuntimeError, match="not connected"):
            asyncio.run(scanner.scan())

    def test_scan_table_missing(self) -> None:
        scanner = SchemaScanner("postgresql://localhost/game")
        scanner._conn, _ = _mock_connection([[("item", "", 0)]])

        assert asyncio.run(scanner.scan_table("nowhere")) is None


class TestRowCount:
    """refresh_row_count replaces the estimate with count(*)."""

    def test_refresh_row_count(self) -> None:
        scanner = SchemaScanner("postgresql://localhost/game")
        scanner._conn, cursor = _mock_connection([[("item", "", 10)], []])
        table = asyncio.run(scanner.scan())[0]
        cursor.fetchone.return_value = (42,)

        refreshed = asyncio.run(scanner.refresh_row_count(table))

        assert refreshed.row_count == 42
        assert table.row_count == 10


class TestConnection:
    """Connection lifecycle and health check."""

    def test_test_connection_success(self) -> None:
        scanner = SchemaScanner("postgresql://localhost/game")
        scanner._conn, cursor = _mock_connection([])
        cursor.fetchone.return_value = (1,)

        assert asyncio.run(scanner.test_connection()) is True
        cursor.execute.assert_awaited_once_with("SELECT 1")

    def test_test_connection_failure(self) -> None:
        scanner = SchemaScanner("postgresql://localhost/game")
        scanner._conn, cursor = _mock_connection([])
        cursor.execute.side_effect = psycopg.Error("connection lost")

        with pytest.raises(ConnectionError, match="Connection test failed"):
            asyncio.run(scanner.test_connection())

    def test_aenter_strips_asyncpg_driver(self) -> None:
        scanner = SchemaScanner("postgresql+asyncpg://localhost/game", connect_timeout=15)
        mock_conn = AsyncMock()

        with patch(
            "table_reconciler.schema.scanner.psycopg.AsyncConnection.connect",
            new_callable=AsyncMock,
            return_value=mock_conn,
        ) as mock_connect:
            asyncio.run(scanner.__aenter__())

        mock_connect.assert_awaited_once_with(
            "postgresql://localhost/game", connect_timeout=15, autocommit=True
        )
        assert scanner._conn is mock_conn

    def test_aexit_closes_connection(self) -> None:
        scanner = SchemaScanner("postgresql://localhost/game")
        mock_conn = AsyncMock()
        scanner._conn = mock_conn

        asyncio.run(scanner.__aexit__(None, None, None))

        mock_conn.close.assert_awaited_once()
        assert scanner._conn is None

    def test_normalize_column_type(self) -> None:
        scanner = SchemaScanner("postgresql://localhost/game")

        assert scanner._normalize_column_type("character varying(64)") == "varchar(64)"
        assert scanner._normalize_column_type("numeric(10,2)") == "numeric(10,2)"
        assert scanner._normalize_column_type("timestamp with time zone") == "timestamptz"
