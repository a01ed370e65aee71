"""PostgreSQL catalog scanning for the table model.

Builds one ``TableInfo`` per table in a schema: comment, row-count
estimate, ordered columns (type, nullability, default, comment, primary-key
flag) and the hierarchy tag derived from the table name.

Scanning is best effort.  A table whose column query fails is logged and
still returned, with an empty column list, so callers must treat
zero-column tables as possibly incomplete rather than empty.

Uses psycopg (v3) ``AsyncConnection`` in autocommit mode, so one failed
catalog query does not poison the rest of the scan.

Usage:
    async with SchemaScanner(database_url) as scanner:
        tables = await scanner.scan()

    clients = get_client_tables(tables)
    servers = get_server_tables(tables)
"""

import logging

import psycopg
from psycopg import AsyncConnection, sql

from table_reconciler.backup.backup_restore import is_backup_table
from table_reconciler.schema.hierarchy import CLIENT_PREFIX, classify, strip_client_prefix
from table_reconciler.schema.models import ColumnInfo, TableInfo

logger = logging.getLogger(__name__)

# Client tables whose names do not carry the client prefix, mapped to
# their server counterparts
DEFAULT_SPECIAL_CLIENT_TABLES = {"quest": "server_quest"}


class SchemaScanner:
    """Scans tables and columns of one PostgreSQL schema.

    Args:
        database_url: PostgreSQL connection URL.  A ``+asyncpg`` driver
            suffix is dropped since psycopg does not understand it.
        schema_name: Schema to scan (default: public).
        client_prefix: Prefix marking client-side tables.
        special_client_tables: Unprefixed client tables mapped to their
            server table names.
        excluded_tables: Tables skipped entirely.  Defaults to
            ``EXCLUDED_TABLES``.
        connect_timeout: Connection timeout in seconds.
    """

    EXCLUDED_TABLES = {
        "schema_migrations",
        "pg_stat_statements",
        "spatial_ref_sys",
    }

    def __init__(
        self,
        database_url: str,
        schema_name: str = "public",
        client_prefix: str = CLIENT_PREFIX,
        special_client_tables: dict[str, str] | None = None,
        excluded_tables: set[str] | None = None,
        connect_timeout: int = 10,
    ) -> None:
        self._database_url = database_url.replace("postgresql+asyncpg://", "postgresql://")
        self._schema_name = schema_name
        self._client_prefix = client_prefix
        self._special_client_tables = (
            DEFAULT_SPECIAL_CLIENT_TABLES
            if special_client_tables is None
            else special_client_tables
        )
        self._excluded_tables = (
            self.EXCLUDED_TABLES if excluded_tables is None else set(excluded_tables)
        )
        self._connect_timeout = connect_timeout
        self._conn: AsyncConnection | None = None

    async def __aenter__(self) -> "SchemaScanner":
        self._conn = await psycopg.AsyncConnection.connect(
            self._database_url,
            connect_timeout=self._connect_timeout,
            autocommit=True,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._conn:
            await self._conn.close()
            self._conn = None

    def _require_connection(self) -> AsyncConnection:
        if not self._conn:
            raise RuntimeError("Scanner not connected. Use 'async with'.")
        return self._conn

    async def test_connection(self) -> bool:
        """Run ``SELECT 1`` against the open connection.

        Raises:
            ConnectionError: If the query fails.
        """
        conn = self._require_connection()
        try:
            async with conn.cursor() as cur:
                await cur.execute("SELECT 1")
                row = await cur.fetchone()
                return row is not None and row[0] == 1
        except psycopg.Error as e:
            raise ConnectionError(f"Connection test failed: {e}") from e

    # ------------------------------------------------------------------
    # Client / server classification
    # ------------------------------------------------------------------

    def is_client_table(self, table_name: str) -> bool:
        return (
            table_name.startswith(self._client_prefix)
            or table_name in self._special_client_tables
        )

    def server_name_for(self, client_name: str) -> str:
        """Conventional server-side name of a client table."""
        if client_name in self._special_client_tables:
            return self._special_client_tables[client_name]
        return strip_client_prefix(client_name, self._client_prefix)

    def client_name_for(self, server_name: str) -> str:
        """Conventional client-side name of a server table."""
        for client_name, mapped in self._special_client_tables.items():
            if mapped == server_name:
                return client_name
        return self._client_prefix + server_name

    # ------------------------------------------------------------------
    # Scanning
    # ------------------------------------------------------------------

    async def scan(self) -> list[TableInfo]:
        """Scan every table in the schema.

        Returns:
            TableInfo list ordered by table name.
        """
        self._require_connection()
        tables: list[TableInfo] = []

        for name, comment, row_estimate in await self._get_tables():
            if name in self._excluded_tables:
                continue
            if is_backup_table(name):
                logger.debug(f"Skipping backup table {name}")
                continue
            tables.append(await self._scan_one(name, comment, row_estimate))

        logger.info(
            f"Scanned {len(tables)} tables in schema {self._schema_name} "
            f"({len(get_client_tables(tables))} client)"
        )
        return tables

    async def scan_table(self, table_name: str) -> TableInfo | None:
        """Re-scan a single table, or None if it no longer exists."""
        self._require_connection()
        for name, comment, row_estimate in await self._get_tables():
            if name == table_name:
                return await self._scan_one(name, comment, row_estimate)
        return None

    async def refresh_row_count(self, table: TableInfo) -> TableInfo:
        """Return a copy of ``table`` with an exact ``count(*)`` row count."""
        conn = self._require_connection()
        query = sql.SQL("SELECT count(*) FROM {}").format(
            sql.Identifier(self._schema_name, table.name)
        )
        async with conn.cursor() as cur:
            await cur.execute(query)
            row = await cur.fetchone()
        return table.model_copy(update={"row_count": row[0] if row else 0})

    async def _scan_one(self, name: str, comment: str, row_estimate: int) -> TableInfo:
        try:
            columns = await self._get_columns(name)
        except psycopg.Error as e:
            logger.warning(f"Failed to scan columns of {name}, keeping table without columns: {e}")
            columns = []

        return TableInfo(
            name=name,
            comment=comment or "",
            columns=columns,
            row_count=max(int(row_estimate or 0), 0),
            is_client_side=self.is_client_table(name),
            hierarchy=classify(name, self._client_prefix),
        )

    async def _get_tables(self) -> list[tuple[str, str, int]]:
        """Get (name, comment, row estimate) for all ordinary tables."""
        query = """
            SELECT
                c.relname,
                COALESCE(obj_description(c.oid, 'pg_class'), ''),
                GREATEST(c.reltuples, 0)::bigint
            FROM pg_class c
            JOIN pg_namespace n ON n.oid = c.relnamespace
            WHERE n.nspname = %s
              AND c.relkind IN ('r', 'p')
            ORDER BY c.relname
        """
        conn = self._require_connection()
        async with conn.cursor() as cur:
            await cur.execute(query, (self._schema_name,))
            return [(row[0], row[1], row[2]) for row in await cur.fetchall()]

    async def _get_columns(self, table_name: str) -> list[ColumnInfo]:
        """Get columns of a table in ordinal order."""
        query = """
            SELECT
                c.column_name,
                c.data_type,
                format_type(a.atttypid, a.atttypmod),
                c.is_nullable,
                c.column_default,
                COALESCE(col_description(a.attrelid, a.attnum), ''),
                EXISTS (
                    SELECT 1 FROM pg_index i
                    WHERE i.indrelid = a.attrelid
                      AND i.indisprimary
                      AND a.attnum = ANY(i.indkey)
                ),
                c.ordinal_position
            FROM information_schema.columns c
            JOIN pg_attribute a
              ON a.attrelid = (quote_ident(c.table_schema) || '.' || quote_ident(c.table_name))::regclass
             AND a.attname = c.column_name
            WHERE c.table_schema = %s
              AND c.table_name = %s
            ORDER BY c.ordinal_position
        """
        conn = self._require_connection()
        async with conn.cursor() as cur:
            await cur.execute(query, (self._schema_name, table_name))
            columns = []
            for row in await cur.fetchall():
                name, data_type, column_type, is_nullable, default, comment, is_pk, position = row
                columns.append(
                    ColumnInfo(
                        name=name,
                        data_type=self._normalize_data_type(data_type),
                        column_type=self._normalize_column_type(column_type),
                        nullable=(is_nullable == "YES"),
                        default_value=default,
                        comment=comment or "",
                        is_primary_key=bool(is_pk),
                        ordinal_position=position,
                    )
                )
            return columns

    def _normalize_data_type(self, data_type: str) -> str:
        """Normalize PostgreSQL data type names.

        Maps verbose information_schema types to standard names.
        """
        type_map = {
            "character varying": "varchar",
            "character": "char",
            "timestamp with time zone": "timestamptz",
            "timestamp without time zone": "timestamp",
            "integer": "int",
            "boolean": "bool",
        }
        return type_map.get(data_type.lower(), data_type.lower())

    def _normalize_column_type(self, column_type: str) -> str:
        """Normalize a ``format_type`` rendering, keeping its length part.

        Example:
            >>> scanner._normalize_column_type("character varying(64)")
            'varchar(64)'
        """
        base, sep, rest = column_type.partition("(")
        return self._normalize_data_type(base.strip()) + sep + rest


# ------------------------------------------------------------------
# Pure filters over scan results
# ------------------------------------------------------------------


def get_client_tables(tables: list[TableInfo]) -> list[TableInfo]:
    return [t for t in tables if t.is_client_side]


def get_server_tables(tables: list[TableInfo]) -> list[TableInfo]:
    return [t for t in tables if not t.is_client_side]
