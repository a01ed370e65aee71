"""Table model, hierarchy classification, catalog scanning and evolution.

Provides the hierarchy classifier (``classify``, ``same_level``), the
PostgreSQL catalog scanner (``SchemaScanner``), field comparison
(``compare_fields``) and non-destructive target evolution
(``widen_columns``, ``PrimaryKeyFix``).

Usage:
    from table_reconciler.schema import SchemaScanner, classify, compare_fields

    async with SchemaScanner(database_url) as scanner:
        tables = await scanner.scan()
    classify("client_item__effect").level  # TableLevel.LEVEL_1
"""

from table_reconciler.schema.models import (
    ColumnInfo,
    ConnectionResult,
    FieldCompareResult,
    FieldPair,
    Hierarchy,
    TableInfo,
    TableLevel,
)
from table_reconciler.schema.hierarchy import (
    CLIENT_PREFIX,
    DELIMITER,
    child_path,
    classify,
    root_name,
    same_level,
    strip_client_prefix,
)
from table_reconciler.schema.comparator import compare_fields
from table_reconciler.schema.scanner import (
    SchemaScanner,
    get_client_tables,
    get_server_tables,
)
from table_reconciler.schema.evolution import (
    ColumnWiden,
    PrimaryKeyFix,
    apply_key_fix,
    optimal_length,
    widen_columns,
)

__all__ = [
    "TableLevel",
    "Hierarchy",
    "ColumnInfo",
    "TableInfo",
    "FieldPair",
    "FieldCompareResult",
    "ConnectionResult",
    "CLIENT_PREFIX",
    "DELIMITER",
    "classify",
    "same_level",
    "root_name",
    "child_path",
    "strip_client_prefix",
    "compare_fields",
    "SchemaScanner",
    "get_client_tables",
    "get_server_tables",
    "ColumnWiden",
    "PrimaryKeyFix",
    "widen_columns",
    "apply_key_fix",
    "optimal_length",
]
