"""Field comparison between two scanned tables.

Pure set operations, no database access.  Used by the quality scorer to
gather field evidence and by the sync engine to pick the columns it copies.
"""

from table_reconciler.schema.models import FieldCompareResult, FieldPair, TableInfo


def compare_fields(client: TableInfo, server: TableInfo) -> FieldCompareResult:
    """Split the columns of a table pair into common, client-only and server-only.

    Names are compared case-sensitively.  Common fields keep the client
    table's column order; the one-sided lists keep their own table's order.

    Args:
        client: Left-hand table (the client side during matching, the
            source side during sync).
        server: Right-hand table.

    Returns:
        FieldCompareResult with three disjoint name sets.

    Example:
        >>> result = compare_fields(client_item, item)
        >>> result.common_names
        ['id', 'name']
        >>> result.client_only_fields
        ['icon']
    """
    server_columns = {c.name: c for c in server.columns}
    client_names = set(client.column_names)

    common: list[FieldPair] = []
    client_only: list[str] = []
    for column in client.columns:
        match = server_columns.get(column.name)
        if match is None:
            client_only.append(column.name)
        else:
            common.append(
                FieldPair(name=column.name, client_column=column, server_column=match)
            )

    server_only = [c.name for c in server.columns if c.name not in client_names]

    return FieldCompareResult(
        common_fields=common,
        client_only_fields=client_only,
        server_only_fields=server_only,
    )
