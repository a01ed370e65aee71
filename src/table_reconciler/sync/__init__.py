"""Row synchronization between matched tables.

Provides the keyed engine (``sync_main_table``, ``sync_sub_table``,
``sync_main_table_with_children``, ``build_primary_key_mapping``) and the
full-replace path (``sync_client_to_server``, ``sync_server_to_client``).

Usage:
    from table_reconciler.sync import SyncMode, SyncOptions, sync_main_table

    result = await sync_main_table(client, source, target, SyncOptions(dry_run=True))
"""

from table_reconciler.sync.models import (
    CascadeSyncResult,
    CopyOptions,
    ReplaceOptions,
    SyncMode,
    SyncOptions,
    SyncResult,
)
from table_reconciler.sync.engine import (
    SyncPreconditionError,
    build_primary_key_mapping,
    find_child_pairs,
    infer_foreign_key_column,
    sync_main_table,
    sync_main_table_with_children,
    sync_sub_table,
)
from table_reconciler.sync.legacy import sync_client_to_server, sync_server_to_client

__all__ = [
    "SyncMode",
    "CopyOptions",
    "SyncOptions",
    "ReplaceOptions",
    "SyncResult",
    "CascadeSyncResult",
    "SyncPreconditionError",
    "sync_main_table",
    "sync_sub_table",
    "sync_main_table_with_children",
    "build_primary_key_mapping",
    "find_child_pairs",
    "infer_foreign_key_column",
    "sync_client_to_server",
    "sync_server_to_client",
]
