"""In-database table backup and restore.

Backups are sibling tables named ``{table}_backup_{YYYYmmdd_HHMMSS}``.

Usage:
    from table_reconciler.backup import list_backup_tables, restore_from_backup
"""

from table_reconciler.backup.backup_restore import (
    backup_table_name,
    create_backup_table,
    is_backup_table,
    list_backup_tables,
    restore_from_backup,
)
from table_reconciler.backup.models import RestoreResult

__all__ = [
    "RestoreResult",
    "backup_table_name",
    "create_backup_table",
    "is_backup_table",
    "list_backup_tables",
    "restore_from_backup",
]
