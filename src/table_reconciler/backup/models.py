"""Pydantic models for table backup and restore."""

from pydantic import BaseModel, Field


class RestoreResult(BaseModel):
    """Result of restoring a table from one of its backup tables.

    Attributes:
        success: True if the restore committed (or would have, in a dry run).
        table: Restored table.
        backup_table: Backup table the rows came from.
        deleted_rows: Rows removed from ``table`` before copying.
        restored_rows: Rows copied back from the backup.
        dry_run: True if all work was rolled back.
        errors: Error messages.
    """

    success: bool = False
    table: str = ""
    backup_table: str = ""
    deleted_rows: int = 0
    restored_rows: int = 0
    dry_run: bool = False
    errors: list[str] = Field(default_factory=list)
