"""Sync options and result models."""

from enum import Enum

from pydantic import BaseModel, Field


DEFAULT_EXCLUDE_FIELDS = ["create_time", "update_time", "created_at", "updated_at"]


class SyncMode(str, Enum):
    """Row consistency policy of a sync call."""

    INCREMENTAL = "incremental"
    UPDATE_ONLY = "update_only"
    INSERT_ONLY = "insert_only"
    FULL_SYNC = "full_sync"

    @property
    def display_name(self) -> str:
        return _MODE_TEXT[self][0]

    @property
    def description(self) -> str:
        return _MODE_TEXT[self][1]

    @property
    def is_destructive(self) -> bool:
        return self is SyncMode.FULL_SYNC


_MODE_TEXT = {
    SyncMode.INCREMENTAL: ("Incremental", "Insert new rows and update existing ones"),
    SyncMode.UPDATE_ONLY: ("Update only", "Update existing rows, skip new ones"),
    SyncMode.INSERT_ONLY: ("Insert only", "Insert new rows, leave existing ones untouched"),
    SyncMode.FULL_SYNC: (
        "Full sync",
        "Incremental, then delete target rows missing from the source",
    ),
}


class CopyOptions(BaseModel):
    """Options shared by every row-copying operation.

    Attributes:
        backup: Copy the target table to ``{table}_backup_{timestamp}``
            before writing.
        dry_run: Run everything inside the transaction, then roll back.
        confirm: Required for destructive operations unless ``dry_run``.
        include_fields: Restrict the copied columns (None = all common).
        exclude_fields: Columns never copied.  Defaults to audit timestamps.
        batch_size: Rows per INSERT batch.
        timeout: Seconds before the call is cancelled and rolled back.
    """

    backup: bool = False
    dry_run: bool = False
    confirm: bool = False
    include_fields: list[str] | None = None
    exclude_fields: list[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDE_FIELDS))
    batch_size: int = Field(default=1000, gt=0)
    timeout: float | None = Field(default=None, gt=0)


class SyncOptions(CopyOptions):
    """Options of an incremental (keyed) sync.

    Attributes:
        mode: Row consistency policy.
        create_missing_keys: Allow the sync to add a primary key (and an
            ``id``/``idx`` column) to a target table that has none.
    """

    mode: SyncMode = SyncMode.INCREMENTAL
    create_missing_keys: bool = True


class ReplaceOptions(CopyOptions):
    """Options of a legacy full replace.  Backs up by default."""

    backup: bool = True


class SyncResult(BaseModel):
    """Report of one table sync.

    Attributes:
        success: True if the row sync committed (or would have, in a dry run).
        source_table: Table rows were read from.
        target_table: Table rows were written to.
        mode: Consistency mode, None for a full replace.
        key_columns: Target columns used to identify rows.
        schema_updates: DDL applied to the target (widened columns, keys).
        inserted_rows: Rows inserted into the target.
        updated_rows: Rows whose values changed.
        unchanged_rows: Rows present on both sides with equal values.
        skipped_rows: Source rows not written (mode, errors, orphans).
        deleted_rows: Target rows deleted.
        total_rows: Source rows read.
        backup_table: Backup table created before writing, if any.
        dry_run: True if all work was rolled back.
        message: One-line summary.
        warnings: Non-fatal problems.
        errors: Fatal problems.
        duration_ms: Wall-clock time of the call.
    """

    success: bool = False
    source_table: str = ""
    target_table: str = ""
    mode: SyncMode | None = None
    key_columns: list[str] = Field(default_factory=list)
    schema_updates: list[str] = Field(default_factory=list)
    inserted_rows: int = 0
    updated_rows: int = 0
    unchanged_rows: int = 0
    skipped_rows: int = 0
    deleted_rows: int = 0
    total_rows: int = 0
    backup_table: str | None = None
    dry_run: bool = False
    message: str = ""
    warnings: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    duration_ms: int = 0


class CascadeSyncResult(BaseModel):
    """Report of a root table sync followed by its child tables.

    Attributes:
        success: True if the root and every child synced.
        main_result: Root table result.
        child_results: Child results keyed by source child table name.
        successful_children: Number of children that synced.
        failed_children: Number of children that failed.
        total_inserted: Inserted rows over root and children.
        total_updated: Updated rows over root and children.
        message: One-line summary.
        duration_ms: Wall-clock time of the cascade.
    """

    success: bool = False
    main_result: SyncResult | None = None
    child_results: dict[str, SyncResult] = Field(default_factory=dict)
    successful_children: int = 0
    failed_children: int = 0
    total_inserted: int = 0
    total_updated: int = 0
    message: str = ""
    duration_ms: int = 0
