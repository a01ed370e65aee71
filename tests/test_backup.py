"""Tests for in-database backup tables and restore."""

from datetime import datetime

import pytest
from conftest import FakeClient

from table_reconciler.backup.backup_restore import (
    MAX_IDENTIFIER_LENGTH,
    backup_table_name,
    create_backup_table,
    is_backup_table,
    list_backup_tables,
    restore_from_backup,
)


BACKUP = "item_backup_20250102_030405"


def _client() -> FakeClient:
    return FakeClient(
        {
            "item": [{"id": 1, "name": "current"}],
            BACKUP: [{"id": 1, "name": "old"}, {"id": 2, "name": "older"}],
            "item_backup_20240101_000000": [],
            "item__attr_backup_20250102_030405": [],
            "itemXbackup_20250102_030405": [],
        }
    )


class TestBackupName:
    """Timestamped names that fit an identifier."""

    def test_name(self) -> None:
        assert backup_table_name("item", datetime(2025, 1, 2, 3, 4, 5)) == BACKUP

    def test_long_name_trimmed(self) -> None:
        name = backup_table_name("t" * 80, datetime(2025, 1, 2, 3, 4, 5))

        assert len(name) == MAX_IDENTIFIER_LENGTH
        assert name.endswith("_backup_20250102_030405")

    def test_is_backup_table(self) -> None:
        assert is_backup_table(BACKUP)
        assert is_backup_table(backup_table_name("t" * 80))
        assert not is_backup_table("item")
        assert not is_backup_table("item_backup_notes")
        assert not is_backup_table("item_backup_20250102")


class TestCreateBackup:
    """Backups are part of the caller's transaction."""

    @pytest.mark.asyncio
    async def test_copies_rows(self) -> None:
        client = _client()

        async with client.session() as session:
            name = await create_backup_table(session, "item")
            await session.commit()

        assert name.startswith("item_backup_")
        assert client.tables[name] == [{"id": 1, "name": "current"}]

    @pytest.mark.asyncio
    async def test_rolled_back_with_session(self) -> None:
        client = _client()

        async with client.session() as session:
            name = await create_backup_table(session, "item")
            await session.rollback()

        assert name not in client.tables


class TestListBackups:
    """Only backups of the given table, newest first."""

    @pytest.mark.asyncio
    async def test_lists_newest_first(self) -> None:
        backups = await list_backup_tables(_client(), "item")

        assert backups == [BACKUP, "item_backup_20240101_000000"]


class TestRestore:
    """Replace all rows of a table with a backup's rows."""

    @pytest.mark.asyncio
    async def test_restore(self) -> None:
        client = _client()

        result = await restore_from_backup(client, "item", BACKUP, confirm=True)

        assert result.success
        assert (result.deleted_rows, result.restored_rows) == (1, 2)
        assert client.rows("item") == [{"id": 1, "name": "old"}, {"id": 2, "name": "older"}]

    @pytest.mark.asyncio
    async def test_restore_dry_run(self) -> None:
        client = _client()

        result = await restore_from_backup(client, "item", BACKUP, dry_run=True)

        assert result.success
        assert result.dry_run
        assert client.rows("item") == [{"id": 1, "name": "current"}]

    @pytest.mark.asyncio
    async def test_requires_confirm(self) -> None:
        client = _client()

        result = await restore_from_backup(client, "item", BACKUP)

        assert not result.success
        assert "confirm" in result.errors[0]
        assert client.sessions_opened == 0

    @pytest.mark.asyncio
    async def test_rejects_foreign_backup(self) -> None:
        result = await restore_from_backup(
            _client(), "item", "item__attr_backup_20250102_030405", confirm=True
        )

        assert not result.success
        assert "is not a backup of item" in result.errors[0]

    @pytest.mark.asyncio
    async def test_missing_backup_table(self) -> None:
        client = _client()

        result = await restore_from_backup(
            client, "item", "item_backup_19990101_000000", confirm=True
        )

        assert not result.success
        assert result.errors[0].startswith("Restore failed")
        assert client.rows("item") == [{"id": 1, "name": "current"}]
