"""Tests for the two-phase transaction scope of sync operations."""

import asyncio

import pytest
from conftest import FakeClient

from table_reconciler.adapters.base import SyncSession
from table_reconciler.adapters.transaction import Outcome, run_in_transaction


def _client() -> FakeClient:
    return FakeClient({"log": [], "item": [{"id": 1}]})


async def _write(session: SyncSession, value: str) -> None:
    await session.insert_many("log", [{"entry": value}])


class TestOutcome:
    """Tagged result values."""

    def test_success_and_failure(self) -> None:
        assert Outcome.success().ok
        failure = Outcome.failure("boom")
        assert not failure.ok
        assert failure.error == "boom"


class TestRunInTransaction:
    """What is kept from each phase."""

    @pytest.mark.asyncio
    async def test_success_commits_both_phases(self) -> None:
        client = _client()

        async def prepare(session: SyncSession) -> Outcome:
            await _write(session, "prepare")
            return Outcome.success()

        async def apply(session: SyncSession) -> Outcome:
            await _write(session, "apply")
            return Outcome.success()

        outcome = await run_in_transaction(client, apply, prepare=prepare)

        assert outcome.ok
        assert [r["entry"] for r in client.tables["log"]] == ["prepare", "apply"]
        assert client.sessions_opened == client.sessions_closed == 1

    @pytest.mark.asyncio
    async def test_apply_failure_keeps_prepare_work(self) -> None:
        client = _client()

        async def prepare(session: SyncSession) -> Outcome:
            await _write(session, "prepare")
            return Outcome.success()

        async def apply(session: SyncSession) -> Outcome:
            await _write(session, "apply")
            return Outcome.failure("row sync failed")

        outcome = await run_in_transaction(client, apply, prepare=prepare)

        assert outcome.error == "row sync failed"
        assert [r["entry"] for r in client.tables["log"]] == ["prepare"]

    @pytest.mark.asyncio
    async def test_prepare_failure_skips_apply(self) -> None:
        client = _client()
        applied = False

        async def prepare(session: SyncSession) -> Outcome:
            await _write(session, "prepare")
            return Outcome.failure("backup failed")

        async def apply(session: SyncSession) -> Outcome:
            nonlocal applied
            applied = True
            return Outcome.success()

        outcome = await run_in_transaction(client, apply, prepare=prepare)

        assert not outcome.ok
        assert not applied
        assert client.tables["log"] == []

    @pytest.mark.asyncio
    async def test_dry_run_rolls_back_everything(self) -> None:
        client = _client()

        async def apply(session: SyncSession) -> Outcome:
            await session.delete("item")
            return Outcome.success()

        outcome = await run_in_transaction(client, apply, dry_run=True)

        assert outcome.ok
        assert client.tables["item"] == [{"id": 1}]
        assert client.commits == 0

    @pytest.mark.asyncio
    async def test_exception_rolls_back_everything(self) -> None:
        client = _client()

        async def prepare(session: SyncSession) -> Outcome:
            await _write(session, "prepare")
            return Outcome.success()

        async def apply(session: SyncSession) -> Outcome:
            raise RuntimeError("connection reset")

        outcome = await run_in_transaction(client, apply, prepare=prepare)

        assert outcome.error == "connection reset"
        assert client.tables["log"] == []
        assert client.rollbacks == 1
        assert client.sessions_closed == 1

    @pytest.mark.asyncio
    async def test_timeout(self) -> None:
        client = _client()

        async def apply(session: SyncSession) -> Outcome:
            await _write(session, "apply")
            await asyncio.sleep(1)
            return Outcome.success()

        outcome = await run_in_transaction(client, apply, timeout=0.01)

        assert not outcome.ok
        assert "Timed out" in (outcome.error or "")
        assert client.tables["log"] == []
