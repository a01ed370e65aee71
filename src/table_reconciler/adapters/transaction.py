"""Result-returning transaction scope for sync operations.

A sync call runs two phases on one session:

- ``prepare``: prechecks, backup and schema changes.
- ``apply``: row mutation, run after the ``sync_start`` savepoint.

Each phase returns an ``Outcome`` instead of raising.  The scope decides
what to keep from it:

==========================  ==============================================
prepare fails               roll back everything
apply fails                 roll back to ``sync_start``, commit prepare work
apply succeeds              commit (roll back everything in a dry run)
exception or timeout        roll back everything
==========================  ==============================================

The session is released on every exit path.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from table_reconciler.adapters.base import DatabaseClient, SyncSession

logger = logging.getLogger(__name__)

SYNC_SAVEPOINT = "sync_start"


@dataclass
class Outcome:
    """Tagged success/failure value of a transaction phase."""

    ok: bool = True
    error: str | None = None

    @classmethod
    def success(cls) -> "Outcome":
        return cls()

    @classmethod
    def failure(cls, error: str) -> "Outcome":
        return cls(ok=False, error=error)


Phase = Callable[[SyncSession], Awaitable[Outcome]]


async def _noop(session: SyncSession) -> Outcome:
    return Outcome.success()


async def run_in_transaction(
    client: DatabaseClient,
    apply: Phase,
    prepare: Phase | None = None,
    dry_run: bool = False,
    timeout: float | None = None,
) -> Outcome:
    """Run ``prepare`` then ``apply`` in one transaction on one connection.

    Args:
        client: Database client to take the session from.
        apply: Row-mutation phase, run after the ``sync_start`` savepoint.
        prepare: Optional phase run before the savepoint.
        dry_run: Roll back everything even on success.
        timeout: Seconds before the whole call is cancelled.

    Returns:
        The failing phase's Outcome, or success.
    """
    prepare = prepare or _noop

    async with client.session() as session:
        try:
            async with asyncio.timeout(timeout):
                return await _run_phases(session, prepare, apply, dry_run)
        except TimeoutError:
            logger.error(f"Sync timed out after {timeout}s, rolling back")
            await _rollback_quietly(session)
            return Outcome.failure(f"Timed out after {timeout}s")
        except Exception as e:
            logger.error(f"Sync failed, rolling back: {e}")
            await _rollback_quietly(session)
            return Outcome.failure(str(e))


async def _run_phases(
    session: SyncSession, prepare: Phase, apply: Phase, dry_run: bool
) -> Outcome:
    outcome = await prepare(session)
    if not outcome.ok:
        await session.rollback()
        return outcome

    await session.savepoint(SYNC_SAVEPOINT)
    outcome = await apply(session)

    if not outcome.ok:
        await session.rollback_to(SYNC_SAVEPOINT)
        if dry_run:
            await session.rollback()
        else:
            await session.commit()
        logger.warning(f"Row sync rolled back to {SYNC_SAVEPOINT}: {outcome.error}")
        return outcome

    await session.release(SYNC_SAVEPOINT)
    if dry_run:
        await session.rollback()
        logger.info("Dry run, all changes rolled back")
    else:
        await session.commit()
    return outcome


async def _rollback_quietly(session: SyncSession) -> None:
    try:
        await session.rollback()
    except Exception as e:
        # The connection is gone; the session context discards it
        logger.warning(f"Rollback failed: {e}")
