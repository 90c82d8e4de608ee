"""
Background Ledger Reconciliation Worker
=======================================

Runs every ``RECONCILE_INTERVAL_SECONDS`` (default 300 s).

Each cycle compares every cached ``credit_balances.credits`` with the sum
of that account's ledger entries and logs an error for each account that
has drifted.  It never rewrites balances: a drift means a bug, and the
ledger entries are the record to investigate from.

Concurrency safety
------------------
* **Redis distributed lock** ensures only one instance runs the cycle at a
  time across multiple API processes.
"""

from __future__ import annotations

import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shuttle.config import settings
from shuttle.infrastructure.database import async_session_factory
from shuttle.infrastructure.locks import DistributedLock
from shuttle.infrastructure.redis_client import get_redis
from shuttle.infrastructure.unit_of_work import UnitOfWork
from shuttle.services.ledger import BalanceMismatch, CreditLedger

logger = logging.getLogger(__name__)

_task: asyncio.Task | None = None
_stop_event: asyncio.Event | None = None


# ── Public API ────────────────────────────────────────────────────────


async def start_reconcile_loop() -> None:
    global _task, _stop_event
    _stop_event = asyncio.Event()
    _task = asyncio.create_task(_loop(_stop_event))
    logger.info(
        "Reconciliation worker started (interval=%ds)",
        settings.reconcile_interval_seconds,
    )


async def stop_reconcile_loop() -> None:
    if _stop_event:
        _stop_event.set()
    if _task:
        _task.cancel()
        try:
            await _task
        except asyncio.CancelledError:
            pass
    logger.info("Reconciliation worker stopped")


# ── Internals ─────────────────────────────────────────────────────────


async def _loop(stop_event: asyncio.Event) -> None:
    while not stop_event.is_set():
        try:
            await run_reconciliation_cycle()
        except Exception:
            logger.exception("Unhandled error in reconciliation cycle")
        try:
            await asyncio.wait_for(
                stop_event.wait(), timeout=settings.reconcile_interval_seconds
            )
            break
        except asyncio.TimeoutError:
            pass


async def run_reconciliation_cycle(
    session_factory: async_sessionmaker[AsyncSession] = async_session_factory,
) -> list[BalanceMismatch]:
    """Execute one cycle.  Returns the accounts whose balance has drifted."""
    redis = await get_redis()
    lock = DistributedLock(redis, "ledger_reconciler", ttl_seconds=120)

    if not await lock.acquire():
        logger.debug("Lock held by another worker - skipping cycle")
        return []

    try:
        async with UnitOfWork(session_factory) as uow:
            mismatches = await CreditLedger(uow.credits).reconcile()
    finally:
        await lock.release()

    for mismatch in mismatches:
        logger.error(
            "Balance drift on account %d: cached %d, ledger %d",
            mismatch.account_id,
            mismatch.cached,
            mismatch.ledger_total,
        )
    if not mismatches:
        logger.debug("Reconciliation cycle: all balances match the ledger")
    return mismatches
