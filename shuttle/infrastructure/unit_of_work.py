"""
Unit of work: one session, one transaction, then post-commit hooks.

    async with UnitOfWork(session_factory) as uow:
        ...                       # reads, row locks, writes
        uow.after_commit(hook)    # runs only if the commit succeeds

* Clean exit commits; any exception rolls everything back and discards
  the hooks.
* Hooks run after the commit, in registration order.  A failing hook is
  logged and skipped; it cannot undo or fail the committed operation.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .repositories import (
    AccountRepository,
    AuditRepository,
    CreditRepository,
    LocationRepository,
    PaymentRepository,
    ReservationRepository,
    TripRepository,
)

logger = logging.getLogger(__name__)

Hook = Callable[[], Awaitable[None]]


class UnitOfWork:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory
        self._hooks: list[Hook] = []
        self.session: Optional[AsyncSession] = None

    async def __aenter__(self) -> "UnitOfWork":
        self.session = self._session_factory()
        self.accounts = AccountRepository(self.session)
        self.locations = LocationRepository(self.session)
        self.trips = TripRepository(self.session)
        self.reservations = ReservationRepository(self.session)
        self.credits = CreditRepository(self.session)
        self.payments = PaymentRepository(self.session)
        self.audit = AuditRepository(self.session)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self.session is None:
            raise RuntimeError("UnitOfWork exited without being entered")
        try:
            if exc_type is not None:
                await self.session.rollback()
                self._hooks.clear()
                return
            await self.session.commit()
        finally:
            await self.session.close()
        await self._run_hooks()

    def after_commit(self, hook: Hook) -> None:
        self._hooks.append(hook)

    async def _run_hooks(self) -> None:
        hooks, self._hooks = self._hooks, []
        for hook in hooks:
            try:
                await hook()
            except Exception:
                logger.exception(
                    "Post-commit hook %s failed", getattr(hook, "__name__", hook)
                )
