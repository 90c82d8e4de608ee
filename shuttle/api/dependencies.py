"""FastAPI dependency injection helpers."""

from typing import Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shuttle.infrastructure.database import async_session_factory
from shuttle.infrastructure.models import AccountModel
from shuttle.services.admin import AdminService
from shuttle.services.booking import BookingService
from shuttle.services.credits import CreditService
from shuttle.services.effects import SideEffects
from shuttle.services.payments import PaymentService


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Services open their own units of work from this factory."""
    return async_session_factory


def get_effects(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> SideEffects:
    return SideEffects(session_factory)


def get_booking_service(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    effects: SideEffects = Depends(get_effects),
) -> BookingService:
    return BookingService(session_factory, effects)


def get_payment_service(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    effects: SideEffects = Depends(get_effects),
) -> PaymentService:
    return PaymentService(session_factory, effects)


def get_admin_service(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    effects: SideEffects = Depends(get_effects),
) -> AdminService:
    return AdminService(session_factory, effects)


def get_credit_service(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> CreditService:
    return CreditService(session_factory)


async def current_account_id(
    x_account_id: Optional[int] = Header(None),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> int:
    """
    The acting account, taken from the ``X-Account-Id`` header.

    Authentication happens upstream; this only checks the account exists.
    """
    if x_account_id is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    async with session_factory() as session:
        account = await session.get(AccountModel, x_account_id)
    if account is None:
        raise HTTPException(status_code=401, detail="Unknown account")
    return account.id
