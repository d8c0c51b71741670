"""
Ledger Store: transactional access to properties, images, bookings and payments.

Every state transition runs inside exactly one ``LedgerStore.transaction()`` scope, which
commits on normal exit and rolls back on every error path. Inside it:

- ``read_property`` takes a row lock (``SELECT ... FOR UPDATE``) on the aggregate root, so
  two operations on one property serialise while different properties never contend.
- ``write_if_unchanged`` is a compare-and-set ``UPDATE ... WHERE <expected>``; a zero rowcount
  means the persisted state is not the one the caller decided on.

Store failures are translated into ``ConflictError`` (integrity violations) or
``TransientError`` (lock timeouts, serialization failures, lost connections).
"""
from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import func, select, text, update
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import settings
from app.core.db import SQLITE_BEGIN_MODE, SessionLocal
from app.core.errors import ConflictError, TransientError
from app.models.booking import Booking
from app.models.image import PropertyImage
from app.models.payment import Payment
from app.models.property import Property
from app.services.listing_state import BookingStatus, PaymentStatus

log = logging.getLogger(__name__)

# serialization_failure, deadlock_detected, lock_not_available
_RETRYABLE_SQLSTATES = {"40001", "40P01", "55P03"}


def _sqlstate(exc: DBAPIError) -> str | None:
    orig = exc.orig
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


class LedgerTx:
    """Store operations bound to one open transaction."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def read_property(self, property_id: str, *, for_update: bool = True) -> Property | None:
        stmt = (
            select(Property)
            .where(Property.id == property_id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def read_booking(self, booking_id: str) -> Booking | None:
        stmt = select(Booking).where(Booking.id == booking_id).execution_options(populate_existing=True)
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def read_payment(self, payment_id: str) -> Payment | None:
        stmt = select(Payment).where(Payment.id == payment_id).execution_options(populate_existing=True)
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def count_images_for(self, property_id: str) -> int:
        stmt = select(func.count()).select_from(PropertyImage).where(PropertyImage.property_id == property_id)
        return int((await self.session.execute(stmt)).scalar_one())

    async def active_booking_for(self, property_id: str) -> Booking | None:
        stmt = (
            select(Booking)
            .where(Booking.property_id == property_id, Booking.status == BookingStatus.HOLD)
            .execution_options(populate_existing=True)
        )
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def verified_payment_for(self, booking_id: str) -> Payment | None:
        stmt = (
            select(Payment)
            .where(Payment.booking_id == booking_id, Payment.payment_status == PaymentStatus.VERIFIED)
            .order_by(Payment.created_at.asc())
            .limit(1)
        )
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def write_if_unchanged(
        self,
        model: type,
        row_id: str,
        *,
        expected: dict[str, Any],
        values: dict[str, Any],
    ) -> bool:
        """
        Compare-and-set: apply ``values`` only if every column in ``expected`` still holds.
        Returns False when nothing matched (row gone or a concurrent writer got there first).
        """
        stmt = (
            update(model)
            .where(model.id == row_id, *[getattr(model, col) == val for col, val in expected.items()])
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    def add(self, obj: Any) -> None:
        self.session.add(obj)

    async def flush(self) -> None:
        await self.session.flush()


class LedgerStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession], *, lock_timeout_ms: int | None = None):
        self._session_factory = session_factory
        self._lock_timeout_ms = lock_timeout_ms if lock_timeout_ms is not None else settings.lock_timeout_ms

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[LedgerTx]:
        async with self._session_factory() as session:
            try:
                async with session.begin():
                    await session.connection(execution_options={SQLITE_BEGIN_MODE: "IMMEDIATE"})
                    if session.get_bind().dialect.name == "postgresql" and self._lock_timeout_ms:
                        await session.execute(text(f"SET LOCAL lock_timeout = {int(self._lock_timeout_ms)}"))
                    yield LedgerTx(session)
            except IntegrityError as e:
                log.info("ledger: integrity violation: %s", e.orig)
                raise ConflictError("Conflicting concurrent write") from e
            except OperationalError as e:
                log.warning("ledger: transaction aborted: %s", e.orig)
                raise TransientError("Store unavailable or contended, retry") from e
            except DBAPIError as e:
                if e.connection_invalidated or _sqlstate(e) in _RETRYABLE_SQLSTATES:
                    log.warning("ledger: transaction aborted: %s", e.orig)
                    raise TransientError("Store unavailable or contended, retry") from e
                raise


def get_ledger() -> LedgerStore:
    return LedgerStore(SessionLocal)
