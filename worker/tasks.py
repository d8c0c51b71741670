import asyncio
import logging
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

import app.models  # noqa: F401  # ensures Models are registered
from app.core.db import create_engine
from app.models.outbox import OutboxEvent
from app.services.notifications import notify_seller
from worker.celery_app import celery

log = logging.getLogger(__name__)


async def handle_outbox_event(db: AsyncSession, outbox_id: str, lease_id: str) -> bool:
    """
    Consume one leased event. Returns True when it was marked done, False when the event is
    gone or the lease was lost to another dispatcher. On failure the event goes back to
    pending with the error recorded.
    """
    ev = (await db.execute(select(OutboxEvent).where(OutboxEvent.id == outbox_id))).scalar_one_or_none()
    if not ev:
        return False

    # Lease ownership check
    if ev.lease_id != lease_id or ev.status != "processing":
        log.info("outbox %s: lease %s no longer held, skipping", outbox_id, lease_id)
        await db.rollback()
        return False

    try:
        await notify_seller(db, ev)

        # Mark done only if lease still matches
        result = await db.execute(
            update(OutboxEvent)
            .where(OutboxEvent.id == outbox_id, OutboxEvent.lease_id == lease_id)
            .values(
                status="done",
                processed_at=datetime.now(timezone.utc),
                lease_id=None,
                lease_expires_at=None,
            )
        )
        if result.rowcount == 0:
            # lease lost; do not overwrite
            await db.rollback()
            return False

        await db.commit()
        return True

    except Exception as e:
        log.exception("outbox %s: processing failed", outbox_id)
        await db.rollback()
        await db.execute(
            update(OutboxEvent)
            .where(OutboxEvent.id == outbox_id, OutboxEvent.lease_id == lease_id)
            .values(
                status="pending",
                lease_id=None,
                lease_expires_at=None,
                processing_started_at=None,
                last_error=f"{type(e).__name__}: {e}",
            )
        )
        await db.commit()
        return False


async def _process_outbox_event(outbox_id: str, lease_id: str) -> None:
    engine = create_engine()
    Session = async_sessionmaker(engine, expire_on_commit=False)
    try:
        async with Session() as db:
            await handle_outbox_event(db, outbox_id, lease_id)
    finally:
        await engine.dispose()


@celery.task(name="worker.tasks.process_outbox_event", bind=True, max_retries=5)
def process_outbox_event(self, outbox_id: str, lease_id: str) -> None:
    asyncio.run(_process_outbox_event(outbox_id, lease_id))
