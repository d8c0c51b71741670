"""
Seller notifications derived from committed outbox events.

Only events a seller cares about produce a notification; everything else is consumed
silently. ``source_event_id`` is unique, so a redelivered event never notifies twice.
"""
from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.notification import Notification
from app.models.outbox import OutboxEvent
from app.models.property import Property
from app.services.events import EventType

log = logging.getLogger(__name__)

_MESSAGES: dict[str, str] = {
    EventType.PROPERTY_PRICED: "Price fixed for '{title}': {final_amount} (government value {govt_amount})",
    EventType.PROPERTY_VERIFIED: "'{title}' in {location} was verified and is now live",
    EventType.BOOKING_HELD: "A buyer reserved '{title}' in {location}",
    EventType.PROPERTY_SOLD: "'{title}' in {location} has been sold",
}


def is_notifiable(event_type: str) -> bool:
    return event_type in _MESSAGES


async def notify_seller(db: AsyncSession, ev: OutboxEvent) -> Notification | None:
    if not is_notifiable(ev.event_type):
        return None

    existing = (
        await db.execute(select(Notification).where(Notification.source_event_id == ev.id))
    ).scalar_one_or_none()
    if existing is not None:
        return existing

    prop = (await db.execute(select(Property).where(Property.id == ev.aggregate_id))).scalar_one()
    message = _MESSAGES[ev.event_type].format(
        title=prop.title,
        location=prop.location,
        final_amount=ev.payload.get("final_amount", prop.final_amount),
        govt_amount=ev.payload.get("govt_amount", prop.govt_amount),
    )
    note = Notification(
        user_id=prop.seller_id,
        property_id=prop.id,
        source_event_id=ev.id,
        kind=ev.event_type,
        message=message,
    )
    db.add(note)
    await db.flush()
    log.info("notification %s for seller %s (%s)", note.id, prop.seller_id, ev.event_type)
    return note
