from __future__ import annotations

import logging

from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.core.telemetry import get_tracer
from app.models.base import gen_id
from app.models.booking import Booking
from app.models.property import Property
from app.schemas.booking import BookingCreate
from app.services.access_policy import Operation, authorize
from app.services.auth import Actor
from app.services.events import EventType, record_transition
from app.services.ledger import LedgerStore
from app.services.listing_state import BookingStatus, PropertyStatus, check_transition

log = logging.getLogger(__name__)
tracer = get_tracer(__name__)


def _normalize_buyer(buyer: BookingCreate) -> dict:
    name = (buyer.name or "").strip()
    phone = (buyer.phone or "").strip()
    errors = [{"field": f, "error": "required"} for f, v in (("name", name), ("phone", phone)) if not v]
    if errors:
        raise ValidationError("Buyer contact details are required", details=errors)
    email = (buyer.email or "").strip() or None
    return {"buyer_name": name, "buyer_phone": phone, "buyer_email": email}


async def reserve(*, ledger: LedgerStore, actor: Actor, property_id: str, buyer: BookingCreate) -> str:
    """
    Put a hold on a live, available listing for the calling buyer.

    The available -> hold flip is a compare-and-set on the locked property row, and the
    booking insert is covered by the one-hold-per-property unique index, so of two
    simultaneous buyers exactly one gets the hold and the other a ConflictError.
    """
    authorize(actor.role, Operation.RESERVE)
    contact = _normalize_buyer(buyer)

    with tracer.start_as_current_span("ledger.reserve") as span:
        span.set_attribute("property.id", property_id)
        async with ledger.transaction() as tx:
            prop = await tx.read_property(property_id)
            if prop is None:
                raise NotFoundError("Property not found")
            if prop.status != PropertyStatus.LIVE:
                raise ConflictError(f"Property is {prop.status}, not open for booking")
            check_transition(
                "property.booking_status",
                prop.booking_status,
                BookingStatus.HOLD,
                message="Property already reserved",
            )

            ok = await tx.write_if_unchanged(
                Property,
                property_id,
                expected={"status": PropertyStatus.LIVE, "booking_status": BookingStatus.AVAILABLE},
                values={"booking_status": BookingStatus.HOLD, "updated_by": actor.api_key_id},
            )
            if not ok:
                raise ConflictError("Property already reserved")

            booking_id = gen_id("bkg")
            tx.add(
                Booking(
                    id=booking_id,
                    property_id=property_id,
                    buyer_id=actor.principal_id,
                    status=BookingStatus.HOLD,
                    created_by=actor.api_key_id,
                    updated_by=actor.api_key_id,
                    **contact,
                )
            )
            await tx.flush()

            record_transition(
                tx,
                actor=actor,
                event_type=EventType.BOOKING_HELD,
                property_id=property_id,
                detail={"booking_id": booking_id, "seller_id": prop.seller_id, "buyer_id": actor.principal_id},
            )

    log.info("property %s on hold for booking %s", property_id, booking_id)
    return booking_id


async def cancel(*, ledger: LedgerStore, actor: Actor, property_id: str) -> str:
    """Release the active hold: booking -> cancelled and property -> available, together."""
    authorize(actor.role, Operation.CANCEL_BOOKING)

    with tracer.start_as_current_span("ledger.cancel_booking") as span:
        span.set_attribute("property.id", property_id)
        async with ledger.transaction() as tx:
            prop = await tx.read_property(property_id)
            if prop is None:
                raise NotFoundError("Property not found")
            check_transition(
                "property.booking_status",
                prop.booking_status,
                BookingStatus.AVAILABLE,
                message="No active booking to cancel",
            )

            booking = await tx.active_booking_for(property_id)
            if booking is None:
                raise ConflictError("No active booking to cancel")
            booking_id = booking.id
            check_transition("booking.status", booking.status, BookingStatus.CANCELLED)

            booking_ok = await tx.write_if_unchanged(
                Booking,
                booking_id,
                expected={"status": BookingStatus.HOLD},
                values={"status": BookingStatus.CANCELLED, "updated_by": actor.api_key_id},
            )
            property_ok = await tx.write_if_unchanged(
                Property,
                property_id,
                expected={"booking_status": BookingStatus.HOLD},
                values={"booking_status": BookingStatus.AVAILABLE, "updated_by": actor.api_key_id},
            )
            if not (booking_ok and property_ok):
                raise ConflictError("Booking changed while cancelling")

            record_transition(
                tx,
                actor=actor,
                event_type=EventType.BOOKING_CANCELLED,
                property_id=property_id,
                detail={"booking_id": booking_id, "seller_id": prop.seller_id},
            )

    log.info("booking %s cancelled, property %s available again", booking_id, property_id)
    return booking_id
