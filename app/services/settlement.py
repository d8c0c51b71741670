"""
Settlement: payment evidence, payment verification, and the final sale.

The three steps are separate on purpose. A buyer's payment claim (``submit_payment``)
changes no listing state; an agent or admin has to confirm it (``verify_payment``) before
``close_sale`` may move anything to sold.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal

from app.core.errors import ConflictError, NotFoundError, PreconditionError, ValidationError
from app.core.telemetry import get_tracer
from app.models.base import gen_id
from app.models.booking import Booking
from app.models.payment import Payment
from app.models.property import Property
from app.services.access_policy import Operation, authorize
from app.services.auth import Actor
from app.services.events import EventType, record_transition
from app.services.ledger import LedgerStore
from app.services.listing_state import BookingStatus, PaymentStatus, PropertyStatus, check_transition

log = logging.getLogger(__name__)
tracer = get_tracer(__name__)


async def submit_payment(*, ledger: LedgerStore, actor: Actor, booking_id: str, amount: Decimal) -> str:
    authorize(actor.role, Operation.SUBMIT_PAYMENT)
    if amount is None or amount <= 0:
        raise ValidationError("Payment amount must be positive", details=[{"field": "amount", "error": "must be positive"}])

    with tracer.start_as_current_span("ledger.submit_payment") as span:
        span.set_attribute("booking.id", booking_id)
        async with ledger.transaction() as tx:
            booking = await tx.read_booking(booking_id)
            if booking is None:
                raise NotFoundError("Booking not found")

            # lock the aggregate root, then look at the booking again under the lock
            prop = await tx.read_property(booking.property_id)
            booking = await tx.read_booking(booking_id)
            if booking.status != BookingStatus.HOLD or prop.booking_status != BookingStatus.HOLD:
                raise ConflictError(f"Booking is {booking.status}; payments are accepted only while on hold")

            payment_id = gen_id("pay")
            tx.add(
                Payment(
                    id=payment_id,
                    property_id=prop.id,
                    booking_id=booking_id,
                    amount=amount,
                    payment_status=PaymentStatus.PAID,
                    created_by=actor.api_key_id,
                    updated_by=actor.api_key_id,
                )
            )
            await tx.flush()
            record_transition(
                tx,
                actor=actor,
                event_type=EventType.PAYMENT_SUBMITTED,
                property_id=prop.id,
                detail={"booking_id": booking_id, "payment_id": payment_id, "amount": amount},
            )

    log.info("payment %s submitted for booking %s", payment_id, booking_id)
    return payment_id


async def verify_payment(*, ledger: LedgerStore, actor: Actor, payment_id: str) -> None:
    """paid -> verified. Verifying twice is a ConflictError so double-verification bugs surface."""
    authorize(actor.role, Operation.VERIFY_PAYMENT)

    with tracer.start_as_current_span("ledger.verify_payment") as span:
        span.set_attribute("payment.id", payment_id)
        async with ledger.transaction() as tx:
            payment = await tx.read_payment(payment_id)
            if payment is None:
                raise NotFoundError("Payment not found")

            await tx.read_property(payment.property_id)
            payment = await tx.read_payment(payment_id)
            check_transition(
                "payment.status",
                payment.payment_status,
                PaymentStatus.VERIFIED,
                message="Payment already verified",
            )

            ok = await tx.write_if_unchanged(
                Payment,
                payment_id,
                expected={"payment_status": PaymentStatus.PAID},
                values={
                    "payment_status": PaymentStatus.VERIFIED,
                    "verified_by": actor.principal_id,
                    "verified_at": datetime.now(timezone.utc),
                    "updated_by": actor.api_key_id,
                },
            )
            if not ok:
                raise ConflictError("Payment already verified")

            record_transition(
                tx,
                actor=actor,
                event_type=EventType.PAYMENT_VERIFIED,
                property_id=payment.property_id,
                detail={"booking_id": payment.booking_id, "payment_id": payment_id, "amount": payment.amount},
            )

    log.info("payment %s verified by %s %s", payment_id, actor.role, actor.principal_id)


async def close_sale(*, ledger: LedgerStore, actor: Actor, property_id: str) -> str:
    """
    Commit the sale: property -> sold/sold and the held booking -> completed.

    Every precondition is checked against freshly locked state before the first write;
    without a verified payment for the held booking nothing is touched.
    """
    authorize(actor.role, Operation.CLOSE_SALE)

    with tracer.start_as_current_span("ledger.close_sale") as span:
        span.set_attribute("property.id", property_id)
        async with ledger.transaction() as tx:
            prop = await tx.read_property(property_id)
            if prop is None:
                raise NotFoundError("Property not found")
            nothing_to_close = f"Property is {prop.status}/{prop.booking_status}; nothing to close"
            check_transition("property.status", prop.status, PropertyStatus.SOLD, message=nothing_to_close)
            check_transition("property.booking_status", prop.booking_status, BookingStatus.SOLD, message=nothing_to_close)

            booking = await tx.active_booking_for(property_id)
            if booking is None:
                raise ConflictError("No booking on hold for this property")
            booking_id = booking.id
            check_transition("booking.status", booking.status, BookingStatus.COMPLETED)

            payment = await tx.verified_payment_for(booking_id)
            if payment is None:
                raise PreconditionError("Payment not verified. Cannot mark as sold.", details=[{"booking_id": booking_id}])

            property_ok = await tx.write_if_unchanged(
                Property,
                property_id,
                expected={"status": PropertyStatus.LIVE, "booking_status": BookingStatus.HOLD},
                values={
                    "status": PropertyStatus.SOLD,
                    "booking_status": BookingStatus.SOLD,
                    "updated_by": actor.api_key_id,
                },
            )
            booking_ok = await tx.write_if_unchanged(
                Booking,
                booking_id,
                expected={"status": BookingStatus.HOLD},
                values={"status": BookingStatus.COMPLETED, "updated_by": actor.api_key_id},
            )
            if not (property_ok and booking_ok):
                # rolls back the half that did match
                raise ConflictError("Property or booking changed while closing the sale")

            record_transition(
                tx,
                actor=actor,
                event_type=EventType.PROPERTY_SOLD,
                property_id=property_id,
                detail={
                    "booking_id": booking_id,
                    "payment_id": payment.id,
                    "amount": payment.amount,
                    "seller_id": prop.seller_id,
                },
            )

    log.info("property %s sold via booking %s", property_id, booking_id)
    return booking_id
