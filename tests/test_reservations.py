import asyncio

import pytest
from sqlalchemy import select

from app.core.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from app.models.booking import Booking
from app.schemas.booking import BookingCreate
from app.services import reservations
from app.services.listing_state import BookingStatus, PropertyStatus

BUYER = BookingCreate(name="Bea Buyer", phone="200", email="buyer@test.com")


async def _property(ledger, property_id):
    async with ledger.transaction() as tx:
        return await tx.read_property(property_id, for_update=False)


async def test_reserve_puts_listing_on_hold(ledger, seed, live_property):
    booking_id = await reservations.reserve(ledger=ledger, actor=seed["buyer"], property_id=live_property, buyer=BUYER)

    prop = await _property(ledger, live_property)
    assert prop.status == PropertyStatus.LIVE
    assert prop.booking_status == BookingStatus.HOLD

    async with ledger.transaction() as tx:
        booking = await tx.read_booking(booking_id)
    assert booking.status == BookingStatus.HOLD
    assert booking.buyer_id == seed["buyer"].principal_id
    assert booking.buyer_name == "Bea Buyer"


async def test_reserve_pending_listing_conflicts(ledger, seed, pending_property):
    with pytest.raises(ConflictError):
        await reservations.reserve(ledger=ledger, actor=seed["buyer"], property_id=pending_property, buyer=BUYER)


async def test_reserve_held_listing_conflicts(ledger, seed, live_property):
    await reservations.reserve(ledger=ledger, actor=seed["buyer"], property_id=live_property, buyer=BUYER)
    with pytest.raises(ConflictError) as exc:
        await reservations.reserve(ledger=ledger, actor=seed["buyer2"], property_id=live_property, buyer=BUYER)
    assert exc.value.details[0]["machine"] == "property.booking_status"


async def test_reserve_requires_contact_details(ledger, seed, live_property):
    with pytest.raises(ValidationError) as exc:
        await reservations.reserve(
            ledger=ledger,
            actor=seed["buyer"],
            property_id=live_property,
            buyer=BookingCreate(name=" ", phone=""),
        )
    assert {d["field"] for d in exc.value.details} == {"name", "phone"}
    assert (await _property(ledger, live_property)).booking_status == BookingStatus.AVAILABLE


async def test_reserve_denied_for_agents(ledger, seed, live_property):
    with pytest.raises(AuthorizationError):
        await reservations.reserve(ledger=ledger, actor=seed["agent"], property_id=live_property, buyer=BUYER)


async def test_reserve_unknown_property(ledger, seed):
    with pytest.raises(NotFoundError):
        await reservations.reserve(ledger=ledger, actor=seed["buyer"], property_id="prp_nope", buyer=BUYER)


async def test_cancel_then_rebook(ledger, seed, live_property, db_session):
    first = await reservations.reserve(ledger=ledger, actor=seed["buyer"], property_id=live_property, buyer=BUYER)

    cancelled = await reservations.cancel(ledger=ledger, actor=seed["agent"], property_id=live_property)
    assert cancelled == first
    assert (await _property(ledger, live_property)).booking_status == BookingStatus.AVAILABLE

    second = await reservations.reserve(
        ledger=ledger,
        actor=seed["buyer2"],
        property_id=live_property,
        buyer=BookingCreate(name="Ben Buyer", phone="201"),
    )
    assert second != first

    rows = (
        await db_session.execute(select(Booking.id, Booking.status).where(Booking.property_id == live_property))
    ).all()
    assert dict(rows) == {first: BookingStatus.CANCELLED, second: BookingStatus.HOLD}


async def test_cancel_without_hold_conflicts(ledger, seed, live_property):
    with pytest.raises(ConflictError) as exc:
        await reservations.cancel(ledger=ledger, actor=seed["agent"], property_id=live_property)
    assert exc.value.message == "No active booking to cancel"
    assert exc.value.details == [{"machine": "property.booking_status", "current": "available", "target": "available"}]


async def test_cancel_is_staff_only(ledger, seed, live_property):
    await reservations.reserve(ledger=ledger, actor=seed["buyer"], property_id=live_property, buyer=BUYER)
    with pytest.raises(AuthorizationError):
        await reservations.cancel(ledger=ledger, actor=seed["buyer"], property_id=live_property)


async def test_simultaneous_reservations_yield_one_hold(ledger, seed, live_property, db_session):
    results = await asyncio.gather(
        reservations.reserve(ledger=ledger, actor=seed["buyer"], property_id=live_property, buyer=BUYER),
        reservations.reserve(
            ledger=ledger,
            actor=seed["buyer2"],
            property_id=live_property,
            buyer=BookingCreate(name="Ben Buyer", phone="201"),
        ),
        return_exceptions=True,
    )

    won = [r for r in results if isinstance(r, str)]
    lost = [r for r in results if isinstance(r, Exception)]
    assert len(won) == 1
    assert len(lost) == 1 and isinstance(lost[0], ConflictError)

    holds = (
        await db_session.execute(
            select(Booking.id).where(Booking.property_id == live_property, Booking.status == BookingStatus.HOLD)
        )
    ).scalars().all()
    assert holds == won
