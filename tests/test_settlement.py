import asyncio
from decimal import Decimal

import pytest
import pytest_asyncio

from app.core.errors import AuthorizationError, ConflictError, NotFoundError, PreconditionError, ValidationError
from app.schemas.booking import BookingCreate
from app.services import listing_lifecycle, reservations, settlement
from app.services.listing_state import BookingStatus, PaymentStatus, PropertyStatus

BUYER = BookingCreate(name="Bea Buyer", phone="200")


@pytest_asyncio.fixture
async def held(ledger, seed, live_property) -> tuple[str, str]:
    booking_id = await reservations.reserve(ledger=ledger, actor=seed["buyer"], property_id=live_property, buyer=BUYER)
    return live_property, booking_id


async def _state(ledger, property_id, booking_id):
    async with ledger.transaction() as tx:
        prop = await tx.read_property(property_id, for_update=False)
        booking = await tx.read_booking(booking_id)
    return prop.status, prop.booking_status, booking.status


async def test_full_sale(ledger, seed, make_property):
    seller, agent, buyer = seed["seller"], seed["agent"], seed["buyer"]

    property_id = await listing_lifecycle.submit_property(ledger=ledger, actor=seller, fields=make_property())
    await listing_lifecycle.set_pricing(
        ledger=ledger, actor=agent, property_id=property_id, final_amount=Decimal("100"), govt_amount=Decimal("90")
    )
    await listing_lifecycle.attach_image(ledger=ledger, actor=seller, property_id=property_id, image_path="file:///a.jpg")
    await listing_lifecycle.verify_property(ledger=ledger, actor=agent, property_id=property_id)

    booking_id = await reservations.reserve(ledger=ledger, actor=buyer, property_id=property_id, buyer=BUYER)
    assert await _state(ledger, property_id, booking_id) == (PropertyStatus.LIVE, BookingStatus.HOLD, BookingStatus.HOLD)

    payment_id = await settlement.submit_payment(ledger=ledger, actor=buyer, booking_id=booking_id, amount=Decimal("100"))
    async with ledger.transaction() as tx:
        assert (await tx.read_payment(payment_id)).payment_status == PaymentStatus.PAID

    await settlement.verify_payment(ledger=ledger, actor=agent, payment_id=payment_id)
    async with ledger.transaction() as tx:
        payment = await tx.read_payment(payment_id)
    assert payment.payment_status == PaymentStatus.VERIFIED
    assert payment.verified_by == agent.principal_id
    assert payment.verified_at is not None

    closed = await settlement.close_sale(ledger=ledger, actor=agent, property_id=property_id)
    assert closed == booking_id
    assert await _state(ledger, property_id, booking_id) == (
        PropertyStatus.SOLD,
        BookingStatus.SOLD,
        BookingStatus.COMPLETED,
    )


async def test_close_without_verified_payment_changes_nothing(ledger, seed, held):
    property_id, booking_id = held
    await settlement.submit_payment(ledger=ledger, actor=seed["buyer"], booking_id=booking_id, amount=Decimal("100"))

    with pytest.raises(PreconditionError) as exc:
        await settlement.close_sale(ledger=ledger, actor=seed["agent"], property_id=property_id)
    assert "not verified" in exc.value.message

    assert await _state(ledger, property_id, booking_id) == (PropertyStatus.LIVE, BookingStatus.HOLD, BookingStatus.HOLD)


async def test_close_without_booking_conflicts(ledger, seed, live_property):
    with pytest.raises(ConflictError):
        await settlement.close_sale(ledger=ledger, actor=seed["admin"], property_id=live_property)


async def test_close_sold_listing_conflicts(ledger, seed, held):
    property_id, booking_id = held
    payment_id = await settlement.submit_payment(
        ledger=ledger, actor=seed["buyer"], booking_id=booking_id, amount=Decimal("100")
    )
    await settlement.verify_payment(ledger=ledger, actor=seed["admin"], payment_id=payment_id)
    await settlement.close_sale(ledger=ledger, actor=seed["admin"], property_id=property_id)

    with pytest.raises(ConflictError) as exc:
        await settlement.close_sale(ledger=ledger, actor=seed["admin"], property_id=property_id)
    assert exc.value.details[0]["machine"] == "property.status"
    with pytest.raises(ConflictError):
        await reservations.reserve(ledger=ledger, actor=seed["buyer2"], property_id=property_id, buyer=BUYER)


async def test_close_is_staff_only(ledger, seed, held):
    property_id, _ = held
    with pytest.raises(AuthorizationError):
        await settlement.close_sale(ledger=ledger, actor=seed["buyer"], property_id=property_id)


async def test_payment_requires_positive_amount(ledger, seed, held):
    _, booking_id = held
    with pytest.raises(ValidationError):
        await settlement.submit_payment(ledger=ledger, actor=seed["buyer"], booking_id=booking_id, amount=Decimal("0"))


async def test_payment_for_unknown_booking(ledger, seed):
    with pytest.raises(NotFoundError):
        await settlement.submit_payment(ledger=ledger, actor=seed["buyer"], booking_id="bkg_nope", amount=Decimal("1"))


async def test_payment_on_cancelled_booking_conflicts(ledger, seed, held):
    property_id, booking_id = held
    await reservations.cancel(ledger=ledger, actor=seed["agent"], property_id=property_id)
    with pytest.raises(ConflictError):
        await settlement.submit_payment(ledger=ledger, actor=seed["buyer"], booking_id=booking_id, amount=Decimal("100"))


async def test_verify_payment_twice_conflicts(ledger, seed, held):
    _, booking_id = held
    payment_id = await settlement.submit_payment(
        ledger=ledger, actor=seed["buyer"], booking_id=booking_id, amount=Decimal("100")
    )
    await settlement.verify_payment(ledger=ledger, actor=seed["agent"], payment_id=payment_id)
    with pytest.raises(ConflictError) as exc:
        await settlement.verify_payment(ledger=ledger, actor=seed["agent"], payment_id=payment_id)
    assert exc.value.details == [{"machine": "payment.status", "current": "verified", "target": "verified"}]


async def test_buyer_cannot_verify_own_payment(ledger, seed, held):
    _, booking_id = held
    payment_id = await settlement.submit_payment(
        ledger=ledger, actor=seed["buyer"], booking_id=booking_id, amount=Decimal("100")
    )
    with pytest.raises(AuthorizationError):
        await settlement.verify_payment(ledger=ledger, actor=seed["buyer"], payment_id=payment_id)


async def test_cancel_racing_close_sale_settles_one_way(ledger, seed, held):
    property_id, booking_id = held
    payment_id = await settlement.submit_payment(
        ledger=ledger, actor=seed["buyer"], booking_id=booking_id, amount=Decimal("100")
    )
    await settlement.verify_payment(ledger=ledger, actor=seed["agent"], payment_id=payment_id)

    cancelled, closed = await asyncio.gather(
        reservations.cancel(ledger=ledger, actor=seed["agent"], property_id=property_id),
        settlement.close_sale(ledger=ledger, actor=seed["admin"], property_id=property_id),
        return_exceptions=True,
    )

    outcomes = [r for r in (cancelled, closed) if not isinstance(r, Exception)]
    failures = [r for r in (cancelled, closed) if isinstance(r, Exception)]
    assert outcomes == [booking_id]
    assert len(failures) == 1 and isinstance(failures[0], ConflictError)

    state = await _state(ledger, property_id, booking_id)
    if isinstance(closed, Exception):
        assert state == (PropertyStatus.LIVE, BookingStatus.AVAILABLE, BookingStatus.CANCELLED)
    else:
        assert state == (PropertyStatus.SOLD, BookingStatus.SOLD, BookingStatus.COMPLETED)
