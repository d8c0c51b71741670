from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.schemas.booking import BookingCreate, BookingOut, BookingRow, PaymentCreate, PaymentOut
from app.schemas.common import IdResponse, StatusResponse
from app.services import listing_queries, reservations, settlement
from app.services.auth import Actor, get_actor
from app.services.ledger import LedgerStore, get_ledger
from app.services.listing_state import BookingStatus, PaymentStatus, PropertyStatus

router = APIRouter()


@router.post("/properties/{property_id}/bookings", response_model=IdResponse, status_code=status.HTTP_201_CREATED)
async def reserve(
    property_id: str,
    payload: BookingCreate,
    actor: Actor = Depends(get_actor),
    ledger: LedgerStore = Depends(get_ledger),
) -> IdResponse:
    booking_id = await reservations.reserve(ledger=ledger, actor=actor, property_id=property_id, buyer=payload)
    return IdResponse(id=booking_id)


@router.post("/properties/{property_id}/bookings/cancel", response_model=StatusResponse)
async def cancel_booking(
    property_id: str,
    actor: Actor = Depends(get_actor),
    ledger: LedgerStore = Depends(get_ledger),
) -> StatusResponse:
    booking_id = await reservations.cancel(ledger=ledger, actor=actor, property_id=property_id)
    return StatusResponse(id=booking_id, status=BookingStatus.CANCELLED)


@router.get("/agent/bookings", response_model=list[BookingRow])
async def agent_bookings(actor: Actor = Depends(get_actor), db: AsyncSession = Depends(get_db)) -> list[BookingRow]:
    return await listing_queries.agent_bookings(db, actor=actor)


@router.get("/me/bookings", response_model=list[BookingOut])
async def my_bookings(actor: Actor = Depends(get_actor), db: AsyncSession = Depends(get_db)) -> list[BookingOut]:
    return await listing_queries.buyer_bookings(db, actor=actor)


@router.get("/bookings/{booking_id}/payments", response_model=list[PaymentOut])
async def booking_payments(
    booking_id: str,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
) -> list[PaymentOut]:
    return await listing_queries.booking_payments(db, actor=actor, booking_id=booking_id)


@router.post("/bookings/{booking_id}/payments", response_model=IdResponse, status_code=status.HTTP_201_CREATED)
async def submit_payment(
    booking_id: str,
    payload: PaymentCreate,
    actor: Actor = Depends(get_actor),
    ledger: LedgerStore = Depends(get_ledger),
) -> IdResponse:
    payment_id = await settlement.submit_payment(ledger=ledger, actor=actor, booking_id=booking_id, amount=payload.amount)
    return IdResponse(id=payment_id)


@router.post("/payments/{payment_id}/verify", response_model=StatusResponse)
async def verify_payment(
    payment_id: str,
    actor: Actor = Depends(get_actor),
    ledger: LedgerStore = Depends(get_ledger),
) -> StatusResponse:
    await settlement.verify_payment(ledger=ledger, actor=actor, payment_id=payment_id)
    return StatusResponse(id=payment_id, status=PaymentStatus.VERIFIED)


@router.post("/properties/{property_id}/close", response_model=StatusResponse)
async def close_sale(
    property_id: str,
    actor: Actor = Depends(get_actor),
    ledger: LedgerStore = Depends(get_ledger),
) -> StatusResponse:
    await settlement.close_sale(ledger=ledger, actor=actor, property_id=property_id)
    return StatusResponse(id=property_id, status=PropertyStatus.SOLD)
