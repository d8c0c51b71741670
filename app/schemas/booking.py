from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict


class BookingCreate(BaseModel):
    name: str
    phone: str
    email: str | None = None


class BookingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    property_id: str
    buyer_id: str | None
    buyer_name: str
    buyer_phone: str
    buyer_email: str | None
    status: str


class BookingRow(BaseModel):
    """Booking joined with its listing, for agent and admin boards."""

    booking_id: str
    property_id: str
    property_name: str
    location: str
    booking_status: str
    status: str
    buyer_name: str
    buyer_phone: str
    buyer_email: str | None
    agent_name: str | None = None
    final_amount: Decimal | None = None


class PaymentCreate(BaseModel):
    amount: Decimal


class PaymentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    property_id: str
    booking_id: str
    amount: Decimal
    payment_status: str
    verified_by: str | None
    verified_at: datetime | None
