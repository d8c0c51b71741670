from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict

from app.schemas.booking import BookingRow
from app.schemas.enquiry import EnquiryOut
from app.schemas.property import PropertyOut


class NotificationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    kind: str
    message: str
    property_id: str | None
    created_at: datetime | None


class SellerStats(BaseModel):
    total_listings: int
    active_properties: int
    sold_properties: int


class PriceUpdate(BaseModel):
    property_id: str
    title: str
    market_amount: Decimal
    final_amount: Decimal


class SellerDashboardOut(BaseModel):
    stats: SellerStats
    recent_properties: list[PropertyOut]
    price_updates: list[PriceUpdate]
    notifications: list[NotificationOut]


class AgentStats(BaseModel):
    total_properties: int
    live_properties: int
    active_bookings: int
    enquiries_count: int


class AgentDashboardOut(BaseModel):
    stats: AgentStats
    properties: list[PropertyOut]
    verification_queue: list[PropertyOut]
    bookings: list[BookingRow]
    enquiries: list[EnquiryOut]


class AdminStats(BaseModel):
    total_agents: int
    pending_agents: int
    total_properties: int
    live_properties: int
    sold_properties: int


class LocalityCount(BaseModel):
    location: str
    total_properties: int
