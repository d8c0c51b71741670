from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict


class PropertyCreate(BaseModel):
    title: str
    type: str
    purpose: str
    location: str
    description: str
    market_amount: Decimal = Decimal("0")


class PricingIn(BaseModel):
    final_amount: Decimal
    govt_amount: Decimal


class PropertyOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    seller_id: str
    agent_id: str | None
    title: str
    type: str
    purpose: str
    location: str
    description: str
    market_amount: Decimal
    final_amount: Decimal | None
    govt_amount: Decimal | None
    status: str
    booking_status: str
    created_at: datetime | None = None


class ImageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    uploaded_by: str
    image_path: str


class PropertyCard(PropertyOut):
    main_image: str | None = None


class PropertyDetailOut(PropertyOut):
    agent_name: str | None = None
    agent_phone: str | None = None
    images: list[ImageOut] = []
