from datetime import datetime

from pydantic import BaseModel, ConfigDict


class EnquiryCreate(BaseModel):
    name: str
    phone: str
    message: str


class EnquiryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    property_id: str
    agent_id: str | None
    buyer_name: str
    buyer_phone: str
    message: str
    created_at: datetime | None


class FeedbackCreate(BaseModel):
    rating: int
    comment: str | None = None


class FeedbackOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    agent_id: str
    rating: int
    comment: str | None
