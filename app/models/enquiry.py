from datetime import datetime

from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func
from sqlalchemy.types import DateTime

from app.models.base import Base, gen_id


class Enquiry(Base):
    __tablename__ = "enquiries"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("enq"))
    property_id: Mapped[str] = mapped_column(String, ForeignKey("properties.id"), nullable=False, index=True)
    # the listing's verifying agent at the time of the enquiry
    agent_id: Mapped[str | None] = mapped_column(String, ForeignKey("agents.id"), nullable=True, index=True)
    buyer_id: Mapped[str | None] = mapped_column(String, ForeignKey("users.id"), nullable=True)

    buyer_name: Mapped[str] = mapped_column(String(200), nullable=False)
    buyer_phone: Mapped[str] = mapped_column(String(40), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
