from datetime import datetime
from decimal import Decimal

from sqlalchemy import ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import DateTime

from app.models.base import AuditMixin, Base, gen_id


class Payment(AuditMixin, Base):
    __tablename__ = "payments"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("pay"))
    property_id: Mapped[str] = mapped_column(String, ForeignKey("properties.id"), nullable=False, index=True)
    booking_id: Mapped[str] = mapped_column(String, ForeignKey("bookings.id"), nullable=False, index=True)

    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)

    # "paid" (buyer's claim) | "verified" (confirmed by an agent or admin)
    payment_status: Mapped[str] = mapped_column(String(20), nullable=False, default="paid")

    verified_by: Mapped[str | None] = mapped_column(String, nullable=True)
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
