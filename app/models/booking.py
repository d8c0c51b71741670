from sqlalchemy import ForeignKey, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import AuditMixin, Base, gen_id


class Booking(AuditMixin, Base):
    __tablename__ = "bookings"
    __table_args__ = (
        # at most one hold per property, enforced by the store as well as by the reservation CAS
        Index(
            "uq_bookings_one_hold_per_property",
            "property_id",
            unique=True,
            postgresql_where=text("status = 'hold'"),
            sqlite_where=text("status = 'hold'"),
        ),
        Index("ix_bookings_property", "property_id"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("bkg"))
    property_id: Mapped[str] = mapped_column(String, ForeignKey("properties.id"), nullable=False)
    buyer_id: Mapped[str | None] = mapped_column(String, ForeignKey("users.id"), nullable=True)

    buyer_name: Mapped[str] = mapped_column(String(200), nullable=False)
    buyer_phone: Mapped[str] = mapped_column(String(40), nullable=False)
    buyer_email: Mapped[str | None] = mapped_column(String(320), nullable=True)

    # "hold" | "completed" | "cancelled"
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="hold")
