from decimal import Decimal

from sqlalchemy import ForeignKey, Index, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import AuditMixin, Base, gen_id


class Property(AuditMixin, Base):
    __tablename__ = "properties"
    __table_args__ = (
        Index("ix_properties_status", "status"),
        Index("ix_properties_seller", "seller_id"),
        Index("ix_properties_agent", "agent_id"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("prp"))

    seller_id: Mapped[str] = mapped_column(String, ForeignKey("users.id"), nullable=False)
    # set by verification
    agent_id: Mapped[str | None] = mapped_column(String, ForeignKey("agents.id"), nullable=True)

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    type: Mapped[str] = mapped_column(String(30), nullable=False)
    purpose: Mapped[str] = mapped_column(String(20), nullable=False)
    location: Mapped[str] = mapped_column(String(300), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)

    # seller's ask
    market_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    # agent-set; both required before the listing can go live
    final_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    govt_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)

    # "pending" | "live" | "sold"
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    # "available" | "hold" | "sold"
    booking_status: Mapped[str] = mapped_column(String(20), nullable=False, default="available")
