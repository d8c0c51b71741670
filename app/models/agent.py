from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import AuditMixin, Base, gen_id


class Agent(AuditMixin, Base):
    __tablename__ = "agents"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("agt"))

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    phone: Mapped[str] = mapped_column(String(40), nullable=False)
    area: Mapped[str | None] = mapped_column(String(200), nullable=True)
    license_no: Mapped[str | None] = mapped_column(String(80), nullable=True)
    password_hash: Mapped[str] = mapped_column(String(200), nullable=False)

    # "pending" | "approved" | "rejected"; only approved agents can sign in
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
