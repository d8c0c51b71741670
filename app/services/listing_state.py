from __future__ import annotations

from app.core.errors import ConflictError


class PropertyStatus:
    PENDING = "pending"
    LIVE = "live"
    SOLD = "sold"


class BookingStatus:
    """Values of both ``Property.booking_status`` and ``Booking.status`` share this namespace."""

    AVAILABLE = "available"
    HOLD = "hold"
    SOLD = "sold"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus:
    PAID = "paid"
    VERIFIED = "verified"


class PropertyType:
    ALL = ("house", "flat", "plot", "project", "commercial")


class PropertyPurpose:
    ALL = ("sale", "rent")


class ImageSource:
    SELLER = "seller"
    AGENT = "agent"


# state machine -> current -> allowed targets
_ALLOWED_TRANSITIONS: dict[str, dict[str, set[str]]] = {
    "property.status": {
        PropertyStatus.PENDING: {PropertyStatus.LIVE},
        PropertyStatus.LIVE: {PropertyStatus.SOLD},
        PropertyStatus.SOLD: set(),
    },
    "property.booking_status": {
        BookingStatus.AVAILABLE: {BookingStatus.HOLD},
        BookingStatus.HOLD: {BookingStatus.AVAILABLE, BookingStatus.SOLD},
        BookingStatus.SOLD: set(),
    },
    "booking.status": {
        BookingStatus.HOLD: {BookingStatus.COMPLETED, BookingStatus.CANCELLED},
        BookingStatus.COMPLETED: set(),
        BookingStatus.CANCELLED: set(),
    },
    "payment.status": {
        PaymentStatus.PAID: {PaymentStatus.VERIFIED},
        PaymentStatus.VERIFIED: set(),
    },
}


def can_transition(machine: str, current: str, target: str) -> bool:
    return target in _ALLOWED_TRANSITIONS[machine].get(current, set())


def check_transition(machine: str, current: str, target: str, *, message: str | None = None) -> None:
    """Raise ConflictError unless ``current -> target`` is an edge of ``machine``."""
    if not can_transition(machine, current, target):
        raise ConflictError(
            message or f"Invalid {machine} transition: {current} -> {target}",
            details=[{"machine": machine, "current": current, "target": target}],
        )


def is_publicly_visible(status: str) -> bool:
    return status == PropertyStatus.LIVE
