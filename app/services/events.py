from __future__ import annotations

from decimal import Decimal
from typing import Any

from app.models.outbox import OutboxEvent
from app.services.audit import audit
from app.services.auth import Actor
from app.services.ledger import LedgerTx


class EventType:
    PROPERTY_SUBMITTED = "property.submitted"
    PROPERTY_PRICED = "property.priced"
    PROPERTY_IMAGE_ATTACHED = "property.image_attached"
    PROPERTY_VERIFIED = "property.verified"
    BOOKING_HELD = "booking.held"
    BOOKING_CANCELLED = "booking.cancelled"
    PAYMENT_SUBMITTED = "payment.submitted"
    PAYMENT_VERIFIED = "payment.verified"
    PROPERTY_SOLD = "property.sold"


def _jsonable(detail: dict[str, Any]) -> dict[str, Any]:
    return {k: (str(v) if isinstance(v, Decimal) else v) for k, v in detail.items()}


def record_transition(
    tx: LedgerTx,
    *,
    actor: Actor,
    event_type: str,
    property_id: str,
    detail: dict[str, Any] | None = None,
) -> None:
    """
    Write the outbox event and the audit row for a committed transition.
    Both land in the caller's transaction, so they exist iff the transition commits.
    """
    payload = {"property_id": property_id, **_jsonable(detail or {})}
    tx.add(
        OutboxEvent(
            aggregate_type="property",
            aggregate_id=property_id,
            event_type=event_type,
            payload=payload,
            status="pending",
        )
    )
    audit(tx, actor=actor, action=event_type, target_type="property", target_id=property_id, detail=payload)
