from __future__ import annotations

import logging
from decimal import Decimal

from app.core.errors import AuthorizationError, ConflictError, NotFoundError, PreconditionError, ValidationError
from app.core.telemetry import get_tracer
from app.models.base import gen_id
from app.models.image import PropertyImage
from app.models.property import Property
from app.schemas.property import PropertyCreate
from app.services.access_policy import Operation, Role, authorize
from app.services.auth import Actor
from app.services.events import EventType, record_transition
from app.services.ledger import LedgerStore
from app.services.listing_state import (
    BookingStatus,
    ImageSource,
    PropertyPurpose,
    PropertyStatus,
    PropertyType,
    check_transition,
)

log = logging.getLogger(__name__)
tracer = get_tracer(__name__)

_REQUIRED_TEXT_FIELDS = ("title", "type", "purpose", "location", "description")


def _normalize_submission(fields: PropertyCreate) -> dict:
    values = {name: (getattr(fields, name) or "").strip() for name in _REQUIRED_TEXT_FIELDS}

    errors = [{"field": name, "error": "required"} for name, v in values.items() if not v]
    if values["type"] and values["type"].lower() not in PropertyType.ALL:
        errors.append({"field": "type", "error": f"must be one of {list(PropertyType.ALL)}"})
    if values["purpose"] and values["purpose"].lower() not in PropertyPurpose.ALL:
        errors.append({"field": "purpose", "error": f"must be one of {list(PropertyPurpose.ALL)}"})
    if fields.market_amount is None or fields.market_amount < 0:
        errors.append({"field": "market_amount", "error": "must be zero or positive"})
    if errors:
        raise ValidationError("Invalid property submission", details=errors)

    values["type"] = values["type"].lower()
    values["purpose"] = values["purpose"].lower()
    values["market_amount"] = fields.market_amount
    return values


async def submit_property(*, ledger: LedgerStore, actor: Actor, fields: PropertyCreate) -> str:
    """Create a listing owned by the submitting seller, in pending/available."""
    authorize(actor.role, Operation.SUBMIT_PROPERTY)
    values = _normalize_submission(fields)

    with tracer.start_as_current_span("ledger.submit_property"):
        property_id = gen_id("prp")
        async with ledger.transaction() as tx:
            tx.add(
                Property(
                    id=property_id,
                    seller_id=actor.principal_id,
                    status=PropertyStatus.PENDING,
                    booking_status=BookingStatus.AVAILABLE,
                    final_amount=None,
                    govt_amount=None,
                    created_by=actor.api_key_id,
                    updated_by=actor.api_key_id,
                    **values,
                )
            )
            await tx.flush()
            record_transition(
                tx,
                actor=actor,
                event_type=EventType.PROPERTY_SUBMITTED,
                property_id=property_id,
                detail={"seller_id": actor.principal_id},
            )

    log.info("property %s submitted by seller %s", property_id, actor.principal_id)
    return property_id


async def set_pricing(
    *,
    ledger: LedgerStore,
    actor: Actor,
    property_id: str,
    final_amount: Decimal,
    govt_amount: Decimal,
) -> None:
    """
    Fix the agent-set amounts. Allowed only while pending; a second call overwrites the
    first.
    """
    authorize(actor.role, Operation.SET_PRICING)
    errors = [
        {"field": name, "error": "must be positive"}
        for name, v in (("final_amount", final_amount), ("govt_amount", govt_amount))
        if v is None or v <= 0
    ]
    if errors:
        raise ValidationError("Invalid pricing", details=errors)

    with tracer.start_as_current_span("ledger.set_pricing") as span:
        span.set_attribute("property.id", property_id)
        async with ledger.transaction() as tx:
            prop = await tx.read_property(property_id)
            if prop is None:
                raise NotFoundError("Property not found")
            if prop.status != PropertyStatus.PENDING:
                raise ConflictError(f"Pricing is fixed once a listing is {prop.status}")

            ok = await tx.write_if_unchanged(
                Property,
                property_id,
                expected={"status": PropertyStatus.PENDING},
                values={"final_amount": final_amount, "govt_amount": govt_amount, "updated_by": actor.api_key_id},
            )
            if not ok:
                raise ConflictError("Property changed while pricing")

            record_transition(
                tx,
                actor=actor,
                event_type=EventType.PROPERTY_PRICED,
                property_id=property_id,
                detail={
                    "seller_id": prop.seller_id,
                    "market_amount": prop.market_amount,
                    "final_amount": final_amount,
                    "govt_amount": govt_amount,
                },
            )

    log.info("property %s priced final=%s govt=%s", property_id, final_amount, govt_amount)


async def attach_image(*, ledger: LedgerStore, actor: Actor, property_id: str, image_path: str) -> str:
    """
    Record an uploaded image for a listing. Sellers may only add to their own listing
    before verification; agents and admins may add while pending or live.
    """
    authorize(actor.role, Operation.ATTACH_IMAGE)
    image_path = (image_path or "").strip()
    if not image_path:
        raise ValidationError("Image path is required", details=[{"field": "image_path", "error": "required"}])

    source = ImageSource.SELLER if actor.role == Role.SELLER else ImageSource.AGENT

    with tracer.start_as_current_span("ledger.attach_image") as span:
        span.set_attribute("property.id", property_id)
        async with ledger.transaction() as tx:
            prop = await tx.read_property(property_id)
            if prop is None:
                raise NotFoundError("Property not found")

            if actor.role == Role.SELLER:
                if prop.seller_id != actor.principal_id:
                    raise AuthorizationError("Sellers can only add images to their own listings")
                if prop.status != PropertyStatus.PENDING:
                    raise ConflictError("Listing is already verified; images are managed by the agent")
            elif prop.status == PropertyStatus.SOLD:
                raise ConflictError("Listing is sold")

            image_id = gen_id("img")
            tx.add(PropertyImage(id=image_id, property_id=property_id, uploaded_by=source, image_path=image_path))
            await tx.flush()
            record_transition(
                tx,
                actor=actor,
                event_type=EventType.PROPERTY_IMAGE_ATTACHED,
                property_id=property_id,
                detail={"image_id": image_id, "uploaded_by": source},
            )

    log.info("image %s attached to property %s by %s", image_id, property_id, source)
    return image_id


async def verify_property(*, ledger: LedgerStore, actor: Actor, property_id: str) -> None:
    """
    pending -> live. Requires at least one image and both agent-set amounts, checked
    against the locked row. Not idempotent: verifying twice is a ConflictError.
    """
    authorize(actor.role, Operation.VERIFY_PROPERTY)

    with tracer.start_as_current_span("ledger.verify_property") as span:
        span.set_attribute("property.id", property_id)
        async with ledger.transaction() as tx:
            prop = await tx.read_property(property_id)
            if prop is None:
                raise NotFoundError("Property not found")
            check_transition(
                "property.status",
                prop.status,
                PropertyStatus.LIVE,
                message=f"Property is already {prop.status}",
            )

            if await tx.count_images_for(property_id) == 0:
                raise PreconditionError("Upload images before verification", details=[{"missing": "image"}])
            if prop.final_amount is None or prop.govt_amount is None:
                raise PreconditionError("Fix price before verification", details=[{"missing": "pricing"}])

            values = {"status": PropertyStatus.LIVE, "updated_by": actor.api_key_id}
            if actor.role == Role.AGENT:
                values["agent_id"] = actor.principal_id

            ok = await tx.write_if_unchanged(
                Property,
                property_id,
                expected={"status": PropertyStatus.PENDING},
                values=values,
            )
            if not ok:
                raise ConflictError("Property was verified concurrently")

            record_transition(
                tx,
                actor=actor,
                event_type=EventType.PROPERTY_VERIFIED,
                property_id=property_id,
                detail={"seller_id": prop.seller_id, "agent_id": values.get("agent_id")},
            )

    log.info("property %s verified by %s %s", property_id, actor.role, actor.principal_id)
