from decimal import Decimal

import pytest
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from sqlalchemy import func, select

from app.core.errors import AuthorizationError, ConflictError, NotFoundError, PreconditionError, ValidationError
from app.models.audit_log import AuditLog
from app.models.image import PropertyImage
from app.models.outbox import OutboxEvent
from app.models.property import Property
from app.services import listing_lifecycle
from app.services.listing_state import BookingStatus, PropertyStatus


async def _read(ledger, property_id) -> Property:
    async with ledger.transaction() as tx:
        return await tx.read_property(property_id, for_update=False)


async def test_submit_creates_pending_available_listing(ledger, seed, make_property):
    property_id = await listing_lifecycle.submit_property(
        ledger=ledger, actor=seed["seller"], fields=make_property(type="FLAT")
    )

    prop = await _read(ledger, property_id)
    assert prop.status == PropertyStatus.PENDING
    assert prop.booking_status == BookingStatus.AVAILABLE
    assert prop.seller_id == seed["seller"].principal_id
    assert prop.type == "flat"
    assert prop.final_amount is None and prop.govt_amount is None
    assert prop.agent_id is None


async def test_submit_rejects_missing_fields(ledger, seed, make_property):
    with pytest.raises(ValidationError) as exc:
        await listing_lifecycle.submit_property(
            ledger=ledger, actor=seed["seller"], fields=make_property(title="  ", purpose="barter")
        )
    fields = {d["field"] for d in exc.value.details}
    assert fields == {"title", "purpose"}


async def test_submit_is_seller_only(ledger, seed, make_property):
    with pytest.raises(AuthorizationError):
        await listing_lifecycle.submit_property(ledger=ledger, actor=seed["agent"], fields=make_property())


async def test_set_pricing_twice_overwrites(ledger, seed, pending_property):
    agent = seed["agent"]
    for final, govt in (("100", "90"), ("110", "95")):
        await listing_lifecycle.set_pricing(
            ledger=ledger,
            actor=agent,
            property_id=pending_property,
            final_amount=Decimal(final),
            govt_amount=Decimal(govt),
        )

    prop = await _read(ledger, pending_property)
    assert prop.final_amount == Decimal("110")
    assert prop.govt_amount == Decimal("95")
    assert prop.status == PropertyStatus.PENDING


async def test_set_pricing_rejects_non_positive_amounts(ledger, seed, pending_property):
    with pytest.raises(ValidationError):
        await listing_lifecycle.set_pricing(
            ledger=ledger,
            actor=seed["agent"],
            property_id=pending_property,
            final_amount=Decimal("0"),
            govt_amount=Decimal("90"),
        )


async def test_set_pricing_by_seller_is_denied(ledger, seed, pending_property):
    with pytest.raises(AuthorizationError):
        await listing_lifecycle.set_pricing(
            ledger=ledger,
            actor=seed["seller"],
            property_id=pending_property,
            final_amount=Decimal("100"),
            govt_amount=Decimal("90"),
        )


async def test_set_pricing_after_verification_conflicts(ledger, seed, live_property):
    with pytest.raises(ConflictError):
        await listing_lifecycle.set_pricing(
            ledger=ledger,
            actor=seed["agent"],
            property_id=live_property,
            final_amount=Decimal("1"),
            govt_amount=Decimal("1"),
        )


async def test_verify_without_image_keeps_pending(ledger, seed, pending_property):
    agent = seed["agent"]
    await listing_lifecycle.set_pricing(
        ledger=ledger, actor=agent, property_id=pending_property, final_amount=Decimal("100"), govt_amount=Decimal("90")
    )

    with pytest.raises(PreconditionError) as exc:
        await listing_lifecycle.verify_property(ledger=ledger, actor=agent, property_id=pending_property)
    assert "image" in exc.value.message.lower()

    prop = await _read(ledger, pending_property)
    assert prop.status == PropertyStatus.PENDING
    assert prop.agent_id is None


async def test_verify_without_pricing_keeps_pending(ledger, seed, pending_property):
    agent = seed["agent"]
    await listing_lifecycle.attach_image(
        ledger=ledger, actor=seed["seller"], property_id=pending_property, image_path="file:///img/a.jpg"
    )

    with pytest.raises(PreconditionError) as exc:
        await listing_lifecycle.verify_property(ledger=ledger, actor=agent, property_id=pending_property)
    assert "price" in exc.value.message.lower()
    assert (await _read(ledger, pending_property)).status == PropertyStatus.PENDING


async def test_verify_goes_live_and_records_agent(ledger, seed, live_property):
    prop = await _read(ledger, live_property)
    assert prop.status == PropertyStatus.LIVE
    assert prop.booking_status == BookingStatus.AVAILABLE
    assert prop.agent_id == seed["agent"].principal_id
    # a live listing always carries both amounts and an image
    assert prop.final_amount is not None and prop.govt_amount is not None
    async with ledger.transaction() as tx:
        assert await tx.count_images_for(live_property) >= 1


async def test_second_verify_conflicts_and_keeps_agent(ledger, seed, live_property):
    with pytest.raises(ConflictError):
        await listing_lifecycle.verify_property(ledger=ledger, actor=seed["admin"], property_id=live_property)

    prop = await _read(ledger, live_property)
    assert prop.agent_id == seed["agent"].principal_id


async def test_admin_verification_leaves_agent_unset(ledger, seed, pending_property):
    admin = seed["admin"]
    await listing_lifecycle.set_pricing(
        ledger=ledger, actor=admin, property_id=pending_property, final_amount=Decimal("5"), govt_amount=Decimal("4")
    )
    await listing_lifecycle.attach_image(
        ledger=ledger, actor=admin, property_id=pending_property, image_path="file:///img/b.jpg"
    )
    await listing_lifecycle.verify_property(ledger=ledger, actor=admin, property_id=pending_property)

    prop = await _read(ledger, pending_property)
    assert prop.status == PropertyStatus.LIVE
    assert prop.agent_id is None


async def test_verify_unknown_property(ledger, seed):
    with pytest.raises(NotFoundError):
        await listing_lifecycle.verify_property(ledger=ledger, actor=seed["agent"], property_id="prp_missing")


async def test_seller_cannot_add_images_to_someone_elses_listing(ledger, seed, pending_property):
    with pytest.raises(AuthorizationError):
        await listing_lifecycle.attach_image(
            ledger=ledger, actor=seed["buyer"], property_id=pending_property, image_path="file:///img/x.jpg"
        )


async def test_seller_cannot_add_images_after_verification(ledger, seed, live_property):
    with pytest.raises(ConflictError):
        await listing_lifecycle.attach_image(
            ledger=ledger, actor=seed["seller"], property_id=live_property, image_path="file:///img/late.jpg"
        )


async def test_agent_can_add_images_to_live_listing(ledger, seed, live_property, db_session):
    await listing_lifecycle.attach_image(
        ledger=ledger, actor=seed["agent"], property_id=live_property, image_path="file:///img/extra.jpg"
    )
    count = (
        await db_session.execute(
            select(func.count()).select_from(PropertyImage).where(PropertyImage.property_id == live_property)
        )
    ).scalar_one()
    assert count == 2


async def test_transitions_write_outbox_and_audit(ledger, seed, live_property, db_session):
    events = (
        await db_session.execute(
            select(OutboxEvent.event_type).where(OutboxEvent.aggregate_id == live_property).order_by(OutboxEvent.created_at)
        )
    ).scalars().all()
    assert set(events) == {"property.submitted", "property.priced", "property.image_attached", "property.verified"}

    actions = (
        await db_session.execute(select(AuditLog.action).where(AuditLog.target_id == live_property))
    ).scalars().all()
    assert len(actions) == 4


async def test_rejected_transition_writes_nothing(ledger, seed, pending_property, db_session):
    with pytest.raises(PreconditionError):
        await listing_lifecycle.verify_property(ledger=ledger, actor=seed["agent"], property_id=pending_property)

    verified = (
        await db_session.execute(
            select(func.count()).select_from(OutboxEvent).where(OutboxEvent.event_type == "property.verified")
        )
    ).scalar_one()
    assert verified == 0


async def test_lifecycle_operations_are_traced(ledger, seed, pending_property, monkeypatch):
    exporter = InMemorySpanExporter()
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    monkeypatch.setattr(listing_lifecycle, "tracer", provider.get_tracer("test"))

    agent = seed["agent"]
    await listing_lifecycle.set_pricing(
        ledger=ledger, actor=agent, property_id=pending_property, final_amount=Decimal("100"), govt_amount=Decimal("90")
    )
    await listing_lifecycle.attach_image(
        ledger=ledger, actor=agent, property_id=pending_property, image_path="file:///img/side.jpg"
    )
    await listing_lifecycle.verify_property(ledger=ledger, actor=agent, property_id=pending_property)

    spans = exporter.get_finished_spans()
    assert [s.name for s in spans] == ["ledger.set_pricing", "ledger.attach_image", "ledger.verify_property"]
    assert all(s.attributes["property.id"] == pending_property for s in spans)
