"""
Read models: public catalogue, listing detail, boards and dashboards.

Reads run on a plain request session and take no locks. The display image of a listing is
projected here at read time: agent uploads sort before seller uploads, oldest first.
"""
from __future__ import annotations

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFoundError
from app.models.agent import Agent
from app.models.booking import Booking
from app.models.feedback import AgentFeedback
from app.models.image import PropertyImage
from app.models.notification import Notification
from app.models.payment import Payment
from app.models.property import Property
from app.schemas.agent import AgentOut, AgentReportRow
from app.schemas.booking import BookingOut, BookingRow, PaymentOut
from app.schemas.dashboard import (
    AdminStats,
    AgentDashboardOut,
    AgentStats,
    LocalityCount,
    NotificationOut,
    PriceUpdate,
    SellerDashboardOut,
    SellerStats,
)
from app.schemas.property import ImageOut, PropertyCard, PropertyDetailOut, PropertyOut
from app.services.access_policy import Operation, Role, authorize
from app.services.auth import Actor
from app.services.enquiries import count_enquiries, list_enquiries
from app.services.listing_state import BookingStatus, ImageSource, PropertyStatus, is_publicly_visible

RECENT_LIMIT = 5
NOTIFICATION_LIMIT = 10
PRICE_UPDATE_LIMIT = 3
LOCALITY_LIMIT = 10


def _display_order():
    return (
        case((PropertyImage.uploaded_by == ImageSource.AGENT, 0), else_=1),
        PropertyImage.created_at.asc(),
        PropertyImage.id.asc(),
    )


def _main_image_subquery():
    return (
        select(PropertyImage.image_path)
        .where(PropertyImage.property_id == Property.id)
        .order_by(*_display_order())
        .limit(1)
        .correlate(Property)
        .scalar_subquery()
    )


async def list_public(
    db: AsyncSession,
    *,
    actor: Actor,
    type: str | None = None,
    purpose: str | None = None,
    location: str | None = None,
) -> list[PropertyCard]:
    authorize(actor.role, Operation.VIEW_PUBLIC_LISTINGS)

    stmt = select(Property, _main_image_subquery().label("main_image")).where(Property.status == PropertyStatus.LIVE)
    if type:
        stmt = stmt.where(Property.type == type.lower())
    if purpose:
        stmt = stmt.where(Property.purpose == purpose.lower())
    if location:
        stmt = stmt.where(Property.location.ilike(f"%{location}%"))
    stmt = stmt.order_by(Property.created_at.desc(), Property.id)

    rows = (await db.execute(stmt)).all()
    return [
        PropertyCard(**PropertyOut.model_validate(prop).model_dump(), main_image=main_image)
        for prop, main_image in rows
    ]


async def top_localities(db: AsyncSession, *, actor: Actor) -> list[LocalityCount]:
    authorize(actor.role, Operation.VIEW_PUBLIC_LISTINGS)
    total = func.count(Property.id).label("total")
    stmt = (
        select(Property.location, total)
        .where(Property.status == PropertyStatus.LIVE)
        .group_by(Property.location)
        .order_by(total.desc(), Property.location)
        .limit(LOCALITY_LIMIT)
    )
    return [LocalityCount(location=loc, total_properties=n) for loc, n in (await db.execute(stmt)).all()]


def _can_see(actor: Actor, prop: Property) -> bool:
    if is_publicly_visible(prop.status):
        return True
    if actor.role in (Role.AGENT, Role.ADMIN):
        return True
    return actor.role == Role.SELLER and prop.seller_id == actor.principal_id


async def get_detail(db: AsyncSession, *, actor: Actor, property_id: str) -> PropertyDetailOut:
    """Listing with its images in display order. Unverified listings are hidden from the public."""
    authorize(actor.role, Operation.VIEW_PUBLIC_LISTINGS)

    stmt = (
        select(Property, Agent.name, Agent.phone)
        .outerjoin(Agent, Agent.id == Property.agent_id)
        .where(Property.id == property_id)
    )
    row = (await db.execute(stmt)).one_or_none()
    if row is None or not _can_see(actor, row[0]):
        raise NotFoundError("Property not found")
    prop, agent_name, agent_phone = row

    images = (
        await db.execute(
            select(PropertyImage).where(PropertyImage.property_id == property_id).order_by(*_display_order())
        )
    ).scalars().all()

    return PropertyDetailOut(
        **PropertyOut.model_validate(prop).model_dump(),
        agent_name=agent_name,
        agent_phone=agent_phone,
        images=[ImageOut.model_validate(i) for i in images],
    )


async def list_seller_properties(db: AsyncSession, *, actor: Actor) -> list[PropertyOut]:
    authorize(actor.role, Operation.VIEW_OWN_LISTINGS)
    stmt = select(Property).where(Property.seller_id == actor.principal_id).order_by(Property.created_at.desc())
    return [PropertyOut.model_validate(p) for p in (await db.execute(stmt)).scalars().all()]


async def verification_queue(db: AsyncSession, *, actor: Actor) -> list[PropertyOut]:
    """All pending listings, oldest first."""
    authorize(actor.role, Operation.VIEW_AGENT_WORKSPACE)
    stmt = select(Property).where(Property.status == PropertyStatus.PENDING).order_by(Property.created_at.asc())
    return [PropertyOut.model_validate(p) for p in (await db.execute(stmt)).scalars().all()]


def _booking_rows_stmt():
    return (
        select(
            Booking.id,
            Booking.property_id,
            Property.title,
            Property.location,
            Property.booking_status,
            Booking.status,
            Booking.buyer_name,
            Booking.buyer_phone,
            Booking.buyer_email,
            Agent.name,
            Property.final_amount,
        )
        .join(Property, Property.id == Booking.property_id)
        .outerjoin(Agent, Agent.id == Property.agent_id)
        .order_by(Booking.created_at.desc(), Booking.id)
    )


def _to_booking_rows(rows) -> list[BookingRow]:
    return [
        BookingRow(
            booking_id=r[0],
            property_id=r[1],
            property_name=r[2],
            location=r[3],
            booking_status=r[4],
            status=r[5],
            buyer_name=r[6],
            buyer_phone=r[7],
            buyer_email=r[8],
            agent_name=r[9],
            final_amount=r[10],
        )
        for r in rows
    ]


async def agent_bookings(db: AsyncSession, *, actor: Actor) -> list[BookingRow]:
    """Bookings on the listings an agent verified. Admins see every booking."""
    authorize(actor.role, Operation.VIEW_AGENT_WORKSPACE)
    stmt = _booking_rows_stmt()
    if actor.role == Role.AGENT:
        stmt = stmt.where(Property.agent_id == actor.principal_id)
    return _to_booking_rows((await db.execute(stmt)).all())


async def admin_bookings(db: AsyncSession, *, actor: Actor) -> list[BookingRow]:
    authorize(actor.role, Operation.VIEW_REPORTS)
    return _to_booking_rows((await db.execute(_booking_rows_stmt())).all())


async def buyer_bookings(db: AsyncSession, *, actor: Actor) -> list[BookingOut]:
    """The calling member's own bookings, newest first."""
    authorize(actor.role, Operation.VIEW_OWN_BOOKINGS)
    stmt = (
        select(Booking)
        .where(Booking.buyer_id == actor.principal_id)
        .order_by(Booking.created_at.desc(), Booking.id)
    )
    return [BookingOut.model_validate(b) for b in (await db.execute(stmt)).scalars().all()]


async def booking_payments(db: AsyncSession, *, actor: Actor, booking_id: str) -> list[PaymentOut]:
    authorize(actor.role, Operation.VIEW_PAYMENTS)
    if await db.get(Booking, booking_id) is None:
        raise NotFoundError("Booking not found")
    stmt = select(Payment).where(Payment.booking_id == booking_id).order_by(Payment.created_at.asc(), Payment.id)
    return [PaymentOut.model_validate(p) for p in (await db.execute(stmt)).scalars().all()]


async def list_agents(db: AsyncSession, *, actor: Actor, status: str | None = None) -> list[AgentOut]:
    authorize(actor.role, Operation.MANAGE_AGENTS)
    stmt = select(Agent).order_by(Agent.created_at.asc(), Agent.id)
    if status:
        stmt = stmt.where(Agent.status == status)
    return [AgentOut.model_validate(a) for a in (await db.execute(stmt)).scalars().all()]


async def agent_report(db: AsyncSession, *, actor: Actor) -> list[AgentReportRow]:
    """Listings verified per agent, agents without any included."""
    authorize(actor.role, Operation.VIEW_REPORTS)
    total = func.count(Property.id).label("total")
    rating = (
        select(func.avg(AgentFeedback.rating))
        .where(AgentFeedback.agent_id == Agent.id)
        .correlate(Agent)
        .scalar_subquery()
    )
    ratings = (
        select(func.count(AgentFeedback.id))
        .where(AgentFeedback.agent_id == Agent.id)
        .correlate(Agent)
        .scalar_subquery()
    )
    stmt = (
        select(Agent.id, Agent.name, total, rating, ratings)
        .outerjoin(Property, Property.agent_id == Agent.id)
        .group_by(Agent.id, Agent.name)
        .order_by(total.desc(), Agent.name)
    )
    return [
        AgentReportRow(
            agent_id=i,
            name=n,
            total_properties=t,
            average_rating=round(float(avg), 2) if avg is not None else None,
            feedback_count=int(c or 0),
        )
        for i, n, t, avg, c in (await db.execute(stmt)).all()
    ]


async def _count(db: AsyncSession, *criteria, model=Property) -> int:
    stmt = select(func.count()).select_from(model).where(*criteria)
    return int((await db.execute(stmt)).scalar_one())


async def admin_stats(db: AsyncSession, *, actor: Actor) -> AdminStats:
    authorize(actor.role, Operation.VIEW_REPORTS)
    return AdminStats(
        total_agents=await _count(db, model=Agent),
        pending_agents=await _count(db, Agent.status == "pending", model=Agent),
        total_properties=await _count(db),
        live_properties=await _count(db, Property.status == PropertyStatus.LIVE),
        sold_properties=await _count(db, Property.status == PropertyStatus.SOLD),
    )


async def seller_dashboard(db: AsyncSession, *, actor: Actor) -> SellerDashboardOut:
    authorize(actor.role, Operation.VIEW_OWN_LISTINGS)
    own = Property.seller_id == actor.principal_id

    stats = SellerStats(
        total_listings=await _count(db, own),
        active_properties=await _count(db, own, Property.status == PropertyStatus.LIVE),
        sold_properties=await _count(db, own, Property.booking_status == BookingStatus.SOLD),
    )

    recent = (
        await db.execute(
            select(Property)
            .where(own, (Property.status == PropertyStatus.LIVE) | (Property.booking_status == BookingStatus.HOLD))
            .order_by(Property.created_at.desc())
            .limit(RECENT_LIMIT)
        )
    ).scalars().all()

    priced = (
        await db.execute(
            select(Property)
            .where(own, Property.final_amount.is_not(None))
            .order_by(Property.updated_at.desc())
            .limit(PRICE_UPDATE_LIMIT)
        )
    ).scalars().all()

    notes = (
        await db.execute(
            select(Notification)
            .where(Notification.user_id == actor.principal_id)
            .order_by(Notification.created_at.desc(), Notification.id)
            .limit(NOTIFICATION_LIMIT)
        )
    ).scalars().all()

    return SellerDashboardOut(
        stats=stats,
        recent_properties=[PropertyOut.model_validate(p) for p in recent],
        price_updates=[
            PriceUpdate(property_id=p.id, title=p.title, market_amount=p.market_amount, final_amount=p.final_amount)
            for p in priced
        ],
        notifications=[NotificationOut.model_validate(n) for n in notes],
    )


async def agent_dashboard(db: AsyncSession, *, actor: Actor) -> AgentDashboardOut:
    authorize(actor.role, Operation.VIEW_AGENT_WORKSPACE)
    mine = Property.agent_id == actor.principal_id

    active = (
        select(func.count())
        .select_from(Booking)
        .join(Property, Property.id == Booking.property_id)
        .where(mine, Booking.status == BookingStatus.HOLD)
    )
    stats = AgentStats(
        total_properties=await _count(db, mine),
        live_properties=await _count(db, mine, Property.status == PropertyStatus.LIVE),
        active_bookings=int((await db.execute(active)).scalar_one()),
        enquiries_count=await count_enquiries(db, agent_id=actor.principal_id),
    )

    properties = (
        await db.execute(select(Property).where(mine).order_by(Property.created_at.desc()))
    ).scalars().all()

    return AgentDashboardOut(
        stats=stats,
        properties=[PropertyOut.model_validate(p) for p in properties],
        verification_queue=await verification_queue(db, actor=actor),
        bookings=await agent_bookings(db, actor=actor),
        enquiries=await list_enquiries(db, actor=actor),
    )
