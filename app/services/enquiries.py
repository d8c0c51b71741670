"""
Buyer enquiries on live listings and buyer feedback on agents.

Neither touches listing state, so both run on the request session rather than through a
ledger transaction.
"""
from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFoundError, ValidationError
from app.models.agent import Agent
from app.models.enquiry import Enquiry
from app.models.feedback import AgentFeedback
from app.models.property import Property
from app.schemas.enquiry import EnquiryCreate, EnquiryOut, FeedbackCreate
from app.services.access_policy import Operation, Role, authorize
from app.services.auth import Actor
from app.services.listing_state import is_publicly_visible

log = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5


def _required(**fields: str | None) -> None:
    errors = [{"field": name, "error": "required"} for name, value in fields.items() if not (value or "").strip()]
    if errors:
        raise ValidationError("Missing required fields", details=errors)


async def submit_enquiry(db: AsyncSession, *, actor: Actor, property_id: str, enquiry: EnquiryCreate) -> str:
    """Route a buyer's question to the agent who verified the listing."""
    authorize(actor.role, Operation.SEND_ENQUIRY)
    _required(name=enquiry.name, phone=enquiry.phone, message=enquiry.message)

    prop = await db.get(Property, property_id)
    if prop is None or not is_publicly_visible(prop.status):
        raise NotFoundError("Property not found")

    row = Enquiry(
        property_id=property_id,
        agent_id=prop.agent_id,
        buyer_id=actor.principal_id,
        buyer_name=enquiry.name.strip(),
        buyer_phone=enquiry.phone.strip(),
        message=enquiry.message.strip(),
    )
    db.add(row)
    await db.commit()
    log.info("enquiry %s on property %s for agent %s", row.id, property_id, row.agent_id)
    return row.id


def _enquiries_stmt(actor: Actor):
    stmt = (
        select(Enquiry)
        .order_by(Enquiry.created_at.desc(), Enquiry.id)
        .execution_options(populate_existing=True)
    )
    if actor.role == Role.AGENT:
        stmt = stmt.where(Enquiry.agent_id == actor.principal_id)
    return stmt


async def list_enquiries(db: AsyncSession, *, actor: Actor) -> list[EnquiryOut]:
    """An agent sees enquiries on the listings they verified; admins see all of them."""
    authorize(actor.role, Operation.VIEW_AGENT_WORKSPACE)
    return [EnquiryOut.model_validate(e) for e in (await db.execute(_enquiries_stmt(actor))).scalars().all()]


async def count_enquiries(db: AsyncSession, *, agent_id: str) -> int:
    stmt = select(func.count()).select_from(Enquiry).where(Enquiry.agent_id == agent_id)
    return int((await db.execute(stmt)).scalar_one())


async def submit_feedback(db: AsyncSession, *, actor: Actor, agent_id: str, feedback: FeedbackCreate) -> AgentFeedback:
    authorize(actor.role, Operation.RATE_AGENT)
    if not MIN_RATING <= feedback.rating <= MAX_RATING:
        raise ValidationError(
            f"Rating must be between {MIN_RATING} and {MAX_RATING}",
            details=[{"field": "rating", "error": "out of range"}],
        )

    agent = await db.get(Agent, agent_id)
    if agent is None or agent.status != "approved":
        raise NotFoundError("Agent not found")

    comment = (feedback.comment or "").strip() or None
    row = AgentFeedback(agent_id=agent_id, user_id=actor.principal_id, rating=feedback.rating, comment=comment)
    db.add(row)
    await db.commit()
    log.info("feedback %s for agent %s: %d", row.id, agent_id, row.rating)
    return row
