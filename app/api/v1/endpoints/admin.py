import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.core.errors import NotFoundError
from app.core.security import hash_password
from app.models.agent import Agent
from app.schemas.agent import AgentCreate, AgentOut, AgentReportRow
from app.schemas.booking import BookingRow
from app.schemas.dashboard import AdminStats
from app.services import listing_queries
from app.services.access_policy import Operation, Role, authorize
from app.services.audit import audit
from app.services.auth import Actor, get_actor
from app.services.credentials import revoke_keys

log = logging.getLogger(__name__)
router = APIRouter(prefix="/admin")


@router.post("/agents", response_model=AgentOut, status_code=status.HTTP_201_CREATED)
async def create_agent(
    payload: AgentCreate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
) -> AgentOut:
    """Agents added by an admin are approved immediately."""
    authorize(actor.role, Operation.MANAGE_AGENTS)

    agent = Agent(
        name=payload.name.strip(),
        email=str(payload.email).lower(),
        phone=payload.phone.strip(),
        area=payload.area,
        license_no=payload.license_no,
        password_hash=hash_password(payload.password),
        status="approved",
        created_by=actor.api_key_id,
        updated_by=actor.api_key_id,
    )
    try:
        db.add(agent)
        await db.flush()
        audit(db, actor=actor, action="agent.created", target_type="agent", target_id=agent.id)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        log.info("agent creation rejected: email already in use")
        raise HTTPException(status_code=409, detail="Email already registered")

    log.info("agent %s created by admin %s", agent.id, actor.principal_id)
    return AgentOut.model_validate(agent)


@router.get("/agents", response_model=list[AgentOut])
async def list_agents(
    status: str | None = None,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
) -> list[AgentOut]:
    return await listing_queries.list_agents(db, actor=actor, status=status)


async def _set_agent_status(db: AsyncSession, *, actor: Actor, agent_id: str, new_status: str) -> Agent:
    authorize(actor.role, Operation.MANAGE_AGENTS)

    agent = (await db.execute(select(Agent).where(Agent.id == agent_id))).scalar_one_or_none()
    if agent is None:
        raise NotFoundError("Agent not found")

    agent.status = new_status
    agent.updated_by = actor.api_key_id
    revoked = 0
    if new_status == "rejected":
        revoked = await revoke_keys(db, role=Role.AGENT, principal_id=agent_id)
    audit(
        db,
        actor=actor,
        action=f"agent.{new_status}",
        target_type="agent",
        target_id=agent_id,
        detail={"revoked_keys": revoked},
    )
    await db.commit()
    log.info("agent %s %s by admin %s", agent_id, new_status, actor.principal_id)
    return agent


@router.post("/agents/{agent_id}/approve", response_model=AgentOut)
async def approve_agent(
    agent_id: str,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
) -> AgentOut:
    agent = await _set_agent_status(db, actor=actor, agent_id=agent_id, new_status="approved")
    return AgentOut.model_validate(agent)


@router.post("/agents/{agent_id}/reject", response_model=AgentOut)
async def reject_agent(
    agent_id: str,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
) -> AgentOut:
    agent = await _set_agent_status(db, actor=actor, agent_id=agent_id, new_status="rejected")
    return AgentOut.model_validate(agent)


@router.get("/bookings", response_model=list[BookingRow])
async def all_bookings(actor: Actor = Depends(get_actor), db: AsyncSession = Depends(get_db)) -> list[BookingRow]:
    return await listing_queries.admin_bookings(db, actor=actor)


@router.get("/reports", response_model=list[AgentReportRow])
async def agent_report(actor: Actor = Depends(get_actor), db: AsyncSession = Depends(get_db)) -> list[AgentReportRow]:
    return await listing_queries.agent_report(db, actor=actor)


@router.get("/stats", response_model=AdminStats)
async def stats(actor: Actor = Depends(get_actor), db: AsyncSession = Depends(get_db)) -> AdminStats:
    return await listing_queries.admin_stats(db, actor=actor)
