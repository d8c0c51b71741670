from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.schemas.dashboard import AgentDashboardOut, SellerDashboardOut
from app.services import listing_queries
from app.services.auth import Actor, get_actor

router = APIRouter()


@router.get("/me/dashboard", response_model=SellerDashboardOut)
async def seller_dashboard(actor: Actor = Depends(get_actor), db: AsyncSession = Depends(get_db)) -> SellerDashboardOut:
    return await listing_queries.seller_dashboard(db, actor=actor)


@router.get("/agent/dashboard", response_model=AgentDashboardOut)
async def agent_dashboard(actor: Actor = Depends(get_actor), db: AsyncSession = Depends(get_db)) -> AgentDashboardOut:
    return await listing_queries.agent_dashboard(db, actor=actor)
