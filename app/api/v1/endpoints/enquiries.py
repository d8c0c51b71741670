from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.schemas.common import IdResponse
from app.schemas.enquiry import EnquiryCreate, EnquiryOut, FeedbackCreate, FeedbackOut
from app.services import enquiries
from app.services.auth import Actor, get_actor, get_optional_actor

router = APIRouter()


@router.post("/properties/{property_id}/enquiries", response_model=IdResponse, status_code=status.HTTP_201_CREATED)
async def send_enquiry(
    property_id: str,
    payload: EnquiryCreate,
    actor: Actor = Depends(get_optional_actor),
    db: AsyncSession = Depends(get_db),
) -> IdResponse:
    enquiry_id = await enquiries.submit_enquiry(db, actor=actor, property_id=property_id, enquiry=payload)
    return IdResponse(id=enquiry_id)


@router.get("/agent/enquiries", response_model=list[EnquiryOut])
async def agent_enquiries(actor: Actor = Depends(get_actor), db: AsyncSession = Depends(get_db)) -> list[EnquiryOut]:
    return await enquiries.list_enquiries(db, actor=actor)


@router.post("/agents/{agent_id}/feedback", response_model=FeedbackOut, status_code=status.HTTP_201_CREATED)
async def rate_agent(
    agent_id: str,
    payload: FeedbackCreate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
) -> FeedbackOut:
    row = await enquiries.submit_feedback(db, actor=actor, agent_id=agent_id, feedback=payload)
    return FeedbackOut.model_validate(row)
