from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.schemas.account import SessionCreate, SessionOut
from app.services.credentials import sign_in

router = APIRouter()


@router.post("/sessions", response_model=SessionOut, status_code=status.HTTP_201_CREATED)
async def create_session(payload: SessionCreate, db: AsyncSession = Depends(get_db)) -> SessionOut:
    """Exchange role + email + password for an API key. The plain key is shown once."""
    principal, key = await sign_in(db, role=payload.role, email=str(payload.email), password=payload.password)
    return SessionOut(role=principal.role, principal_id=principal.id, api_key=key.plain, key_prefix=key.prefix)
