from dataclasses import dataclass

from fastapi import Depends, HTTPException, Security
from fastapi.security.api_key import APIKeyHeader
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.core.security import hash_api_key
from app.models.api_key import ApiKey
from app.services.access_policy import Role

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


@dataclass(frozen=True)
class Actor:
    role: str  # "seller" | "agent" | "admin" | "anonymous"
    principal_id: str | None
    api_key_id: str | None = None


ANONYMOUS = Actor(role=Role.ANONYMOUS, principal_id=None)


async def _resolve(api_key: str, db: AsyncSession) -> Actor:
    hashed = hash_api_key(api_key)
    stmt = select(ApiKey).where(ApiKey.key_hash == hashed, ApiKey.is_active.is_(True))
    row = (await db.execute(stmt)).scalar_one_or_none()
    actor = Actor(role=row.role, principal_id=row.principal_id, api_key_id=row.id) if row else None
    # release the read transaction; engine operations run in their own
    await db.rollback()
    if actor is None:
        raise HTTPException(status_code=401, detail="Invalid API key")
    return actor


async def get_actor(
    api_key: str | None = Security(api_key_header),
    db: AsyncSession = Depends(get_db),
) -> Actor:
    if not api_key:
        raise HTTPException(status_code=401, detail="Missing X-API-Key")
    return await _resolve(api_key, db)


async def get_optional_actor(
    api_key: str | None = Security(api_key_header),
    db: AsyncSession = Depends(get_db),
) -> Actor:
    if not api_key:
        return ANONYMOUS
    return await _resolve(api_key, db)


def require_admin(actor: Actor = Depends(get_actor)) -> Actor:
    if actor.role != Role.ADMIN:
        raise HTTPException(status_code=403, detail="Admin role required")
    return actor
