import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.core.security import hash_password
from app.models.admin import Admin
from app.models.agent import Agent
from app.models.user import User
from app.schemas.account import AdminBootstrap, AdminOut, UserCreate, UserOut
from app.schemas.agent import AgentCreate, AgentOut
from app.services.internal_admin import require_internal_admin

log = logging.getLogger(__name__)
router = APIRouter()


def _required(**fields: str) -> None:
    missing = [name for name, value in fields.items() if not (value or "").strip()]
    if missing:
        raise HTTPException(status_code=422, detail=f"Missing required fields: {', '.join(missing)}")


async def _commit_new(db: AsyncSession, row, what: str) -> None:
    try:
        db.add(row)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        log.info("%s registration rejected: email already in use", what)
        raise HTTPException(status_code=409, detail="Email already registered")


@router.post("/users", response_model=UserOut, status_code=status.HTTP_201_CREATED)
async def register_user(payload: UserCreate, db: AsyncSession = Depends(get_db)) -> UserOut:
    _required(name=payload.name, phone=payload.phone, password=payload.password)

    user = User(
        name=payload.name.strip(),
        email=str(payload.email).lower(),
        phone=payload.phone.strip(),
        password_hash=hash_password(payload.password),
        created_by="self",
        updated_by="self",
    )
    await _commit_new(db, user, "user")
    log.info("user %s registered", user.id)
    return UserOut.model_validate(user)


@router.post("/agents", response_model=AgentOut, status_code=status.HTTP_201_CREATED)
async def register_agent(payload: AgentCreate, db: AsyncSession = Depends(get_db)) -> AgentOut:
    """Self-registration. The agent cannot sign in until an admin approves it."""
    _required(name=payload.name, phone=payload.phone, password=payload.password)

    agent = Agent(
        name=payload.name.strip(),
        email=str(payload.email).lower(),
        phone=payload.phone.strip(),
        area=payload.area,
        license_no=payload.license_no,
        password_hash=hash_password(payload.password),
        status="pending",
        created_by="self",
        updated_by="self",
    )
    await _commit_new(db, agent, "agent")
    log.info("agent %s registered, awaiting approval", agent.id)
    return AgentOut.model_validate(agent)


@router.post(
    "/admins/bootstrap",
    response_model=AdminOut,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_internal_admin)],
)
async def bootstrap_admin(payload: AdminBootstrap, db: AsyncSession = Depends(get_db)) -> AdminOut:
    """Internal-only: create an administrator. Protected by the internal admin key."""
    _required(name=payload.name, password=payload.password)

    admin = Admin(
        name=payload.name.strip(),
        email=str(payload.email).lower(),
        password_hash=hash_password(payload.password),
        created_by="internal",
        updated_by="internal",
    )
    await _commit_new(db, admin, "admin")
    log.info("admin %s bootstrapped", admin.id)
    return AdminOut(id=admin.id, name=admin.name, email=admin.email)
