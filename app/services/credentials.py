"""
Sign-in over the closed set of credential-holding roles.

Each role has its own verifier that knows which table holds its accounts and what extra
checks apply (agents must be approved). There is no table chosen from a request string:
an unknown role is a validation error.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import AuthorizationError, ValidationError
from app.core.security import ApiKeyParts, generate_api_key, verify_password
from app.models.admin import Admin
from app.models.agent import Agent
from app.models.api_key import ApiKey
from app.models.user import User
from app.services.access_policy import Role

log = logging.getLogger(__name__)


class InvalidCredentials(AuthorizationError):
    status_code = 401
    code = "invalid_credentials"


@dataclass(frozen=True)
class Principal:
    role: str
    id: str


class CredentialVerifier(Protocol):
    role: str

    async def verify(self, db: AsyncSession, *, email: str, password: str) -> Principal:
        ...


async def _lookup(db: AsyncSession, model: type, email: str):
    stmt = select(model).where(model.email == email.strip().lower())
    return (await db.execute(stmt)).scalar_one_or_none()


class SellerCredentials:
    role = Role.SELLER

    async def verify(self, db: AsyncSession, *, email: str, password: str) -> Principal:
        user = await _lookup(db, User, email)
        if not user or not verify_password(password, user.password_hash):
            raise InvalidCredentials("Invalid email or password")
        return Principal(role=self.role, id=user.id)


class AgentCredentials:
    role = Role.AGENT

    async def verify(self, db: AsyncSession, *, email: str, password: str) -> Principal:
        agent = await _lookup(db, Agent, email)
        if not agent or not verify_password(password, agent.password_hash):
            raise InvalidCredentials("Invalid email or password")
        if agent.status != "approved":
            raise AuthorizationError("Agent not approved by admin")
        return Principal(role=self.role, id=agent.id)


class AdminCredentials:
    role = Role.ADMIN

    async def verify(self, db: AsyncSession, *, email: str, password: str) -> Principal:
        admin = await _lookup(db, Admin, email)
        if not admin or not verify_password(password, admin.password_hash):
            raise InvalidCredentials("Invalid email or password")
        return Principal(role=self.role, id=admin.id)


VERIFIERS: dict[str, CredentialVerifier] = {
    v.role: v for v in (SellerCredentials(), AgentCredentials(), AdminCredentials())
}


def get_verifier(role: str) -> CredentialVerifier:
    key = (role or "").lower().strip()
    if key not in VERIFIERS:
        raise ValidationError(
            f"Unknown role: {role}",
            details=[{"field": "role", "error": f"must be one of {sorted(VERIFIERS)}"}],
        )
    return VERIFIERS[key]


async def issue_api_key(db: AsyncSession, *, principal: Principal) -> ApiKeyParts:
    parts = generate_api_key()
    db.add(
        ApiKey(
            role=principal.role,
            principal_id=principal.id,
            key_prefix=parts.prefix,
            key_hash=parts.hashed,
            is_active=True,
        )
    )
    await db.flush()
    return parts


async def sign_in(db: AsyncSession, *, role: str, email: str, password: str) -> tuple[Principal, ApiKeyParts]:
    principal = await get_verifier(role).verify(db, email=email, password=password)
    parts = await issue_api_key(db, principal=principal)
    await db.commit()
    log.info("sign-in: %s %s", principal.role, principal.id)
    return principal, parts


async def revoke_keys(db: AsyncSession, *, role: str, principal_id: str) -> int:
    result = await db.execute(
        update(ApiKey)
        .where(ApiKey.role == role, ApiKey.principal_id == principal_id, ApiKey.is_active.is_(True))
        .values(is_active=False)
    )
    return int(result.rowcount or 0)
