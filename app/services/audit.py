from __future__ import annotations
from typing import TYPE_CHECKING

from app.models.audit_log import AuditLog

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from app.services.auth import Actor
    from app.services.ledger import LedgerTx


def audit(
    tx: AsyncSession | LedgerTx,
    *,
    actor: Actor,
    action: str,
    target_type: str | None = None,
    target_id: str | None = None,
    detail: dict | None = None,
) -> None:
    tx.add(AuditLog(
        actor_api_key_id=actor.api_key_id,
        actor_role=actor.role,
        actor_id=actor.principal_id,
        action=action,
        target_type=target_type,
        target_id=target_id,
        detail=detail or {},
    ))
