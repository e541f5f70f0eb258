# telecare/modules/log.py
from __future__ import annotations

from typing import Optional
from uuid import UUID

from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession

from telecare.modules.users.models import AuditLog


async def write_audit_log(
    session: AsyncSession,
    user_id: Optional[UUID],
    action: str,
    details: Optional[str] = None,
):
    """
    Write an audit log entry inside the caller's transaction.

    action:
        "REGISTER"
        "GRANT_CREDITS"
        "SET_VERIFICATION"
        "BOOK_APPOINTMENT"
        "CANCEL_APPOINTMENT"
        "COMPLETE_APPOINTMENT"
    """
    stmt = insert(AuditLog).values(
        user_id=user_id,
        action=action,
        details=details,
    )
    await session.execute(stmt)
