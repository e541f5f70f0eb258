# telecare/dependencies.py
from __future__ import annotations

from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from telecare.core.clock import system_clock
from telecare.core.config import settings
from telecare.core.security import InvalidTokenError, decode_token, is_access_token
from telecare.db.sql import get_session
from telecare.modules.appointments.repository import SqlSchedulingStore
from telecare.modules.users.models import User
from telecare.modules.users.repository import get_by_id
from telecare.modules.video import TokenVideoProvider
from telecare.scheduling.policy import SchedulingPolicy
from telecare.scheduling.ports import Clock, SchedulingStore, VideoSessionProvider

# Swagger sends username/password to /auth/token
oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl=f"{settings.API_PREFIX}/auth/token"
)


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    session: AsyncSession = Depends(get_session),
) -> User:
    try:
        payload = decode_token(token)
    except InvalidTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="invalid_token",
        )

    if not is_access_token(payload):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="invalid_token_type",
        )

    try:
        user_id = UUID(payload["sub"])
    except (TypeError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="invalid_token",
        )

    user = await get_by_id(session, user_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="user_not_found",
        )
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="user_inactive",
        )
    return user


def get_clock() -> Clock:
    return system_clock


def get_policy() -> SchedulingPolicy:
    return SchedulingPolicy.from_settings(settings)


def get_store(session: AsyncSession = Depends(get_session)) -> SchedulingStore:
    return SqlSchedulingStore(session)


def get_video_provider(clock: Clock = Depends(get_clock)) -> VideoSessionProvider:
    return TokenVideoProvider.from_settings(clock)
