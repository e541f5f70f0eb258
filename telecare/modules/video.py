# telecare/modules/video.py
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Optional
from uuid import UUID

from telecare.core.config import settings
from telecare.core.security import TokenType, encode_token
from telecare.scheduling.ports import Clock, VideoSession

logger = logging.getLogger(__name__)


class TokenVideoProvider:
    """
    Issues video room credentials as signed JWTs for the media provider.

    The room name derives from the appointment id, so patient and doctor
    always land in the same room.
    """

    def __init__(self, *, api_key: str, api_secret: str, ttl: timedelta, clock: Clock):
        self.api_key = api_key
        self.api_secret = api_secret
        self.ttl = ttl
        self.clock = clock

    @classmethod
    def from_settings(cls, clock: Clock) -> "TokenVideoProvider":
        return cls(
            api_key=settings.VIDEO_API_KEY,
            api_secret=settings.VIDEO_API_SECRET,
            ttl=timedelta(minutes=settings.VIDEO_TOKEN_TTL_MIN),
            clock=clock,
        )

    @staticmethod
    def session_id_for(appointment_id: UUID) -> str:
        return f"appt-{appointment_id.hex}"

    def provision_session(
        self, appointment_id: UUID, *, session_id: Optional[str] = None
    ) -> VideoSession:
        session_id = session_id or self.session_id_for(appointment_id)
        token = encode_token(
            {
                "sub": session_id,
                "iss": self.api_key,
                "appointment_id": str(appointment_id),
            },
            secret=self.api_secret,
            token_type=TokenType.VIDEO,
            issued_at=self.clock.now(),
            expires_in=self.ttl,
        )
        logger.info("Provisioned video session %s", session_id)
        return VideoSession(session_id=session_id, token=token)
