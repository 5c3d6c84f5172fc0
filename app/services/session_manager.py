"""
Registration session registry.

A RegistrationSession is everything the page used to keep in globals: the OTP
engine (with its countdown), the skills list and the "submission in flight" flag.
One is created when the registration modal opens and discarded when it closes.

Limitation: sessions live in this process only. Run a single worker, or put a
shared store behind SessionManager before scaling out.
"""
import logging
import secrets
import time
from dataclasses import dataclass, field
from typing import Dict, Optional

from app.config import settings
from app.services.countdown import ResendCountdown
from app.services.otp_service import OTPEngine
from app.services.skills_service import SkillsList

logger = logging.getLogger(__name__)


def _new_engine() -> OTPEngine:
    return OTPEngine(
        expiry_minutes=settings.otp_expiry_minutes,
        length=settings.otp_length,
        countdown=ResendCountdown(settings.otp_resend_cooldown_seconds),
    )


@dataclass
class RegistrationSession:
    id: str
    otp: OTPEngine = field(default_factory=_new_engine)
    skills: SkillsList = field(default_factory=SkillsList)
    submitting: bool = False
    created_at: float = field(default_factory=time.time)

    def reset(self) -> None:
        """Back to a fresh form: no code, not verified, no skills, no countdown."""
        self.otp.reset()
        self.skills.clear()


class SessionLimitError(Exception):
    pass


class SessionManager:
    def __init__(self, ttl_seconds: Optional[int] = None, max_open: Optional[int] = None):
        self.ttl_seconds = ttl_seconds or settings.session_expire_minutes * 60
        self.max_open = max_open or settings.max_open_sessions
        self.sessions: Dict[str, RegistrationSession] = {}

    def open(self) -> RegistrationSession:
        self.prune()
        if len(self.sessions) >= self.max_open:
            logger.warning("Refusing new registration session: %d already open", len(self.sessions))
            raise SessionLimitError(f"{self.max_open} sessions already open")
        session = RegistrationSession(id=secrets.token_urlsafe(16))
        self.sessions[session.id] = session
        logger.info("Registration session opened: %s (open=%d)", session.id, len(self.sessions))
        return session

    def get(self, session_id: str) -> Optional[RegistrationSession]:
        return self.sessions.get(session_id)

    def close(self, session_id: str) -> None:
        session = self.sessions.pop(session_id, None)
        if session is not None:
            session.reset()
            logger.info("Registration session closed: %s", session_id)

    def prune(self) -> None:
        """Drop sessions whose token can no longer be presented."""
        cutoff = time.time() - self.ttl_seconds
        for session_id in [sid for sid, s in self.sessions.items() if s.created_at < cutoff]:
            self.close(session_id)

    def clear(self) -> None:
        for session_id in list(self.sessions):
            self.close(session_id)


# Module-level singleton used by the router dependencies and app shutdown
sessions = SessionManager()
