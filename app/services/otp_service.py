"""
OTP engine: issue, expire and verify the email-ownership code for one session.

States: IDLE → ISSUED → VERIFIED | EXPIRED | FAILED

  - issue     IDLE/EXPIRED/FAILED → ISSUED. A new code replaces any previous one.
              If sending the email fails the engine goes back to IDLE with no
              code, so an undelivered code can never be verified.
  - verify    ISSUED/FAILED → VERIFIED on an exact match inside the expiry window,
              → FAILED on a mismatch (code kept, retry allowed),
              → EXPIRED once the window has passed (code cleared).
  - reset     any state → IDLE. Used on modal close and after a successful submit.

Security posture, stated plainly: there is one plaintext code held in process
memory per session and nothing server-side beyond it. That is enough to stop
casual duplicate registrations with someone else's address; it is not an
account-takeover defence.

Nothing here imports FastAPI. Failures are OTPError subclasses which the
registration service translates into HTTP errors.
"""
import enum
import logging
import time
from typing import Awaitable, Callable, Optional

from app.core.security import generate_otp
from app.services.countdown import ResendCountdown

logger = logging.getLogger(__name__)

OTP_EXPIRY_MINUTES = 5
RESEND_COOLDOWN_SECONDS = 60


class OTPState(str, enum.Enum):
    IDLE = "idle"
    ISSUED = "issued"
    VERIFIED = "verified"
    EXPIRED = "expired"
    FAILED = "failed"


class OTPError(Exception):
    pass


class OTPFormatError(OTPError):
    pass


class OTPNotIssuedError(OTPError):
    pass


class OTPExpiredError(OTPError):
    pass


class OTPMismatchError(OTPError):
    pass


class OTPCooldownError(OTPError):
    def __init__(self, seconds_remaining: int):
        self.seconds_remaining = seconds_remaining
        super().__init__(f"Resend available in {seconds_remaining}s")


class EmailLockedError(OTPError):
    pass


SendCode = Callable[[str, str], Awaitable[None]]


class OTPEngine:
    def __init__(
        self,
        expiry_minutes: int = OTP_EXPIRY_MINUTES,
        cooldown_seconds: int = RESEND_COOLDOWN_SECONDS,
        length: int = 6,
        clock: Callable[[], float] = time.time,
        countdown: Optional[ResendCountdown] = None,
    ):
        self.expiry_minutes = expiry_minutes
        self.length = length
        self.clock = clock
        self.countdown = countdown or ResendCountdown(cooldown_seconds)
        self.state = OTPState.IDLE
        self.email: Optional[str] = None
        self.issued_at: Optional[float] = None
        self._code: Optional[str] = None

    @property
    def verified(self) -> bool:
        return self.state == OTPState.VERIFIED

    @property
    def email_locked(self) -> bool:
        return self.verified

    @property
    def can_resend(self) -> bool:
        return not self.email_locked and self.countdown.can_resend

    @property
    def expires_in_seconds(self) -> int:
        if self._code is None or self.issued_at is None:
            return 0
        remaining = self.expiry_minutes * 60 - (self.clock() - self.issued_at)
        return max(0, int(remaining))

    async def issue(self, email: str, send: SendCode) -> None:
        """
        Generate a code for `email` and deliver it with `send(email, code)`.
        The caller has already validated the address and checked it is unregistered.
        """
        if self.email_locked:
            raise EmailLockedError("Email already verified")
        if not self.countdown.can_resend:
            raise OTPCooldownError(self.countdown.seconds_remaining)

        self._code = generate_otp(self.length)
        self.issued_at = self.clock()
        self.email = email
        self.state = OTPState.ISSUED

        try:
            await send(email, self._code)
        except Exception:
            logger.warning("OTP delivery to %s failed; discarding code", email)
            self._clear()
            raise

        self.countdown.start()
        logger.info("OTP issued for %s", email)

    def verify(self, code: str) -> OTPState:
        code = (code or "").strip()
        if self.verified:
            return self.state
        if len(code) != self.length or not code.isdigit():
            raise OTPFormatError(f"OTP must be {self.length} digits")
        if self.state == OTPState.EXPIRED:
            raise OTPExpiredError("OTP has expired")
        if self._code is None or self.issued_at is None:
            raise OTPNotIssuedError("No OTP has been issued")

        elapsed = self.clock() - self.issued_at
        if elapsed > self.expiry_minutes * 60:
            email = self.email
            self._clear()
            self.email = email
            self.state = OTPState.EXPIRED
            logger.info("OTP for %s expired after %.0fs", email, elapsed)
            raise OTPExpiredError("OTP has expired")

        if code != self._code:
            self.state = OTPState.FAILED
            logger.info("Wrong OTP entered for %s", self.email)
            raise OTPMismatchError("OTP does not match")

        self.state = OTPState.VERIFIED
        self.countdown.cancel()
        logger.info("Email %s verified", self.email)
        return self.state

    def reset(self) -> None:
        self._clear()
        self.countdown.cancel()

    def _clear(self) -> None:
        self._code = None
        self.issued_at = None
        self.email = None
        self.state = OTPState.IDLE
