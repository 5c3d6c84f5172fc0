"""
Security utilities: registration-session tokens, OTP codes and generated passwords.
Uses PyJWT (not python-jose).
"""
import secrets
import string
import jwt
from jwt.exceptions import InvalidTokenError
from datetime import datetime, timedelta, timezone
from app.config import settings

PASSWORD_SYMBOLS = "!@#$%^&*"
PASSWORD_ALPHABET = string.ascii_letters + string.digits + PASSWORD_SYMBOLS
GENERATED_PASSWORD_LENGTH = 16


# ── Registration Session Tokens ───────────────────────────────────────────────

def create_session_token(session_id: str) -> str:
    """
    Token handed to the page when the registration modal opens.
    'sub' is the in-process session id; it carries no user identity.
    """
    payload = {
        "sub": session_id,
        "type": "registration",
        "iat": datetime.now(timezone.utc),
        "exp": datetime.now(timezone.utc) + timedelta(
            minutes=settings.session_expire_minutes
        ),
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.algorithm)


def decode_session_token(token: str) -> dict:
    """
    Decodes and validates a registration-session token.
    Raises jwt.exceptions.InvalidTokenError (or subclass) on any failure.
    """
    payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    if payload.get("type") != "registration":
        raise InvalidTokenError("Not a registration session token")
    return payload


# ── OTP ───────────────────────────────────────────────────────────────────────

def generate_otp(length: int = 6) -> str:
    """
    Uniform over [10**(length-1), 10**length - 1], so always `length` digits.
    For the default that is 100000 to 999999.
    """
    low = 10 ** (length - 1)
    return str(secrets.randbelow(9 * low) + low)


# ── Generated Account Passwords ───────────────────────────────────────────────

def generate_registration_password(length: int = GENERATED_PASSWORD_LENGTH) -> str:
    """
    Random password that only satisfies the identity provider's account contract.
    It is never shown to the attendee or stored.
    Contains at least one upper, lower, digit and symbol character.
    """
    while True:
        password = "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))
        if (
            any(c.isupper() for c in password)
            and any(c.islower() for c in password)
            and any(c.isdigit() for c in password)
            and any(c in PASSWORD_SYMBOLS for c in password)
        ):
            return password
