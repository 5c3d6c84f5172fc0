"""
Email existence check against the registration records.

Runs twice per registration: before an OTP is sent (no mail to addresses that
are already registered) and again right before the record is written, which
narrows the window for two visitors registering the same address at once.

Store failures are never read as "not registered": BackendError propagates and
the caller reports a retry-able error.
"""
import logging

from app.config import settings
from app.services.backends import DocumentStore

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def email_exists(store: DocumentStore, email: str) -> bool:
    normalized = normalize_email(email)
    matches = await store.query(settings.users_collection, "email", normalized, limit=1)
    if matches:
        logger.info("Email %s is already registered", normalized)
    return bool(matches)
