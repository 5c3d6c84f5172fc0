"""
FastAPI dependencies used across routers.
Keep this file lean: only session and backend dependencies go here.
Business logic belongs in services/.

Tests swap the backends through app.dependency_overrides, so routers must always
receive them via Depends() and never import the Firebase adapters directly.
"""
from functools import lru_cache
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt.exceptions import InvalidTokenError

from app.config import settings
from app.core.exceptions import CredentialsException
from app.core.security import decode_session_token
from app.services.backends import BlobStore, DocumentStore, IdentityProvider
from app.services.cloudinary_service import CloudinaryBlobStore, configure_cloudinary
from app.services.email_service import FirestoreMailer, Mailer, SmtpMailer
from app.services.firebase_service import (
    FirebaseBlobStore,
    FirebaseIdentityProvider,
    FirestoreDocumentStore,
    get_firebase_app,
)
from app.services.session_manager import RegistrationSession, sessions

bearer_scheme = HTTPBearer(auto_error=False)


def get_registration_session(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> RegistrationSession:
    """
    Resolves the bearer token issued by POST /registration/session to the
    in-process session it names. Closed, pruned or forged sessions all get 401.
    """
    if credentials is None:
        raise CredentialsException()
    try:
        payload = decode_session_token(credentials.credentials)
        session_id: str = payload.get("sub")
        if session_id is None:
            raise CredentialsException()
    except InvalidTokenError:
        raise CredentialsException()

    session = sessions.get(session_id)
    if session is None:
        raise CredentialsException()
    return session


# ── Backends ──────────────────────────────────────────────────────────────────
# Built lazily and cached: the Firebase app is only initialised on first use.

@lru_cache()
def get_identity_provider() -> IdentityProvider:
    return FirebaseIdentityProvider(get_firebase_app())


@lru_cache()
def get_document_store() -> DocumentStore:
    return FirestoreDocumentStore(get_firebase_app())


@lru_cache()
def get_blob_store() -> BlobStore:
    if settings.storage_backend == "cloudinary":
        configure_cloudinary()
        return CloudinaryBlobStore()
    return FirebaseBlobStore(get_firebase_app(), settings.firebase_storage_bucket)


def get_mailer(store: DocumentStore = Depends(get_document_store)) -> Mailer:
    if settings.mail_transport == "smtp":
        return _smtp_mailer()
    return FirestoreMailer(store)


@lru_cache()
def _smtp_mailer() -> SmtpMailer:
    return SmtpMailer()
