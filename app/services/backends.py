"""
Contract with the backend-as-a-service collaborators.

The registration flow only ever talks to three things:
  - an identity provider that creates (and, for compensation, deletes) accounts
  - a document store with equality queries, keyed writes and inserts
  - a blob store that uploads bytes under a key and hands back a URL

Firebase implements all three (app/services/firebase_service.py); Cloudinary can
stand in for the blob store (app/services/cloudinary_service.py). Tests inject
in-memory fakes through FastAPI dependency overrides.
"""
from dataclasses import dataclass
from typing import Any, Optional, Protocol


class _ServerTimestamp:
    """Placeholder replaced by the store's own clock at write time."""

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()


class BackendError(Exception):
    """Transient failure talking to a collaborator (network, quota, outage)."""

    def __init__(self, operation: str, message: str = ""):
        self.operation = operation
        super().__init__(f"{operation} failed: {message}" if message else f"{operation} failed")


class AccountError(BackendError):
    """The identity provider refused to create the account."""

    def __init__(self, code: str, message: str = ""):
        self.code = code
        super().__init__("create account", message or code)


EMAIL_ALREADY_EXISTS = "email-already-exists"
INVALID_EMAIL = "invalid-email"
WEAK_PASSWORD = "weak-password"


@dataclass(frozen=True)
class BlobHandle:
    key: str
    token: Optional[str] = None
    url: Optional[str] = None


class IdentityProvider(Protocol):
    async def create_account(self, email: str, password: str) -> str:
        ...

    async def delete_account(self, account_id: str) -> None:
        ...


class DocumentStore(Protocol):
    async def query(self, collection: str, field: str, value: Any, limit: Optional[int] = None) -> list[dict]:
        ...

    async def write(self, collection: str, doc_id: str, document: dict) -> None:
        ...

    async def add(self, collection: str, document: dict) -> str:
        ...


class BlobStore(Protocol):
    async def upload(self, key: str, data: bytes, content_type: Optional[str] = None) -> BlobHandle:
        ...

    async def get_url(self, handle: BlobHandle) -> str:
        ...

    async def delete(self, handle: BlobHandle) -> None:
        ...
