import os
import re
import sys
import uuid
from datetime import datetime, timezone
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Ensure predictable environment variables for tests before importing the app.
BASE_DIR = Path(__file__).resolve().parents[1]

if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

os.environ.setdefault("SECRET_KEY", "test-secret-key-for-registration-sessions")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("FIREBASE_STORAGE_BUCKET", "test-bucket")
os.environ.setdefault("MAIL_TRANSPORT", "firestore")

from app.config import settings  # noqa: E402  (import after env vars are set)
from app.core import dependencies  # noqa: E402
from app.main import app  # noqa: E402
from app.services.backends import (  # noqa: E402
    EMAIL_ALREADY_EXISTS,
    SERVER_TIMESTAMP,
    AccountError,
    BackendError,
    BlobHandle,
)

OTP_PATTERN = re.compile(r"Your OTP code is: (\d{6})")


class InMemoryDocumentStore:
    def __init__(self):
        self.collections: dict[str, dict[str, dict]] = {}
        self.fail_queries = False
        self.fail_writes = False
        self.fail_adds = False
        self.calls: list[str] = []

    def documents(self, collection: str) -> dict[str, dict]:
        return self.collections.setdefault(collection, {})

    async def query(self, collection, field, value, limit=None):
        self.calls.append(f"query:{collection}")
        if self.fail_queries:
            raise BackendError(f"query {collection}", "unavailable")
        matches = [doc for doc in self.documents(collection).values() if doc.get(field) == value]
        return matches[:limit] if limit is not None else matches

    async def write(self, collection, doc_id, document):
        self.calls.append(f"write:{collection}")
        if self.fail_writes:
            raise BackendError(f"write {collection}", "unavailable")
        stamped = {
            key: datetime.now(timezone.utc) if value is SERVER_TIMESTAMP else value
            for key, value in document.items()
        }
        self.documents(collection)[doc_id] = stamped

    async def add(self, collection, document):
        self.calls.append(f"add:{collection}")
        if self.fail_adds:
            raise BackendError(f"add to {collection}", "unavailable")
        doc_id = uuid.uuid4().hex
        self.documents(collection)[doc_id] = document
        return doc_id


class FakeIdentityProvider:
    def __init__(self):
        self.accounts: dict[str, str] = {}
        self.passwords: dict[str, str] = {}
        self.deleted: list[str] = []
        self.fail_creates = False

    async def create_account(self, email, password):
        if self.fail_creates:
            raise BackendError("create account", "unavailable")
        if email in self.accounts.values():
            raise AccountError(EMAIL_ALREADY_EXISTS)
        uid = f"uid-{len(self.accounts) + 1}"
        self.accounts[uid] = email
        self.passwords[uid] = password
        return uid

    async def delete_account(self, account_id):
        self.deleted.append(account_id)
        self.accounts.pop(account_id, None)


class InMemoryBlobStore:
    def __init__(self):
        self.blobs: dict[str, bytes] = {}
        self.deleted: list[str] = []
        self.fail_after: int | None = None   # number of uploads allowed before failing
        self.fail_deletes = False
        self.uploads = 0

    async def upload(self, key, data, content_type=None):
        if self.fail_after is not None and self.uploads >= self.fail_after:
            raise BackendError(f"upload {key}", "unavailable")
        self.uploads += 1
        self.blobs[key] = data
        return BlobHandle(key=key, token="token")

    async def get_url(self, handle):
        return f"https://storage.test/{handle.key}?token={handle.token}"

    async def delete(self, handle):
        if self.fail_deletes:
            raise ConnectionError("storage unreachable")
        self.deleted.append(handle.key)
        self.blobs.pop(handle.key, None)


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def store():
    return InMemoryDocumentStore()


@pytest.fixture()
def identity():
    return FakeIdentityProvider()


@pytest.fixture()
def blobs():
    return InMemoryBlobStore()


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def client(store, identity, blobs):
    """Provide a TestClient with the Firebase backends swapped for in-memory fakes."""
    app.dependency_overrides[dependencies.get_document_store] = lambda: store
    app.dependency_overrides[dependencies.get_identity_provider] = lambda: identity
    app.dependency_overrides[dependencies.get_blob_store] = lambda: blobs

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture()
def auth_headers(client):
    response = client.post("/registration/session")
    assert response.status_code == 201
    return {"Authorization": f"Bearer {response.json()['session_token']}"}


@pytest.fixture()
def sent_otp(store):
    """Returns a callable giving the most recent OTP written to the mail collection."""
    def _latest() -> str:
        mails = list(store.documents(settings.mail_collection).values())
        assert mails, "no OTP email was queued"
        return OTP_PATTERN.search(mails[-1]["message"]["text"]).group(1)

    return _latest
