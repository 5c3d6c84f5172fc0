"""
Firebase Admin SDK adapters: Authentication, Cloud Firestore and Cloud Storage.

The Admin SDK is synchronous, so every call is pushed onto the thread pool with
run_in_threadpool to keep the event loop (and the OTP countdown) responsive.

Setup:
  1. Firebase console → Project settings → Service accounts → Generate new private key
  2. Point FIREBASE_CREDENTIALS_FILE at the downloaded JSON
     (without it, Application Default Credentials are used)
  3. Set FIREBASE_STORAGE_BUCKET, e.g. uef-conference.firebasestorage.app
"""
import logging
import os
import uuid
from functools import lru_cache
from typing import Any, Optional
from urllib.parse import quote

import firebase_admin
from firebase_admin import auth, credentials, firestore, storage
from firebase_admin.exceptions import FirebaseError
from google.api_core.exceptions import GoogleAPIError, NotFound
from google.auth.exceptions import GoogleAuthError
from google.cloud.firestore_v1.base_query import FieldFilter
from requests.exceptions import RequestException
from starlette.concurrency import run_in_threadpool

from app.config import settings
from app.services.backends import (
    EMAIL_ALREADY_EXISTS,
    INVALID_EMAIL,
    SERVER_TIMESTAMP,
    AccountError,
    BackendError,
    BlobHandle,
)

logger = logging.getLogger(__name__)

DOWNLOAD_URL_TEMPLATE = "https://firebasestorage.googleapis.com/v0/b/{bucket}/o/{key}?alt=media&token={token}"

# dropped connections surface from requests, credential refresh from google.auth
TRANSPORT_ERRORS = (RequestException, GoogleAuthError)
STORE_ERRORS = (GoogleAPIError,) + TRANSPORT_ERRORS
ACCOUNT_ERRORS = (FirebaseError,) + TRANSPORT_ERRORS


@lru_cache()
def get_firebase_app() -> firebase_admin.App:
    """Initialise the default Firebase app once per process."""
    options = {}
    if settings.firebase_storage_bucket:
        options["storageBucket"] = settings.firebase_storage_bucket
    if settings.firebase_project_id:
        options["projectId"] = settings.firebase_project_id

    credentials_file = settings.firebase_credentials_file
    if credentials_file and os.path.exists(credentials_file):
        cred = credentials.Certificate(credentials_file)
        logger.info("Firebase app initialized using %s", credentials_file)
    else:
        cred = credentials.ApplicationDefault()
        logger.warning("FIREBASE_CREDENTIALS_FILE not set; using application default credentials")
    return firebase_admin.initialize_app(cred, options or None)


def _replace_server_timestamps(document: dict) -> dict:
    return {
        key: firestore.SERVER_TIMESTAMP if value is SERVER_TIMESTAMP else value
        for key, value in document.items()
    }


class FirebaseIdentityProvider:
    def __init__(self, app: firebase_admin.App):
        self.app = app

    def _create(self, email: str, password: str) -> str:
        try:
            user = auth.create_user(email=email, password=password, app=self.app)
        except auth.EmailAlreadyExistsError as exc:
            raise AccountError(EMAIL_ALREADY_EXISTS, str(exc)) from exc
        except ValueError as exc:
            # raised client-side for malformed email or password arguments
            raise AccountError(INVALID_EMAIL, str(exc)) from exc
        except ACCOUNT_ERRORS as exc:
            raise BackendError("create account", str(exc)) from exc
        return user.uid

    def _delete(self, account_id: str) -> None:
        try:
            auth.delete_user(account_id, app=self.app)
        except auth.UserNotFoundError:
            logger.info("Account %s already gone", account_id)
        except ACCOUNT_ERRORS as exc:
            raise BackendError("delete account", str(exc)) from exc

    async def create_account(self, email: str, password: str) -> str:
        return await run_in_threadpool(self._create, email, password)

    async def delete_account(self, account_id: str) -> None:
        await run_in_threadpool(self._delete, account_id)


class FirestoreDocumentStore:
    def __init__(self, app: firebase_admin.App):
        self.client = firestore.client(app=app)

    def _query(self, collection: str, field: str, value: Any, limit: Optional[int]) -> list[dict]:
        query = self.client.collection(collection).where(filter=FieldFilter(field, "==", value))
        if limit is not None:
            query = query.limit(limit)
        try:
            return [snapshot.to_dict() for snapshot in query.stream()]
        except STORE_ERRORS as exc:
            raise BackendError(f"query {collection}", str(exc)) from exc

    def _write(self, collection: str, doc_id: str, document: dict) -> None:
        try:
            self.client.collection(collection).document(doc_id).set(_replace_server_timestamps(document))
        except STORE_ERRORS as exc:
            raise BackendError(f"write {collection}", str(exc)) from exc

    def _add(self, collection: str, document: dict) -> str:
        try:
            _, reference = self.client.collection(collection).add(_replace_server_timestamps(document))
        except STORE_ERRORS as exc:
            raise BackendError(f"add to {collection}", str(exc)) from exc
        return reference.id

    async def query(self, collection: str, field: str, value: Any, limit: Optional[int] = None) -> list[dict]:
        return await run_in_threadpool(self._query, collection, field, value, limit)

    async def write(self, collection: str, doc_id: str, document: dict) -> None:
        await run_in_threadpool(self._write, collection, doc_id, document)

    async def add(self, collection: str, document: dict) -> str:
        return await run_in_threadpool(self._add, collection, document)


class FirebaseBlobStore:
    """
    Cloud Storage bucket. Each upload gets a Firebase download token in its
    metadata, which is what makes the tokenised download URL work without
    making the object public.
    """

    def __init__(self, app: firebase_admin.App, bucket_name: Optional[str] = None):
        self.bucket = storage.bucket(bucket_name or None, app=app)

    def _upload(self, key: str, data: bytes, content_type: Optional[str]) -> BlobHandle:
        token = str(uuid.uuid4())
        blob = self.bucket.blob(key)
        blob.metadata = {"firebaseStorageDownloadTokens": token}
        try:
            blob.upload_from_string(data, content_type=content_type or "application/octet-stream")
        except STORE_ERRORS as exc:
            raise BackendError(f"upload {key}", str(exc)) from exc
        return BlobHandle(key=key, token=token)

    def _delete(self, key: str) -> None:
        try:
            self.bucket.blob(key).delete()
        except NotFound:
            logger.info("Blob %s already gone", key)
        except STORE_ERRORS as exc:
            raise BackendError(f"delete {key}", str(exc)) from exc

    async def upload(self, key: str, data: bytes, content_type: Optional[str] = None) -> BlobHandle:
        return await run_in_threadpool(self._upload, key, data, content_type)

    async def get_url(self, handle: BlobHandle) -> str:
        return DOWNLOAD_URL_TEMPLATE.format(
            bucket=self.bucket.name,
            key=quote(handle.key, safe=""),
            token=handle.token,
        )

    async def delete(self, handle: BlobHandle) -> None:
        await run_in_threadpool(self._delete, handle.key)
