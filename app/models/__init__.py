# models/__init__.py
# Documents written to the store. Firestore is schemaless, so these pydantic
# models are the only place the persisted shape is defined.

from app.models.registration import RegistrationRecord, APPROVAL_PENDING

__all__ = [
    "RegistrationRecord",
    "APPROVAL_PENDING",
]
