from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from app.services.backends import SERVER_TIMESTAMP

APPROVAL_PENDING = "pending"


class RegistrationRecord(BaseModel):
    """
    One attendee registration, stored in the users collection under its `id`.

    Field aliases are the document keys the registration page has always written,
    so existing admin tooling keeps reading the same shape.
    The record is write-once from this service: there is no update or delete path.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    # ── Identity ───────────────────────────────────────────────────────────────
    id: str = Field(alias="uid")                      # user_<epoch-millis>
    auth_account_id: str = Field(alias="authUid")     # identity-provider uid
    email: str                                        # lowercased, trimmed

    # ── Profile ───────────────────────────────────────────────────────────────
    name: str
    dob: str                                          # ISO date, YYYY-MM-DD
    age: int
    gender: str
    nationality: str
    state: Optional[str] = None                       # only for nationality == "India"
    occupation: str
    skills: list[str] = Field(default_factory=list)
    success: str = ""
    meet_people: str = Field(default="", alias="meetPeople")
    strengths: str = ""
    weaknesses: str = ""
    hobby: str = ""

    # ── Attachments ───────────────────────────────────────────────────────────
    profile_picture_url: Optional[str] = Field(default=None, alias="profilePicUrl")
    payment_screenshot_url: Optional[str] = Field(default=None, alias="paymentScreenshotUrl")

    # ── Status ────────────────────────────────────────────────────────────────
    email_verified: bool = Field(alias="emailVerified")
    approval_status: str = Field(default=APPROVAL_PENDING, alias="approvalStatus")

    def to_document(self) -> dict:
        document = self.model_dump(by_alias=True)
        document["registrationDate"] = SERVER_TIMESTAMP
        return document
