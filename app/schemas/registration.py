"""
Registration schemas: request bodies and responses for the registration modal.
"""
from pydantic import BaseModel, EmailStr, field_validator, model_validator, ConfigDict
from typing import Optional
from datetime import date

STATE_REQUIRED_NATIONALITY = "India"
OTHER_OCCUPATION = "other"


class SessionResponse(BaseModel):
    session_token: str
    token_type: str = "bearer"
    expires_in_minutes: int


class SendOTPRequest(BaseModel):
    email: EmailStr
    name: Optional[str] = None   # used to greet the attendee in the email


class VerifyOTPRequest(BaseModel):
    otp: str


class OTPStatusResponse(BaseModel):
    state: str
    email: Optional[str] = None
    seconds_remaining: int
    can_resend: bool
    email_locked: bool
    expires_in_seconds: int


class SkillRequest(BaseModel):
    skill: str


class SkillsResponse(BaseModel):
    skills: list[str]
    html: str


class RegistrationForm(BaseModel):
    """
    The profile part of the registration form. The email is not here: it comes
    from the verified OTP session and cannot be changed after verification.
    """
    name: str
    dob: date
    age: int
    gender: str
    nationality: str
    state: Optional[str] = None
    occupation: str
    custom_occupation: Optional[str] = None
    success: str = ""
    meet_people: str = ""
    strengths: str = ""
    weaknesses: str = ""
    hobby: str = ""

    @field_validator("name", "gender", "nationality", "occupation")
    @classmethod
    def required_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("This field is required")
        return v

    @field_validator("age")
    @classmethod
    def age_valid(cls, v: int) -> int:
        if v < 1 or v > 120:
            raise ValueError("Age must be between 1 and 120")
        return v

    @model_validator(mode="after")
    def conditional_fields(self) -> "RegistrationForm":
        if self.nationality == STATE_REQUIRED_NATIONALITY:
            if not (self.state or "").strip():
                raise ValueError("Please select your state")
            self.state = self.state.strip()
        else:
            self.state = None

        if self.occupation == OTHER_OCCUPATION:
            if not (self.custom_occupation or "").strip():
                raise ValueError("Please specify your occupation")
            self.custom_occupation = self.custom_occupation.strip()
        else:
            self.custom_occupation = None
        return self

    @property
    def resolved_occupation(self) -> str:
        return self.custom_occupation if self.occupation == OTHER_OCCUPATION else self.occupation


class RegistrationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    name: str
    approval_status: str
    profile_picture_url: Optional[str] = None
    payment_screenshot_url: Optional[str] = None


class RegistrationResponse(BaseModel):
    message: str
    registration: RegistrationOut
    close_after_seconds: int


class MessageResponse(BaseModel):
    message: str
