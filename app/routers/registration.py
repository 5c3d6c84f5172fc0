"""
Registration router: everything the registration modal does.

Flow:
  1. POST   /registration/session       → modal opened, returns a session token
  2. POST   /registration/otp/send      → check email is new, email a 6-digit code
  3. POST   /registration/otp/verify    → confirm the code, locks the email
  4. POST   /registration/skills        → build the skills list (DELETE to remove)
  5. POST   /registration/submit        → account, uploads, record
  6. DELETE /registration/session       → modal closed, everything reset

GET /registration/otp/status drives the "Resend OTP in Ns" countdown.
"""
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile, status
from pydantic import ValidationError

from app.config import settings
from app.core.dependencies import (
    get_blob_store,
    get_document_store,
    get_identity_provider,
    get_mailer,
    get_registration_session,
)
from app.core.exceptions import (
    FileTooLargeException,
    FormValidationException,
    RegistrationBusyException,
    UnsupportedFileException,
)
from app.core.rate_limiter import limiter
from app.core.security import create_session_token
from app.schemas.registration import (
    MessageResponse,
    OTPStatusResponse,
    RegistrationForm,
    RegistrationOut,
    RegistrationResponse,
    SendOTPRequest,
    SessionResponse,
    SkillRequest,
    SkillsResponse,
    VerifyOTPRequest,
)
from app.services import registration_service
from app.services.backends import BlobStore, DocumentStore, IdentityProvider
from app.services.email_service import Mailer
from app.services.session_manager import RegistrationSession, SessionLimitError, sessions
from app.services.upload_service import ALLOWED_CONTENT_TYPES, UploadedFile

router = APIRouter()


def _otp_status(session: RegistrationSession) -> OTPStatusResponse:
    engine = session.otp
    return OTPStatusResponse(
        state=engine.state.value,
        email=engine.email,
        seconds_remaining=engine.countdown.seconds_remaining,
        can_resend=engine.can_resend,
        email_locked=engine.email_locked,
        expires_in_seconds=engine.expires_in_seconds,
    )


def _skills(session: RegistrationSession) -> SkillsResponse:
    return SkillsResponse(skills=session.skills.items, html=session.skills.render())


# ── Session (modal open / close) ──────────────────────────────────────────────

@router.post("/session", response_model=SessionResponse, status_code=201)
@limiter.limit(settings.session_open_rate_limit)
async def open_session(request: Request):
    """Modal opened. Anonymous, so it is rate limited per IP and the number of open sessions is capped."""
    try:
        session = sessions.open()
    except SessionLimitError as exc:
        raise RegistrationBusyException() from exc
    return SessionResponse(
        session_token=create_session_token(session.id),
        expires_in_minutes=settings.session_expire_minutes,
    )


@router.delete("/session", response_model=MessageResponse)
async def close_session(session: RegistrationSession = Depends(get_registration_session)):
    """
    Modal closed: the code, verification and countdown are discarded.
    A submission already in flight is not cancelled; it finishes on its own.
    """
    sessions.close(session.id)
    return {"message": "Registration closed"}


# ── OTP ───────────────────────────────────────────────────────────────────────

@router.post("/otp/send", response_model=OTPStatusResponse)
@limiter.limit(settings.otp_send_rate_limit)
async def send_otp(
    request: Request,
    body: SendOTPRequest,
    session: RegistrationSession = Depends(get_registration_session),
    store: DocumentStore = Depends(get_document_store),
    mailer: Mailer = Depends(get_mailer),
):
    """Send (or resend once the countdown is over) the verification code."""
    await registration_service.request_otp(session, body.email, body.name, store, mailer)
    return _otp_status(session)


@router.post("/otp/verify", response_model=OTPStatusResponse)
@limiter.limit(settings.otp_verify_rate_limit)
async def verify_otp(
    request: Request,
    body: VerifyOTPRequest,
    session: RegistrationSession = Depends(get_registration_session),
):
    """
    Wrong codes can be retried until the code expires. Once verified, further
    calls return the verified status without checking the code again.
    """
    registration_service.verify_otp(session, body.otp)
    return _otp_status(session)


@router.get("/otp/status", response_model=OTPStatusResponse)
async def otp_status(session: RegistrationSession = Depends(get_registration_session)):
    return _otp_status(session)


# ── Skills ────────────────────────────────────────────────────────────────────

@router.get("/skills", response_model=SkillsResponse)
async def list_skills(session: RegistrationSession = Depends(get_registration_session)):
    return _skills(session)


@router.post("/skills", response_model=SkillsResponse)
async def add_skill(body: SkillRequest, session: RegistrationSession = Depends(get_registration_session)):
    """Blank and duplicate skills are ignored."""
    session.skills.add(body.skill)
    return _skills(session)


@router.delete("/skills/{skill:path}", response_model=SkillsResponse)
async def remove_skill(skill: str, session: RegistrationSession = Depends(get_registration_session)):
    session.skills.remove(skill)
    return _skills(session)


# ── Submit ────────────────────────────────────────────────────────────────────

async def _read_image(file: Optional[UploadFile]) -> Optional[UploadedFile]:
    """Validate and read an optional image; an empty file input counts as not supplied."""
    if file is None or not file.filename:
        return None
    if file.content_type not in ALLOWED_CONTENT_TYPES:
        raise UnsupportedFileException(file.content_type)
    contents = await file.read()
    if len(contents) > settings.max_upload_bytes:
        raise FileTooLargeException(settings.max_upload_bytes)
    return UploadedFile(filename=file.filename, data=contents, content_type=file.content_type)


@router.post("/submit", response_model=RegistrationResponse, status_code=status.HTTP_201_CREATED)
async def submit(
    name: str = Form(...),
    dob: date = Form(...),
    age: int = Form(...),
    gender: str = Form(...),
    nationality: str = Form(...),
    state: Optional[str] = Form(None),
    occupation: str = Form(...),
    custom_occupation: Optional[str] = Form(None),
    success: str = Form(""),
    meet_people: str = Form(""),
    strengths: str = Form(""),
    weaknesses: str = Form(""),
    hobby: str = Form(""),
    profile_picture: Optional[UploadFile] = File(None),
    payment_screenshot: Optional[UploadFile] = File(None),
    session: RegistrationSession = Depends(get_registration_session),
    identity: IdentityProvider = Depends(get_identity_provider),
    store: DocumentStore = Depends(get_document_store),
    blobs: BlobStore = Depends(get_blob_store),
):
    """
    Runs the whole submission. On success the session is reset (OTP, skills) and
    the page should close the modal after `close_after_seconds`.
    """
    try:
        form = RegistrationForm(
            name=name,
            dob=dob,
            age=age,
            gender=gender,
            nationality=nationality,
            state=state,
            occupation=occupation,
            custom_occupation=custom_occupation,
            success=success,
            meet_people=meet_people,
            strengths=strengths,
            weaknesses=weaknesses,
            hobby=hobby,
        )
    except ValidationError as exc:
        message = exc.errors()[0]["msg"].removeprefix("Value error, ")
        raise FormValidationException(message) from exc

    record = await registration_service.submit_registration(
        session,
        form,
        identity,
        store,
        blobs,
        profile_picture=await _read_image(profile_picture),
        payment_screenshot=await _read_image(payment_screenshot),
    )
    return RegistrationResponse(
        message="Registration submitted successfully!",
        registration=RegistrationOut.model_validate(record),
        close_after_seconds=settings.close_modal_delay_seconds,
    )
