"""
Registration service: the OTP request/verify steps and the final submission.
Keeps routers thin: routers only handle HTTP, this module runs the workflow.

Submission order (each step waits for the previous one):
  1. the session's email must be OTP-verified        (no backend calls otherwise)
  2. the email must still be unregistered            (race guard)
  3. generate a throwaway account password
  4. create the identity-provider account
  5. upload profile picture / payment screenshot     (each optional)
  6. write the registration record
  7. reset the session for a fresh form

Steps 5 and 6 run after the account exists. If either fails, the uploaded blobs
and the account are deleted again before the error is reported, so a failed
submission leaves nothing behind and the attendee can simply retry.
"""
import logging
from typing import Optional

from app.config import settings
from app.core.exceptions import (
    BackendUnavailableException,
    DuplicateEmailException,
    EmailLockedException,
    EmailNotVerifiedException,
    InvalidOTPException,
    InvalidOTPFormatException,
    OTPExpiredException,
    OTPNotRequestedException,
    ResendCooldownException,
    SubmissionInProgressException,
)
from app.core.security import generate_registration_password
from app.models.registration import RegistrationRecord
from app.schemas.registration import RegistrationForm
from app.services.backends import (
    EMAIL_ALREADY_EXISTS,
    AccountError,
    BackendError,
    BlobStore,
    DocumentStore,
    IdentityProvider,
)
from app.services.email_check_service import email_exists, normalize_email
from app.services.email_service import Mailer, send_otp_email
from app.services.otp_service import (
    EmailLockedError,
    OTPCooldownError,
    OTPExpiredError,
    OTPFormatError,
    OTPMismatchError,
    OTPNotIssuedError,
    OTPState,
)
from app.services.session_manager import RegistrationSession
from app.services.upload_service import StoredFile, UploadedFile, epoch_millis, upload_file

logger = logging.getLogger(__name__)


# ── OTP ───────────────────────────────────────────────────────────────────────

async def request_otp(
    session: RegistrationSession,
    email: str,
    name: Optional[str],
    store: DocumentStore,
    mailer: Mailer,
) -> None:
    """Existence check, then issue and send a fresh code."""
    email = normalize_email(email)
    if session.otp.email_locked:
        raise EmailLockedException()
    if not session.otp.countdown.can_resend:
        raise ResendCooldownException(session.otp.countdown.seconds_remaining)

    try:
        if await email_exists(store, email):
            raise DuplicateEmailException()
    except BackendError as exc:
        logger.error("Email check failed for %s: %s", email, exc)
        raise BackendUnavailableException("Unable to verify email. Please try again.") from exc

    async def send(address: str, code: str) -> None:
        await send_otp_email(mailer, address, code, name)

    try:
        await session.otp.issue(email, send)
    except EmailLockedError as exc:
        raise EmailLockedException() from exc
    except OTPCooldownError as exc:
        raise ResendCooldownException(exc.seconds_remaining) from exc
    except BackendError as exc:
        raise BackendUnavailableException("Failed to send OTP. Please try again.") from exc


def verify_otp(session: RegistrationSession, code: str) -> OTPState:
    try:
        return session.otp.verify(code)
    except OTPFormatError as exc:
        raise InvalidOTPFormatException(session.otp.length) from exc
    except OTPNotIssuedError as exc:
        raise OTPNotRequestedException() from exc
    except OTPExpiredError as exc:
        raise OTPExpiredException() from exc
    except OTPMismatchError as exc:
        raise InvalidOTPException() from exc


# ── Submission ────────────────────────────────────────────────────────────────

async def submit_registration(
    session: RegistrationSession,
    form: RegistrationForm,
    identity: IdentityProvider,
    store: DocumentStore,
    blobs: BlobStore,
    profile_picture: Optional[UploadedFile] = None,
    payment_screenshot: Optional[UploadedFile] = None,
) -> RegistrationRecord:
    if session.submitting:
        raise SubmissionInProgressException()

    session.submitting = True
    try:
        record = await _run_submission(
            session, form, identity, store, blobs, profile_picture, payment_screenshot
        )
    finally:
        session.submitting = False

    session.reset()
    return record


async def _run_submission(
    session: RegistrationSession,
    form: RegistrationForm,
    identity: IdentityProvider,
    store: DocumentStore,
    blobs: BlobStore,
    profile_picture: Optional[UploadedFile],
    payment_screenshot: Optional[UploadedFile],
) -> RegistrationRecord:
    if not session.otp.verified or not session.otp.email:
        raise EmailNotVerifiedException()
    email = normalize_email(session.otp.email)
    # snapshot: closing the modal mid-submit resets the session but not this call
    skills = session.skills.items

    try:
        if await email_exists(store, email):
            raise DuplicateEmailException(
                "This email is already registered. Registration cannot be completed."
            )
    except BackendError as exc:
        raise BackendUnavailableException("Unable to verify email. Please try again.") from exc

    password = generate_registration_password()
    try:
        account_id = await identity.create_account(email, password)
    except AccountError as exc:
        if exc.code == EMAIL_ALREADY_EXISTS:
            raise DuplicateEmailException(
                "This email is already registered. Registration cannot be completed."
            ) from exc
        logger.warning("Account creation refused for %s: %s", email, exc)
        raise BackendUnavailableException("Error creating your account. Please try again.") from exc
    except BackendError as exc:
        raise BackendUnavailableException("Error creating your account. Please try again.") from exc
    logger.info("Account %s created for %s", account_id, email)

    stored: list[StoredFile] = []
    try:
        profile = await _upload_optional(blobs, profile_picture, settings.profile_pictures_folder, stored)
        payment = await _upload_optional(blobs, payment_screenshot, settings.payment_screenshots_folder, stored)

        record = RegistrationRecord(
            id=f"user_{epoch_millis()}",
            auth_account_id=account_id,
            email=email,
            name=form.name,
            dob=form.dob.isoformat(),
            age=form.age,
            gender=form.gender,
            nationality=form.nationality,
            state=form.state,
            occupation=form.resolved_occupation,
            skills=skills,
            success=form.success,
            meet_people=form.meet_people,
            strengths=form.strengths,
            weaknesses=form.weaknesses,
            hobby=form.hobby,
            profile_picture_url=profile.url if profile else None,
            payment_screenshot_url=payment.url if payment else None,
            email_verified=True,
        )
        await store.write(settings.users_collection, record.id, record.to_document())
    except Exception as exc:
        await _compensate(identity, blobs, account_id, stored)
        if isinstance(exc, BackendError):
            raise BackendUnavailableException(
                "Error submitting registration. Please try again."
            ) from exc
        raise

    logger.info("Registration %s saved for %s", record.id, email)
    return record


async def _upload_optional(
    blobs: BlobStore,
    file: Optional[UploadedFile],
    folder: str,
    stored: list[StoredFile],
) -> Optional[StoredFile]:
    if file is None:
        return None
    result = await upload_file(blobs, file, folder)
    stored.append(result)
    return result


async def _compensate(
    identity: IdentityProvider,
    blobs: BlobStore,
    account_id: str,
    stored: list[StoredFile],
) -> None:
    """
    Undo the account and any uploads after a failed submission. Best effort:
    a failed cleanup step is logged and the remaining steps still run, so a
    stuck blob never leaves the account behind.
    """
    for item in stored:
        try:
            await blobs.delete(item.handle)
        except Exception:
            logger.exception("Could not delete orphaned upload %s", item.key)
    try:
        await identity.delete_account(account_id)
        logger.info("Rolled back account %s after failed submission", account_id)
    except Exception:
        logger.exception("Could not delete orphaned account %s", account_id)
