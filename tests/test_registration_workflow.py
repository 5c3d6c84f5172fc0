from datetime import date

import pytest

from app.config import settings
from app.core.exceptions import (
    BackendUnavailableException,
    DuplicateEmailException,
    EmailNotVerifiedException,
    SubmissionInProgressException,
)
from app.schemas.registration import RegistrationForm
from app.services.otp_service import OTPState
from app.services.registration_service import submit_registration
from app.services.session_manager import RegistrationSession
from app.services.upload_service import UploadedFile

EMAIL = "attendee@example.com"

PHOTO = UploadedFile(filename="My Photo #1.PNG", data=b"photo", content_type="image/png")
RECEIPT = UploadedFile(filename="payment receipt.jpg", data=b"receipt", content_type="image/jpeg")


@pytest.fixture()
def form():
    return RegistrationForm(
        name="Asha Rao",
        dob=date(1990, 4, 12),
        age=35,
        gender="female",
        nationality="India",
        state="Tamil Nadu",
        occupation="other",
        custom_occupation="Spice exporter",
        success="Closing two export deals",
        meet_people="Buyers from the Gulf",
        strengths="Logistics",
        weaknesses="Public speaking",
        hobby="Carnatic music",
    )


@pytest.fixture()
async def session():
    registration = RegistrationSession(id="workflow-test")
    yield registration
    registration.reset()


@pytest.fixture()
async def verified_session(session):
    codes = []

    async def send(email, code):
        codes.append(code)

    await session.otp.issue(EMAIL, send)
    session.otp.verify(codes[-1])
    session.skills.add("Export compliance")
    session.skills.add("Negotiation")
    return session


async def test_successful_submission_writes_pending_record(verified_session, form, identity, store, blobs):
    record = await submit_registration(
        verified_session, form, identity, store, blobs,
        profile_picture=PHOTO, payment_screenshot=RECEIPT,
    )

    assert list(identity.accounts.values()) == [EMAIL]
    assert record.auth_account_id in identity.accounts
    assert record.id.startswith("user_")

    documents = store.documents(settings.users_collection)
    assert list(documents) == [record.id]
    saved = documents[record.id]
    assert saved["uid"] == record.id
    assert saved["authUid"] == record.auth_account_id
    assert saved["email"] == EMAIL
    assert saved["emailVerified"] is True
    assert saved["approvalStatus"] == "pending"
    assert saved["registrationDate"] is not None
    assert saved["occupation"] == "Spice exporter"
    assert saved["state"] == "Tamil Nadu"
    assert saved["skills"] == ["Export compliance", "Negotiation"]
    assert saved["meetPeople"] == "Buyers from the Gulf"
    assert saved["dob"] == "1990-04-12"

    assert saved["profilePicUrl"].startswith("https://storage.test/profile-pictures/")
    assert "_my-photo-1.png" in saved["profilePicUrl"]
    assert saved["paymentScreenshotUrl"].startswith("https://storage.test/payment-screenshots/")
    assert len(blobs.blobs) == 2


async def test_successful_submission_resets_the_session(verified_session, form, identity, store, blobs):
    await submit_registration(verified_session, form, identity, store, blobs)

    assert verified_session.otp.state == OTPState.IDLE
    assert not verified_session.otp.verified
    assert verified_session.skills.items == []
    assert verified_session.submitting is False


async def test_missing_files_store_null_urls(verified_session, form, identity, store, blobs):
    record = await submit_registration(verified_session, form, identity, store, blobs)

    saved = store.documents(settings.users_collection)[record.id]
    assert saved["profilePicUrl"] is None
    assert saved["paymentScreenshotUrl"] is None
    assert blobs.blobs == {}


async def test_unverified_session_makes_no_backend_calls(session, form, identity, store, blobs):
    with pytest.raises(EmailNotVerifiedException):
        await submit_registration(session, form, identity, store, blobs, profile_picture=PHOTO)

    assert store.calls == []
    assert identity.accounts == {}
    assert blobs.blobs == {}
    assert session.submitting is False


async def test_email_taken_after_otp_aborts_before_account_creation(verified_session, form, identity, store, blobs):
    # someone else finished registering this address while the OTP was out
    store.documents(settings.users_collection)["user_1"] = {"email": EMAIL}

    with pytest.raises(DuplicateEmailException):
        await submit_registration(verified_session, form, identity, store, blobs, profile_picture=PHOTO)

    assert identity.accounts == {}
    assert blobs.blobs == {}
    assert list(store.documents(settings.users_collection)) == ["user_1"]
    # still verified, so the attendee sees the error without losing the form
    assert verified_session.otp.verified


async def test_existing_identity_account_is_reported_as_duplicate(verified_session, form, identity, store, blobs):
    identity.accounts["uid-existing"] = EMAIL

    with pytest.raises(DuplicateEmailException):
        await submit_registration(verified_session, form, identity, store, blobs, profile_picture=PHOTO)

    assert blobs.blobs == {}
    assert store.documents(settings.users_collection) == {}


async def test_existence_check_failure_is_retryable(verified_session, form, identity, store, blobs):
    store.fail_queries = True

    with pytest.raises(BackendUnavailableException):
        await submit_registration(verified_session, form, identity, store, blobs)

    assert identity.accounts == {}
    assert verified_session.submitting is False


async def test_account_creation_failure_uploads_nothing(verified_session, form, identity, store, blobs):
    identity.fail_creates = True

    with pytest.raises(BackendUnavailableException):
        await submit_registration(verified_session, form, identity, store, blobs, profile_picture=PHOTO)

    assert blobs.blobs == {}
    assert store.documents(settings.users_collection) == {}


async def test_upload_failure_rolls_back_account_and_earlier_uploads(verified_session, form, identity, store, blobs):
    blobs.fail_after = 1   # profile picture succeeds, payment screenshot fails

    with pytest.raises(BackendUnavailableException):
        await submit_registration(
            verified_session, form, identity, store, blobs,
            profile_picture=PHOTO, payment_screenshot=RECEIPT,
        )

    assert identity.deleted == ["uid-1"]
    assert identity.accounts == {}
    assert len(blobs.deleted) == 1
    assert blobs.blobs == {}
    assert store.documents(settings.users_collection) == {}
    assert verified_session.otp.verified
    assert verified_session.submitting is False


async def test_record_write_failure_rolls_back(verified_session, form, identity, store, blobs):
    store.fail_writes = True

    with pytest.raises(BackendUnavailableException):
        await submit_registration(
            verified_session, form, identity, store, blobs,
            profile_picture=PHOTO, payment_screenshot=RECEIPT,
        )

    assert identity.accounts == {}
    assert len(blobs.deleted) == 2
    assert blobs.deleted[0].startswith("profile-pictures/")
    assert blobs.blobs == {}


async def test_retry_after_rollback_succeeds(verified_session, form, identity, store, blobs):
    store.fail_writes = True
    with pytest.raises(BackendUnavailableException):
        await submit_registration(verified_session, form, identity, store, blobs)

    store.fail_writes = False
    record = await submit_registration(verified_session, form, identity, store, blobs)

    assert record.email == EMAIL
    assert list(identity.accounts.values()) == [EMAIL]


async def test_second_submit_while_in_flight_is_refused(verified_session, form, identity, store, blobs):
    verified_session.submitting = True

    with pytest.raises(SubmissionInProgressException):
        await submit_registration(verified_session, form, identity, store, blobs)

    assert identity.accounts == {}
    assert verified_session.submitting is True


async def test_rollback_still_deletes_account_when_blob_cleanup_fails(verified_session, form, identity, store, blobs):
    store.fail_writes = True
    blobs.fail_deletes = True

    with pytest.raises(BackendUnavailableException):
        await submit_registration(
            verified_session, form, identity, store, blobs,
            profile_picture=PHOTO, payment_screenshot=RECEIPT,
        )

    assert identity.deleted == ["uid-1"]
    assert identity.accounts == {}
    assert verified_session.submitting is False
