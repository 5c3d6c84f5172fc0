"""
Centralised custom exceptions.
Every user-facing failure of the registration flow maps to one of these, so the
page gets one consistent message per situation and a status code it can branch on.
"""
from fastapi import HTTPException, status


class CredentialsException(HTTPException):
    def __init__(self, detail: str = "Registration session is missing or has expired"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class FormValidationException(HTTPException):
    def __init__(self, detail: str = "Please check the registration form"):
        super().__init__(status_code=422, detail=detail)


class DuplicateEmailException(HTTPException):
    def __init__(self, detail: str = "This email is already registered. Please use a different email address."):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class EmailLockedException(HTTPException):
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email is already verified and can no longer be changed",
        )


class InvalidOTPFormatException(HTTPException):
    def __init__(self, length: int = 6):
        super().__init__(
            status_code=422,
            detail=f"Please enter a {length}-digit OTP",
        )


class OTPNotRequestedException(HTTPException):
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Please request an OTP first",
        )


class InvalidOTPException(HTTPException):
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid OTP. Please try again.",
        )


class OTPExpiredException(HTTPException):
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_410_GONE,
            detail="OTP has expired. Please request a new one.",
        )


class ResendCooldownException(HTTPException):
    def __init__(self, seconds_remaining: int):
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"Resend OTP in {seconds_remaining}s",
            headers={"Retry-After": str(seconds_remaining)},
        )


class EmailNotVerifiedException(HTTPException):
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Please verify your email address before submitting",
        )


class SubmissionInProgressException(HTTPException):
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail="A registration is already being submitted",
        )


class UnsupportedFileException(HTTPException):
    def __init__(self, content_type: str | None):
        super().__init__(
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            detail=f"File type '{content_type}' not allowed. Use JPEG, PNG, or WebP.",
        )


class FileTooLargeException(HTTPException):
    def __init__(self, max_bytes: int):
        super().__init__(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File too large. Maximum size is {max_bytes // (1024 * 1024)} MB.",
        )


class BackendUnavailableException(HTTPException):
    def __init__(self, detail: str = "Service temporarily unavailable. Please try again."):
        super().__init__(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=detail)


class RegistrationBusyException(HTTPException):
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Registration is busy right now. Please try again in a few minutes.",
        )
