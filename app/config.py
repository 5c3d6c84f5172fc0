from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    # ── App ───────────────────────────────────────────────────
    app_name: str = "UEF Conference Registration"
    cors_origins: str = "*"
    log_level: str = "INFO"

    # ── Registration sessions (JWT) ───────────────────────────
    secret_key: str
    algorithm: str = "HS256"
    session_expire_minutes: int = 60
    max_open_sessions: int = 1000

    # ── OTP ───────────────────────────────────────────────────
    otp_length: int = 6
    otp_expiry_minutes: int = 5
    otp_resend_cooldown_seconds: int = 60
    close_modal_delay_seconds: int = 2

    # ── Rate limiting ─────────────────────────────────────────
    rate_limit_enabled: bool = True
    otp_send_rate_limit: str = "5/minute"
    otp_verify_rate_limit: str = "20/minute"
    session_open_rate_limit: str = "10/minute"

    # ── Firebase ──────────────────────────────────────────────
    firebase_credentials_file: Optional[str] = None
    firebase_project_id: Optional[str] = None
    firebase_storage_bucket: str = ""
    users_collection: str = "users"
    mail_collection: str = "mail"

    # ── Mail ──────────────────────────────────────────────────
    # "firestore" writes to the Trigger Email collection, "smtp" sends directly
    mail_transport: str = "firestore"
    mail_from: str = "UEF Trade Summit <no-reply@uef-conference.firebaseapp.com>"
    mail_username: str = ""
    mail_password: str = ""
    mail_server: str = "smtp.gmail.com"
    mail_port: int = 587
    event_name: str = "UEF Trade Summit 2025"
    organizer_name: str = "United Economic Forum"

    # ── Storage ───────────────────────────────────────────────
    # "firebase" or "cloudinary"
    storage_backend: str = "firebase"
    cloudinary_cloud_name: str = ""
    cloudinary_api_key: str = ""
    cloudinary_api_secret: str = ""
    profile_pictures_folder: str = "profile-pictures"
    payment_screenshots_folder: str = "payment-screenshots"
    max_upload_bytes: int = 5 * 1024 * 1024

    @property
    def cors_origins_list(self) -> list[str]:
        """Split comma-separated origins into a list, stripping whitespace."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    class Config:
        env_file = ".env"
        # Case-insensitive so SECRET_KEY and secret_key both work
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """
    Cached settings loader: reads .env once and reuses it.
    Use this everywhere instead of instantiating Settings() directly.
    """
    return Settings()


# Module-level singleton for convenience imports
settings = get_settings()
