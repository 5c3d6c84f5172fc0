"""
Email service: renders the verification OTP email and hands it to a transport.

Two transports, picked with MAIL_TRANSPORT:
  - "firestore" (default): insert a document into the Trigger Email extension's
    collection; the extension sends it. Fields: to, from, message.subject,
    message.text, message.html.
  - "smtp": send directly with fastapi-mail.

Gmail setup for the smtp transport (do this once):
  1. Enable 2-Factor Authentication on your Gmail account
  2. Go to: Google Account → Security → App Passwords
  3. Use the generated 16-character password as MAIL_PASSWORD in your .env

A failed send raises BackendError; the OTP engine rolls the code back on it.
"""
import html
import logging
from dataclasses import dataclass
from email.utils import parseaddr
from functools import cached_property
from string import Template
from typing import Protocol

from fastapi_mail import ConnectionConfig, FastMail, MessageSchema, MessageType
from fastapi_mail.errors import ConnectionErrors

from app.config import settings
from app.services.backends import BackendError, DocumentStore

logger = logging.getLogger(__name__)

OTP_HTML_TEMPLATE = Template("""\
<!DOCTYPE html>
<html>
  <body style="margin:0; padding:0; font-family:Arial, sans-serif; background-color:#f5f5f5;">
    <div style="max-width:600px; margin:40px auto; background:#ffffff; border-radius:12px; overflow:hidden;">
      <div style="background:linear-gradient(135deg, #c51f84 0%, #e73b9f 100%); padding:30px; text-align:center; color:#ffffff;">
        <h1 style="margin:0; font-size:24px;">Email Verification</h1>
        <p style="margin:10px 0 0 0; opacity:0.9;">$event_name</p>
      </div>
      <div style="padding:40px 30px;">
        <p>Hello <strong>$name</strong>,</p>
        <p>Thank you for registering for the $event_name! Please use the following One-Time Password (OTP) to verify your email address:</p>
        <div style="background:#f8f9fa; border:2px dashed #c51f84; border-radius:8px; padding:20px; text-align:center; margin:30px 0;">
          <div style="font-size:14px; color:#6c757d; margin-bottom:10px;">Your OTP Code</div>
          <div style="font-size:36px; font-weight:bold; color:#c51f84; letter-spacing:8px; font-family:'Courier New', monospace;">$otp</div>
        </div>
        <div style="background:#fff3cd; border-left:4px solid #ffc107; padding:12px; margin:20px 0; font-size:14px;">
          <strong>Important:</strong> This OTP will expire in $expiry_minutes minutes. Do not share this code with anyone.
        </div>
        <p>If you didn't request this OTP, please ignore this email.</p>
        <p style="margin-top:30px;">Best regards,<br><strong>$organizer_name Team</strong></p>
      </div>
      <div style="background:#f8f9fa; padding:20px; text-align:center; font-size:12px; color:#6c757d;">
        <p>&copy; $organizer_name. All rights reserved.</p>
      </div>
    </div>
  </body>
</html>
""")

OTP_TEXT_TEMPLATE = Template(
    "Hello $name,\n\n"
    "Your OTP code is: $otp\n\n"
    "This code will expire in $expiry_minutes minutes.\n\n"
    "Best regards,\n"
    "$event_name Team"
)


@dataclass(frozen=True)
class MailMessage:
    to: str
    subject: str
    text: str
    html: str


def build_otp_message(email_to: str, otp: str, name: str | None = None) -> MailMessage:
    """Render the verification email; the name falls back to 'User' like the page did."""
    display_name = (name or "").strip() or "User"
    values = {
        "name": display_name,
        "otp": otp,
        "expiry_minutes": settings.otp_expiry_minutes,
        "event_name": settings.event_name,
        "organizer_name": settings.organizer_name,
    }
    escaped = {key: html.escape(str(value)) for key, value in values.items()}
    return MailMessage(
        to=email_to,
        subject=f"{settings.event_name} - Email Verification OTP",
        text=OTP_TEXT_TEMPLATE.substitute(values),
        html=OTP_HTML_TEMPLATE.substitute(escaped),
    )


class Mailer(Protocol):
    async def send(self, message: MailMessage) -> None:
        ...


class FirestoreMailer:
    """Queues mail for the Firebase Trigger Email extension."""

    def __init__(self, store: DocumentStore, collection: str = None, sender: str = None):
        self.store = store
        self.collection = collection or settings.mail_collection
        self.sender = sender or settings.mail_from

    async def send(self, message: MailMessage) -> None:
        doc_id = await self.store.add(self.collection, {
            "to": message.to,
            "from": self.sender,
            "message": {
                "subject": message.subject,
                "text": message.text,
                "html": message.html,
            },
        })
        logger.info("Queued mail %s for %s", doc_id, message.to)


class SmtpMailer:
    """Sends straight through SMTP with fastapi-mail."""

    @cached_property
    def fast_mail(self) -> FastMail:
        from_name, from_address = parseaddr(settings.mail_from)
        config = ConnectionConfig(
            MAIL_USERNAME=settings.mail_username,
            MAIL_PASSWORD=settings.mail_password,
            MAIL_FROM=from_address,
            MAIL_FROM_NAME=from_name or None,
            MAIL_PORT=settings.mail_port,
            MAIL_SERVER=settings.mail_server,
            MAIL_STARTTLS=True,    # required for port 587 (STARTTLS)
            MAIL_SSL_TLS=False,    # don't use SSL on port 587
            USE_CREDENTIALS=True,
            VALIDATE_CERTS=True,
        )
        return FastMail(config)

    async def send(self, message: MailMessage) -> None:
        schema = MessageSchema(
            subject=message.subject,
            recipients=[message.to],
            body=message.html,
            subtype=MessageType.html,
        )
        try:
            await self.fast_mail.send_message(schema)
        except ConnectionErrors as exc:
            raise BackendError("send email", str(exc)) from exc
        logger.info("Sent mail to %s via SMTP", message.to)


async def send_otp_email(mailer: Mailer, email_to: str, otp: str, name: str | None = None) -> None:
    await mailer.send(build_otp_message(email_to, otp, name))
