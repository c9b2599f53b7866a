import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Protocol

from app.core.config import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OutgoingEmail:
    to: str
    subject: str
    body: str


class EmailSender(Protocol):
    def send(self, email: OutgoingEmail) -> None: ...


class LogEmailSender:
    """Backend par défaut (dev/test) : trace l'e-mail au lieu de l'envoyer."""

    def __init__(self):
        self.sent: list[OutgoingEmail] = []

    def send(self, email: OutgoingEmail) -> None:
        self.sent.append(email)
        logger.info("E-mail to %s: %s", email.to, email.subject)


class SmtpEmailSender:
    def __init__(self, settings: Settings):
        self.settings = settings

    def send(self, email: OutgoingEmail) -> None:
        msg = EmailMessage()
        msg["From"] = self.settings.EMAIL_FROM
        msg["To"] = email.to
        msg["Subject"] = email.subject
        msg.set_content(email.body)

        with smtplib.SMTP(self.settings.SMTP_HOST, self.settings.SMTP_PORT, timeout=30) as smtp:
            if self.settings.SMTP_STARTTLS:
                smtp.starttls()
            if self.settings.SMTP_USERNAME:
                smtp.login(self.settings.SMTP_USERNAME, self.settings.SMTP_PASSWORD or "")
            smtp.send_message(msg)


def build_email_sender(settings: Settings) -> EmailSender:
    if settings.EMAIL_BACKEND == "smtp":
        return SmtpEmailSender(settings)
    if settings.EMAIL_BACKEND != "log":
        logger.warning("Unknown EMAIL_BACKEND %r, falling back to log", settings.EMAIL_BACKEND)
    return LogEmailSender()
