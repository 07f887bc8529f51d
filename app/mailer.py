import asyncio
import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage

from app.config import settings
from app.errors import MailFailure

logger = logging.getLogger(__name__)


@dataclass
class MailMessage:
    sender: str
    to: str
    subject: str
    text: str
    html: str | None = None


class Mailer:
    """
    Best-effort SMTP delivery.

    ``smtplib`` is blocking, so each send runs in a worker thread.  Any
    transport error is logged and re-raised as ``MailFailure``.
    """

    def __init__(
        self,
        host: str,
        port: int,
        username: str = "",
        password: str = "",
        use_tls: bool = True,
        timeout: float = 10.0,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    def _build(self, message: MailMessage) -> EmailMessage:
        email = EmailMessage()
        email["From"] = message.sender
        email["To"] = message.to
        email["Subject"] = message.subject
        email.set_content(message.text)
        if message.html:
            email.add_alternative(message.html, subtype="html")
        return email

    def _deliver(self, email: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            if self.use_tls:
                smtp.starttls()
            if self.username:
                smtp.login(self.username, self.password)
            smtp.send_message(email)

    async def send(self, message: MailMessage) -> None:
        email = self._build(message)
        try:
            await asyncio.to_thread(self._deliver, email)
        except (smtplib.SMTPException, OSError) as exc:
            logger.exception("Mail delivery to %s failed", message.to)
            raise MailFailure() from exc
        logger.info("Mail %r delivered to %s", message.subject, message.to)


def build_mailer() -> Mailer:
    return Mailer(
        host=settings.SMTP_HOST,
        port=settings.SMTP_PORT,
        username=settings.SMTP_USER,
        password=settings.SMTP_PASSWORD,
        use_tls=settings.SMTP_USE_TLS,
    )


def welcome_message(email: str) -> MailMessage:
    return MailMessage(
        sender=settings.MAIL_FROM,
        to=email,
        subject="Welcome to the KnowHive newsletter",
        text=(
            "Thanks for subscribing to KnowHive!\n\n"
            "You will now receive our latest articles and trending topics."
        ),
        html=(
            "<h2>Thanks for subscribing to KnowHive!</h2>"
            "<p>You will now receive our latest articles and trending topics.</p>"
        ),
    )
