import asyncio
import smtplib
from email.message import EmailMessage

from common.core.config import settings
from common.core.otel_axiom_exporter import get_logger, trace_span
from .interface import EmailInterface

logger = get_logger(__name__)


class SMTPEmail(EmailInterface):
    """SMTP transport. smtplib blocks, so each send runs in a worker thread."""

    def __init__(self):
        self.host = settings.smtp_host
        self.port = settings.smtp_port
        self.username = settings.smtp_username
        self.password = settings.smtp_password
        self.use_tls = settings.smtp_use_tls
        self.sender = settings.email_from

    def _build_message(self, to: str, subject: str, body: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content(body)
        return message

    def _send_sync(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=30) as smtp:
            if self.use_tls:
                smtp.starttls()
            if self.username and self.password:
                smtp.login(self.username, self.password)
            smtp.send_message(message)

    @trace_span
    async def send(self, to: str, subject: str, body: str) -> bool:
        message = self._build_message(to, subject, body)
        try:
            await asyncio.to_thread(self._send_sync, message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(
                f"Failed to send email: {str(e)}",
                extra={"to": to, "subject": subject, "error": str(e)},
            )
            return False

        logger.info("Email sent", extra={"to": to, "subject": subject})
        return True
