from common.core.otel_axiom_exporter import get_logger
from .interface import EmailInterface

logger = get_logger(__name__)


class LoggingEmail(EmailInterface):
    """Logs emails instead of sending them (no SMTP host configured)."""

    async def send(self, to: str, subject: str, body: str) -> bool:
        logger.info(
            "Email not sent, SMTP not configured",
            extra={"to": to, "subject": subject, "body": body},
        )
        return True
