from common.core.config import settings
from .interface import EmailInterface
from .logging_email import LoggingEmail
from .smtp_email import SMTPEmail


def get_email() -> EmailInterface:
    """Get email transport based on configuration."""
    if settings.smtp_host:
        return SMTPEmail()
    return LoggingEmail()
