import pytest

from common.core.config import settings

WEBHOOK_SECRET = "whsec_test_secret"


@pytest.fixture(autouse=True)
def isolate_settings(monkeypatch):
    """Keep unit tests off real credentials picked up from the environment."""
    monkeypatch.setattr(settings, "stripe_secret_key", "")
    monkeypatch.setattr(settings, "stripe_webhook_secret", "")
    monkeypatch.setattr(settings, "license_api_key", "")
    monkeypatch.setattr(settings, "smtp_host", "")
    monkeypatch.setattr(settings, "webhook_tolerance_seconds", 300)
    monkeypatch.setattr(settings, "renewal_reminder_days", 7)


@pytest.fixture
def webhook_secret(monkeypatch):
    """Enable webhook signature verification with a known secret."""
    monkeypatch.setattr(settings, "stripe_webhook_secret", WEBHOOK_SECRET)
    return WEBHOOK_SECRET
