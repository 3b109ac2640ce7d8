from __future__ import annotations

from equipcare.core.config import get_settings
from equipcare.core.errors import ProviderConfigError
from equipcare.providers.email.base import EmailSender
from equipcare.providers.email.fake_email import FakeEmailSender, NoopEmailSender
from equipcare.providers.email.webhook_email import WebhookEmailSender


def get_email_sender() -> EmailSender:
    settings = get_settings()
    provider = (settings.notification_sender or "noop").lower()

    if provider == "noop":
        return NoopEmailSender()
    if provider == "fake":
        return FakeEmailSender()
    if provider == "webhook":
        return WebhookEmailSender()

    raise ProviderConfigError(f"Unsupported notification sender: {provider}")
