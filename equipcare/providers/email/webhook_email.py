from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from equipcare.core.config import get_settings
from equipcare.core.errors import ProviderConfigError
from equipcare.providers.email.base import SendResult
from equipcare.services.resilience import retry_async
from equipcare.services.telemetry import record_external_call


logger = logging.getLogger(__name__)

_INTEGRATION = "email_webhook"


class WebhookEmailSender:
    """Hand rendered-template requests to an HTTP mail relay.

    The relay owns templates and SMTP. This adapter posts
    ``{"to", "from", "template", "data"}`` and expects a JSON body with an
    ``id``. Any transport or HTTP failure is reported as an unsuccessful
    :class:`SendResult` instead of raising.
    """

    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self._settings = get_settings()
        if not self._settings.email_relay_url:
            raise ProviderConfigError("EMAIL_RELAY_URL is required for the webhook email sender")
        self._client = client
        # Injected clients belong to the caller; only a client built here is closed here.
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is not None:
            return self._client
        timeout_s = max(0.2, self._settings.ext_call_timeout_ms / 1000.0)
        self._client = httpx.AsyncClient(timeout=timeout_s)
        return self._client

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def send(self, *, recipient: str, template_kind: str, data: dict[str, Any]) -> SendResult:
        relay_url = str(self._settings.email_relay_url)
        payload = {
            "to": recipient,
            "from": self._settings.email_from_address,
            "template": template_kind,
            "data": data,
        }
        headers = {"Content-Type": "application/json"}
        if self._settings.email_relay_token:
            headers["Authorization"] = f"Bearer {self._settings.email_relay_token}"
        client = self._get_client()

        async def _call() -> httpx.Response:
            response = await client.post(relay_url, json=payload, headers=headers)
            if response.status_code >= 400:
                raise httpx.HTTPStatusError(
                    f"Relay rejected email ({response.status_code})",
                    request=response.request,
                    response=response,
                )
            return response

        def _retryable(exc: Exception) -> bool:
            if isinstance(exc, (httpx.TimeoutException, httpx.NetworkError)):
                return True
            if isinstance(exc, httpx.HTTPStatusError):
                return exc.response.status_code >= 500 or exc.response.status_code == 429
            return False

        start = time.monotonic()
        try:
            response = await retry_async(_call, integration=_INTEGRATION, retryable=_retryable)
        except (httpx.HTTPError, TimeoutError) as exc:
            record_external_call(
                integration=_INTEGRATION,
                latency_ms=(time.monotonic() - start) * 1000.0,
                success=False,
            )
            logger.warning("email relay send failed recipient=%s template=%s error=%s", recipient, template_kind, exc)
            return SendResult(success=False, error=str(exc) or exc.__class__.__name__)

        record_external_call(
            integration=_INTEGRATION,
            latency_ms=(time.monotonic() - start) * 1000.0,
            success=True,
        )
        message_id: str | None = None
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("id"):
            message_id = str(body["id"])
        return SendResult(success=True, message_id=message_id)
