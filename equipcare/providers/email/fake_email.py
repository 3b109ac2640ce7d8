from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any
from uuid import uuid4

from equipcare.providers.email.base import SendResult


@dataclass
class SentEmail:
    recipient: str
    template_kind: str
    data: dict[str, Any]


@dataclass
class FakeEmailSender:
    # Records every send in memory; recipients in fail_for are rejected.
    sent: list[SentEmail] = field(default_factory=list)
    fail_for: set[str] = field(default_factory=set)
    error_message: str = "relay unavailable"
    closed: bool = False

    async def send(self, *, recipient: str, template_kind: str, data: dict[str, Any]) -> SendResult:
        if recipient in self.fail_for:
            return SendResult(success=False, error=self.error_message)
        self.sent.append(SentEmail(recipient=recipient, template_kind=template_kind, data=dict(data)))
        return SendResult(success=True, message_id=f"fake-{uuid4().hex[:12]}")

    def sends_to(self, recipient: str) -> list[SentEmail]:
        return [item for item in self.sent if item.recipient == recipient]

    async def aclose(self) -> None:
        self.closed = True


class NoopEmailSender:
    async def send(self, *, recipient: str, template_kind: str, data: dict[str, Any]) -> SendResult:
        # Local/dev mode: accept and drop.
        _ = (recipient, template_kind, data)
        return SendResult(success=True, message_id=f"noop-{uuid4().hex[:12]}")

    async def aclose(self) -> None:
        return None
