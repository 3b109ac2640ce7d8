from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol


@dataclass(frozen=True)
class SendResult:
    success: bool
    message_id: str | None = None
    error: str | None = None


class EmailSender(Protocol):
    # Delivery failures come back as SendResult(success=False); only programming errors raise.
    async def send(self, *, recipient: str, template_kind: str, data: dict[str, Any]) -> SendResult:
        ...

    async def aclose(self) -> None:
        ...
