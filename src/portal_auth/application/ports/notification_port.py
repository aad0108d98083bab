"""Port for outbound email/SMS dispatch used by OTP delivery."""

from __future__ import annotations

from typing import Protocol


class NotificationSenderPort(Protocol):
    """Abstract notification transport; raise on delivery failure."""

    async def send_email(self, *, to: str, template_kind: str, variables: dict[str, str]) -> None:
        """Render and send a templated email."""

    async def send_sms(self, *, to: str, message: str) -> None:
        """Send a plain SMS message."""
