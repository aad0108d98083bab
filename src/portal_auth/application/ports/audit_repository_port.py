"""Port for append-only security audit events."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol
from uuid import UUID

from portal_auth.domain.auth.audit_events import AuditEventType


@dataclass(frozen=True)
class AuditEventCreateInput:
    """Input payload for inserting an audit event."""

    event_type: AuditEventType
    actor_user_id: UUID | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    payload: dict[str, Any] = field(default_factory=dict)


class AuditRepositoryPort(Protocol):
    """Async audit repository contract."""

    async def append_event(self, payload: AuditEventCreateInput) -> int:
        """Append an audit event and return its numeric id."""
