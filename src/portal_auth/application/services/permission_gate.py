"""Permission resolution and route authorization with denial auditing."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from enum import StrEnum
from uuid import UUID

from portal_auth.application.ports.audit_repository_port import (
    AuditEventCreateInput,
    AuditRepositoryPort,
)
from portal_auth.application.ports.role_permission_repository_port import (
    RolePermissionRepositoryPort,
)
from portal_auth.domain.auth.audit_events import AuditEventType
from portal_auth.domain.auth.errors import NotAuthenticatedError, PermissionDeniedError
from portal_auth.domain.auth.identity import Identity
from portal_auth.domain.auth.permissions import (
    Permission,
    PermissionSet,
    parse_permissions,
    permissions_from_storage,
)

logger = logging.getLogger(__name__)


class AuthorizationOutcome(StrEnum):
    """Supported authorization outcomes."""

    ALLOWED = "allowed"
    DENIED = "denied"
    UNAUTHENTICATED = "unauthenticated"


@dataclass(frozen=True)
class AuthorizationDecision:
    """Authorization result model."""

    outcome: AuthorizationOutcome
    required: PermissionSet
    granted: PermissionSet

    @property
    def allowed(self) -> bool:
        return self.outcome is AuthorizationOutcome.ALLOWED


@dataclass(frozen=True)
class RequestContext:
    """Request metadata attached to denial audit events."""

    method: str | None = None
    path: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None


class PermissionGate:
    """Authorize identities against "any one of" permission requirements."""

    def __init__(
        self,
        *,
        role_permissions: RolePermissionRepositoryPort,
        audit: AuditRepositoryPort,
    ) -> None:
        self._role_permissions = role_permissions
        self._audit = audit

    async def resolve_permissions(self, *, user_id: UUID) -> PermissionSet:
        """Union the permission codes reachable from the user's current roles."""

        codes = await self._role_permissions.list_permission_codes_for_user(user_id=user_id)
        return permissions_from_storage(codes)

    async def resolve_identity(self, *, user_id: UUID) -> Identity:
        """Build an identity from live role assignments instead of a token snapshot."""

        permissions = await self.resolve_permissions(user_id=user_id)
        return Identity(user_id=user_id, permissions=permissions)

    async def authorize(
        self,
        identity: Identity | None,
        required: Iterable[Permission | str],
        *,
        request: RequestContext | None = None,
    ) -> AuthorizationDecision:
        """Allow when the identity holds at least one required permission.

        Unknown permission codes in ``required`` raise ValueError, as does an
        empty requirement. Denials are reported to the audit trail.
        """

        required_set = parse_permissions(required)
        if not required_set:
            raise ValueError("at least one required permission must be given")

        if identity is None:
            return AuthorizationDecision(
                outcome=AuthorizationOutcome.UNAUTHENTICATED,
                required=required_set,
                granted=frozenset(),
            )

        if identity.permissions & required_set:
            return AuthorizationDecision(
                outcome=AuthorizationOutcome.ALLOWED,
                required=required_set,
                granted=identity.permissions,
            )

        await self._record_denial(identity=identity, required=required_set, request=request)
        return AuthorizationDecision(
            outcome=AuthorizationOutcome.DENIED,
            required=required_set,
            granted=identity.permissions,
        )

    async def require(
        self,
        identity: Identity | None,
        required: Iterable[Permission | str],
        *,
        request: RequestContext | None = None,
    ) -> Identity:
        """Exception-raising variant of ``authorize`` for guard call sites."""

        decision = await self.authorize(identity, required, request=request)
        if decision.outcome is AuthorizationOutcome.UNAUTHENTICATED:
            raise NotAuthenticatedError()
        if decision.outcome is AuthorizationOutcome.DENIED:
            raise PermissionDeniedError(
                required=[permission.value for permission in decision.required],
                granted=[permission.value for permission in decision.granted],
            )
        assert identity is not None
        return identity

    async def _record_denial(
        self,
        *,
        identity: Identity,
        required: PermissionSet,
        request: RequestContext | None,
    ) -> None:
        context = request or RequestContext()
        required_codes = sorted(permission.value for permission in required)
        granted_codes = sorted(permission.value for permission in identity.permissions)
        logger.warning(
            "access_denied user_id=%s method=%s path=%s required=%s granted=%s",
            identity.user_id,
            context.method,
            context.path,
            ",".join(required_codes),
            ",".join(granted_codes) or "-",
        )
        try:
            await self._audit.append_event(
                AuditEventCreateInput(
                    event_type=AuditEventType.ACCESS_DENIED,
                    actor_user_id=identity.user_id,
                    ip_address=context.ip_address,
                    user_agent=context.user_agent,
                    payload={
                        "required_permissions": required_codes,
                        "user_permissions": granted_codes,
                        "method": context.method,
                        "path": context.path,
                    },
                )
            )
        except Exception:  # noqa: BLE001
            # Audit delivery must not turn a deny into a server error.
            logger.exception("access_denied_audit_failed user_id=%s", identity.user_id)
