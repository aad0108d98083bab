"""Wiring of the credential-core services from settings and a database."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from portal_auth.application.ports.notification_port import NotificationSenderPort
from portal_auth.application.services.auth_service import AuthService
from portal_auth.application.services.otp_service import OtpEngine
from portal_auth.application.services.permission_gate import PermissionGate
from portal_auth.application.services.token_service import TokenService
from portal_auth.config.policy import AuthPolicy
from portal_auth.infrastructure.db.app_settings_repository import SqlAlchemyAppSettingsRepository
from portal_auth.infrastructure.db.audit_repository import SqlAlchemyAuditRepository
from portal_auth.infrastructure.db.otp_repository import SqlAlchemyOtpRepository
from portal_auth.infrastructure.db.refresh_token_repository import (
    SqlAlchemyRefreshTokenRepository,
)
from portal_auth.infrastructure.db.role_permission_repository import (
    SqlAlchemyRolePermissionRepository,
)
from portal_auth.infrastructure.db.user_repository import SqlAlchemyUserRepository
from portal_auth.infrastructure.http.auth_guard import AccessTokenGuard
from portal_auth.infrastructure.security.access_token_codec import JwtAccessTokenCodec
from portal_auth.infrastructure.security.field_cipher import FieldCipher, build_field_cipher
from portal_auth.infrastructure.security.password_hasher import DUMMY_HASH, BcryptPasswordHasher
from portal_auth.infrastructure.security.token_service import OpaqueTokenService


@dataclass(frozen=True)
class CredentialCore:
    """Composed credential-core services sharing one policy and database."""

    policy: AuthPolicy
    field_cipher: FieldCipher
    password_hasher: BcryptPasswordHasher
    tokens: TokenService
    otps: OtpEngine
    permission_gate: PermissionGate
    auth: AuthService
    guard: AccessTokenGuard


def build_credential_core(
    *,
    policy: AuthPolicy,
    session_factory: async_sessionmaker[AsyncSession],
    notifier: NotificationSenderPort,
) -> CredentialCore:
    """Build every credential-core service with SQLAlchemy-backed dependencies."""

    refresh_tokens = SqlAlchemyRefreshTokenRepository(session_factory)
    role_permissions = SqlAlchemyRolePermissionRepository(session_factory)
    otp_repository = SqlAlchemyOtpRepository(session_factory)
    audit = SqlAlchemyAuditRepository(session_factory)
    password_hasher = BcryptPasswordHasher(rounds=policy.bcrypt_rounds)

    tokens = TokenService(
        refresh_tokens=refresh_tokens,
        role_permissions=role_permissions,
        access_codec=JwtAccessTokenCodec(
            secret=policy.access_token_secret,
            issuer=policy.issuer,
        ),
        opaque_tokens=OpaqueTokenService(secret=policy.refresh_token_secret),
        policy=policy,
    )
    otps = OtpEngine(
        otps=otp_repository,
        notifier=notifier,
        app_settings=SqlAlchemyAppSettingsRepository(session_factory),
        policy=policy,
    )
    permission_gate = PermissionGate(role_permissions=role_permissions, audit=audit)
    auth = AuthService(
        users=SqlAlchemyUserRepository(session_factory),
        audit=audit,
        password_hasher=password_hasher,
        tokens=tokens,
        otps=otps,
        dummy_password_hash=DUMMY_HASH,
    )
    return CredentialCore(
        policy=policy,
        field_cipher=build_field_cipher(policy.field_encryption_key),
        password_hasher=password_hasher,
        tokens=tokens,
        otps=otps,
        permission_gate=permission_gate,
        auth=auth,
        guard=AccessTokenGuard(tokens=tokens, permission_gate=permission_gate),
    )
