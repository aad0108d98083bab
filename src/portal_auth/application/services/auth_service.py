"""Application authentication service for login, sessions and password changes."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from portal_auth.application.ports.audit_repository_port import (
    AuditEventCreateInput,
    AuditRepositoryPort,
)
from portal_auth.application.ports.password_hasher_port import PasswordHasherPort
from portal_auth.application.ports.user_repository_port import UserRecord, UserRepositoryPort
from portal_auth.application.services.otp_service import OtpEngine
from portal_auth.application.services.token_service import TokenPair, TokenService
from portal_auth.domain.auth.audit_events import AuditEventType
from portal_auth.domain.auth.credentials import normalize_user_email, normalize_user_password
from portal_auth.domain.auth.errors import (
    InvalidCredentialsError,
    InvalidTokenError,
    OtpNotFoundError,
    TokenError,
)
from portal_auth.domain.auth.otp import OtpChannel, OtpPurpose, OtpTarget
from portal_auth.domain.redaction import mask_email

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoginResult:
    """Successful login model."""

    user: UserRecord
    tokens: TokenPair


class AuthService:
    """Authenticate credentials, manage sessions and append auth audit events."""

    def __init__(
        self,
        *,
        users: UserRepositoryPort,
        audit: AuditRepositoryPort,
        password_hasher: PasswordHasherPort,
        tokens: TokenService,
        otps: OtpEngine,
        dummy_password_hash: str,
    ) -> None:
        self._users = users
        self._audit = audit
        self._password_hasher = password_hasher
        self._tokens = tokens
        self._otps = otps
        self._dummy_password_hash = dummy_password_hash

    async def login(
        self,
        *,
        email: str,
        password: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> LoginResult:
        """Verify credentials and issue a session; every failure looks the same."""

        try:
            normalized_email = normalize_user_email(email=email)
        except ValueError as error:
            raise InvalidCredentialsError() from error

        user = await self._users.get_by_email(email=normalized_email)
        if user is None:
            # Equalize timing with the known-user path.
            self._password_hasher.verify_password(
                password=password,
                password_hash=self._dummy_password_hash,
            )
            await self._login_failed(
                user_id=None,
                email=normalized_email,
                reason="invalid_credentials",
                ip_address=ip_address,
                user_agent=user_agent,
            )
            raise InvalidCredentialsError()

        is_valid = self._password_hasher.verify_password(
            password=password,
            password_hash=user.password_hash,
        )
        if not is_valid or not user.is_active:
            await self._login_failed(
                user_id=user.user_id,
                email=normalized_email,
                reason="invalid_credentials" if not is_valid else "inactive_user",
                ip_address=ip_address,
                user_agent=user_agent,
            )
            raise InvalidCredentialsError()

        tokens = await self._tokens.issue(user_id=user.user_id)
        await self._audit.append_event(
            AuditEventCreateInput(
                event_type=AuditEventType.LOGIN_SUCCESS,
                actor_user_id=user.user_id,
                ip_address=ip_address,
                user_agent=user_agent,
                payload={"email": mask_email(normalized_email)},
            )
        )
        return LoginResult(user=user, tokens=tokens)

    async def refresh_session(
        self,
        *,
        refresh_token: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> TokenPair:
        """Rotate a refresh token, rejecting sessions of users no longer active."""

        try:
            tokens = await self._tokens.refresh(refresh_token)
        except TokenError as error:
            await self._audit.append_event(
                AuditEventCreateInput(
                    event_type=AuditEventType.TOKEN_REFRESH_REJECTED,
                    ip_address=ip_address,
                    user_agent=user_agent,
                    payload={"reason": error.code},
                )
            )
            raise

        user = await self._users.get_by_id(user_id=tokens.user_id)
        if user is None or not user.is_active:
            await self._tokens.revoke_all_for_user(user_id=tokens.user_id)
            await self._audit.append_event(
                AuditEventCreateInput(
                    event_type=AuditEventType.TOKEN_REFRESH_REJECTED,
                    actor_user_id=tokens.user_id,
                    ip_address=ip_address,
                    user_agent=user_agent,
                    payload={"reason": "inactive_user"},
                )
            )
            raise InvalidTokenError()
        return tokens

    async def logout(self, *, refresh_token: str, user_id: UUID | None = None) -> None:
        """Revoke the presented refresh token."""

        revoked = await self._tokens.revoke(refresh_token)
        await self._audit.append_event(
            AuditEventCreateInput(
                event_type=AuditEventType.LOGOUT,
                actor_user_id=user_id,
                payload={"revoked": revoked},
            )
        )

    async def logout_all(self, *, user_id: UUID) -> int:
        """Revoke every session of one user."""

        revoked = await self._tokens.revoke_all_for_user(user_id=user_id)
        await self._audit.append_event(
            AuditEventCreateInput(
                event_type=AuditEventType.LOGOUT_ALL,
                actor_user_id=user_id,
                payload={"revoked": revoked},
            )
        )
        return revoked

    async def change_password(
        self,
        *,
        user_id: UUID,
        current_password: str,
        new_password: str,
    ) -> None:
        """Replace a password after re-checking the current one, then end all sessions."""

        user = await self._users.get_by_id(user_id=user_id)
        if user is None or not self._password_hasher.verify_password(
            password=current_password,
            password_hash=user.password_hash,
        ):
            raise InvalidCredentialsError()

        await self._store_new_password(user_id=user.user_id, new_password=new_password)
        await self._audit.append_event(
            AuditEventCreateInput(
                event_type=AuditEventType.PASSWORD_CHANGED,
                actor_user_id=user.user_id,
            )
        )

    async def reset_password(self, *, target: OtpTarget, code: str, new_password: str) -> UUID:
        """Consume a password-reset code and set a new password for its owner."""

        normalized_password = normalize_user_password(password=new_password)
        record = await self._otps.verify(target, OtpPurpose.PASSWORD_RESET, code)

        user: UserRecord | None
        if record.user_id is not None:
            user = await self._users.get_by_id(user_id=record.user_id)
        elif target.channel is OtpChannel.EMAIL:
            user = await self._users.get_by_email(email=target.address)
        else:
            user = await self._users.get_by_phone(phone=target.address)
        if user is None:
            raise OtpNotFoundError()

        await self._store_new_password(user_id=user.user_id, new_password=normalized_password)
        await self._audit.append_event(
            AuditEventCreateInput(
                event_type=AuditEventType.PASSWORD_RESET,
                actor_user_id=user.user_id,
                payload={"channel": target.channel.value},
            )
        )
        return user.user_id

    async def _store_new_password(self, *, user_id: UUID, new_password: str) -> None:
        normalized = normalize_user_password(password=new_password)
        password_hash = self._password_hasher.hash_password(normalized)
        await self._users.update_password_hash(user_id=user_id, password_hash=password_hash)
        revoked = await self._tokens.revoke_all_for_user(user_id=user_id)
        logger.info("password_updated user_id=%s sessions_revoked=%s", user_id, revoked)

    async def _login_failed(
        self,
        *,
        user_id: UUID | None,
        email: str,
        reason: str,
        ip_address: str | None,
        user_agent: str | None,
    ) -> None:
        logger.info("login_failed email=%s reason=%s", mask_email(email), reason)
        await self._audit.append_event(
            AuditEventCreateInput(
                event_type=AuditEventType.LOGIN_FAILED,
                actor_user_id=user_id,
                ip_address=ip_address,
                user_agent=user_agent,
                payload={"email": mask_email(email), "reason": reason},
            )
        )
