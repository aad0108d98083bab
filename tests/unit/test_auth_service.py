from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from uuid import UUID, uuid4

import pytest

from portal_auth.application.ports.audit_repository_port import AuditEventCreateInput
from portal_auth.application.ports.otp_repository_port import OtpRecord
from portal_auth.application.ports.refresh_token_repository_port import (
    RefreshTokenCreateInput,
    RefreshTokenRecord,
)
from portal_auth.application.ports.user_repository_port import UserRecord
from portal_auth.application.services.auth_service import AuthService
from portal_auth.application.services.token_service import TokenService
from portal_auth.config.policy import AuthPolicy
from portal_auth.domain.auth.account_status import AccountStatus
from portal_auth.domain.auth.audit_events import AuditEventType
from portal_auth.domain.auth.errors import (
    InvalidCredentialsError,
    InvalidTokenError,
    OtpMismatchError,
    OtpNotFoundError,
    RevokedTokenError,
)
from portal_auth.domain.auth.otp import OtpChannel, OtpPurpose, OtpTarget
from portal_auth.infrastructure.security.access_token_codec import JwtAccessTokenCodec
from portal_auth.infrastructure.security.token_service import OpaqueTokenService

_ACCESS_SECRET = "access-token-secret-with-at-least-32-chars"
_REFRESH_SECRET = "refresh-token-secret-with-at-least-32-chars"
_DUMMY_HASH = "hashed::dummy"


@dataclass
class FakeUserRepository:
    users: dict[UUID, UserRecord] = field(default_factory=dict)

    async def get_by_id(self, *, user_id: UUID) -> UserRecord | None:
        return self.users.get(user_id)

    async def get_by_email(self, *, email: str) -> UserRecord | None:
        return next((user for user in self.users.values() if user.email == email), None)

    async def get_by_phone(self, *, phone: str) -> UserRecord | None:
        return next((user for user in self.users.values() if user.phone == phone), None)

    async def update_password_hash(self, *, user_id: UUID, password_hash: str) -> bool:
        user = self.users.get(user_id)
        if user is None:
            return False
        self.users[user_id] = replace(user, password_hash=password_hash)
        return True


class FakeAuditRepository:
    def __init__(self) -> None:
        self.events: list[AuditEventCreateInput] = []

    async def append_event(self, payload: AuditEventCreateInput) -> int:
        self.events.append(payload)
        return len(self.events)

    def types(self) -> list[AuditEventType]:
        return [event.event_type for event in self.events]


class FakePasswordHasher:
    def __init__(self) -> None:
        self.verify_calls: list[tuple[str, str]] = []

    def hash_password(self, password: str) -> str:
        return f"hashed::{password}"

    def verify_password(self, *, password: str, password_hash: str) -> bool:
        self.verify_calls.append((password, password_hash))
        return password_hash == f"hashed::{password}"


class FakeRefreshTokenRepository:
    def __init__(self) -> None:
        self.records: dict[str, RefreshTokenRecord] = {}

    async def create_token(self, payload: RefreshTokenCreateInput) -> RefreshTokenRecord:
        record = RefreshTokenRecord(
            id=len(self.records) + 1,
            user_id=payload.user_id,
            token_hash=payload.token_hash,
            issued_at=datetime.now(tz=UTC),
            expires_at=payload.expires_at,
            revoked_at=None,
        )
        self.records[payload.token_hash] = record
        return record

    async def get_by_hash(self, *, token_hash: str) -> RefreshTokenRecord | None:
        return self.records.get(token_hash)

    async def revoke_by_hash(self, *, token_hash: str) -> bool:
        record = self.records.get(token_hash)
        if record is None or record.revoked_at is not None:
            return False
        self.records[token_hash] = replace(record, revoked_at=datetime.now(tz=UTC))
        return True

    async def rotate(
        self,
        *,
        token_hash: str,
        replacement: RefreshTokenCreateInput,
    ) -> RefreshTokenRecord | None:
        if not await self.revoke_by_hash(token_hash=token_hash):
            return None
        return await self.create_token(replacement)

    async def revoke_active_tokens_for_user(self, *, user_id: UUID) -> int:
        count = 0
        for token_hash, record in list(self.records.items()):
            if record.user_id == user_id and record.revoked_at is None:
                self.records[token_hash] = replace(record, revoked_at=datetime.now(tz=UTC))
                count += 1
        return count

    def active_count(self, user_id: UUID) -> int:
        return sum(
            1
            for record in self.records.values()
            if record.user_id == user_id and record.revoked_at is None
        )


class FakeRolePermissionRepository:
    async def list_permission_codes_for_user(self, *, user_id: UUID) -> list[str]:
        _ = user_id
        return ["view_dashboard"]


class FakeOtpEngine:
    def __init__(self, *, record: OtpRecord | None = None, error: Exception | None = None) -> None:
        self.record = record
        self.error = error
        self.verify_calls: list[tuple[OtpTarget, OtpPurpose, str]] = []

    async def verify(
        self,
        target: OtpTarget,
        purpose: OtpPurpose,
        submitted_code: str,
    ) -> OtpRecord:
        self.verify_calls.append((target, purpose, submitted_code))
        if self.error is not None:
            raise self.error
        assert self.record is not None
        return self.record


@dataclass
class Harness:
    service: AuthService
    users: FakeUserRepository
    audit: FakeAuditRepository
    hasher: FakePasswordHasher
    refresh_tokens: FakeRefreshTokenRepository


def _user(
    *,
    email: str = "pat@example.com",
    phone: str | None = "+61412345678",
    password: str = "correct-horse",
    status: AccountStatus = AccountStatus.ACTIVE,
) -> UserRecord:
    now = datetime.now(tz=UTC)
    return UserRecord(
        user_id=uuid4(),
        email=email,
        phone=phone,
        password_hash=f"hashed::{password}",
        status=status,
        created_at=now,
        updated_at=now,
    )


def _otp_record(*, target: str, user_id: UUID | None) -> OtpRecord:
    now = datetime.now(tz=UTC)
    return OtpRecord(
        id=1,
        target=target,
        channel=OtpChannel.EMAIL if "@" in target else OtpChannel.PHONE,
        purpose=OtpPurpose.PASSWORD_RESET,
        user_id=user_id,
        code_hash="unused",
        attempts=1,
        created_at=now,
        expires_at=now + timedelta(minutes=10),
        verified_at=now,
    )


def _harness(*users: UserRecord, otps: FakeOtpEngine | None = None) -> Harness:
    policy = AuthPolicy(access_token_secret=_ACCESS_SECRET, refresh_token_secret=_REFRESH_SECRET)
    user_repository = FakeUserRepository({user.user_id: user for user in users})
    audit = FakeAuditRepository()
    hasher = FakePasswordHasher()
    refresh_tokens = FakeRefreshTokenRepository()
    tokens = TokenService(
        refresh_tokens=refresh_tokens,  # type: ignore[arg-type]
        role_permissions=FakeRolePermissionRepository(),
        access_codec=JwtAccessTokenCodec(secret=_ACCESS_SECRET, issuer=policy.issuer),
        opaque_tokens=OpaqueTokenService(secret=_REFRESH_SECRET),
        policy=policy,
    )
    service = AuthService(
        users=user_repository,
        audit=audit,
        password_hasher=hasher,
        tokens=tokens,
        otps=otps or FakeOtpEngine(),  # type: ignore[arg-type]
        dummy_password_hash=_DUMMY_HASH,
    )
    return Harness(
        service=service,
        users=user_repository,
        audit=audit,
        hasher=hasher,
        refresh_tokens=refresh_tokens,
    )


@pytest.mark.asyncio
async def test_login_success_issues_tokens_and_audits() -> None:
    user = _user()
    harness = _harness(user)

    result = await harness.service.login(
        email="  Pat@Example.com ",
        password="correct-horse",
        ip_address="127.0.0.1",
        user_agent="pytest",
    )

    assert result.user == user
    assert result.tokens.user_id == user.user_id
    assert harness.audit.types() == [AuditEventType.LOGIN_SUCCESS]
    event = harness.audit.events[0]
    assert event.actor_user_id == user.user_id
    assert event.payload == {"email": "pa***@example.com"}
    assert harness.refresh_tokens.active_count(user.user_id) == 1


@pytest.mark.asyncio
async def test_login_wrong_password_and_unknown_user_fail_identically() -> None:
    user = _user()
    harness = _harness(user)

    with pytest.raises(InvalidCredentialsError) as wrong_password:
        await harness.service.login(email=user.email, password="wrong")
    with pytest.raises(InvalidCredentialsError) as unknown_user:
        await harness.service.login(email="ghost@example.com", password="wrong")

    assert str(wrong_password.value) == str(unknown_user.value)
    assert harness.hasher.verify_calls[-1] == ("wrong", _DUMMY_HASH)
    assert harness.audit.types() == [AuditEventType.LOGIN_FAILED, AuditEventType.LOGIN_FAILED]
    assert harness.audit.events[0].payload["reason"] == "invalid_credentials"
    assert harness.audit.events[1].actor_user_id is None


@pytest.mark.asyncio
async def test_login_of_suspended_user_is_rejected_generically() -> None:
    user = _user(status=AccountStatus.SUSPENDED)
    harness = _harness(user)

    with pytest.raises(InvalidCredentialsError):
        await harness.service.login(email=user.email, password="correct-horse")

    assert harness.audit.events[0].payload["reason"] == "inactive_user"
    assert harness.refresh_tokens.records == {}


@pytest.mark.asyncio
async def test_blank_email_is_invalid_credentials() -> None:
    harness = _harness()

    with pytest.raises(InvalidCredentialsError):
        await harness.service.login(email="   ", password="pw")


@pytest.mark.asyncio
async def test_refresh_session_rotates_for_active_user() -> None:
    user = _user()
    harness = _harness(user)
    login = await harness.service.login(email=user.email, password="correct-horse")

    rotated = await harness.service.refresh_session(refresh_token=login.tokens.refresh_token)

    assert rotated.refresh_token != login.tokens.refresh_token
    with pytest.raises(RevokedTokenError):
        await harness.service.refresh_session(refresh_token=login.tokens.refresh_token)
    assert harness.audit.events[-1].event_type is AuditEventType.TOKEN_REFRESH_REJECTED
    assert harness.audit.events[-1].payload == {"reason": "token_revoked"}


@pytest.mark.asyncio
async def test_refresh_session_of_suspended_user_revokes_everything() -> None:
    user = _user()
    harness = _harness(user)
    login = await harness.service.login(email=user.email, password="correct-horse")
    harness.users.users[user.user_id] = replace(user, status=AccountStatus.SUSPENDED)

    with pytest.raises(InvalidTokenError):
        await harness.service.refresh_session(refresh_token=login.tokens.refresh_token)

    assert harness.refresh_tokens.active_count(user.user_id) == 0
    assert harness.audit.events[-1].payload == {"reason": "inactive_user"}


@pytest.mark.asyncio
async def test_logout_revokes_presented_token() -> None:
    user = _user()
    harness = _harness(user)
    login = await harness.service.login(email=user.email, password="correct-horse")

    await harness.service.logout(refresh_token=login.tokens.refresh_token, user_id=user.user_id)
    await harness.service.logout(refresh_token=login.tokens.refresh_token, user_id=user.user_id)

    assert harness.refresh_tokens.active_count(user.user_id) == 0
    logout_events = [
        event for event in harness.audit.events if event.event_type is AuditEventType.LOGOUT
    ]
    assert [event.payload for event in logout_events] == [{"revoked": True}, {"revoked": False}]


@pytest.mark.asyncio
async def test_logout_all_revokes_every_session() -> None:
    user = _user()
    harness = _harness(user)
    await harness.service.login(email=user.email, password="correct-horse")
    await harness.service.login(email=user.email, password="correct-horse")

    assert await harness.service.logout_all(user_id=user.user_id) == 2
    assert harness.audit.types()[-1] is AuditEventType.LOGOUT_ALL


@pytest.mark.asyncio
async def test_change_password_requires_current_password_and_ends_sessions() -> None:
    user = _user()
    harness = _harness(user)
    await harness.service.login(email=user.email, password="correct-horse")

    with pytest.raises(InvalidCredentialsError):
        await harness.service.change_password(
            user_id=user.user_id,
            current_password="wrong",
            new_password="battery-staple",
        )

    await harness.service.change_password(
        user_id=user.user_id,
        current_password="correct-horse",
        new_password="battery-staple",
    )

    assert harness.users.users[user.user_id].password_hash == "hashed::battery-staple"
    assert harness.refresh_tokens.active_count(user.user_id) == 0
    assert harness.audit.types()[-1] is AuditEventType.PASSWORD_CHANGED


@pytest.mark.asyncio
async def test_change_password_rejects_blank_new_password() -> None:
    user = _user()
    harness = _harness(user)

    with pytest.raises(ValueError):
        await harness.service.change_password(
            user_id=user.user_id,
            current_password="correct-horse",
            new_password="   ",
        )


@pytest.mark.asyncio
async def test_changed_password_with_surrounding_spaces_logs_in_as_typed() -> None:
    user = _user()
    harness = _harness(user)

    await harness.service.change_password(
        user_id=user.user_id,
        current_password="correct-horse",
        new_password="  battery staple  ",
    )
    result = await harness.service.login(email=user.email, password="  battery staple  ")

    assert result.user.user_id == user.user_id
    with pytest.raises(InvalidCredentialsError):
        await harness.service.login(email=user.email, password="battery staple")


@pytest.mark.asyncio
async def test_reset_password_keeps_surrounding_spaces() -> None:
    user = _user()
    target = OtpTarget.email(user.email)
    otps = FakeOtpEngine(record=_otp_record(target=target.address, user_id=user.user_id))
    harness = _harness(user, otps=otps)

    await harness.service.reset_password(target=target, code="123456", new_password=" pw-2 ")

    assert harness.users.users[user.user_id].password_hash == "hashed:: pw-2 "
    result = await harness.service.login(email=user.email, password=" pw-2 ")
    assert result.user.user_id == user.user_id


@pytest.mark.asyncio
async def test_reset_password_with_verified_code_updates_owner() -> None:
    user = _user()
    target = OtpTarget.email(user.email)
    otps = FakeOtpEngine(record=_otp_record(target=target.address, user_id=user.user_id))
    harness = _harness(user, otps=otps)

    reset_user_id = await harness.service.reset_password(
        target=target,
        code="123456",
        new_password="new-password",
    )

    assert reset_user_id == user.user_id
    assert otps.verify_calls == [(target, OtpPurpose.PASSWORD_RESET, "123456")]
    assert harness.users.users[user.user_id].password_hash == "hashed::new-password"
    assert harness.audit.events[-1].payload == {"channel": "email"}


@pytest.mark.asyncio
async def test_reset_password_by_phone_resolves_user_without_linked_id() -> None:
    user = _user()
    target = OtpTarget.phone("+61 412 345 678")
    otps = FakeOtpEngine(record=_otp_record(target=target.address, user_id=None))
    harness = _harness(user, otps=otps)

    assert (
        await harness.service.reset_password(target=target, code="1", new_password="pw-2")
        == user.user_id
    )


@pytest.mark.asyncio
async def test_reset_password_for_unknown_account_is_not_found() -> None:
    target = OtpTarget.email("ghost@example.com")
    otps = FakeOtpEngine(record=_otp_record(target=target.address, user_id=None))
    harness = _harness(otps=otps)

    with pytest.raises(OtpNotFoundError):
        await harness.service.reset_password(target=target, code="1", new_password="pw-2")


@pytest.mark.asyncio
async def test_reset_password_propagates_code_rejection() -> None:
    user = _user()
    harness = _harness(user, otps=FakeOtpEngine(error=OtpMismatchError(remaining_attempts=2)))

    with pytest.raises(OtpMismatchError):
        await harness.service.reset_password(
            target=OtpTarget.email(user.email),
            code="000000",
            new_password="new-password",
        )

    assert harness.users.users[user.user_id].password_hash == "hashed::correct-horse"
