"""Bcrypt password hasher adapter."""

from __future__ import annotations

import bcrypt

from portal_auth.application.ports.password_hasher_port import PasswordHasherPort
from portal_auth.domain.auth.credentials import MAX_PASSWORD_BYTES
from portal_auth.domain.auth.errors import PasswordHashFormatError

DEFAULT_BCRYPT_ROUNDS = 12

# Pre-computed hash verified against when a login names an unknown user, so
# that path costs the same as a real password check.
DUMMY_HASH = "$2b$12$ZP2PVB8yI35X.mkRqcUPUuSzJA1CNRt4dZ7X3cyrfJu.2S3w.Qen2"

_BCRYPT_PREFIXES = ("$2a$", "$2b$", "$2y$")
_BCRYPT_HASH_LENGTH = 60


class BcryptPasswordHasher(PasswordHasherPort):
    """Password hashing adapter using bcrypt with a fixed work factor."""

    def __init__(self, *, rounds: int = DEFAULT_BCRYPT_ROUNDS) -> None:
        if not 4 <= rounds <= 31:
            raise ValueError("bcrypt rounds must be between 4 and 31")
        self._rounds = rounds

    def hash_password(self, password: str) -> str:
        encoded = password.encode("utf-8")
        if len(encoded) > MAX_PASSWORD_BYTES:
            raise ValueError(f"password cannot exceed {MAX_PASSWORD_BYTES} bytes")
        return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=self._rounds)).decode("utf-8")

    def verify_password(self, *, password: str, password_hash: str) -> bool:
        if (
            len(password_hash) != _BCRYPT_HASH_LENGTH
            or not password_hash.startswith(_BCRYPT_PREFIXES)
        ):
            raise PasswordHashFormatError()

        encoded = password.encode("utf-8")
        if len(encoded) > MAX_PASSWORD_BYTES:
            # Never hashed by this adapter, so it cannot match.
            return False
        try:
            return bcrypt.checkpw(encoded, password_hash.encode("utf-8"))
        except ValueError as error:
            raise PasswordHashFormatError() from error
