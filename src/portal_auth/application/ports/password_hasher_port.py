"""Port for the credential vault: one-way password hashing and verification."""

from __future__ import annotations

from typing import Protocol


class PasswordHasherPort(Protocol):
    """Salted, adaptive password hashing contract."""

    def hash_password(self, password: str) -> str:
        """Return a self-describing hash; the same input hashes differently each call."""

    def verify_password(self, *, password: str, password_hash: str) -> bool:
        """Return whether the password matches.

        Raises ``PasswordHashFormatError`` when the stored hash cannot be parsed,
        so corrupt rows are not mistaken for a wrong password.
        """
