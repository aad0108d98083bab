"""Shared normalization helpers for user credential inputs."""

from __future__ import annotations

# bcrypt only looks at the first 72 bytes of a password.
MAX_PASSWORD_BYTES = 72


def normalize_user_email(*, email: str) -> str:
    """Normalize one user email and reject blank values."""

    normalized = email.strip().lower()
    if not normalized:
        raise ValueError("email cannot be blank")
    return normalized


def normalize_user_phone(*, phone: str) -> str:
    """Strip formatting characters from a phone number and reject blank values."""

    normalized = "".join(char for char in phone.strip() if char not in " -().")
    if not normalized:
        raise ValueError("phone cannot be blank")
    if not normalized.lstrip("+").isdigit():
        raise ValueError("phone must contain digits only")
    return normalized


def normalize_user_password(*, password: str) -> str:
    """Validate one plaintext password and return it unchanged.

    Surrounding whitespace is part of the secret; the value is hashed and
    verified exactly as typed. Blank and oversized values are rejected.
    """

    if not password.strip():
        raise ValueError("password cannot be blank")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"password cannot exceed {MAX_PASSWORD_BYTES} bytes")
    return password
