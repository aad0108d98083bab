"""Masking helpers for personal data that may reach logs or screens."""

from __future__ import annotations


def mask_email(email: str) -> str:
    """Keep the first two characters of the local part and the domain."""

    local, separator, domain = email.partition("@")
    if not separator:
        return "***"
    return f"{local[:2]}***@{domain}"


def mask_phone(phone: str) -> str:
    """Keep only the last four characters of a phone number."""

    if len(phone) <= 4:
        return "*" * len(phone)
    return "*" * (len(phone) - 4) + phone[-4:]


def mask_target(address: str) -> str:
    """Mask an OTP target, which is either an email or a phone number."""

    if "@" in address:
        return mask_email(address)
    return mask_phone(address)
