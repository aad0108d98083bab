"""Closed permission vocabulary and permission-set helpers."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from enum import StrEnum

logger = logging.getLogger(__name__)


class Permission(StrEnum):
    """Authorizable capabilities granted through role membership."""

    VIEW_DASHBOARD = "view_dashboard"
    MANAGE_USERS = "manage_users"
    MANAGE_ROLES = "manage_roles"
    MANAGE_SETTINGS = "manage_settings"


PermissionSet = frozenset[Permission]


def parse_permissions(codes: Iterable[Permission | str]) -> PermissionSet:
    """Parse permission codes strictly; unknown codes raise ValueError."""

    parsed: set[Permission] = set()
    for code in codes:
        try:
            parsed.add(Permission(code))
        except ValueError as error:
            raise ValueError(f"unknown permission code: {code!r}") from error
    return frozenset(parsed)


def permissions_from_storage(codes: Iterable[str]) -> PermissionSet:
    """Build a permission set from stored codes, skipping unknown values."""

    parsed: set[Permission] = set()
    for code in codes:
        try:
            parsed.add(Permission(code))
        except ValueError:
            logger.warning("unknown_permission_code_skipped permission=%s", code)
    return frozenset(parsed)
