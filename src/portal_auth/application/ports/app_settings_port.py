"""Port for administratively tunable key/value settings."""

from __future__ import annotations

from typing import Protocol


class AppSettingsPort(Protocol):
    """Key/value settings edited by portal administrators."""

    async def get_value(self, *, key: str) -> str | None:
        """Return a raw setting value or None when unset."""
