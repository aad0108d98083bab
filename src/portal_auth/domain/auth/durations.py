"""Parsing for compact duration strings such as ``15m`` or ``7d``."""

from __future__ import annotations

import re
from datetime import timedelta

_DURATION_PATTERN = re.compile(r"^(?P<amount>\d+)(?P<unit>[smhd])$")
_UNIT_SECONDS = {"s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_duration(value: str) -> timedelta:
    """Parse ``<int><s|m|h|d>`` into a positive timedelta."""

    match = _DURATION_PATTERN.match(value.strip())
    if match is None:
        raise ValueError(f"invalid duration {value!r}, expected e.g. '15m' or '7d'")

    amount = int(match.group("amount"))
    if amount <= 0:
        raise ValueError(f"duration must be positive: {value!r}")
    return timedelta(seconds=amount * _UNIT_SECONDS[match.group("unit")])
