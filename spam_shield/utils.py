"""Utility helpers shared across modules."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any


def millis_to_datetime(value: int) -> datetime:
    """Convert epoch milliseconds into an aware UTC datetime."""
    return datetime.fromtimestamp(value / 1000, tz=UTC)


def parse_epoch_millis(value: Any) -> int:
    """Accept the device's `date` field (string or number) as integer millis."""
    if isinstance(value, bool):
        raise ValueError(f"Invalid epoch milliseconds: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    raise ValueError(f"Invalid epoch milliseconds: {value!r}")


def load_json_list(payload: str | bytes) -> list[Any]:
    """Decode a JSON payload that must hold a list."""
    decoded = json.loads(payload)
    if not isinstance(decoded, list):
        raise ValueError(f"Expected a JSON list, got {type(decoded).__name__}")
    return decoded
