"""JSON helpers for outbox payloads.

Domain events are dataclasses whose fields may hold datetimes, dates,
enums or nested value objects. These helpers flatten them into
JSON-compatible structures for the outbox payload column.
"""

from __future__ import annotations

from dataclasses import asdict, is_dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any


def to_json_safe(value: Any) -> Any:
    """Recursively convert a value into JSON-compatible primitives.

    Args:
        value: Any dataclass, mapping, sequence or scalar

    Returns:
        The same structure built only from dict, list, str, int, float,
        bool and None
    """
    if isinstance(value, Enum):
        return value.value
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if is_dataclass(value) and not isinstance(value, type):
        return to_json_safe(asdict(value))
    if isinstance(value, dict):
        return {str(key): to_json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_json_safe(item) for item in value]
    return str(value)


def serialize_event_fields(
    event: Any, exclude: frozenset[str] = frozenset()
) -> dict[str, Any]:
    """Serialize a dataclass event's fields, skipping ``exclude``.

    Args:
        event: A dataclass instance
        exclude: Field names to leave out (typically envelope fields)

    Returns:
        JSON-compatible dictionary of the remaining fields

    Raises:
        TypeError: If ``event`` is not a dataclass instance
    """
    if not is_dataclass(event) or isinstance(event, type):
        raise TypeError(f"Expected a dataclass event, got {type(event).__name__}")
    data = asdict(event)
    return {
        key: to_json_safe(value) for key, value in data.items() if key not in exclude
    }
