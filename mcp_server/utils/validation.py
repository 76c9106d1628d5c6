# ============================================================================
# CHANGELOG (recent first, max 5 entries)
# 10/05/2026 - Added validate_bool, validate_iso_date, validate_string_list
# ============================================================================
"""
Validation utilities for MCP tool arguments.

Every validator returns a (value, error) tuple and never raises.
"""

import os
from datetime import datetime, timezone
from typing import Optional

# Set IMESSAGE_MAX_LIMIT to override (e.g., for full history analysis)
MAX_MESSAGE_LIMIT = int(os.getenv("IMESSAGE_MAX_LIMIT", "500"))
MAX_SEARCH_RESULTS = int(os.getenv("IMESSAGE_MAX_SEARCH", "500"))
MIN_LIMIT = 1


def validate_positive_int(
    value,
    name: str,
    min_val: int = MIN_LIMIT,
    max_val: int = MAX_MESSAGE_LIMIT
) -> tuple[int | None, str | None]:
    """
    Validate that a value is an integer within bounds.

    Args:
        value: Value to validate
        name: Parameter name for error messages
        min_val: Minimum allowed value
        max_val: Maximum allowed value

    Returns:
        Tuple of (validated_value, error_message). If valid, error_message is None.
    """
    if value is None:
        return None, None

    if isinstance(value, bool):
        return None, f"Invalid {name}: must be an integer, got bool"

    try:
        int_value = int(value)
    except (TypeError, ValueError):
        return None, f"Invalid {name}: must be an integer, got {type(value).__name__}"

    if int_value < min_val:
        return None, f"Invalid {name}: must be at least {min_val}, got {int_value}"

    if int_value > max_val:
        return None, f"Invalid {name}: must be at most {max_val}, got {int_value}"

    return int_value, None


def validate_non_empty_string(value, name: str) -> tuple[str | None, str | None]:
    """
    Validate that a value is a non-empty string.

    Returns:
        Tuple of (stripped_value, error_message).
    """
    if value is None:
        return None, f"Missing required parameter: {name}"

    if not isinstance(value, str):
        return None, f"Invalid {name}: must be a string, got {type(value).__name__}"

    stripped = value.strip()
    if not stripped:
        return None, f"Invalid {name}: cannot be empty"

    return stripped, None


def validate_optional_string(value, name: str) -> tuple[str | None, str | None]:
    """Like validate_non_empty_string, but None/blank means "not given"."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None, None
    return validate_non_empty_string(value, name)


def validate_limit(
    arguments: dict,
    default: int = 20,
    max_val: int = MAX_MESSAGE_LIMIT
) -> tuple[int, str | None]:
    """
    Extract and validate 'limit' from a tool's arguments dict.

    Returns:
        Tuple of (limit_value, error_message). Uses default if not provided.
    """
    limit_raw = arguments.get("limit", default)
    limit, error = validate_positive_int(limit_raw, "limit", max_val=max_val)
    if error:
        return default, error
    return limit if limit is not None else default, None


def validate_enum(
    value,
    name: str,
    allowed_values: list[str],
    default: Optional[str] = None
) -> tuple[str | None, str | None]:
    """
    Validate that a value is one of the allowed values.

    Returns:
        Tuple of (validated_value, error_message).
    """
    if value is None:
        if default is not None:
            return default, None
        return None, f"Missing required parameter: {name}"

    if value not in allowed_values:
        return None, (
            f"Invalid {name}: must be one of {allowed_values}, "
            f"got '{value}'"
        )

    return value, None


def validate_bool(value, name: str, default: Optional[bool] = False) -> tuple[bool | None, str | None]:
    """Validate a boolean flag (JSON true/false only)."""
    if value is None:
        return default, None
    if not isinstance(value, bool):
        return None, f"Invalid {name}: must be true or false, got {type(value).__name__}"
    return value, None


def validate_iso_date(value, name: str) -> tuple[datetime | None, str | None]:
    """
    Parse an optional ISO 8601 date/datetime string.

    Naive values are taken as UTC.
    """
    if value is None or value == "":
        return None, None

    if not isinstance(value, str):
        return None, f"Invalid {name}: must be an ISO date string, got {type(value).__name__}"

    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None, f"Invalid {name}: '{value}' is not an ISO date (e.g. 2026-01-31 or 2026-01-31T09:00:00)"

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed, None


def validate_string_list(value, name: str) -> tuple[list[str] | None, str | None]:
    """Validate a non-empty list of non-empty strings."""
    if value is None:
        return None, f"Missing required parameter: {name}"

    if not isinstance(value, list) or not value:
        return None, f"Invalid {name}: must be a non-empty list of strings"

    items = []
    for item in value:
        if not isinstance(item, str) or not item.strip():
            return None, f"Invalid {name}: every entry must be a non-empty string"
        items.append(item.strip())
    return items, None
