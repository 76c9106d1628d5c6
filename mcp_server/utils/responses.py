# ============================================================================
# CHANGELOG (recent first, max 5 entries)
# 10/05/2026 - Added format_message_line, dropped contacts.json wording
# ============================================================================
"""
Response formatting utilities for MCP tool handlers.

Provides standardized response builders for common scenarios.
"""

from mcp import types
from typing import Optional


def text_response(text: str) -> list[types.TextContent]:
    """Create a simple text response."""
    return [types.TextContent(type="text", text=text)]


def success_response(message: str, details: Optional[str] = None) -> list[types.TextContent]:
    """
    Create a standardized success response.

    Args:
        message: Primary success message
        details: Optional additional details
    """
    text = f"✓ {message}"
    if details:
        text += f"\n\n{details}"
    return text_response(text)


def error_response(error: str, prefix: str = "Error") -> list[types.TextContent]:
    """
    Create a standardized error response.

    Args:
        error: Error message
        prefix: Prefix for the error (default: "Error")
    """
    return text_response(f"{prefix}: {error}")


def validation_error(error: str) -> list[types.TextContent]:
    """Create a validation error response."""
    return error_response(error, "Validation error")


def empty_result(
    item_type: str,
    filter_text: str = "",
    hint: Optional[str] = None
) -> list[types.TextContent]:
    """
    Create an empty result response.

    Args:
        item_type: Type of items being searched (e.g., "messages", "contacts")
        filter_text: Additional filter description (e.g., " from +14155551234")
        hint: Optional helpful hint
    """
    message = f"No {item_type} found{filter_text}."
    if hint:
        message += f"\n\nNote: {hint}"
    return text_response(message)


def truncate(text: Optional[str], length: int) -> str:
    """Shorten text for list display."""
    if not text:
        return "[no text]"
    return text[:length] + "..." if len(text) > length else text


def format_date(value, length: int = 16) -> str:
    """ISO date prefix, or 'Unknown'."""
    return value.isoformat()[:length] if value else "Unknown"


def format_message_line(message, sender_label: Optional[str] = None, length: int = 100) -> str:
    """
    One display line for a MessageRecord.

    Args:
        message: MessageRecord
        sender_label: Overrides the raw sender handle
        length: Text truncation length
    """
    if message.is_from_me:
        who = "You"
    else:
        who = sender_label or message.sender

    line = f"[{format_date(message.date, 19)}] {who}: {truncate(message.text, length)}"
    if message.attachments:
        names = ", ".join(a.filename for a in message.attachments)
        line += f" 📎 {names}"
    return line
