"""
Attachment Handlers

- get_attachments: Recent messages carrying attachments
- get_conversation_attachments: Attachments exchanged with one handle
"""

import logging
import sqlite3

from mcp import types

from imessage_mcp.messages_interface import MessageFilter, MessagesDatabaseUnavailable
from mcp_server.utils.validation import (
    validate_bool,
    validate_limit,
    validate_non_empty_string,
    validate_optional_string,
)
from mcp_server.utils.responses import (
    text_response,
    validation_error,
    empty_result,
    format_date,
)
from mcp_server.utils.errors import handle_database_error
from mcp_server.utils.labels import ContactLabels

logger = logging.getLogger(__name__)

ATTACHMENTS_MAX = 50
CONVERSATION_ATTACHMENTS_MAX = 100


def _format_size(size: int) -> str:
    if size >= 1024 * 1024:
        return f"{size / (1024 * 1024):.1f} MB"
    if size >= 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size} B"


def _attachment_lines(message_list, labels: ContactLabels, images_only: bool) -> list[str]:
    lines = []
    for msg in message_list:
        who = "You" if msg.is_from_me else labels.label(msg.sender)
        for attachment in msg.attachments:
            if images_only and not attachment.is_image:
                continue
            lines.append(
                f"[{format_date(msg.date)}] {who}: {attachment.filename} "
                f"({attachment.mime_type}, {_format_size(attachment.size)})\n"
                f"    {attachment.path}"
            )
    return lines


async def handle_get_attachments(
    arguments: dict,
    messages,
    contacts
) -> list[types.TextContent]:
    """
    Handle get_attachments tool call.

    Args:
        arguments: {"sender": Optional[str], "images_only": Optional[bool], "limit": Optional[int]}
        messages: MessagesInterface instance
        contacts: ContactsManager instance

    Returns:
        Attachments from the most recent messages that have them
    """
    sender, error = validate_optional_string(arguments.get("sender"), "sender")
    if error:
        return validation_error(error)

    images_only, error = validate_bool(arguments.get("images_only"), "images_only")
    if error:
        return validation_error(error)

    limit, error = validate_limit(arguments, default=20, max_val=ATTACHMENTS_MAX)
    if error:
        return validation_error(error)

    try:
        result = messages.get_messages(MessageFilter(
            sender=sender,
            limit=limit,
            has_attachments=True,
            exclude_own_messages=False,
        ))
    except (MessagesDatabaseUnavailable, sqlite3.Error) as e:
        return handle_database_error(e, "get_attachments")

    lines = _attachment_lines(result.messages, ContactLabels(contacts), images_only)
    if not lines:
        item_type = "images" if images_only else "attachments"
        return empty_result(item_type, f" from {sender}" if sender else "")

    header = f"Attachments ({len(lines)} from {result.total} messages):"
    return text_response("\n".join([header, ""] + lines))


async def handle_get_conversation_attachments(
    arguments: dict,
    messages,
    contacts
) -> list[types.TextContent]:
    """
    Handle get_conversation_attachments tool call.

    Args:
        arguments: {"handle": str, "limit": Optional[int]}
        messages: MessagesInterface instance
        contacts: ContactsManager instance
    """
    handle, error = validate_non_empty_string(arguments.get("handle"), "handle")
    if error:
        return validation_error(error)

    limit, error = validate_limit(arguments, default=50, max_val=CONVERSATION_ATTACHMENTS_MAX)
    if error:
        return validation_error(error)

    try:
        result = messages.get_messages(MessageFilter(
            sender=handle,
            limit=limit,
            has_attachments=True,
            exclude_own_messages=False,
        ))
    except (MessagesDatabaseUnavailable, sqlite3.Error) as e:
        return handle_database_error(e, "get_conversation_attachments")

    labels = ContactLabels(contacts)
    lines = _attachment_lines(result.messages, labels, images_only=False)
    if not lines:
        return empty_result("attachments", f" with {handle}")

    header = f"Attachments with {labels.label(handle)} ({len(lines)}):"
    return text_response("\n".join([header, ""] + lines))
