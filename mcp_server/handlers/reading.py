# ============================================================================
# CHANGELOG (recent first, max 5 entries)
# 10/12/2026 - get_messages takes a full filter set (since, service, chat_id)
# 10/05/2026 - Moved to MessageFilter/MessageQueryResult
# ============================================================================
"""
Reading Handlers

Handles tools for reading messages:
- get_messages: Filtered messages across all chats
- get_unread_messages: Unread messages grouped by sender
- search_messages: Search recent messages by content/keyword
"""

import logging
import sqlite3

from mcp import types

from imessage_mcp.messages_interface import (
    MessageFilter,
    MessagesDatabaseUnavailable,
    VALID_SERVICES,
)
from mcp_server.utils.validation import (
    validate_bool,
    validate_enum,
    validate_iso_date,
    validate_limit,
    validate_non_empty_string,
    validate_optional_string,
    MAX_MESSAGE_LIMIT,
    MAX_SEARCH_RESULTS,
)
from mcp_server.utils.responses import (
    text_response,
    validation_error,
    empty_result,
    format_message_line,
)
from mcp_server.utils.errors import handle_database_error
from mcp_server.utils.labels import ContactLabels

logger = logging.getLogger(__name__)

GET_MESSAGES_MAX = 100
SEARCH_MAX = 100


async def handle_get_messages(
    arguments: dict,
    messages,
    contacts
) -> list[types.TextContent]:
    """
    Handle get_messages tool call.

    Args:
        arguments: {
            "sender": Optional[str],
            "chat_id": Optional[str],
            "limit": Optional[int],
            "since": Optional[str],  # ISO date
            "unread_only": Optional[bool],
            "has_attachments": Optional[bool],
            "service": Optional[str],  # iMessage, SMS, RCS
            "include_own": Optional[bool]
        }
        messages: MessagesInterface instance
        contacts: ContactsManager instance

    Returns:
        Matching messages, newest first
    """
    sender, error = validate_optional_string(arguments.get("sender"), "sender")
    if error:
        return validation_error(error)

    chat_id, error = validate_optional_string(arguments.get("chat_id"), "chat_id")
    if error:
        return validation_error(error)

    limit, error = validate_limit(arguments, default=50, max_val=GET_MESSAGES_MAX)
    if error:
        return validation_error(error)

    since, error = validate_iso_date(arguments.get("since"), "since")
    if error:
        return validation_error(error)

    unread_only, error = validate_bool(arguments.get("unread_only"), "unread_only")
    if error:
        return validation_error(error)

    has_attachments, error = validate_bool(
        arguments.get("has_attachments"), "has_attachments", default=None
    )
    if error:
        return validation_error(error)

    include_own, error = validate_bool(arguments.get("include_own"), "include_own")
    if error:
        return validation_error(error)

    service = arguments.get("service")
    if service is not None:
        service, error = validate_enum(service, "service", list(VALID_SERVICES))
        if error:
            return validation_error(error)

    filters = MessageFilter(
        sender=sender,
        chat_id=chat_id,
        limit=limit,
        since=since,
        unread_only=unread_only,
        has_attachments=has_attachments,
        service=service,
        exclude_own_messages=not include_own,
    )

    try:
        result = messages.get_messages(filters)
    except (MessagesDatabaseUnavailable, sqlite3.Error) as e:
        return handle_database_error(e, "get_messages")

    if not result.messages:
        filter_text = f" from {sender}" if sender else ""
        return empty_result("messages", filter_text)

    labels = ContactLabels(contacts)
    response_lines = [
        f"Messages ({result.total} shown, {result.unread_count} unread):",
        ""
    ]
    for msg in result.messages:
        marker = "" if msg.is_read else "● "
        response_lines.append(
            marker + format_message_line(msg, labels.label(msg.sender))
        )

    return text_response("\n".join(response_lines))


async def handle_get_unread_messages(
    arguments: dict,
    messages,
    contacts
) -> list[types.TextContent]:
    """
    Handle get_unread_messages tool call.

    Args:
        arguments: {"limit": Optional[int]}
        messages: MessagesInterface instance
        contacts: ContactsManager instance

    Returns:
        Unread messages grouped by sender
    """
    limit, error = validate_limit(arguments, default=100, max_val=MAX_MESSAGE_LIMIT)
    if error:
        return validation_error(error)

    try:
        summary = messages.get_unread_messages(limit)
    except (MessagesDatabaseUnavailable, sqlite3.Error) as e:
        return handle_database_error(e, "get_unread_messages")

    if not summary.total:
        return text_response("No unread messages. You're all caught up!")

    labels = ContactLabels(contacts)
    response_lines = [
        f"Unread messages: {summary.total} from {summary.sender_count} sender(s)",
        ""
    ]
    for group in summary.groups:
        response_lines.append(f"{labels.label(group.sender)} ({len(group.messages)}):")
        for msg in group.messages:
            response_lines.append("  " + format_message_line(msg, labels.name_for(msg.sender), 80))
        response_lines.append("")

    return text_response("\n".join(response_lines).rstrip())


async def handle_search_messages(
    arguments: dict,
    messages,
    contacts
) -> list[types.TextContent]:
    """
    Handle search_messages tool call.

    Searches the most recent IMESSAGE_MAX_SEARCH messages (both directions).

    Args:
        arguments: {"query": str, "sender": Optional[str], "limit": Optional[int]}
        messages: MessagesInterface instance
        contacts: ContactsManager instance

    Returns:
        Matching messages or error
    """
    query, error = validate_non_empty_string(arguments.get("query"), "query")
    if error:
        return validation_error(error)

    sender, error = validate_optional_string(arguments.get("sender"), "sender")
    if error:
        return validation_error(error)

    limit, error = validate_limit(arguments, default=20, max_val=SEARCH_MAX)
    if error:
        return validation_error(error)

    try:
        result = messages.get_messages(MessageFilter(
            sender=sender,
            limit=MAX_SEARCH_RESULTS,
            exclude_own_messages=False,
        ))
    except (MessagesDatabaseUnavailable, sqlite3.Error) as e:
        return handle_database_error(e, "search_messages")

    query_lower = query.lower()
    matches = [
        msg for msg in result.messages
        if msg.text and query_lower in msg.text.lower()
    ][:limit]

    if not matches:
        filter_text = f" matching '{query}'"
        if sender:
            filter_text += f" from {sender}"
        return empty_result(
            "messages",
            filter_text,
            f"Only the {MAX_SEARCH_RESULTS} most recent messages are searched."
        )

    labels = ContactLabels(contacts)
    response_lines = [f"Search results for '{query}' ({len(matches)} matches):", ""]
    for msg in matches:
        response_lines.append(format_message_line(msg, labels.label(msg.sender), 150))

    return text_response("\n".join(response_lines))
