"""
Conversation Handlers

Handles tools for threads and chats:
- get_conversation: Both sides of a conversation with one handle
- get_recent_conversations: Latest activity per counterparty
- get_chat_messages: Messages in one chat (DM or group)
- list_chats: Chats ordered by last activity
"""

import logging
import sqlite3

from mcp import types

from imessage_mcp.conversations import aggregate_conversations
from imessage_mcp.identity import extract_chat_identifier
from imessage_mcp.messages_interface import (
    ChatFilter,
    MessageFilter,
    MessagesDatabaseUnavailable,
    VALID_CHAT_KINDS,
)
from mcp_server.utils.validation import (
    validate_enum,
    validate_iso_date,
    validate_limit,
    validate_non_empty_string,
    MAX_MESSAGE_LIMIT,
    MAX_SEARCH_RESULTS,
)
from mcp_server.utils.responses import (
    text_response,
    validation_error,
    empty_result,
    format_date,
    format_message_line,
    truncate,
)
from mcp_server.utils.errors import handle_database_error
from mcp_server.utils.labels import ContactLabels

logger = logging.getLogger(__name__)

CONVERSATION_MAX = 200
RECENT_CONVERSATIONS_MAX = 50
CHAT_MESSAGES_MAX = 100


async def handle_get_conversation(
    arguments: dict,
    messages,
    contacts
) -> list[types.TextContent]:
    """
    Handle get_conversation tool call.

    Args:
        arguments: {"handle": str, "limit": Optional[int], "since": Optional[str]}
        messages: MessagesInterface instance
        contacts: ContactsManager instance

    Returns:
        Messages exchanged with the handle, oldest first
    """
    handle, error = validate_non_empty_string(arguments.get("handle"), "handle")
    if error:
        return validation_error(error)

    limit, error = validate_limit(arguments, default=50, max_val=CONVERSATION_MAX)
    if error:
        return validation_error(error)

    since, error = validate_iso_date(arguments.get("since"), "since")
    if error:
        return validation_error(error)

    try:
        result = messages.get_messages(MessageFilter(
            sender=handle,
            limit=limit,
            since=since,
            exclude_own_messages=False,
        ))
    except (MessagesDatabaseUnavailable, sqlite3.Error) as e:
        return handle_database_error(e, "get_conversation")

    if not result.messages:
        return empty_result("messages", f" with {handle}")

    labels = ContactLabels(contacts)
    name = labels.name_for(handle)
    response_lines = [
        f"Conversation with {labels.label(handle)} ({result.total} messages):",
        ""
    ]
    for msg in reversed(result.messages):
        response_lines.append(format_message_line(msg, name))

    return text_response("\n".join(response_lines))


async def handle_get_recent_conversations(
    arguments: dict,
    messages,
    contacts
) -> list[types.TextContent]:
    """
    Handle get_recent_conversations tool call.

    Collapses the most recent messages (both directions) into one line per
    counterparty.

    Args:
        arguments: {"limit": Optional[int]}
        messages: MessagesInterface instance
        contacts: ContactsManager instance
    """
    limit, error = validate_limit(arguments, default=20, max_val=RECENT_CONVERSATIONS_MAX)
    if error:
        return validation_error(error)

    try:
        result = messages.get_messages(MessageFilter(
            limit=MAX_SEARCH_RESULTS,
            exclude_own_messages=False,
        ))
    except (MessagesDatabaseUnavailable, sqlite3.Error) as e:
        return handle_database_error(e, "get_recent_conversations")

    summaries = aggregate_conversations(result.messages, limit)
    if not summaries:
        return empty_result("conversations")

    labels = ContactLabels(contacts)
    response_lines = [f"Recent conversations ({len(summaries)}):", ""]
    for summary in summaries:
        unread = f" [{summary.unread_count} unread]" if summary.unread_count else ""
        response_lines.append(
            f"[{format_date(summary.last_timestamp)}] {labels.label(summary.counterparty)}"
            f" ({summary.service}){unread}: {truncate(summary.last_message, 80)}"
        )

    return text_response("\n".join(response_lines))


async def handle_get_chat_messages(
    arguments: dict,
    messages,
    contacts
) -> list[types.TextContent]:
    """
    Handle get_chat_messages tool call.

    Args:
        arguments: {"chat_id": str, "limit": Optional[int]}
        messages: MessagesInterface instance
        contacts: ContactsManager instance

    Returns:
        Messages in the chat, oldest first
    """
    chat_id, error = validate_non_empty_string(arguments.get("chat_id"), "chat_id")
    if error:
        return validation_error(error)

    limit, error = validate_limit(arguments, default=50, max_val=CHAT_MESSAGES_MAX)
    if error:
        return validation_error(error)

    try:
        result = messages.get_messages(MessageFilter(
            chat_id=chat_id,
            limit=limit,
            exclude_own_messages=False,
        ))
    except (MessagesDatabaseUnavailable, sqlite3.Error) as e:
        return handle_database_error(e, "get_chat_messages")

    if not result.messages:
        return empty_result("messages", f" in chat {chat_id}")

    labels = ContactLabels(contacts)
    response_lines = [f"Chat {chat_id} ({result.total} messages):", ""]
    for msg in reversed(result.messages):
        response_lines.append(format_message_line(msg, labels.name_for(msg.sender)))

    return text_response("\n".join(response_lines))


async def handle_list_chats(
    arguments: dict,
    messages,
    contacts
) -> list[types.TextContent]:
    """
    Handle list_chats tool call.

    Unnamed 1:1 chats are labelled with the contact name of their handle.

    Args:
        arguments: {"kind": Optional[str], "limit": Optional[int]}
        messages: MessagesInterface instance
        contacts: ContactsManager instance
    """
    kind, error = validate_enum(
        arguments.get("kind"), "kind", list(VALID_CHAT_KINDS), default="all"
    )
    if error:
        return validation_error(error)

    limit, error = validate_limit(arguments, default=20, max_val=MAX_MESSAGE_LIMIT)
    if error:
        return validation_error(error)

    try:
        chats = messages.list_chats(ChatFilter(kind=kind, limit=limit))
    except (MessagesDatabaseUnavailable, sqlite3.Error) as e:
        return handle_database_error(e, "list_chats")

    if not chats:
        return empty_result("chats")

    labels = ContactLabels(contacts)
    response_lines = [f"Chats ({len(chats)}):", ""]
    for chat in chats:
        identifier = extract_chat_identifier(chat.chat_id)
        if chat.display_name:
            name = chat.display_name
        elif chat.is_group:
            name = "Unnamed group"
        else:
            name = labels.label(identifier)

        kind_label = "group" if chat.is_group else "dm"
        unread = f" [{chat.unread_count} unread]" if chat.unread_count else ""
        response_lines.append(
            f"[{format_date(chat.last_message_at)}] {name} ({kind_label}){unread}"
            f"\n    chat_id: {chat.chat_id}"
        )

    return text_response("\n".join(response_lines))
