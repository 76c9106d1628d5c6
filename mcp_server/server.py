#!/usr/bin/env python3
# ============================================================================
# CHANGELOG (recent first, max 5 entries)
# 10/12/2026 - Contacts come from the macOS AddressBook, added attachment tools
# 01/03/2026 - Extracted handlers to modules, added tool registry
# ============================================================================
"""
iMessage MCP Server - read and send iMessages, look up macOS contacts.

Usage:
    python -m mcp_server.server
    imessage-mcp
"""

import asyncio
import logging

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp import types

from imessage_mcp.contacts_manager import ContactsManager
from imessage_mcp.contacts_store import AddressBookStore
from imessage_mcp.messages_interface import MessagesInterface
from imessage_mcp.resolver import ContactResolver

from mcp_server.config import CONFIG, resolve_path, setup_logging
from mcp_server.handlers import reading, conversations, attachments, contacts, messaging
from mcp_server.utils.responses import text_response

logger = logging.getLogger(__name__)

# Initialize server
app = Server(CONFIG["server_name"])

# Initialize components with resolved paths. Nothing is opened until first use.
_contacts_db = CONFIG["paths"].get("contacts_db")
address_book = AddressBookStore(
    db_path=resolve_path(_contacts_db) if _contacts_db else None,
    base_dir=resolve_path(CONFIG["paths"]["address_book_dir"]),
)
messages = MessagesInterface(resolve_path(CONFIG["paths"]["messages_db"]))
contacts_mgr = ContactsManager(address_book)
resolver = ContactResolver(contacts_mgr, messages)


# =============================================================================
# TOOL DEFINITIONS
# =============================================================================

_LIMIT = {"type": "integer", "description": "Maximum number of results"}
_HANDLE = {
    "type": "string",
    "description": "Phone number (any format, e.g. +14155551234) or iMessage email"
}
_RECIPIENT = {
    "type": "string",
    "description": "Phone number, iMessage email, or contact name"
}
_OPTIONAL_TEXT = {"type": "string", "description": "Optional text sent before the file(s)"}


@app.list_tools()
async def handle_list_tools() -> list[types.Tool]:
    """List available MCP tools."""
    return [
        # Reading
        types.Tool(
            name="get_messages",
            description=(
                "Get recent messages across all chats, newest first, with optional filters. "
                "Requires Full Disk Access permission for the Messages database."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "sender": {**_HANDLE, "description": "Only messages from this handle"},
                    "chat_id": {"type": "string", "description": "Only messages in this chat"},
                    "limit": {**_LIMIT, "description": "Max messages (default 50, max 100)"},
                    "since": {"type": "string", "description": "ISO date, e.g. 2026-01-31"},
                    "unread_only": {"type": "boolean"},
                    "has_attachments": {"type": "boolean"},
                    "service": {"type": "string", "enum": ["iMessage", "SMS", "RCS"]},
                    "include_own": {
                        "type": "boolean",
                        "description": "Include messages you sent (default false)"
                    }
                }
            }
        ),
        types.Tool(
            name="get_unread_messages",
            description="Get unread received messages grouped by sender.",
            inputSchema={
                "type": "object",
                "properties": {"limit": _LIMIT}
            }
        ),
        types.Tool(
            name="search_messages",
            description=(
                "Search recent messages (both directions) for a keyword. "
                "Case-insensitive; only the most recent messages are searched."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "query": {"type": "string", "description": "Text to search for"},
                    "sender": {**_HANDLE, "description": "Only search messages with this handle"},
                    "limit": {**_LIMIT, "description": "Max results (default 20, max 100)"}
                },
                "required": ["query"]
            }
        ),
        # Conversations
        types.Tool(
            name="get_conversation",
            description="Get both sides of a conversation with one handle, oldest first.",
            inputSchema={
                "type": "object",
                "properties": {
                    "handle": _HANDLE,
                    "limit": {**_LIMIT, "description": "Max messages (default 50, max 200)"},
                    "since": {"type": "string", "description": "ISO date, e.g. 2026-01-31"}
                },
                "required": ["handle"]
            }
        ),
        types.Tool(
            name="get_recent_conversations",
            description=(
                "One line per person or chat with recent activity: latest message, "
                "time, and unread count. Most recent first."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "limit": {**_LIMIT, "description": "Max conversations (default 20, max 50)"}
                }
            }
        ),
        types.Tool(
            name="get_chat_messages",
            description="Get messages in one chat (direct or group) by chat id, oldest first.",
            inputSchema={
                "type": "object",
                "properties": {
                    "chat_id": {
                        "type": "string",
                        "description": "Chat id from list_chats (guid or chat identifier)"
                    },
                    "limit": {**_LIMIT, "description": "Max messages (default 50, max 100)"}
                },
                "required": ["chat_id"]
            }
        ),
        types.Tool(
            name="list_chats",
            description="List chats ordered by last activity, with unread counts.",
            inputSchema={
                "type": "object",
                "properties": {
                    "kind": {"type": "string", "enum": ["all", "dm", "group"]},
                    "limit": _LIMIT
                }
            }
        ),
        # Attachments
        types.Tool(
            name="get_attachments",
            description="Get files and photos from recent messages.",
            inputSchema={
                "type": "object",
                "properties": {
                    "sender": {**_HANDLE, "description": "Only attachments with this handle"},
                    "images_only": {"type": "boolean"},
                    "limit": {**_LIMIT, "description": "Max messages scanned (default 20, max 50)"}
                }
            }
        ),
        types.Tool(
            name="get_conversation_attachments",
            description="Get every attachment exchanged with one handle.",
            inputSchema={
                "type": "object",
                "properties": {
                    "handle": _HANDLE,
                    "limit": {**_LIMIT, "description": "Max messages scanned (default 50, max 100)"}
                },
                "required": ["handle"]
            }
        ),
        # Contacts
        types.Tool(
            name="search_contacts",
            description="Search macOS Contacts by first name, last name, or nickname.",
            inputSchema={
                "type": "object",
                "properties": {
                    "query": {"type": "string", "description": "Name or part of a name"},
                    "limit": _LIMIT
                },
                "required": ["query"]
            }
        ),
        types.Tool(
            name="find_contact",
            description=(
                "Resolve a name to a person. Searches Contacts first, then the names "
                "of recent direct-message chats. Lists candidates when ambiguous."
            ),
            inputSchema={
                "type": "object",
                "properties": {"name": {"type": "string"}},
                "required": ["name"]
            }
        ),
        types.Tool(
            name="lookup_phone",
            description="Find the contact that owns a phone number (any format).",
            inputSchema={
                "type": "object",
                "properties": {"phone": {"type": "string"}},
                "required": ["phone"]
            }
        ),
        # Messaging
        types.Tool(
            name="send_message",
            description="Send an iMessage to a phone number, email, or contact name.",
            inputSchema={
                "type": "object",
                "properties": {
                    "to": _RECIPIENT,
                    "message": {"type": "string", "description": "Message text to send"}
                },
                "required": ["to", "message"]
            }
        ),
        types.Tool(
            name="send_file",
            description="Send a local file over iMessage.",
            inputSchema={
                "type": "object",
                "properties": {
                    "to": _RECIPIENT,
                    "file_path": {"type": "string", "description": "Absolute or ~ path"},
                    "message": _OPTIONAL_TEXT
                },
                "required": ["to", "file_path"]
            }
        ),
        types.Tool(
            name="send_image",
            description="Send a local image (jpg, png, gif, heic, ...) over iMessage.",
            inputSchema={
                "type": "object",
                "properties": {
                    "to": _RECIPIENT,
                    "image_path": {"type": "string", "description": "Absolute or ~ path"},
                    "message": _OPTIONAL_TEXT
                },
                "required": ["to", "image_path"]
            }
        ),
        types.Tool(
            name="send_files",
            description="Send several local files over iMessage in one go.",
            inputSchema={
                "type": "object",
                "properties": {
                    "to": _RECIPIENT,
                    "file_paths": {"type": "array", "items": {"type": "string"}},
                    "message": _OPTIONAL_TEXT
                },
                "required": ["to", "file_paths"]
            }
        ),
    ]


# =============================================================================
# TOOL DISPATCH
# =============================================================================

# Dependency types:
#   "messages_contacts" - needs messages and contacts
#   "contacts_only" - needs only contacts
#   "resolver" - needs the contact resolver
#   "messages_resolver" - needs messages and the contact resolver

TOOL_REGISTRY = {
    # Reading handlers
    "get_messages": (reading.handle_get_messages, "messages_contacts"),
    "get_unread_messages": (reading.handle_get_unread_messages, "messages_contacts"),
    "search_messages": (reading.handle_search_messages, "messages_contacts"),

    # Conversation handlers
    "get_conversation": (conversations.handle_get_conversation, "messages_contacts"),
    "get_recent_conversations": (conversations.handle_get_recent_conversations, "messages_contacts"),
    "get_chat_messages": (conversations.handle_get_chat_messages, "messages_contacts"),
    "list_chats": (conversations.handle_list_chats, "messages_contacts"),

    # Attachment handlers
    "get_attachments": (attachments.handle_get_attachments, "messages_contacts"),
    "get_conversation_attachments": (attachments.handle_get_conversation_attachments, "messages_contacts"),

    # Contacts handlers
    "search_contacts": (contacts.handle_search_contacts, "contacts_only"),
    "find_contact": (contacts.handle_find_contact, "resolver"),
    "lookup_phone": (contacts.handle_lookup_phone, "contacts_only"),

    # Messaging handlers
    "send_message": (messaging.handle_send_message, "messages_resolver"),
    "send_file": (messaging.handle_send_file, "messages_resolver"),
    "send_image": (messaging.handle_send_image, "messages_resolver"),
    "send_files": (messaging.handle_send_files, "messages_resolver"),
}


@app.call_tool()
async def call_tool(name: str, arguments: dict) -> list[types.TextContent]:
    """
    Handle MCP tool calls using the tool registry pattern.

    Args:
        name: Tool name
        arguments: Tool arguments

    Returns:
        List of TextContent responses
    """
    logger.info(f"Tool called: {name} with args: {arguments}")
    arguments = arguments or {}

    try:
        if name not in TOOL_REGISTRY:
            raise ValueError(f"Unknown tool: {name}")

        handler, dep_type = TOOL_REGISTRY[name]

        if dep_type == "messages_contacts":
            return await handler(arguments, messages, contacts_mgr)
        elif dep_type == "contacts_only":
            return await handler(arguments, contacts_mgr)
        elif dep_type == "resolver":
            return await handler(arguments, resolver)
        elif dep_type == "messages_resolver":
            return await handler(arguments, messages, resolver)
        else:
            raise ValueError(f"Unknown dependency type: {dep_type}")

    except Exception as e:
        logger.error(f"Error executing tool {name}: {e}", exc_info=True)
        return text_response(f"Error executing {name}: {e}")


# =============================================================================
# MAIN ENTRY POINT
# =============================================================================

async def main():
    """Run the MCP server."""
    setup_logging()
    logger.info("Starting iMessage MCP Server...")
    logger.info(f"Server name: {CONFIG['server_name']}")
    logger.info(f"Version: {CONFIG['version']}")

    permissions = messages.check_permissions()
    if not permissions["messages_db_accessible"]:
        logger.warning("Messages database not accessible - reading tools will not work")
        logger.warning("Grant Full Disk Access in System Settings")

    try:
        async with stdio_server() as (read_stream, write_stream):
            await app.run(
                read_stream,
                write_stream,
                app.create_initialization_options()
            )
    finally:
        address_book.close()
        logger.info("iMessage MCP Server stopped")


def run():
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
