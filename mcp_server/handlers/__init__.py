"""
MCP Tool Handlers Package

Organized by domain:
- reading: get_messages, get_unread_messages, search_messages
- conversations: get_conversation, get_recent_conversations, get_chat_messages, list_chats
- attachments: get_attachments, get_conversation_attachments
- contacts: search_contacts, find_contact, lookup_phone
- messaging: send_message, send_file, send_image, send_files
"""

from . import reading
from . import conversations
from . import attachments
from . import contacts
from . import messaging

__all__ = [
    "reading",
    "conversations",
    "attachments",
    "contacts",
    "messaging",
]
