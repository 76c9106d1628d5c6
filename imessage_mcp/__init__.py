"""
iMessage history access for MCP: contacts, chats, messages and attachments.
"""

from .contacts_manager import Contact, ContactsManager
from .contacts_store import AddressBookStore, StoreUnavailable
from .conversations import ConversationSummary, aggregate_conversations
from .identity import extract_chat_identifier, handles_match, normalize_handle
from .messages_interface import (
    ChatFilter,
    MessageFilter,
    MessagesDatabaseUnavailable,
    MessagesInterface,
)
from .resolver import ContactResolver, NotFound, ResolvedIdentity

__version__ = "2.0.0"

__all__ = [
    "AddressBookStore",
    "ChatFilter",
    "Contact",
    "ContactResolver",
    "ContactsManager",
    "ConversationSummary",
    "MessageFilter",
    "MessagesDatabaseUnavailable",
    "MessagesInterface",
    "NotFound",
    "ResolvedIdentity",
    "StoreUnavailable",
    "aggregate_conversations",
    "extract_chat_identifier",
    "handles_match",
    "normalize_handle",
]
