"""
Tests for MCP tool handlers against fixture databases.
"""

from unittest.mock import MagicMock

import pytest

from imessage_mcp.contacts_manager import ContactsManager
from imessage_mcp.contacts_store import AddressBookStore
from imessage_mcp.messages_interface import MessagesInterface, SendResult
from imessage_mcp.resolver import ContactResolver
from mcp_server.handlers import attachments, contacts as contact_handlers, conversations
from mcp_server.handlers import messaging, reading


def text_of(response) -> str:
    [content] = response
    assert content.type == "text"
    return content.text


@pytest.fixture
def resolver(contacts, messages):
    return ContactResolver(contacts, messages)


@pytest.fixture
def no_contacts(tmp_path):
    empty = tmp_path / "empty-addressbook"
    empty.mkdir()
    return ContactsManager(AddressBookStore(base_dir=empty))


@pytest.fixture
def no_messages(tmp_path):
    return MessagesInterface(str(tmp_path / "missing-chat.db"))


@pytest.fixture
def sender():
    fake = MagicMock()
    for method in ("send_message", "send_file", "send_image", "send_files"):
        getattr(fake, method).return_value = SendResult(success=True)
    return fake


class TestReading:

    async def test_get_messages(self, messages, contacts):
        text = text_of(await reading.handle_get_messages({}, messages, contacts))
        assert text.startswith("Messages (5 shown, 3 unread):")
        assert "Bob Jones (+14155550142)" in text
        assert "📎 IMG_0001.jpeg" in text
        assert "Count me in" not in text

    async def test_get_messages_include_own(self, messages, contacts):
        text = text_of(await reading.handle_get_messages(
            {"include_own": True, "chat_id": "chat123456789"}, messages, contacts
        ))
        assert "You: Count me in" in text

    async def test_get_messages_filters(self, messages, contacts):
        text = text_of(await reading.handle_get_messages(
            {"service": "SMS", "since": "2026-01-10"}, messages, contacts
        ))
        assert "Running late" in text
        assert "Sam Friend (friend@example.com)" in text

    async def test_get_messages_limit_too_high(self, messages, contacts):
        text = text_of(await reading.handle_get_messages({"limit": 500}, messages, contacts))
        assert text == "Validation error: Invalid limit: must be at most 100, got 500"

    async def test_get_messages_bad_since(self, messages, contacts):
        text = text_of(await reading.handle_get_messages({"since": "yesterday"}, messages, contacts))
        assert text.startswith("Validation error: Invalid since")

    async def test_get_messages_bad_service(self, messages, contacts):
        text = text_of(await reading.handle_get_messages({"service": "Fax"}, messages, contacts))
        assert text.startswith("Validation error: Invalid service")

    async def test_get_messages_unknown_sender(self, messages, contacts):
        text = text_of(await reading.handle_get_messages(
            {"sender": "+19995550000"}, messages, contacts
        ))
        assert text == "No messages found from +19995550000."

    async def test_missing_database(self, no_messages, contacts):
        text = text_of(await reading.handle_get_messages({}, no_messages, contacts))
        assert "Cannot access Messages database" in text
        assert "Full Disk Access" in text

    async def test_raw_handles_without_contacts(self, messages, no_contacts):
        text = text_of(await reading.handle_get_messages({}, messages, no_contacts))
        assert "+14155550142:" in text

    async def test_get_unread_messages(self, messages, contacts):
        text = text_of(await reading.handle_get_unread_messages({}, messages, contacts))
        assert text.startswith("Unread messages: 3 from 3 sender(s)")
        assert "Alice Walker (+14155550199) (1):" in text

    async def test_search_messages(self, messages, contacts):
        text = text_of(await reading.handle_search_messages({"query": "LUNCH"}, messages, contacts))
        assert "Search results for 'LUNCH' (1 matches)" in text
        assert "Hey, lunch tomorrow?" in text

    async def test_search_includes_own_messages(self, messages, contacts):
        text = text_of(await reading.handle_search_messages({"query": "noon"}, messages, contacts))
        assert "You: Sure, noon works" in text

    async def test_search_no_match(self, messages, contacts):
        text = text_of(await reading.handle_search_messages({"query": "zzz"}, messages, contacts))
        assert text.startswith("No messages found matching 'zzz'.")

    async def test_search_requires_query(self, messages, contacts):
        text = text_of(await reading.handle_search_messages({}, messages, contacts))
        assert text == "Validation error: Missing required parameter: query"


class TestConversations:

    async def test_get_conversation_oldest_first(self, messages, contacts):
        text = text_of(await conversations.handle_get_conversation(
            {"handle": "(415) 555-0100"}, messages, contacts
        ))
        assert "John Smith" in text.splitlines()[0]
        assert text.index("Hey, lunch tomorrow?") < text.index("You: Sure, noon works")
        assert text.index("You: Sure, noon works") < text.index("See you there")

    async def test_get_conversation_limit(self, messages, contacts):
        text = text_of(await conversations.handle_get_conversation(
            {"handle": "4155550100", "limit": 201}, messages, contacts
        ))
        assert "at most 200" in text

    async def test_get_recent_conversations(self, messages, contacts):
        text = text_of(await conversations.handle_get_recent_conversations(
            {"limit": 2}, messages, contacts
        ))
        lines = text.splitlines()
        assert lines[0] == "Recent conversations (2):"
        assert "Bob Jones (+14155550142)" in lines[2]
        assert "[1 unread]" in lines[2]
        assert "Here's the doc" in lines[2]
        assert "friend@example.com" in lines[3]

    async def test_get_recent_conversations_max(self, messages, contacts):
        text = text_of(await conversations.handle_get_recent_conversations(
            {"limit": 51}, messages, contacts
        ))
        assert text.startswith("Validation error")

    async def test_get_chat_messages(self, messages, contacts):
        text = text_of(await conversations.handle_get_chat_messages(
            {"chat_id": "iMessage;+;chat123456789"}, messages, contacts
        ))
        assert "Alice Walker: Who's in for Saturday?" in text
        assert text.index("Saturday") < text.index("Count me in")

    async def test_list_chats(self, messages, contacts):
        text = text_of(await conversations.handle_list_chats({}, messages, contacts))
        assert "Weekend Crew (group) [1 unread]" in text
        assert "John Smith (+14155550100) (dm)" in text
        assert "Bobby J (dm)" in text
        assert "chat_id: iMessage;-;+14155550142" in text

    async def test_list_chats_kind(self, messages, contacts):
        text = text_of(await conversations.handle_list_chats({"kind": "group"}, messages, contacts))
        assert "Weekend Crew" in text
        assert "Bobby J" not in text

    async def test_list_chats_bad_kind(self, messages, contacts):
        text = text_of(await conversations.handle_list_chats({"kind": "channel"}, messages, contacts))
        assert text.startswith("Validation error: Invalid kind")


class TestAttachments:

    async def test_get_attachments(self, messages, contacts):
        text = text_of(await attachments.handle_get_attachments({}, messages, contacts))
        assert "IMG_0001.jpeg (image/jpeg, 2.0 MB)" in text
        assert "report.pdf (application/pdf, 1.0 KB)" in text

    async def test_images_only(self, messages, contacts):
        text = text_of(await attachments.handle_get_attachments(
            {"images_only": True}, messages, contacts
        ))
        assert "IMG_0001.jpeg" in text
        assert "report.pdf" not in text

    async def test_limit_max(self, messages, contacts):
        text = text_of(await attachments.handle_get_attachments({"limit": 51}, messages, contacts))
        assert "at most 50" in text

    async def test_conversation_attachments(self, messages, contacts):
        text = text_of(await attachments.handle_get_conversation_attachments(
            {"handle": "+1 415 555 0142"}, messages, contacts
        ))
        assert "IMG_0001.jpeg" in text
        assert "You: report.pdf" in text

    async def test_conversation_without_attachments(self, messages, contacts):
        text = text_of(await attachments.handle_get_conversation_attachments(
            {"handle": "+14155550100"}, messages, contacts
        ))
        assert text == "No attachments found with +14155550100."


class TestContacts:

    async def test_search_contacts(self, contacts):
        text = text_of(await contact_handlers.handle_search_contacts({"query": "john"}, contacts))
        assert "(2 of 2)" in text
        assert 'Bob Jones "Johnny"' in text
        assert "email: john@example.com" in text

    async def test_search_contacts_capped(self, contacts):
        text = text_of(await contact_handlers.handle_search_contacts(
            {"query": "a", "limit": 1}, contacts
        ))
        assert "(1 of " in text

    async def test_search_contacts_unavailable(self, no_contacts):
        text = text_of(await contact_handlers.handle_search_contacts({"query": "john"}, no_contacts))
        assert "Cannot access Contacts database" in text

    async def test_find_contact_single(self, resolver):
        text = text_of(await contact_handlers.handle_find_contact({"name": "walker"}, resolver))
        assert text.startswith("Found:")
        assert "Alice Walker" in text

    async def test_find_contact_from_chats(self, resolver):
        text = text_of(await contact_handlers.handle_find_contact({"name": "bobby"}, resolver))
        assert text.startswith("Found (from chat names):")
        assert "Bobby J: +14155550142" in text

    async def test_find_contact_ambiguous(self, resolver):
        text = text_of(await contact_handlers.handle_find_contact({"name": "john"}, resolver))
        assert text.startswith("Multiple matches for 'john': showing 2 of 2")

    async def test_find_contact_not_found(self, resolver):
        text = text_of(await contact_handlers.handle_find_contact({"name": "Jon Smith"}, resolver))
        assert text.startswith("No match for 'Jon Smith' in contacts or chats.")
        assert "Did you mean:" in text
        assert "John Smith" in text

    async def test_find_contact_store_unavailable(self, no_contacts, messages):
        resolver = ContactResolver(no_contacts, messages)
        text = text_of(await contact_handlers.handle_find_contact({"name": "john"}, resolver))
        assert "Cannot access Contacts database" in text

    async def test_lookup_phone_shared(self, contacts):
        text = text_of(await contact_handlers.handle_lookup_phone({"phone": "4155550177"}, contacts))
        assert "Aaron Shared" in text
        assert "Note: also listed under Sam Friend" in text

    async def test_lookup_phone_not_found(self, contacts):
        text = text_of(await contact_handlers.handle_lookup_phone({"phone": "555-0000"}, contacts))
        assert text == "No contact found for 555-0000."


class TestMessaging:

    async def test_send_to_handle(self, sender, resolver):
        text = text_of(await messaging.handle_send_message(
            {"to": "+1 (415) 555-0100", "message": "hi"}, sender, resolver
        ))
        assert text.startswith("✓ Sent to +1 (415) 555-0100")
        sender.send_message.assert_called_once_with("+1 (415) 555-0100", "hi")

    async def test_send_to_email(self, sender, resolver):
        await messaging.handle_send_message({"to": "a@b.com", "message": "hi"}, sender, resolver)
        sender.send_message.assert_called_once_with("a@b.com", "hi")

    async def test_send_to_name(self, sender, resolver):
        text = text_of(await messaging.handle_send_message(
            {"to": "walker", "message": "hi"}, sender, resolver
        ))
        assert "Alice Walker (+14155550199)" in text
        sender.send_message.assert_called_once_with("+14155550199", "hi")

    async def test_send_to_ambiguous_name(self, sender, resolver):
        text = text_of(await messaging.handle_send_message(
            {"to": "john", "message": "hi"}, sender, resolver
        ))
        assert "'john' matches 2 people" in text
        sender.send_message.assert_not_called()

    async def test_send_to_unknown_name(self, sender, resolver):
        text = text_of(await messaging.handle_send_message(
            {"to": "Zelda", "message": "hi"}, sender, resolver
        ))
        assert text.startswith("No match for 'Zelda'")
        sender.send_message.assert_not_called()

    async def test_send_failure(self, sender, resolver):
        sender.send_message.return_value = SendResult(success=False, error="boom")
        text = text_of(await messaging.handle_send_message(
            {"to": "+14155550100", "message": "hi"}, sender, resolver
        ))
        assert text.startswith("AppleScript error during send_message: boom")
        assert "Messages.app" in text

    async def test_send_requires_message(self, sender, resolver):
        text = text_of(await messaging.handle_send_message({"to": "+14155550100"}, sender, resolver))
        assert text == "Validation error: Missing required parameter: message"

    async def test_send_file(self, sender, resolver):
        await messaging.handle_send_file(
            {"to": "+14155550100", "file_path": "~/a.pdf", "message": "here"}, sender, resolver
        )
        sender.send_file.assert_called_once_with("+14155550100", "~/a.pdf", "here")

    async def test_send_image_rejects_url(self, sender, resolver):
        text = text_of(await messaging.handle_send_image(
            {"to": "+14155550100", "image_path": "https://example.com/a.png"}, sender, resolver
        ))
        assert "URLs are not supported" in text
        sender.send_image.assert_not_called()

    async def test_send_files(self, sender, resolver):
        text = text_of(await messaging.handle_send_files(
            {"to": "+14155550100", "file_paths": ["a.pdf", "b.pdf"]}, sender, resolver
        ))
        assert "Files (2): a.pdf, b.pdf" in text
        sender.send_files.assert_called_once_with("+14155550100", ["a.pdf", "b.pdf"], None)

    async def test_send_files_requires_list(self, sender, resolver):
        text = text_of(await messaging.handle_send_files(
            {"to": "+14155550100", "file_paths": "a.pdf"}, sender, resolver
        ))
        assert text.startswith("Validation error: Invalid file_paths")

    def test_direct_handles(self):
        assert messaging.is_direct_handle("+1 (415) 555-0100")
        assert messaging.is_direct_handle("415.555.0100")
        assert messaging.is_direct_handle("someone@icloud.com")
        assert not messaging.is_direct_handle("Bob")
        assert not messaging.is_direct_handle("Bob 2")
