"""
Unit tests for contact resolution and "did you mean" suggestions.
"""

import sqlite3
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from imessage_mcp.contacts_manager import Contact
from imessage_mcp.contacts_store import StoreUnavailable
from imessage_mcp.identity import extract_chat_identifier
from imessage_mcp.messages_interface import ChatSummary
from imessage_mcp.resolver import (
    ContactResolver,
    NameSuggester,
    NotFound,
    MAX_DISPLAYED_MATCHES,
    SOURCE_CHATS,
    SOURCE_CONTACTS,
)

NOW = datetime(2026, 1, 10, tzinfo=timezone.utc)


def chat(identifier, display_name=None):
    return ChatSummary(
        chat_id=f"iMessage;-;{identifier}",
        display_name=display_name,
        is_group=False,
        unread_count=0,
        last_message_at=NOW,
    )


@pytest.fixture
def fake_contacts():
    contacts = MagicMock()
    contacts.search.return_value = []
    contacts.all_contacts.return_value = []
    return contacts


@pytest.fixture
def fake_messages():
    messages = MagicMock()
    messages.list_chats.return_value = []
    return messages


class TestContactResolver:

    def test_single_contact(self, fake_contacts, fake_messages):
        john = Contact(id=1, first_name="John", last_name="Smith", phone_numbers=("+14155550100",))
        fake_contacts.search.return_value = [john]

        resolved = ContactResolver(fake_contacts, fake_messages).resolve("john")

        assert resolved.source == SOURCE_CONTACTS
        assert not resolved.is_ambiguous
        assert resolved.match.contact is john
        assert resolved.match.identifier == "+14155550100"

    def test_contact_hit_skips_chats(self, fake_contacts, fake_messages):
        fake_contacts.search.return_value = [Contact(id=1, first_name="John")]

        ContactResolver(fake_contacts, fake_messages).resolve("john")

        fake_contacts.search.assert_called_once_with("john")
        fake_messages.list_chats.assert_not_called()

    def test_ambiguous_is_capped(self, fake_contacts, fake_messages):
        fake_contacts.search.return_value = [
            Contact(id=i, first_name="Sam", last_name=f"#{i}") for i in range(15)
        ]

        resolved = ContactResolver(fake_contacts, fake_messages).resolve("sam")

        assert resolved.is_ambiguous
        assert resolved.total_count == 15
        assert len(resolved.matches) == MAX_DISPLAYED_MATCHES
        assert resolved.match is None
        assert resolved.matches[0].name == "Sam #0"

    def test_falls_back_to_dm_chat_names(self, fake_contacts, fake_messages):
        fake_messages.list_chats.return_value = [
            chat("+14155550142", "Bobby J"),
            chat("+14155550100"),
        ]

        resolved = ContactResolver(fake_contacts, fake_messages).resolve("bobby")

        assert resolved.source == SOURCE_CHATS
        assert resolved.match.name == "Bobby J"
        assert resolved.match.identifier == "+14155550142"

        [filters] = fake_messages.list_chats.call_args.args
        assert filters.kind == "dm"
        assert filters.limit == 100

    def test_unnamed_chats_never_match(self, fake_contacts, fake_messages):
        fake_messages.list_chats.return_value = [chat("+14155550100")]

        with pytest.raises(NotFound):
            ContactResolver(fake_contacts, fake_messages).resolve("4155550100")

    def test_not_found_with_suggestions(self, fake_contacts, fake_messages):
        fake_contacts.all_contacts.return_value = [
            Contact(id=1, first_name="Jonathan", last_name="Smith"),
            Contact(id=2, first_name="Zelda", last_name="Fitz"),
        ]

        with pytest.raises(NotFound) as exc_info:
            ContactResolver(fake_contacts, fake_messages).resolve("Jonathon Smith")

        e = exc_info.value
        assert e.query == "Jonathon Smith"
        assert e.suggestions == ["Jonathan Smith"]
        assert "contacts or chats" in str(e)

    def test_store_unavailable_propagates(self, fake_contacts, fake_messages):
        fake_contacts.search.side_effect = StoreUnavailable("no AddressBook")

        with pytest.raises(StoreUnavailable):
            ContactResolver(fake_contacts, fake_messages).resolve("john")
        fake_messages.list_chats.assert_not_called()

    def test_against_fixture_databases(self, contacts, messages):
        resolver = ContactResolver(contacts, messages)

        assert resolver.resolve("walker").match.name == "Alice Walker"
        assert resolver.resolve("bobby j").match.identifier == "+14155550142"
        assert resolver.resolve("john").total_count == 2

    def test_dm_with_chat_prefixed_handle(self, contacts, messages, chat_db_path):
        conn = sqlite3.connect(chat_db_path)
        conn.execute(
            "INSERT INTO chat VALUES (5, 'iMessage;-;chatterton@icloud.com', "
            "'chatterton@icloud.com', 'Tom C', 45)"
        )
        conn.commit()
        conn.close()

        resolved = ContactResolver(contacts, messages).resolve("tom c")

        assert resolved.source == SOURCE_CHATS
        assert resolved.match.identifier == "chatterton@icloud.com"

    def test_ambiguous_chat_names_keep_backend_order(self, fake_contacts, fake_messages):
        fake_messages.list_chats.return_value = [
            chat(f"+1415555{i:04d}", f"Soccer Parent {i}") for i in range(12)
        ]

        resolved = ContactResolver(fake_contacts, fake_messages).resolve("soccer parent")

        assert resolved.source == SOURCE_CHATS
        assert resolved.is_ambiguous
        assert resolved.total_count == 12
        assert len(resolved.matches) == MAX_DISPLAYED_MATCHES
        assert [m.name for m in resolved.matches] == [
            f"Soccer Parent {i}" for i in range(MAX_DISPLAYED_MATCHES)
        ]
        assert [m.identifier for m in resolved.matches] == [
            extract_chat_identifier(c.chat_id)
            for c in fake_messages.list_chats.return_value[:MAX_DISPLAYED_MATCHES]
        ]


class TestNameSuggester:

    def test_exact_match(self):
        assert NameSuggester().calculate_similarity("John Doe", "john doe") == 1.0

    def test_typo(self):
        assert NameSuggester().calculate_similarity("John Doe", "Jon Doe") > 0.85

    def test_word_order(self):
        assert NameSuggester().calculate_similarity("Doe John", "John Doe") >= 0.85

    def test_limit_and_dedupe(self):
        suggester = NameSuggester(threshold=0.5, limit=2)
        suggestions = suggester.suggest("Sam", ["Sam A", "Sam A", "Sam B", "Sam C"])
        assert len(suggestions) == 2
        assert len(set(suggestions)) == 2

    def test_below_threshold(self):
        assert NameSuggester().suggest("Zelda", ["John Smith", "Alice Walker"]) == []


def test_not_found_when_both_sources_empty(fake_contacts, fake_messages):
    with pytest.raises(NotFound) as exc_info:
        ContactResolver(fake_contacts, fake_messages).resolve("anyone")

    assert exc_info.value.sources == (SOURCE_CONTACTS, SOURCE_CHATS)
    assert exc_info.value.suggestions == []
