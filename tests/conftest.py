"""
Shared fixtures: minimal AddressBook and Messages databases in tmp_path.
"""

import sqlite3
from datetime import datetime, timedelta, timezone

import pytest

from imessage_mcp.contacts_manager import ContactsManager
from imessage_mcp.contacts_store import AddressBookStore
from imessage_mcp.messages_interface import MessagesInterface, datetime_to_cocoa

BASE_TIME = datetime(2026, 1, 10, 12, 0, tzinfo=timezone.utc)

# Streamtyped attributedBody as written by macOS Ventura+ (text column NULL)
RUNNING_LATE_BLOB = (
    b"\x04\x0bstreamtyped\x81\xe8\x03\x84\x01@\x84\x84\x84\x12NSAttributed"
    b"\x00\x84\x84\x08NSObject\x00\x85\x92\x84\x84\x84\x08NSString\x01\x94"
    b"\x84\x01+\x0cRunning late\x86\x84\x02iI\x01\x0c\x92\x84\x84\x84"
)


def at(minutes: int) -> datetime:
    return BASE_TIME + timedelta(minutes=minutes)


@pytest.fixture
def address_book_path(tmp_path):
    """AddressBook-v22.abcddb with a handful of people."""
    path = tmp_path / "AddressBook-v22.abcddb"
    conn = sqlite3.connect(path)
    conn.executescript("""
        CREATE TABLE ZABCDRECORD (
            Z_PK INTEGER PRIMARY KEY,
            ZFIRSTNAME TEXT,
            ZLASTNAME TEXT,
            ZNICKNAME TEXT,
            ZORGANIZATION TEXT
        );
        CREATE TABLE ZABCDPHONENUMBER (
            Z_PK INTEGER PRIMARY KEY,
            ZOWNER INTEGER,
            ZFULLNUMBER TEXT
        );
        CREATE TABLE ZABCDEMAILADDRESS (
            Z_PK INTEGER PRIMARY KEY,
            ZOWNER INTEGER,
            ZADDRESS TEXT
        );

        INSERT INTO ZABCDRECORD VALUES (1, 'John', 'Smith', NULL, NULL);
        INSERT INTO ZABCDRECORD VALUES (2, 'Bob', 'Jones', 'Johnny', NULL);
        INSERT INTO ZABCDRECORD VALUES (3, 'Alice', 'Walker', NULL, NULL);
        INSERT INTO ZABCDRECORD VALUES (4, NULL, NULL, NULL, 'Acme Corp');
        INSERT INTO ZABCDRECORD VALUES (5, 'Aaron', 'Shared', NULL, NULL);
        INSERT INTO ZABCDRECORD VALUES (6, 'Sam', 'Friend', NULL, NULL);

        INSERT INTO ZABCDPHONENUMBER VALUES (1, 1, '+1 (415) 555-0100');
        INSERT INTO ZABCDPHONENUMBER VALUES (2, 2, '415-555-0142');
        INSERT INTO ZABCDPHONENUMBER VALUES (3, 3, '+14155550199');
        INSERT INTO ZABCDPHONENUMBER VALUES (4, 5, '(415) 555-0177');
        INSERT INTO ZABCDPHONENUMBER VALUES (7, 6, '+14155550177');
        INSERT INTO ZABCDPHONENUMBER VALUES (5, 4, '+18005550000');
        INSERT INTO ZABCDPHONENUMBER VALUES (6, 3, NULL);

        INSERT INTO ZABCDEMAILADDRESS VALUES (1, 1, 'john@example.com');
        INSERT INTO ZABCDEMAILADDRESS VALUES (2, 6, 'friend@example.com');
    """)
    conn.commit()
    conn.close()
    return path


@pytest.fixture
def store(address_book_path):
    store = AddressBookStore(db_path=str(address_book_path))
    yield store
    store.close()


@pytest.fixture
def contacts(store):
    return ContactsManager(store)


@pytest.fixture
def chat_db_path(tmp_path):
    """
    chat.db with three 1:1 chats and one group chat.

    rowid  chat           from            minutes  read  notes
    1      John (dm)      +14155550100    0        yes
    2      John (dm)      me              5
    3      John (dm)      +14155550100    10       no
    4      Bob (dm)       +14155550142    20       no    image attachment
    5      Weekend Crew   +14155550199    30       no
    6      Weekend Crew   me              35
    7      Sam (dm)       friend@...      40       yes   SMS, attributedBody only
    8      Bob (dm)       me              50             pdf attachment
    """
    path = tmp_path / "chat.db"
    conn = sqlite3.connect(path)
    conn.executescript("""
        CREATE TABLE handle (ROWID INTEGER PRIMARY KEY, id TEXT, service TEXT);
        CREATE TABLE message (
            ROWID INTEGER PRIMARY KEY,
            guid TEXT,
            text TEXT,
            attributedBody BLOB,
            date INTEGER,
            is_from_me INTEGER,
            is_read INTEGER,
            service TEXT,
            cache_has_attachments INTEGER,
            handle_id INTEGER
        );
        CREATE TABLE chat (
            ROWID INTEGER PRIMARY KEY,
            guid TEXT,
            chat_identifier TEXT,
            display_name TEXT,
            style INTEGER
        );
        CREATE TABLE chat_message_join (chat_id INTEGER, message_id INTEGER);
        CREATE TABLE attachment (
            ROWID INTEGER PRIMARY KEY,
            filename TEXT,
            transfer_name TEXT,
            mime_type TEXT,
            total_bytes INTEGER
        );
        CREATE TABLE message_attachment_join (message_id INTEGER, attachment_id INTEGER);

        INSERT INTO handle VALUES (1, '+14155550100', 'iMessage');
        INSERT INTO handle VALUES (2, '+14155550142', 'iMessage');
        INSERT INTO handle VALUES (3, 'friend@example.com', 'SMS');
        INSERT INTO handle VALUES (4, '+14155550199', 'iMessage');

        INSERT INTO chat VALUES (1, 'iMessage;-;+14155550100', '+14155550100', '', 45);
        INSERT INTO chat VALUES (2, 'iMessage;-;+14155550142', '+14155550142', 'Bobby J', 45);
        INSERT INTO chat VALUES (3, 'iMessage;+;chat123456789', 'chat123456789', 'Weekend Crew', 43);
        INSERT INTO chat VALUES (4, 'SMS;-;friend@example.com', 'friend@example.com', 'Sam Friend', 45);

        INSERT INTO attachment VALUES (
            1, '~/Library/Messages/Attachments/ab/01/IMG_0001.jpeg',
            'IMG_0001.jpeg', 'image/jpeg', 2048000
        );
        INSERT INTO attachment VALUES (
            2, '~/Library/Messages/Attachments/cd/02/report.pdf',
            'report.pdf', 'application/pdf', 1024
        );
        INSERT INTO message_attachment_join VALUES (4, 1);
        INSERT INTO message_attachment_join VALUES (8, 2);
    """)

    rows = [
        (1, "Hey, lunch tomorrow?", None, 0, 0, 1, "iMessage", 0, 1, 1),
        (2, "Sure, noon works", None, 5, 1, 0, "iMessage", 0, 1, 1),
        (3, "See you there", None, 10, 0, 0, "iMessage", 0, 1, 1),
        (4, "Photos from the trip", None, 20, 0, 0, "iMessage", 1, 2, 2),
        (5, "Who's in for Saturday?", None, 30, 0, 0, "iMessage", 0, 4, 3),
        (6, "Count me in", None, 35, 1, 0, "iMessage", 0, 0, 3),
        (7, None, RUNNING_LATE_BLOB, 40, 0, 1, "SMS", 0, 3, 4),
        (8, "Here's the doc", None, 50, 1, 0, "iMessage", 1, 2, 2),
    ]
    for rowid, text, body, minutes, from_me, read, service, has_att, handle, chat in rows:
        conn.execute(
            "INSERT INTO message VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (rowid, f"guid-{rowid}", text, body, datetime_to_cocoa(at(minutes)),
             from_me, read, service, has_att, handle)
        )
        conn.execute("INSERT INTO chat_message_join VALUES (?, ?)", (chat, rowid))

    conn.commit()
    conn.close()
    return path


@pytest.fixture
def messages(chat_db_path):
    return MessagesInterface(messages_db_path=str(chat_db_path))
