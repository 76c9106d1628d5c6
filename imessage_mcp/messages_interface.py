"""
macOS Messages integration.

Reads message history and chats from the Messages database (chat.db) and
sends messages, files and images through AppleScript.

The database is opened read-only for each call. Errors are raised to the
caller; an unreadable database is never reported as "no messages".
"""

import logging
import plistlib
import re
import sqlite3
import subprocess
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional, List, Dict

from .identity import handles_match

logger = logging.getLogger(__name__)

COCOA_EPOCH = datetime(2001, 1, 1, tzinfo=timezone.utc)

VALID_SERVICES = ("iMessage", "SMS", "RCS")
VALID_CHAT_KINDS = ("all", "dm", "group")

# chat.style for group conversations (1:1 chats use 45)
GROUP_CHAT_STYLE = 43

IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".heic", ".heif", ".webp", ".tiff", ".bmp"}

APPLESCRIPT_TIMEOUT = 10


class MessagesDatabaseUnavailable(Exception):
    """The Messages database is missing or unreadable."""
    pass


@dataclass(frozen=True)
class Attachment:
    filename: str
    path: str
    mime_type: str
    size: int
    is_image: bool


@dataclass(frozen=True)
class MessageRecord:
    """A single message row from chat.db."""
    id: int
    guid: str
    text: Optional[str]
    sender: str
    chat_id: str
    is_group_chat: bool
    service: str
    is_read: bool
    is_from_me: bool
    date: Optional[datetime]
    attachments: tuple = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "guid": self.guid,
            "text": self.text,
            "sender": self.sender,
            "chat_id": self.chat_id,
            "is_group_chat": self.is_group_chat,
            "service": self.service,
            "is_read": self.is_read,
            "is_from_me": self.is_from_me,
            "date": self.date.isoformat() if self.date else None,
            "attachments": [asdict(a) for a in self.attachments],
        }


@dataclass
class MessageQueryResult:
    messages: List[MessageRecord]
    total: int
    unread_count: int


@dataclass(frozen=True)
class ChatSummary:
    """A chat from the chat table. chat_id is the composite guid."""
    chat_id: str
    display_name: Optional[str]
    is_group: bool
    unread_count: int
    last_message_at: Optional[datetime]


@dataclass
class UnreadGroup:
    sender: str
    messages: List[MessageRecord]


@dataclass
class UnreadSummary:
    groups: List[UnreadGroup]
    total: int
    sender_count: int


@dataclass
class SendResult:
    success: bool
    error: Optional[str] = None
    sent_at: Optional[datetime] = None


@dataclass
class MessageFilter:
    """
    Filters for get_messages().

    Raises:
        ValueError: On an out-of-range limit or unknown service
    """
    sender: Optional[str] = None
    chat_id: Optional[str] = None
    limit: int = 50
    since: Optional[datetime] = None
    unread_only: bool = False
    has_attachments: Optional[bool] = None
    service: Optional[str] = None
    exclude_own_messages: bool = True

    def __post_init__(self):
        if not isinstance(self.limit, int) or self.limit < 1:
            raise ValueError(f"limit must be a positive integer, got {self.limit!r}")
        if self.service is not None and self.service not in VALID_SERVICES:
            raise ValueError(
                f"service must be one of {list(VALID_SERVICES)}, got {self.service!r}"
            )
        if self.since is not None and self.since.tzinfo is None:
            self.since = self.since.replace(tzinfo=timezone.utc)


@dataclass
class ChatFilter:
    """Filters for list_chats()."""
    kind: str = "all"
    limit: int = 100

    def __post_init__(self):
        if self.kind not in VALID_CHAT_KINDS:
            raise ValueError(
                f"kind must be one of {list(VALID_CHAT_KINDS)}, got {self.kind!r}"
            )
        if not isinstance(self.limit, int) or self.limit < 1:
            raise ValueError(f"limit must be a positive integer, got {self.limit!r}")


def escape_applescript_string(s: str) -> str:
    r"""
    Escape a string for use inside an AppleScript double-quoted literal.

    Backslashes are escaped before quotes (\ -> \\, " -> \").
    """
    if s is None:
        return ""
    return s.replace('\\', '\\\\').replace('"', '\\"')


def is_group_chat_identifier(chat_identifier: Optional[str]) -> bool:
    """
    Check if a chat_identifier looks like a group chat.

    Group identifiers are 'chat' followed by digits, or a comma-separated
    list of handles.
    """
    if not chat_identifier:
        return False
    if chat_identifier.startswith('chat') and chat_identifier[4:].isdigit():
        return True
    return ',' in chat_identifier


def is_group_chat(style: Optional[int], chat_identifier: Optional[str]) -> bool:
    """Group chats have style 43 or a group-shaped chat_identifier."""
    return style == GROUP_CHAT_STYLE or is_group_chat_identifier(chat_identifier)


def cocoa_to_datetime(value: Optional[int]) -> Optional[datetime]:
    """
    Convert a chat.db timestamp to an aware UTC datetime.

    Newer databases store nanoseconds since 2001-01-01, older ones seconds.
    """
    if not value:
        return None
    seconds = value / 1_000_000_000 if abs(value) > 10_000_000_000 else value
    return COCOA_EPOCH + timedelta(seconds=seconds)


def datetime_to_cocoa(value: datetime) -> int:
    """Convert a datetime to chat.db nanoseconds."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int((value - COCOA_EPOCH).total_seconds() * 1_000_000_000)


def parse_attributed_body(blob: bytes) -> Optional[str]:
    """
    Extract text from an NSKeyedArchiver (bplist) attributedBody.

    Returns None when the blob is not a bplist so the caller can try the
    streamtyped decoder.
    """
    if not blob:
        return None

    start = blob.find(b'bplist')
    if start == -1:
        return None

    try:
        plist = plistlib.loads(blob[start:])
    except Exception as e:
        logger.debug(f"Failed to parse attributedBody plist: {e}")
        return None

    if not isinstance(plist, dict):
        return None

    for obj in plist.get('$objects', []):
        if isinstance(obj, str) and obj.strip() and not obj.startswith(('NS', '$')):
            return obj.strip()
        if isinstance(obj, dict) and isinstance(obj.get('NS.string'), str):
            if obj['NS.string'].strip():
                return obj['NS.string'].strip()
    return None


def extract_text_from_blob(blob: bytes) -> Optional[str]:
    """
    Extract readable text from an attributedBody column.

    macOS Ventura+ stores message text in a "streamtyped" archive: after the
    NSString class marker comes '+', a length byte, and the UTF-8 text, which
    ends at a control byte (0x84, 0x86 or NUL).
    """
    if not blob:
        return None

    text = parse_attributed_body(blob)
    if text:
        return text

    marker = blob.find(b'NSString')
    if marker != -1:
        plus = blob.find(b'+', marker)
        if plus != -1 and plus < marker + 20:
            start = plus + 2
            end = start
            while end < len(blob) and blob[end] not in (0x86, 0x84, 0x00):
                end += 1
            decoded = blob[start:end].decode('utf-8', errors='ignore').strip()
            if decoded:
                return decoded

    # Fallback: first printable run that isn't archiver metadata
    skip = ('NSString', 'NSObject', 'NSMutable', 'NSDictionary',
            'NSAttributed', 'streamtyped', '__kIM', 'NSNumber', 'NSValue')
    for run in re.findall(r'[^\x00-\x1f\x7f-\x9f]{3,}', blob.decode('utf-8', errors='ignore')):
        if not any(s in run for s in skip):
            cleaned = run.strip('+').strip()
            if len(cleaned) >= 2:
                return cleaned
    return None


class MessagesInterface:
    """Interface to macOS Messages (chat.db + AppleScript)."""

    def __init__(self, messages_db_path: str = "~/Library/Messages/chat.db"):
        """
        Args:
            messages_db_path: Path to Messages database (default: standard location)
        """
        self.messages_db_path = Path(messages_db_path).expanduser()
        logger.info(f"Initialized MessagesInterface with DB: {self.messages_db_path}")

    # ------------------------------------------------------------------
    # Database access
    # ------------------------------------------------------------------

    def _connect(self) -> sqlite3.Connection:
        if not self.messages_db_path.exists():
            raise MessagesDatabaseUnavailable(
                f"Messages database not found: {self.messages_db_path}"
            )
        conn = sqlite3.connect(f"file:{self.messages_db_path}?mode=ro", uri=True)
        conn.row_factory = sqlite3.Row
        return conn

    def check_permissions(self) -> dict:
        """
        Check whether the Messages database is readable.

        Returns:
            dict: {"messages_db_accessible": bool}
        """
        accessible = self.messages_db_path.exists()
        if not accessible:
            logger.warning(
                "Messages database not accessible. "
                "Grant Full Disk Access: System Settings → Privacy & Security"
            )
        return {"messages_db_accessible": accessible}

    def _matching_handles(self, conn: sqlite3.Connection, sender: str) -> List[str]:
        """All handle ids in chat.db that refer to sender, in any number format."""
        sender_lower = sender.lower()
        return [
            row["id"] for row in conn.execute("SELECT DISTINCT id FROM handle")
            if row["id"] and (
                row["id"].lower() == sender_lower or handles_match(row["id"], sender)
            )
        ]

    def _load_attachments(
        self,
        conn: sqlite3.Connection,
        message_ids: List[int]
    ) -> Dict[int, List[Attachment]]:
        if not message_ids:
            return {}

        placeholders = ",".join("?" for _ in message_ids)
        rows = conn.execute(f"""
            SELECT
                maj.message_id,
                a.filename,
                a.transfer_name,
                a.mime_type,
                a.total_bytes
            FROM message_attachment_join maj
            JOIN attachment a ON a.ROWID = maj.attachment_id
            WHERE maj.message_id IN ({placeholders})
            ORDER BY a.ROWID
        """, message_ids).fetchall()

        attachments = {}
        for row in rows:
            path = str(Path(row["filename"]).expanduser()) if row["filename"] else ""
            name = row["transfer_name"] or (Path(path).name if path else "unknown")
            mime_type = row["mime_type"] or "application/octet-stream"
            attachments.setdefault(row["message_id"], []).append(Attachment(
                filename=name,
                path=path,
                mime_type=mime_type,
                size=row["total_bytes"] or 0,
                is_image=mime_type.startswith("image/"),
            ))
        return attachments

    def get_messages(self, filters: Optional[MessageFilter] = None) -> MessageQueryResult:
        """
        Get messages matching filters, newest first.

        Args:
            filters: MessageFilter (defaults to the 50 most recent received messages)

        Returns:
            MessageQueryResult with messages, total and unread count

        Raises:
            MessagesDatabaseUnavailable: If chat.db is missing
            sqlite3.Error: If the database can't be read
        """
        filters = filters or MessageFilter()
        logger.info(f"Retrieving messages with filters: {filters}")

        conn = self._connect()
        try:
            conditions = []
            params: list = []

            if filters.sender:
                handles = self._matching_handles(conn, filters.sender)
                if not handles:
                    logger.info(f"No handles match sender {filters.sender}")
                    return MessageQueryResult(messages=[], total=0, unread_count=0)
                conditions.append(f"h.id IN ({','.join('?' for _ in handles)})")
                params.extend(handles)

            if filters.chat_id:
                conditions.append("(c.chat_identifier = ? OR c.guid = ?)")
                params.extend([filters.chat_id, filters.chat_id])

            if filters.since:
                conditions.append("m.date >= ?")
                params.append(datetime_to_cocoa(filters.since))

            if filters.unread_only:
                conditions.append("m.is_read = 0 AND m.is_from_me = 0")

            if filters.has_attachments is True:
                conditions.append("m.cache_has_attachments = 1")
            elif filters.has_attachments is False:
                conditions.append("m.cache_has_attachments = 0")

            if filters.service:
                conditions.append("m.service = ?")
                params.append(filters.service)

            if filters.exclude_own_messages:
                conditions.append("m.is_from_me = 0")

            where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
            params.append(filters.limit)

            rows = conn.execute(f"""
                SELECT
                    m.ROWID AS rowid,
                    m.guid,
                    m.text,
                    m.attributedBody,
                    m.date,
                    m.is_from_me,
                    m.is_read,
                    m.service,
                    m.cache_has_attachments,
                    h.id AS sender,
                    c.chat_identifier,
                    c.style
                FROM message m
                LEFT JOIN handle h ON m.handle_id = h.ROWID
                LEFT JOIN chat_message_join cmj ON cmj.message_id = m.ROWID
                LEFT JOIN chat c ON c.ROWID = cmj.chat_id
                {where}
                ORDER BY m.date DESC
                LIMIT ?
            """, params).fetchall()

            attachments = self._load_attachments(
                conn,
                [row["rowid"] for row in rows if row["cache_has_attachments"]]
            )

            messages = []
            for row in rows:
                text = row["text"]
                if not text and row["attributedBody"]:
                    text = extract_text_from_blob(row["attributedBody"])

                chat_identifier = row["chat_identifier"] or ""
                messages.append(MessageRecord(
                    id=row["rowid"],
                    guid=row["guid"] or "",
                    text=text,
                    sender=row["sender"] or "unknown",
                    chat_id=chat_identifier or row["sender"] or "",
                    is_group_chat=is_group_chat(row["style"], chat_identifier),
                    service=row["service"] or "iMessage",
                    is_read=bool(row["is_read"]) or bool(row["is_from_me"]),
                    is_from_me=bool(row["is_from_me"]),
                    date=cocoa_to_datetime(row["date"]),
                    attachments=tuple(attachments.get(row["rowid"], ())),
                ))

            unread = sum(1 for m in messages if not m.is_read)
            logger.info(f"Retrieved {len(messages)} messages ({unread} unread)")
            return MessageQueryResult(messages=messages, total=len(messages), unread_count=unread)

        except sqlite3.Error as e:
            logger.error(f"Database error: {e}")
            raise
        finally:
            conn.close()

    def get_unread_messages(self, limit: int = 500) -> UnreadSummary:
        """
        Get unread received messages grouped by sender.

        Groups keep the order in which senders first appear (newest first).
        """
        result = self.get_messages(MessageFilter(limit=limit, unread_only=True))

        groups: Dict[str, UnreadGroup] = {}
        for message in result.messages:
            group = groups.setdefault(message.sender, UnreadGroup(sender=message.sender, messages=[]))
            group.messages.append(message)

        return UnreadSummary(
            groups=list(groups.values()),
            total=result.total,
            sender_count=len(groups),
        )

    def list_chats(self, filters: Optional[ChatFilter] = None) -> List[ChatSummary]:
        """
        List chats ordered by last activity (most recent first).

        Args:
            filters: ChatFilter with kind ("all", "dm", "group") and limit

        Raises:
            MessagesDatabaseUnavailable: If chat.db is missing
            sqlite3.Error: If the database can't be read
        """
        filters = filters or ChatFilter()
        logger.info(f"Listing chats (kind: {filters.kind}, limit: {filters.limit})")

        group_condition = "is_group_chat(c.style, c.chat_identifier)"
        if filters.kind == "group":
            where = f"WHERE {group_condition}"
        elif filters.kind == "dm":
            where = f"WHERE NOT {group_condition}"
        else:
            where = ""

        conn = self._connect()
        conn.create_function("is_group_chat", 2, is_group_chat, deterministic=True)
        try:
            rows = conn.execute(f"""
                SELECT
                    c.guid,
                    c.chat_identifier,
                    c.display_name,
                    c.style,
                    (SELECT MAX(m.date) FROM message m
                     JOIN chat_message_join cmj ON m.ROWID = cmj.message_id
                     WHERE cmj.chat_id = c.ROWID) AS last_date,
                    (SELECT COUNT(*) FROM message m
                     JOIN chat_message_join cmj ON m.ROWID = cmj.message_id
                     WHERE cmj.chat_id = c.ROWID
                       AND m.is_read = 0 AND m.is_from_me = 0) AS unread
                FROM chat c
                {where}
                ORDER BY last_date DESC
                LIMIT ?
            """, (filters.limit,)).fetchall()

            chats = [
                ChatSummary(
                    chat_id=row["guid"] or row["chat_identifier"],
                    display_name=row["display_name"] or None,
                    is_group=is_group_chat(row["style"], row["chat_identifier"]),
                    unread_count=row["unread"] or 0,
                    last_message_at=cocoa_to_datetime(row["last_date"]),
                )
                for row in rows
            ]
            logger.info(f"Found {len(chats)} chats")
            return chats

        except sqlite3.Error as e:
            logger.error(f"Database error: {e}")
            raise
        finally:
            conn.close()

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    def _run_applescript(self, to: str, commands: List[str]) -> SendResult:
        escaped_to = escape_applescript_string(to)
        body = "\n".join(f"            {command}" for command in commands)
        script = f'''
        tell application "Messages"
            set targetService to 1st account whose service type = iMessage
            set targetBuddy to participant "{escaped_to}" of targetService
{body}
        end tell
        '''

        try:
            result = subprocess.run(
                ['osascript', '-e', script],
                capture_output=True,
                text=True,
                timeout=APPLESCRIPT_TIMEOUT
            )
        except subprocess.TimeoutExpired:
            logger.error("AppleScript timeout - Messages.app may not be running")
            return SendResult(success=False, error="Timeout - ensure Messages.app is running")
        except OSError as e:
            logger.error(f"Could not run osascript: {e}")
            return SendResult(success=False, error=str(e))

        if result.returncode != 0:
            error_msg = result.stderr.strip() or f"osascript exited with {result.returncode}"
            logger.error(f"Failed to send to {to}: {error_msg}")
            return SendResult(success=False, error=error_msg)

        return SendResult(success=True, sent_at=datetime.now(timezone.utc))

    def send_message(self, to: str, text: str) -> SendResult:
        """
        Send a text message.

        Args:
            to: Phone number or iMessage handle (email)
            text: Message text

        Example:
            result = interface.send_message("+14155551234", "Hello!")
        """
        logger.info(f"Sending message to {to}")
        result = self._run_applescript(
            to, [f'send "{escape_applescript_string(text)}" to targetBuddy']
        )
        if result.success:
            logger.info(f"Message sent successfully to {to}")
        return result

    def send_files(self, to: str, file_paths: List[str], text: Optional[str] = None) -> SendResult:
        """
        Send one or more files, optionally preceded by a text message.

        Every file must exist locally; nothing is sent otherwise.
        """
        resolved = [Path(p).expanduser() for p in file_paths]
        missing = [str(p) for p in resolved if not p.is_file()]
        if missing:
            return SendResult(success=False, error=f"File not found: {', '.join(missing)}")

        logger.info(f"Sending {len(resolved)} file(s) to {to}")
        commands = []
        if text:
            commands.append(f'send "{escape_applescript_string(text)}" to targetBuddy')
        for path in resolved:
            commands.append(
                f'send POSIX file "{escape_applescript_string(str(path.resolve()))}" to targetBuddy'
            )

        result = self._run_applescript(to, commands)
        if result.success:
            logger.info(f"File(s) sent successfully to {to}")
        return result

    def send_file(self, to: str, file_path: str, text: Optional[str] = None) -> SendResult:
        """Send a single file."""
        return self.send_files(to, [file_path], text)

    def send_image(self, to: str, image_path: str, text: Optional[str] = None) -> SendResult:
        """Send a local image file."""
        if Path(image_path).suffix.lower() not in IMAGE_EXTENSIONS:
            return SendResult(success=False, error=f"Not an image file: {image_path}")
        return self.send_files(to, [image_path], text)
