"""
Read-only access to the macOS AddressBook database.

macOS keeps contacts in one of:
- ~/Library/Application Support/AddressBook/Sources/<UUID>/AddressBook-v22.abcddb (iCloud)
- ~/Library/Application Support/AddressBook/AddressBook-v22.abcddb (local)

The store is owned by whoever creates it (the MCP server or the gateway CLI)
and is closed by that owner on shutdown. The connection is opened lazily on
the first query and reused until close().
"""

import logging
import sqlite3
import threading
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_ADDRESS_BOOK_DIR = Path.home() / "Library" / "Application Support" / "AddressBook"
ADDRESS_BOOK_FILENAME = "AddressBook-v22.abcddb"


class StoreUnavailable(Exception):
    """The contacts database could not be located or opened."""
    pass


def find_contacts_database(base_dir: Path = DEFAULT_ADDRESS_BOOK_DIR) -> Optional[Path]:
    """
    Find the contacts database under an AddressBook directory.

    iCloud sources are preferred over the local database. Sources are
    checked in sorted order so the choice is stable across runs.

    Args:
        base_dir: AddressBook directory to search

    Returns:
        Path to the first database found, or None
    """
    base_dir = Path(base_dir).expanduser()

    sources_dir = base_dir / "Sources"
    if sources_dir.is_dir():
        for source in sorted(sources_dir.iterdir()):
            candidate = source / ADDRESS_BOOK_FILENAME
            if candidate.exists():
                return candidate

    local_db = base_dir / ADDRESS_BOOK_FILENAME
    if local_db.exists():
        return local_db

    return None


class AddressBookStore:
    """
    Lazily-opened, read-only handle on the AddressBook database.

    Usage:
        store = AddressBookStore()
        try:
            rows = store.query("SELECT Z_PK FROM ZABCDRECORD")
        finally:
            store.close()
    """

    def __init__(
        self,
        db_path: Optional[str] = None,
        base_dir: Path = DEFAULT_ADDRESS_BOOK_DIR
    ):
        """
        Args:
            db_path: Explicit database file (skips discovery when set)
            base_dir: AddressBook directory used for discovery
        """
        self._db_path = Path(db_path).expanduser() if db_path else None
        self._base_dir = Path(base_dir).expanduser()
        self._conn: Optional[sqlite3.Connection] = None
        self._failure: Optional[StoreUnavailable] = None
        self._lock = threading.Lock()

    @property
    def path(self) -> Optional[Path]:
        """Database path in use (None until located)."""
        return self._db_path

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def _locate(self) -> Path:
        try:
            return self._discover()
        except OSError as e:
            # Typically Full Disk Access not granted
            target = self._db_path or self._base_dir
            raise StoreUnavailable(f"Cannot read contacts directory {target}: {e}") from e

    def _discover(self) -> Path:
        if self._db_path is not None:
            if not self._db_path.exists():
                raise StoreUnavailable(
                    f"Contacts database not found at {self._db_path}"
                )
            return self._db_path

        found = find_contacts_database(self._base_dir)
        if found is None:
            raise StoreUnavailable(
                f"Contacts database not found under {self._base_dir}. "
                "Make sure you have contacts on this Mac and that Full Disk "
                "Access is granted."
            )
        return found

    def _connect(self) -> sqlite3.Connection:
        # A failed open is remembered and re-raised; it is not retried.
        if self._failure is not None:
            raise self._failure
        if self._conn is not None:
            return self._conn

        try:
            path = self._locate()
            conn = sqlite3.connect(
                f"file:{path}?mode=ro",
                uri=True,
                check_same_thread=False
            )
        except StoreUnavailable as e:
            self._failure = e
            logger.error(str(e))
            raise
        except sqlite3.Error as e:
            self._failure = StoreUnavailable(f"Cannot open contacts database: {e}")
            logger.error(str(self._failure))
            raise self._failure from e

        conn.row_factory = sqlite3.Row
        self._db_path = path
        self._conn = conn
        logger.info(f"Opened contacts database: {path}")
        return conn

    def query(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        """
        Run a read query against the contacts database.

        Raises:
            StoreUnavailable: If no contacts database can be located/opened
            sqlite3.Error: If the query itself fails
        """
        with self._lock:
            conn = self._connect()
            return conn.execute(sql, params).fetchall()

    def close(self) -> None:
        """Close the connection if it was opened."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
                logger.info("Contacts database closed")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
