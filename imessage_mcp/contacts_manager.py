"""
Contact lookup over the macOS AddressBook.

Contacts are read fresh from the AddressBookStore on each call. The store
connection is reused; nothing else is cached.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Optional, List, Dict

from .contacts_store import AddressBookStore
from .identity import handles_match

logger = logging.getLogger(__name__)

_RECORDS_QUERY = """
    SELECT
        r.Z_PK AS id,
        r.ZFIRSTNAME AS first_name,
        r.ZLASTNAME AS last_name,
        r.ZNICKNAME AS nickname
    FROM ZABCDRECORD r
    WHERE r.ZFIRSTNAME IS NOT NULL OR r.ZLASTNAME IS NOT NULL
    ORDER BY r.ZFIRSTNAME, r.ZLASTNAME
"""

_PHONES_QUERY = "SELECT ZOWNER AS owner, ZFULLNUMBER AS value FROM ZABCDPHONENUMBER"

_EMAILS_QUERY = "SELECT ZOWNER AS owner, ZADDRESS AS value FROM ZABCDEMAILADDRESS"


@dataclass(frozen=True)
class Contact:
    """A contact snapshot read from the AddressBook."""
    id: int
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    nickname: Optional[str] = None
    phone_numbers: tuple = field(default_factory=tuple)
    emails: tuple = field(default_factory=tuple)

    @property
    def full_name(self) -> str:
        """First and last name joined, or "Unknown" if both are missing."""
        name = " ".join(part for part in (self.first_name, self.last_name) if part).strip()
        return name or "Unknown"

    @property
    def primary_handle(self) -> Optional[str]:
        """First phone number, falling back to the first email."""
        if self.phone_numbers:
            return self.phone_numbers[0]
        if self.emails:
            return self.emails[0]
        return None

    def __repr__(self):
        return f"Contact(name='{self.full_name}', phones={len(self.phone_numbers)})"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "nickname": self.nickname,
            "full_name": self.full_name,
            "phone_numbers": list(self.phone_numbers),
            "emails": list(self.emails),
        }


class ContactsManager:
    """
    Read-only contact index over an AddressBookStore.

    All lookups go through all_contacts(), so results are always returned
    in AddressBook name order (first name, then last name).
    """

    def __init__(self, store: AddressBookStore):
        """
        Args:
            store: Contacts database handle (owned by the caller)
        """
        self.store = store

    def _values_by_owner(self, sql: str) -> Dict[int, List[str]]:
        values = defaultdict(list)
        for row in self.store.query(sql):
            if row["value"]:
                values[row["owner"]].append(row["value"])
        return values

    def all_contacts(self) -> List[Contact]:
        """
        Get all named contacts with their phone numbers and emails.

        Returns:
            Contacts ordered by (first name, last name) as sorted by the store

        Raises:
            StoreUnavailable: If the contacts database can't be located
        """
        records = self.store.query(_RECORDS_QUERY)
        phones = self._values_by_owner(_PHONES_QUERY)
        emails = self._values_by_owner(_EMAILS_QUERY)

        contacts = [
            Contact(
                id=row["id"],
                first_name=row["first_name"],
                last_name=row["last_name"],
                nickname=row["nickname"],
                phone_numbers=tuple(phones.get(row["id"], ())),
                emails=tuple(emails.get(row["id"], ())),
            )
            for row in records
        ]

        logger.debug(f"Loaded {len(contacts)} contacts from AddressBook")
        return contacts

    def search(self, query: str) -> List[Contact]:
        """
        Search contacts by name (case-insensitive substring).

        A contact matches if its first name, last name, nickname or full
        name contains the query.

        Args:
            query: Text to look for

        Returns:
            Matching contacts in all_contacts() order
        """
        query_lower = query.lower()

        results = []
        for contact in self.all_contacts():
            fields = (
                contact.first_name,
                contact.last_name,
                contact.nickname,
                contact.full_name,
            )
            if any(f and query_lower in f.lower() for f in fields):
                results.append(contact)

        logger.info(f"Contact search '{query}': {len(results)} result(s)")
        return results

    def find_all_by_phone(self, phone: str) -> List[Contact]:
        """Every contact owning a number that matches phone."""
        return [
            contact for contact in self.all_contacts()
            if any(handles_match(stored, phone) for stored in contact.phone_numbers)
        ]

    def find_by_phone(self, phone: str) -> Optional[Contact]:
        """
        Get the first contact (in name order) with a matching phone number.

        Only the first match is returned. When several contacts share the
        number a warning is logged; use find_all_by_phone() to see them all.

        Args:
            phone: Phone number in any format

        Returns:
            Contact if found, None otherwise
        """
        matches = self.find_all_by_phone(phone)
        if not matches:
            logger.debug(f"No contact found for phone: {phone}")
            return None

        if len(matches) > 1:
            logger.warning(
                f"Phone {phone} matches {len(matches)} contacts, "
                f"using {matches[0].full_name}"
            )
        return matches[0]
