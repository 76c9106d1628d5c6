"""
Contact names for message handles, for display in tool output.
"""

import logging
from typing import Optional

from imessage_mcp.contacts_store import StoreUnavailable
from imessage_mcp.identity import handles_match

logger = logging.getLogger(__name__)


class ContactLabels:
    """
    Handle -> contact name lookups for one tool call.

    The AddressBook is read once on first use. Output falls back to raw
    handles when the contacts database can't be opened.
    """

    def __init__(self, contacts):
        self.contacts = contacts
        self._contacts = None
        self._cache: dict[str, Optional[str]] = {}

    def _load(self) -> list:
        if self._contacts is None:
            try:
                self._contacts = self.contacts.all_contacts()
            except StoreUnavailable as e:
                logger.warning(f"Showing raw handles, contacts unavailable: {e}")
                self._contacts = []
        return self._contacts

    def name_for(self, handle: Optional[str]) -> Optional[str]:
        """Full name of the first contact owning handle, or None."""
        if not handle:
            return None
        if handle in self._cache:
            return self._cache[handle]

        name = None
        handle_lower = handle.lower()
        for contact in self._load():
            if any(handles_match(phone, handle) for phone in contact.phone_numbers) or \
                    any(email.lower() == handle_lower for email in contact.emails):
                name = contact.full_name
                break

        self._cache[handle] = name
        return name

    def label(self, handle: Optional[str]) -> str:
        """'Name (handle)' when known, else the handle itself."""
        name = self.name_for(handle)
        if name:
            return f"{name} ({handle})"
        return handle or "Unknown"
