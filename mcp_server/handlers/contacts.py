# ============================================================================
# CHANGELOG (recent first, max 5 entries)
# 10/12/2026 - find_contact falls back to chat display names
# 10/05/2026 - Read contacts from the macOS AddressBook instead of contacts.json
# ============================================================================
"""
Contacts Handlers

Handles tools for looking up people in the macOS AddressBook:
- search_contacts: Name search across first/last/nickname
- find_contact: Resolve a name to one contact (or chat) or a candidate list
- lookup_phone: Who owns a phone number
"""

import logging
import sqlite3

from mcp import types

from imessage_mcp.contacts_store import StoreUnavailable
from imessage_mcp.messages_interface import MessagesDatabaseUnavailable
from imessage_mcp.resolver import NotFound, SOURCE_CHATS
from mcp_server.utils.validation import validate_limit, validate_non_empty_string
from mcp_server.utils.responses import text_response, validation_error, empty_result
from mcp_server.utils.errors import (
    handle_database_error,
    handle_not_found,
    handle_store_unavailable,
)

logger = logging.getLogger(__name__)

SEARCH_CONTACTS_MAX = 100


def _contact_lines(contact) -> list[str]:
    lines = [f"  • {contact.full_name}"]
    if contact.nickname:
        lines[0] += f" \"{contact.nickname}\""
    for phone in contact.phone_numbers:
        lines.append(f"      phone: {phone}")
    for email in contact.emails:
        lines.append(f"      email: {email}")
    return lines


async def handle_search_contacts(
    arguments: dict,
    contacts
) -> list[types.TextContent]:
    """
    Handle search_contacts tool call.

    Args:
        arguments: {"query": str, "limit": Optional[int]}
        contacts: ContactsManager instance

    Returns:
        Matching contacts with phone numbers and emails
    """
    query, error = validate_non_empty_string(arguments.get("query"), "query")
    if error:
        return validation_error(error)

    limit, error = validate_limit(arguments, default=20, max_val=SEARCH_CONTACTS_MAX)
    if error:
        return validation_error(error)

    try:
        results = contacts.search(query)
    except StoreUnavailable as e:
        return handle_store_unavailable(e, "search_contacts")

    if not results:
        return empty_result("contacts", f" matching '{query}'")

    shown = results[:limit]
    response_lines = [
        f"Contacts matching '{query}' ({len(shown)} of {len(results)}):",
        ""
    ]
    for contact in shown:
        response_lines.extend(_contact_lines(contact))

    return text_response("\n".join(response_lines))


async def handle_find_contact(
    arguments: dict,
    resolver
) -> list[types.TextContent]:
    """
    Handle find_contact tool call.

    Args:
        arguments: {"name": str}
        resolver: ContactResolver instance

    Returns:
        The resolved contact, a list of candidates, or a not-found message
    """
    name, error = validate_non_empty_string(arguments.get("name"), "name")
    if error:
        return validation_error(error)

    try:
        resolved = resolver.resolve(name)
    except NotFound as e:
        return handle_not_found(e)
    except StoreUnavailable as e:
        return handle_store_unavailable(e, "find_contact")
    except (MessagesDatabaseUnavailable, sqlite3.Error) as e:
        return handle_database_error(e, "find_contact")

    from_chats = resolved.source == SOURCE_CHATS
    source_note = " (from chat names)" if from_chats else ""

    if not resolved.is_ambiguous:
        match = resolved.match
        if match.contact is not None:
            response_lines = [f"Found{source_note}:", ""] + _contact_lines(match.contact)
        else:
            response_lines = [
                f"Found{source_note}:",
                "",
                f"  • {match.name}: {match.identifier}",
            ]
        return text_response("\n".join(response_lines))

    response_lines = [
        f"Multiple matches for '{name}'{source_note}: "
        f"showing {len(resolved.matches)} of {resolved.total_count}",
        ""
    ]
    for match in resolved.matches:
        response_lines.append(f"  • {match.name}: {match.identifier or 'no phone or email'}")
    response_lines.append("")
    response_lines.append("Be more specific to pick one.")

    return text_response("\n".join(response_lines))


async def handle_lookup_phone(
    arguments: dict,
    contacts
) -> list[types.TextContent]:
    """
    Handle lookup_phone tool call.

    Args:
        arguments: {"phone": str}
        contacts: ContactsManager instance

    Returns:
        The owner of the number (first in name order when shared)
    """
    phone, error = validate_non_empty_string(arguments.get("phone"), "phone")
    if error:
        return validation_error(error)

    try:
        matches = contacts.find_all_by_phone(phone)
    except StoreUnavailable as e:
        return handle_store_unavailable(e, "lookup_phone")

    if not matches:
        return empty_result("contact", f" for {phone}")

    response_lines = [f"{phone} belongs to:", ""] + _contact_lines(matches[0])
    if len(matches) > 1:
        others = ", ".join(c.full_name for c in matches[1:])
        response_lines.append("")
        response_lines.append(f"Note: also listed under {others}")

    return text_response("\n".join(response_lines))
