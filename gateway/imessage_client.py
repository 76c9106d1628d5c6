#!/usr/bin/env python3
"""
iMessage Gateway Client - Standalone CLI for iMessage operations.

No MCP server required. Queries Messages.db and the macOS AddressBook
directly, using the same library and configuration as the MCP server.

Usage:
    imessage-gateway contacts --limit 20
    imessage-gateway find "Angus"
    imessage-gateway lookup "(415) 555-1234"
    imessage-gateway recent --limit 10
    imessage-gateway chats --kind group
    imessage-gateway unread --json

Exit codes:
    0  success
    1  not found, or the Messages database can't be read
    2  contacts database unavailable
"""

import sys
import argparse
import atexit
import json
import sqlite3

from imessage_mcp.contacts_manager import ContactsManager
from imessage_mcp.contacts_store import AddressBookStore, StoreUnavailable
from imessage_mcp.conversations import aggregate_conversations
from imessage_mcp.identity import extract_chat_identifier
from imessage_mcp.messages_interface import (
    ChatFilter,
    MessageFilter,
    MessagesDatabaseUnavailable,
    MessagesInterface,
    VALID_CHAT_KINDS,
)
from imessage_mcp.resolver import ContactResolver, NotFound
from mcp_server.config import CONFIG, resolve_path
from mcp_server.utils.labels import ContactLabels

EXIT_OK = 0
EXIT_NOT_FOUND = 1
EXIT_STORE_UNAVAILABLE = 2

# Messages scanned to build the recent-conversations list
RECENT_WINDOW = 500


def get_interfaces():
    """Initialize MessagesInterface, ContactsManager and ContactResolver."""
    contacts_db = CONFIG["paths"].get("contacts_db")
    store = AddressBookStore(
        db_path=resolve_path(contacts_db) if contacts_db else None,
        base_dir=resolve_path(CONFIG["paths"]["address_book_dir"]),
    )
    # Close the AddressBook connection on exit
    atexit.register(store.close)

    mi = MessagesInterface(resolve_path(CONFIG["paths"]["messages_db"]))
    cm = ContactsManager(store)
    return mi, cm, ContactResolver(cm, mi)


def print_json(data) -> None:
    print(json.dumps(data, indent=2, default=str))


def handle_store_unavailable(e: StoreUnavailable) -> int:
    """Handle AddressBook access errors with actionable guidance."""
    print(f"Error: {e}", file=sys.stderr)
    print("\nTo fix:", file=sys.stderr)
    print("  1. Open System Settings > Privacy & Security > Full Disk Access", file=sys.stderr)
    print("  2. Enable access for Terminal (or your terminal app)", file=sys.stderr)
    print("  3. Or set IMESSAGE_CONTACTS_DB to an AddressBook-v22.abcddb file", file=sys.stderr)
    return EXIT_STORE_UNAVAILABLE


def handle_db_access_error(e: Exception) -> int:
    """Handle Messages.db access errors with actionable guidance."""
    print(f"Error: Cannot access Messages database ({e}).", file=sys.stderr)
    print("\nThis usually means Full Disk Access is not enabled.", file=sys.stderr)
    print("\nTo fix:", file=sys.stderr)
    print("  1. Open System Settings > Privacy & Security > Full Disk Access", file=sys.stderr)
    print("  2. Enable access for Terminal (or your terminal app)", file=sys.stderr)
    print("  3. Restart your terminal", file=sys.stderr)
    return EXIT_NOT_FOUND


def cmd_contacts(args):
    """List contacts."""
    _, cm, _ = get_interfaces()
    contacts = cm.all_contacts()[:args.limit]

    if args.json:
        print_json([c.to_dict() for c in contacts])
    else:
        print(f"Contacts ({len(contacts)}):")
        print("-" * 40)
        for c in contacts:
            print(f"{c.full_name}: {c.primary_handle or '-'}")

    return EXIT_OK


def cmd_find(args):
    """Resolve a name to a contact or chat."""
    _, _, resolver = get_interfaces()

    try:
        resolved = resolver.resolve(args.name)
    except NotFound as e:
        if args.json:
            print_json({"error": str(e), "suggestions": e.suggestions})
        else:
            print(f"{e}.", file=sys.stderr)
            if e.suggestions:
                print("\nDid you mean:", file=sys.stderr)
                for name in e.suggestions:
                    print(f"  - {name}", file=sys.stderr)
        return EXIT_NOT_FOUND

    if args.json:
        print_json({
            "query": resolved.query,
            "source": resolved.source,
            "total_count": resolved.total_count,
            "matches": [
                {"name": m.name, "identifier": m.identifier, "source": m.source}
                for m in resolved.matches
            ],
        })
        return EXIT_OK

    if resolved.is_ambiguous:
        print(f"Multiple matches ({len(resolved.matches)} of {resolved.total_count}):")
    for m in resolved.matches:
        print(f"{m.name}: {m.identifier or '-'} [{m.source}]")

    return EXIT_OK


def cmd_lookup(args):
    """Find the contact owning a phone number."""
    _, cm, _ = get_interfaces()
    matches = cm.find_all_by_phone(args.phone)

    if not matches:
        if args.json:
            print_json(None)
        else:
            print(f"No contact found for {args.phone}.", file=sys.stderr)
        return EXIT_NOT_FOUND

    contact = matches[0]
    if args.json:
        print_json(contact.to_dict())
    else:
        print(f"{contact.full_name}: {', '.join(contact.phone_numbers)}")
        if len(matches) > 1:
            others = ", ".join(c.full_name for c in matches[1:])
            print(f"(also listed under {others})", file=sys.stderr)

    return EXIT_OK


def cmd_recent(args):
    """Get recent conversations across all contacts."""
    mi, cm, _ = get_interfaces()

    result = mi.get_messages(MessageFilter(limit=RECENT_WINDOW, exclude_own_messages=False))
    conversations = aggregate_conversations(result.messages, args.limit)

    if args.json:
        print_json([c.to_dict() for c in conversations])
        return EXIT_OK

    if not conversations:
        print("No recent conversations found.")
        return EXIT_OK

    labels = ContactLabels(cm)
    print("Recent Conversations:")
    print("-" * 60)
    for conv in conversations:
        name = labels.name_for(conv.counterparty) or conv.counterparty
        last_msg = (conv.last_message or "[media]")[:80]
        unread = f" [{conv.unread_count} unread]" if conv.unread_count else ""
        print(f"{name}{unread}: {last_msg} ({conv.last_timestamp:%Y-%m-%d %H:%M})")

    return EXIT_OK


def cmd_chats(args):
    """List chats by last activity."""
    mi, _, _ = get_interfaces()
    chats = mi.list_chats(ChatFilter(kind=args.kind, limit=args.limit))

    if args.json:
        print_json([
            {
                "chat_id": c.chat_id,
                "display_name": c.display_name,
                "is_group": c.is_group,
                "unread_count": c.unread_count,
                "last_message_at": c.last_message_at,
            }
            for c in chats
        ])
        return EXIT_OK

    if not chats:
        print("No chats found.")
        return EXIT_OK

    for c in chats:
        name = c.display_name or extract_chat_identifier(c.chat_id)
        unread = f" [{c.unread_count} unread]" if c.unread_count else ""
        print(f"{name}{unread} ({c.chat_id})")

    return EXIT_OK


def cmd_unread(args):
    """Get unread messages grouped by sender."""
    mi, _, _ = get_interfaces()
    summary = mi.get_unread_messages(limit=args.limit)

    if args.json:
        print_json({
            "total": summary.total,
            "sender_count": summary.sender_count,
            "groups": [
                {"sender": g.sender, "messages": [m.to_dict() for m in g.messages]}
                for g in summary.groups
            ],
        })
        return EXIT_OK

    if not summary.total:
        print("No unread messages.")
        return EXIT_OK

    print(f"Unread Messages ({summary.total} from {summary.sender_count}):")
    print("-" * 60)
    for group in summary.groups:
        for m in group.messages:
            text = m.text or "[media]"
            print(f"{group.sender}: {text[:150]}")

    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="iMessage Gateway - Standalone CLI for iMessage operations",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s contacts                  List contacts
  %(prog)s find "Angus"              Resolve a name to a contact or chat
  %(prog)s lookup +14155551234       Who owns this number
  %(prog)s recent --limit 10         Show recent conversations
  %(prog)s chats --kind group        List group chats
  %(prog)s unread                    Show unread messages
        """
    )

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    p_contacts = subparsers.add_parser('contacts', help='List contacts')
    p_contacts.add_argument('--limit', '-l', type=int, default=100, choices=range(1, 5001), metavar='N',
                            help='Max contacts to list (1-5000, default: 100)')
    p_contacts.add_argument('--json', action='store_true', help='Output as JSON')
    p_contacts.set_defaults(func=cmd_contacts)

    p_find = subparsers.add_parser('find', help='Resolve a name to a contact or chat')
    p_find.add_argument('name', help='Name or part of a name')
    p_find.add_argument('--json', action='store_true', help='Output as JSON')
    p_find.set_defaults(func=cmd_find)

    p_lookup = subparsers.add_parser('lookup', help='Find the contact owning a phone number')
    p_lookup.add_argument('phone', help='Phone number in any format')
    p_lookup.add_argument('--json', action='store_true', help='Output as JSON')
    p_lookup.set_defaults(func=cmd_lookup)

    p_recent = subparsers.add_parser('recent', help='Get recent conversations')
    p_recent.add_argument('--limit', '-l', type=int, default=10, choices=range(1, 51), metavar='N',
                          help='Max conversations (1-50, default: 10)')
    p_recent.add_argument('--json', action='store_true', help='Output as JSON')
    p_recent.set_defaults(func=cmd_recent)

    p_chats = subparsers.add_parser('chats', help='List chats by last activity')
    p_chats.add_argument('--kind', choices=VALID_CHAT_KINDS, default='all')
    p_chats.add_argument('--limit', '-l', type=int, default=20, choices=range(1, 501), metavar='N',
                         help='Max chats (1-500, default: 20)')
    p_chats.add_argument('--json', action='store_true', help='Output as JSON')
    p_chats.set_defaults(func=cmd_chats)

    p_unread = subparsers.add_parser('unread', help='Get unread messages')
    p_unread.add_argument('--limit', '-l', type=int, default=50, choices=range(1, 501), metavar='N',
                          help='Max messages (1-500, default: 50)')
    p_unread.add_argument('--json', action='store_true', help='Output as JSON')
    p_unread.set_defaults(func=cmd_unread)

    return parser


def main(argv=None):
    """Run the iMessage Gateway CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return EXIT_NOT_FOUND

    try:
        result = args.func(args)
    except StoreUnavailable as e:
        result = handle_store_unavailable(e)
    except (MessagesDatabaseUnavailable, sqlite3.Error) as e:
        result = handle_db_access_error(e)

    # Ensure all output is flushed before exit
    sys.stdout.flush()
    sys.stderr.flush()

    return result


def run():
    """Console script entry point."""
    sys.exit(main())


if __name__ == '__main__':
    run()
