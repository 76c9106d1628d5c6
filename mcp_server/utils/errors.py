# ============================================================================
# CHANGELOG (recent first, max 5 entries)
# 10/12/2026 - Added handle_store_unavailable and handle_not_found
# 01/03/2026 - Enhanced database error messages with FDA detection
# ============================================================================
"""
Error handling utilities for MCP tool handlers.

Turns the exceptions raised by the Messages and AddressBook layers into
text responses with actionable troubleshooting steps.
"""

import logging
from typing import Optional

from mcp import types

from .responses import text_response

logger = logging.getLogger(__name__)

# Common error patterns for permission issues
PERMISSION_ERROR_PATTERNS = [
    "unable to open database",
    "permission denied",
    "no such file or directory",
    "operation not permitted",
    "access denied",
    "authorization not granted",
    "database not found",
]

FULL_DISK_ACCESS_HELP = """
📋 To grant Full Disk Access:

1. Open System Settings (or System Preferences on older macOS)
2. Go to Privacy & Security → Full Disk Access
3. Click the lock to make changes
4. Add Terminal (or the app running this server) to the list
5. Toggle it ON
6. Restart the app

The Messages and Contacts databases are protected by macOS privacy controls.
"""


def is_permission_error(error: Exception) -> bool:
    """
    Check if an error is likely a permission/access error.

    Args:
        error: The exception to check

    Returns:
        True if this looks like a permission error
    """
    error_str = str(error).lower()
    return any(pattern in error_str for pattern in PERMISSION_ERROR_PATTERNS)


def handle_database_error(
    e: Exception,
    operation: str = ""
) -> list[types.TextContent]:
    """
    Handle Messages database errors with smart detection.

    Detects permission errors vs locked databases vs everything else and
    provides troubleshooting steps for each.

    Args:
        e: The exception that was raised
        operation: Description of what operation was being performed

    Returns:
        Formatted error response
    """
    error_msg = "Database error"
    if operation:
        error_msg += f" during {operation}"
    error_msg += f": {e}"

    logger.error(error_msg, exc_info=True)

    if is_permission_error(e):
        return text_response(
            f"❌ Cannot access Messages database\n\n"
            f"Error: {e}\n"
            f"{FULL_DISK_ACCESS_HELP}"
        )

    error_str = str(e).lower()
    if "locked" in error_str or "busy" in error_str:
        return text_response(
            f"⏳ Database is locked\n\n"
            f"Error: {e}\n\n"
            "The Messages database may be in use by another process.\n"
            "Try:\n"
            "1. Close Messages.app (Cmd+Q)\n"
            "2. Wait a few seconds and try again\n"
            "3. If using Time Machine or iCloud sync, wait for it to complete"
        )

    return text_response(
        f"{error_msg}\n\n"
        "Possible causes:\n"
        "• Full Disk Access permission not granted (most common)\n"
        "• Messages database is locked by another process\n"
        "• Database file is corrupted\n\n"
        "Try checking Full Disk Access permissions first."
    )


def handle_store_unavailable(
    e: Exception,
    operation: str = ""
) -> list[types.TextContent]:
    """
    Handle a contacts database that can't be located or opened.

    Args:
        e: StoreUnavailable
        operation: Description of what operation was being performed
    """
    error_msg = "Contacts unavailable"
    if operation:
        error_msg += f" during {operation}"
    error_msg += f": {e}"

    logger.error(error_msg)

    return text_response(
        f"❌ Cannot access Contacts database\n\n"
        f"Error: {e}\n"
        f"{FULL_DISK_ACCESS_HELP}\n"
        "Set IMESSAGE_CONTACTS_DB to point at an AddressBook-v22.abcddb file "
        "if your contacts live somewhere else."
    )


def handle_not_found(e) -> list[types.TextContent]:
    """
    Render a failed name resolution, with suggestions when there are any.

    Args:
        e: resolver.NotFound
    """
    logger.info(f"Not found: {e}")

    text = f"{e}."
    if e.suggestions:
        text += "\n\nDid you mean:\n" + "\n".join(f"  • {s}" for s in e.suggestions)
    return text_response(text)


def handle_applescript_error(
    e: Optional[Exception] = None,
    operation: str = "",
    message: Optional[str] = None
) -> list[types.TextContent]:
    """
    Handle AppleScript send failures.

    Args:
        e: The exception that was raised, if any
        operation: Description of what operation was being performed
        message: Error text when there is no exception (SendResult.error)

    Returns:
        Formatted error response with troubleshooting steps
    """
    error_msg = "AppleScript error"
    if operation:
        error_msg += f" during {operation}"
    error_msg += f": {e if e is not None else message}"

    logger.error(error_msg, exc_info=e is not None)

    return text_response(
        f"{error_msg}\n\n"
        "Troubleshooting:\n"
        "- Ensure Messages.app is running\n"
        "- Check Automation permissions in System Settings → Privacy & Security\n"
        "- Verify the phone number or handle is correct"
    )
