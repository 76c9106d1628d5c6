# ============================================================================
# CHANGELOG (recent first, max 5 entries)
# 10/12/2026 - Added send_file, send_files and send_image
# 10/05/2026 - Recipients resolved through ContactResolver
# ============================================================================
"""
Messaging Handlers

Handles tools for sending iMessages:
- send_message: Send text to a handle or contact name
- send_file / send_files: Send local files, optionally with a text
- send_image: Send a local image, optionally with a text
"""

import logging
import re
import sqlite3
from typing import Optional

from mcp import types

from imessage_mcp.contacts_store import StoreUnavailable
from imessage_mcp.messages_interface import MessagesDatabaseUnavailable
from imessage_mcp.resolver import NotFound
from mcp_server.utils.validation import (
    validate_non_empty_string,
    validate_optional_string,
    validate_string_list,
)
from mcp_server.utils.responses import success_response, text_response, validation_error
from mcp_server.utils.errors import (
    handle_applescript_error,
    handle_database_error,
    handle_not_found,
    handle_store_unavailable,
)

logger = logging.getLogger(__name__)

# +1 (415) 555-1234, 4155551234, ...
_PHONE_LIKE = re.compile(r"^\+?[\d\s().-]{3,}$")


def is_direct_handle(to: str) -> bool:
    """Phone numbers and email addresses are sent to as-is."""
    return "@" in to or bool(_PHONE_LIKE.match(to))


def _resolve_recipient(to: str, resolver, operation: str):
    """
    Turn a handle or contact name into a sendable handle.

    Returns:
        Tuple of (handle, label, error_response). error_response is None on success.
    """
    if is_direct_handle(to):
        return to, to, None

    try:
        resolved = resolver.resolve(to)
    except NotFound as e:
        return None, None, handle_not_found(e)
    except StoreUnavailable as e:
        return None, None, handle_store_unavailable(e, operation)
    except (MessagesDatabaseUnavailable, sqlite3.Error) as e:
        return None, None, handle_database_error(e, operation)

    if resolved.is_ambiguous:
        names = "\n".join(
            f"  • {m.name}: {m.identifier or 'no phone or email'}" for m in resolved.matches
        )
        return None, None, text_response(
            f"'{to}' matches {resolved.total_count} people. "
            f"Send to a phone number or a more specific name:\n\n{names}"
        )

    match = resolved.match
    if not match.identifier:
        return None, None, text_response(f"{match.name} has no phone number or email to send to.")

    return match.identifier, f"{match.name} ({match.identifier})", None


def _send_response(result, label: str, operation: str, details: Optional[str] = None):
    if not result.success:
        return handle_applescript_error(message=result.error, operation=operation)

    logger.info(f"{operation} to {label} succeeded")
    return success_response(f"Sent to {label}", details)


async def handle_send_message(
    arguments: dict,
    messages,
    resolver
) -> list[types.TextContent]:
    """
    Handle send_message tool call.

    Args:
        arguments: {"to": str, "message": str}
        messages: MessagesInterface instance
        resolver: ContactResolver instance

    Returns:
        Success or error message
    """
    to, error = validate_non_empty_string(arguments.get("to"), "to")
    if error:
        return validation_error(error)

    message, error = validate_non_empty_string(arguments.get("message"), "message")
    if error:
        return validation_error(error)

    handle, label, failure = _resolve_recipient(to, resolver, "send_message")
    if failure:
        return failure

    result = messages.send_message(handle, message)
    return _send_response(result, label, "send_message", f"Message: {message}")


async def handle_send_file(
    arguments: dict,
    messages,
    resolver
) -> list[types.TextContent]:
    """
    Handle send_file tool call.

    Args:
        arguments: {"to": str, "file_path": str, "message": Optional[str]}
    """
    to, error = validate_non_empty_string(arguments.get("to"), "to")
    if error:
        return validation_error(error)

    file_path, error = validate_non_empty_string(arguments.get("file_path"), "file_path")
    if error:
        return validation_error(error)

    message, error = validate_optional_string(arguments.get("message"), "message")
    if error:
        return validation_error(error)

    handle, label, failure = _resolve_recipient(to, resolver, "send_file")
    if failure:
        return failure

    result = messages.send_file(handle, file_path, message)
    return _send_response(result, label, "send_file", f"File: {file_path}")


async def handle_send_image(
    arguments: dict,
    messages,
    resolver
) -> list[types.TextContent]:
    """
    Handle send_image tool call.

    Only local image files are supported.

    Args:
        arguments: {"to": str, "image_path": str, "message": Optional[str]}
    """
    to, error = validate_non_empty_string(arguments.get("to"), "to")
    if error:
        return validation_error(error)

    image_path, error = validate_non_empty_string(arguments.get("image_path"), "image_path")
    if error:
        return validation_error(error)

    if image_path.startswith(("http://", "https://")):
        return validation_error("image_path must be a local file, URLs are not supported")

    message, error = validate_optional_string(arguments.get("message"), "message")
    if error:
        return validation_error(error)

    handle, label, failure = _resolve_recipient(to, resolver, "send_image")
    if failure:
        return failure

    result = messages.send_image(handle, image_path, message)
    return _send_response(result, label, "send_image", f"Image: {image_path}")


async def handle_send_files(
    arguments: dict,
    messages,
    resolver
) -> list[types.TextContent]:
    """
    Handle send_files tool call.

    Args:
        arguments: {"to": str, "file_paths": list[str], "message": Optional[str]}
    """
    to, error = validate_non_empty_string(arguments.get("to"), "to")
    if error:
        return validation_error(error)

    file_paths, error = validate_string_list(arguments.get("file_paths"), "file_paths")
    if error:
        return validation_error(error)

    message, error = validate_optional_string(arguments.get("message"), "message")
    if error:
        return validation_error(error)

    handle, label, failure = _resolve_recipient(to, resolver, "send_files")
    if failure:
        return failure

    result = messages.send_files(handle, file_paths, message)
    return _send_response(
        result, label, "send_files", f"Files ({len(file_paths)}): " + ", ".join(file_paths)
    )
