"""
MCP Server Utilities

Shared validation, response formatting, and error handling utilities
for the iMessage MCP server.
"""

from .validation import (
    validate_positive_int,
    validate_non_empty_string,
    validate_optional_string,
    validate_limit,
    validate_enum,
    validate_bool,
    validate_iso_date,
    validate_string_list,
    MAX_MESSAGE_LIMIT,
    MAX_SEARCH_RESULTS,
    MIN_LIMIT,
)

from .responses import (
    text_response,
    success_response,
    error_response,
    validation_error,
    empty_result,
    format_message_line,
)

from .errors import (
    handle_database_error,
    handle_store_unavailable,
    handle_not_found,
    handle_applescript_error,
)

__all__ = [
    # Validation
    "validate_positive_int",
    "validate_non_empty_string",
    "validate_optional_string",
    "validate_limit",
    "validate_enum",
    "validate_bool",
    "validate_iso_date",
    "validate_string_list",
    "MAX_MESSAGE_LIMIT",
    "MAX_SEARCH_RESULTS",
    "MIN_LIMIT",
    # Responses
    "text_response",
    "success_response",
    "error_response",
    "validation_error",
    "empty_result",
    "format_message_line",
    # Errors
    "handle_database_error",
    "handle_store_unavailable",
    "handle_not_found",
    "handle_applescript_error",
]
