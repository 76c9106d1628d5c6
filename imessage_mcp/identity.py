"""
Handle normalization and comparison for phone numbers and iMessage addresses.

Normalized forms are only ever used for comparison. Whatever the user or the
database supplied is what gets displayed.
"""

import re

# Two numbers of at least this many characters match when their trailing
# characters agree ("+1 415..." vs "415...").
SUFFIX_MATCH_LENGTH = 10

_NON_HANDLE_CHARS = re.compile(r"[^0-9+]")


def normalize_handle(raw: str) -> str:
    """
    Reduce a phone/handle string to ASCII digits and '+'.

    Examples:
        "+1 (415) 555-0100" -> "+14155550100"
        "415.555.0100" -> "4155550100"
        "john@example.com" -> ""
    """
    if not raw:
        return ""
    return _NON_HANDLE_CHARS.sub("", raw)


def handles_match(a: str, b: str) -> bool:
    """
    Check whether two phone strings refer to the same number.

    Exact equality after normalization always matches. Otherwise both
    normalized forms must be at least SUFFIX_MATCH_LENGTH characters long
    and share their last SUFFIX_MATCH_LENGTH characters. Short numbers only
    match exactly, and an empty normalized form never matches anything.

    Args:
        a: First phone string (any format)
        b: Second phone string (any format)

    Returns:
        True if the numbers match
    """
    norm_a = normalize_handle(a)
    norm_b = normalize_handle(b)

    if not norm_a or not norm_b:
        return False

    if norm_a == norm_b:
        return True

    if len(norm_a) < SUFFIX_MATCH_LENGTH or len(norm_b) < SUFFIX_MATCH_LENGTH:
        return False

    return norm_a[-SUFFIX_MATCH_LENGTH:] == norm_b[-SUFFIX_MATCH_LENGTH:]


def extract_chat_identifier(chat_id: str) -> str:
    """
    Extract the address part of a composite chat identifier.

    "iMessage;-;+14155550100" -> "+14155550100"
    "chat152668864985555509" -> "chat152668864985555509"
    """
    if not chat_id:
        return ""
    return chat_id.split(";")[-1]
