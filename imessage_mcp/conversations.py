"""
Conversation aggregation: collapse a flat message feed into one summary per
counterparty.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional, List, Dict

logger = logging.getLogger(__name__)


@dataclass
class ConversationSummary:
    """Latest activity with one counterparty."""
    counterparty: str
    last_message: Optional[str]
    last_timestamp: datetime
    unread_count: int
    service: str

    def to_dict(self) -> dict:
        return {
            "counterparty": self.counterparty,
            "last_message": self.last_message,
            "last_timestamp": self.last_timestamp.isoformat(),
            "unread_count": self.unread_count,
            "service": self.service,
        }


def counterparty_key(message) -> str:
    """The other side of a message: its chat for outbound, its sender for inbound."""
    return message.chat_id if message.is_from_me else message.sender


def aggregate_conversations(messages: Iterable, limit: int) -> List[ConversationSummary]:
    """
    Group messages into per-counterparty summaries, most recent first.

    The last-message fields always reflect the chronologically latest
    message for a counterparty, whatever order the input arrives in. Unread
    counts accumulate over every message in the window, including older ones
    processed after a newer one.

    Summaries with equal timestamps keep the order in which their
    counterparties were first seen.

    Args:
        messages: MessageRecord-like objects (sender, chat_id, date, is_read,
            is_from_me, text, service)
        limit: Maximum number of summaries to return

    Returns:
        List of ConversationSummary sorted by last_timestamp descending
    """
    if limit < 0:
        raise ValueError(f"limit must not be negative, got {limit}")

    conversations: Dict[str, ConversationSummary] = {}
    skipped = 0

    for message in messages:
        if message.date is None:
            skipped += 1
            continue

        key = counterparty_key(message)
        unread = 0 if message.is_read else 1
        existing = conversations.get(key)

        if existing is None or message.date > existing.last_timestamp:
            conversations[key] = ConversationSummary(
                counterparty=key,
                last_message=message.text,
                last_timestamp=message.date,
                unread_count=(existing.unread_count if existing else 0) + unread,
                service=message.service,
            )
        elif unread:
            existing.unread_count += 1

    if skipped:
        logger.debug(f"Skipped {skipped} message(s) without a timestamp")

    ranked = sorted(conversations.values(), key=lambda c: c.last_timestamp, reverse=True)
    return ranked[:limit]
