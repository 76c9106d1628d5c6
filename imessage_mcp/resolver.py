"""
Contact resolution: answer "who is X" from the AddressBook, falling back to
named direct-message chats.

Resolution order:
1. AddressBook search (first/last/nick/full name substring)
2. Display names of the most recent 1:1 chats
3. NotFound, with close-name suggestions
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, List, Tuple

from fuzzywuzzy import fuzz

from .identity import extract_chat_identifier
from .messages_interface import ChatFilter

logger = logging.getLogger(__name__)

MAX_DISPLAYED_MATCHES = 10
CHAT_FALLBACK_WINDOW = 100

SOURCE_CONTACTS = "contacts"
SOURCE_CHATS = "chats"


class NotFound(Exception):
    """No contact or chat matched the query."""

    def __init__(self, query: str, sources: Tuple[str, ...], suggestions: Optional[List[str]] = None):
        self.query = query
        self.sources = sources
        self.suggestions = suggestions or []
        super().__init__(
            f"No match for '{query}' in {' or '.join(sources)}"
        )


@dataclass
class IdentityMatch:
    """One candidate identity."""
    name: str
    identifier: Optional[str]
    source: str
    contact: object = None
    chat: object = None


@dataclass
class ResolvedIdentity:
    """
    Result of a resolution.

    A single match has total_count == 1. Several matches are returned as a
    ranked list (at most MAX_DISPLAYED_MATCHES entries) and are never
    narrowed down to one implicitly.
    """
    query: str
    source: str
    matches: List[IdentityMatch] = field(default_factory=list)
    total_count: int = 0

    @property
    def is_ambiguous(self) -> bool:
        return self.total_count > 1

    @property
    def match(self) -> Optional[IdentityMatch]:
        """The match when unambiguous, else None."""
        return self.matches[0] if self.total_count == 1 else None


class NameSuggester:
    """
    Fuzzy "did you mean" suggestions for failed lookups.

    Scores are the best of several fuzzywuzzy ratios, normalized to 0-1.
    """

    def __init__(self, threshold: float = 0.75, limit: int = 3):
        self.threshold = threshold
        self.limit = limit

    def calculate_similarity(self, name1: str, name2: str) -> float:
        a = name1.lower().strip()
        b = name2.lower().strip()
        if a == b:
            return 1.0
        return max(
            fuzz.token_sort_ratio(a, b),
            fuzz.token_set_ratio(a, b),
            fuzz.partial_ratio(a, b),
            fuzz.ratio(a, b),
        ) / 100.0

    def suggest(self, query: str, candidates: List[str]) -> List[str]:
        scored = []
        seen = set()
        for candidate in candidates:
            if not candidate or candidate in seen:
                continue
            seen.add(candidate)
            score = self.calculate_similarity(query, candidate)
            if score >= self.threshold:
                scored.append((candidate, score))

        scored.sort(key=lambda x: x[1], reverse=True)
        return [name for name, _ in scored[:self.limit]]


class ContactResolver:
    """Resolve a name to a contact or chat."""

    def __init__(self, contacts, messages, suggester: Optional[NameSuggester] = None):
        """
        Args:
            contacts: ContactsManager
            messages: MessagesInterface (only list_chats is used)
            suggester: Suggestion scorer for NotFound
        """
        self.contacts = contacts
        self.messages = messages
        self.suggester = suggester or NameSuggester()

    def resolve(self, name: str) -> ResolvedIdentity:
        """
        Resolve a name to one identity or a ranked list of candidates.

        Raises:
            NotFound: If neither contacts nor chats match
            StoreUnavailable: If the contacts database can't be opened
        """
        contacts = self.contacts.search(name)
        if contacts:
            logger.info(f"Resolved '{name}' from contacts ({len(contacts)} match(es))")
            return ResolvedIdentity(
                query=name,
                source=SOURCE_CONTACTS,
                matches=[
                    IdentityMatch(
                        name=c.full_name,
                        identifier=c.primary_handle,
                        source=SOURCE_CONTACTS,
                        contact=c,
                    )
                    for c in contacts[:MAX_DISPLAYED_MATCHES]
                ],
                total_count=len(contacts),
            )

        chats = self.messages.list_chats(ChatFilter(kind="dm", limit=CHAT_FALLBACK_WINDOW))
        name_lower = name.lower()
        matched = [
            chat for chat in chats
            if chat.display_name and name_lower in chat.display_name.lower()
        ]

        if not matched:
            suggestions = self._suggestions(name, chats)
            logger.info(f"No match for '{name}' in contacts or chats")
            raise NotFound(name, (SOURCE_CONTACTS, SOURCE_CHATS), suggestions)

        logger.info(f"Resolved '{name}' from chats ({len(matched)} match(es))")
        return ResolvedIdentity(
            query=name,
            source=SOURCE_CHATS,
            matches=[
                IdentityMatch(
                    name=chat.display_name,
                    identifier=extract_chat_identifier(chat.chat_id),
                    source=SOURCE_CHATS,
                    chat=chat,
                )
                for chat in matched[:MAX_DISPLAYED_MATCHES]
            ],
            total_count=len(matched),
        )

    def _suggestions(self, name: str, chats) -> List[str]:
        candidates = [c.full_name for c in self.contacts.all_contacts()]
        candidates.extend(chat.display_name for chat in chats if chat.display_name)
        return self.suggester.suggest(name, candidates)
