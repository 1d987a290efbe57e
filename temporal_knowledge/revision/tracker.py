"""
Revision chain tracking.

A fact that changes over time ("the reunion moved to July 9") is recorded
as a chain of entries. Older entries are never edited in place; they are
retired by setting ``replaced_by`` to the event time of their successor, and
the one entry left without ``replaced_by`` is the current version.

Every revision carries the ``concept_id`` of the chain it belongs to, so a
chain can be read back with one indexed query. Entries written before
concept ids existed are still found through their tags.
"""

import logging
from dataclasses import dataclass, field

from temporal_knowledge.errors import StorageError
from temporal_knowledge.models.entry import KnowledgeEntry, is_superseded
from temporal_knowledge.storage.base import BaseEntryStore

logger = logging.getLogger(__name__)

# Identifiers longer than this are tried as entry ids first
ID_LENGTH_THRESHOLD = 10


def tag_search_strategies(replaces: str) -> list[str]:
    """
    Tag values to try, in order, for a fuzzy replacement identifier.

    "family-reunion" -> ["family-reunion", "family reunion", "family", "reunion"]
    """
    replaces = replaces.strip().lower()
    candidates = [replaces, replaces.replace("-", " "), *replaces.split("-")]

    strategies: list[str] = []
    for candidate in candidates:
        candidate = candidate.strip()
        if candidate and candidate not in strategies:
            strategies.append(candidate)
    return strategies


def _event_order(entry: KnowledgeEntry) -> tuple[str, object]:
    return entry.timestamp, entry.created_at


@dataclass
class RevisionChain:
    """All revisions of one concept, oldest first."""

    concept_id: str
    entries: list[KnowledgeEntry] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.entries = sorted(self.entries, key=_event_order)

    def current(self) -> KnowledgeEntry | None:
        """
        The head of the chain.

        If a race left more than one revision current, the newest wins.
        """
        current = [entry for entry in self.entries if not is_superseded(entry)]
        return current[-1] if current else None

    def history(self) -> list[KnowledgeEntry]:
        return list(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    @classmethod
    async def load(
        cls, store: BaseEntryStore, account_id: str, concept_id: str
    ) -> "RevisionChain":
        entries = await store.find_by_concept(account_id, concept_id)
        return cls(concept_id=concept_id, entries=entries)


class RevisionChainTracker:
    """
    Resolves replacement identifiers and retires superseded entries.

    Usage:
        tracker = RevisionChainTracker(store, account_id)
        retired = await tracker.handle_replacement("family-reunion", timestamp)
    """

    def __init__(self, store: BaseEntryStore, account_id: str):
        self.store = store
        self.account_id = account_id

    async def resolve(self, replaces: str) -> list[KnowledgeEntry]:
        """
        Find the current entries a replacement identifier refers to.

        Tries, in order: an exact entry id, a concept id, then tag matches on
        the literal identifier, the identifier with hyphens as spaces and
        each hyphen-delimited part. The first step that finds a current
        entry wins.
        """
        replaces = replaces.strip()
        if not replaces:
            return []

        if len(replaces) > ID_LENGTH_THRESHOLD:
            found = await self._resolve_id(replaces)
            if found:
                logger.debug(f"Resolved '{replaces}' by id to {len(found)} entries")
                return found

        for term in tag_search_strategies(replaces):
            found = await self.store.find_current_by_tag(self.account_id, term)
            logger.debug(f"Tag search for '{term}': found {len(found)} entries")
            if found:
                return found

        return []

    async def _resolve_id(self, identifier: str) -> list[KnowledgeEntry]:
        entry = await self.store.find_by_id(self.account_id, identifier)
        if entry is not None:
            if not is_superseded(entry):
                return [entry]
            # An old revision was named; replace whatever is current now
            if entry.concept_id:
                head = (
                    await RevisionChain.load(self.store, self.account_id, entry.concept_id)
                ).current()
                return [head] if head else []
            return []

        chain = await RevisionChain.load(self.store, self.account_id, identifier)
        return [entry for entry in chain.entries if not is_superseded(entry)]

    async def supersede(
        self, entries: list[KnowledgeEntry], new_event_time: str
    ) -> list[KnowledgeEntry]:
        """
        Mark entries as replaced at ``new_event_time``.

        Returns:
            The entries that were current and are now retired
        """
        retired = []
        for entry in entries:
            if await self.store.mark_superseded(entry.id, new_event_time):
                retired.append(entry.model_copy(update={"replaced_by": new_event_time}))
                logger.info(f"Marked {entry} as replaced by {new_event_time}")
            else:
                logger.info(f"Entry {entry.id} was already superseded, skipping")
        return retired

    async def handle_replacement(
        self, replaces: str, new_event_time: str
    ) -> list[KnowledgeEntry]:
        """
        Retire whatever current entries ``replaces`` refers to.

        Run before storing the successor. Finding nothing is not an error:
        the successor is then simply a new fact.

        Args:
            replaces: Entry id, concept id or concept tag of the old fact
            new_event_time: Event timestamp of the successor

        Returns:
            The entries that were retired
        """
        try:
            found = await self.resolve(replaces)
            if not found:
                logger.info(f"No existing entries found to replace for: {replaces}")
                return []
            retired = await self.supersede(found, new_event_time)
        except StorageError:
            logger.exception(f"Replacement of '{replaces}' failed, storing successor anyway")
            return []

        logger.info(f"Replaced {len(retired)} entries for: {replaces}")
        return retired

    async def get_revision_history(self, identifier: str) -> list[KnowledgeEntry]:
        """
        Every entry tagged with identifier or declaring it replaces it.

        Superseded entries included, chronological by event time.
        """
        tagged = await self.store.find_by_tag(self.account_id, identifier)
        replacing = await self.store.find_by_replaces(self.account_id, identifier)

        unique: dict[str, KnowledgeEntry] = {}
        for entry in tagged + replacing:
            unique.setdefault(entry.id, entry)

        history = sorted(unique.values(), key=_event_order)
        logger.debug(f"Found {len(history)} entries in revision history for: {identifier}")
        return history

    async def get_current_version(self, tag: str) -> list[KnowledgeEntry]:
        """Current entries for a tag, newest first."""
        entries = await self.store.find_current_by_tag(self.account_id, tag)
        return sorted(entries, key=_event_order, reverse=True)

    async def chain(self, concept_id: str) -> RevisionChain:
        """The full revision chain of a concept."""
        return await RevisionChain.load(self.store, self.account_id, concept_id)
