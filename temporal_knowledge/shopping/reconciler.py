"""
Shopping list reconciliation.

A shopping list is the set of current entries tagged ``shopping`` or
``groceries``. Buying items retires the entries that listed them and
re-creates whatever was not bought as a new entry; clearing a list retires
every item on it. Both leave a record entry behind.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable

from temporal_knowledge.errors import InvalidEntryError
from temporal_knowledge.models.entry import (
    LIST_ITEM_INTENTS,
    RECORD_TAGS,
    Actor,
    EntryIntent,
    KnowledgeEntry,
    utc_timestamp,
)
from temporal_knowledge.revision.tracker import RevisionChainTracker
from temporal_knowledge.shopping.items import entry_items, items_match
from temporal_knowledge.storage.base import BaseEntryStore

logger = logging.getLogger(__name__)

LIST_TAGS = ["shopping", "groceries"]
DEFAULT_LIST_TYPE = "shopping"

# Persists a new entry through the full storage pipeline
StoreEntryFn = Callable[[KnowledgeEntry], Awaitable[KnowledgeEntry]]


def _utcnow() -> datetime:
    """Get current UTC time (naive)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def is_list_item(entry: KnowledgeEntry) -> bool:
    """Whether a current entry belongs on a shopping list."""
    return entry.intent in LIST_ITEM_INTENTS and not entry.has_any_tag(RECORD_TAGS)


@dataclass
class PurchaseOutcome:
    """What a purchase changed."""

    superseded: list[KnowledgeEntry] = field(default_factory=list)
    remainders: list[KnowledgeEntry] = field(default_factory=list)
    record: KnowledgeEntry | None = None


@dataclass
class ClearOutcome:
    """What clearing a list changed."""

    list_type: str
    cleared: list[KnowledgeEntry] = field(default_factory=list)
    record: KnowledgeEntry | None = None


class ShoppingListReconciler:
    """
    Reconciles purchases and list clears against active list entries.

    Old list entries are retired before their replacements are written.
    """

    def __init__(
        self,
        store: BaseEntryStore,
        account_id: str,
        store_entry: StoreEntryFn,
        tracker: RevisionChainTracker | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.store = store
        self.account_id = account_id
        self.store_entry = store_entry
        self.tracker = tracker or RevisionChainTracker(store, account_id)
        self._clock = clock or _utcnow

    async def get_active_items(self) -> list[KnowledgeEntry]:
        """Current shopping/groceries entries, excluding purchase and clear records."""
        entries = await self.store.find_current_by_any_tag(self.account_id, LIST_TAGS)
        active = [entry for entry in entries if is_list_item(entry)]
        logger.debug(
            f"Found {len(active)} active shopping items out of {len(entries)} shopping entries"
        )
        return active

    async def handle_purchase(
        self,
        purchased_items: list[str],
        tags: list[str],
        actor: Actor,
    ) -> PurchaseOutcome:
        """
        Record a purchase and update the lists that contained the items.

        Every active entry listing any purchased item is retired; items it
        listed that were not bought move to a new entry with the same tags.

        Args:
            purchased_items: Items bought
            tags: Extra tags for the purchase record
            actor: Who made the purchase

        Returns:
            PurchaseOutcome with retired entries, remainder entries and the record
        """
        purchased = [item.strip() for item in purchased_items if item and item.strip()]
        if not purchased:
            raise InvalidEntryError("A purchase needs at least one item")

        timestamp = utc_timestamp(self._clock())
        outcome = PurchaseOutcome()

        for entry in await self.get_active_items():
            items = entry_items(entry)
            if not any(items_match(p, item) for p in purchased for item in items):
                continue

            remaining = [
                item for item in items if not any(items_match(p, item) for p in purchased)
            ]

            # Retire first, then write the successor
            retired = await self.tracker.supersede([entry], timestamp)
            if not retired:
                continue
            outcome.superseded.extend(retired)

            if remaining:
                remainder = KnowledgeEntry(
                    account_id=self.account_id,
                    content=f"Need {', '.join(remaining)} from the store",
                    tags=[tag for tag in entry.tags if tag not in RECORD_TAGS],
                    added_by=entry.added_by,
                    added_by_name=entry.added_by_name,
                    intent=EntryIntent.CREATE,
                    items=remaining,
                    list_type=entry.list_type or DEFAULT_LIST_TYPE,
                    replaces=entry.id,
                    concept_id=entry.concept_id,
                    timestamp=timestamp,
                )
                outcome.remainders.append(await self.store_entry(remainder))
                logger.info(f"Kept {len(remaining)} unpurchased items from {entry}")
            else:
                logger.info(f"All items of {entry} purchased")

        record_tags = ["shopping", "purchased"]
        record_tags.extend(tag for tag in tags if tag not in record_tags)
        outcome.record = await self.store_entry(
            KnowledgeEntry(
                account_id=self.account_id,
                content=f"Purchased {', '.join(purchased)}",
                tags=record_tags,
                added_by=actor.user_id,
                added_by_name=actor.display_name,
                intent=EntryIntent.PURCHASE,
                items=purchased,
                timestamp=timestamp,
            )
        )

        logger.info(
            f"Purchase of {len(purchased)} items retired {len(outcome.superseded)} list entries"
        )
        return outcome

    async def clear_list(self, list_type: str, actor: Actor) -> ClearOutcome:
        """
        Retire every active item of a list and record the clear.

        Args:
            list_type: List tag to clear, e.g. "shopping" or "groceries"
            actor: Who cleared the list
        """
        list_type = (list_type or DEFAULT_LIST_TYPE).strip().lower()
        timestamp = utc_timestamp(self._clock())

        entries = await self.store.find_current_by_tag(self.account_id, list_type)
        active = [entry for entry in entries if is_list_item(entry)]

        outcome = ClearOutcome(list_type=list_type)
        outcome.cleared = await self.tracker.supersede(active, timestamp)

        outcome.record = await self.store_entry(
            KnowledgeEntry(
                account_id=self.account_id,
                content=f"Cleared {list_type} list",
                tags=[list_type, "cleared"],
                added_by=actor.user_id,
                added_by_name=actor.display_name,
                intent=EntryIntent.CLEAR_LIST,
                list_type=list_type,
                timestamp=timestamp,
            )
        )

        logger.info(f"Cleared {len(outcome.cleared)} items from {list_type} list")
        return outcome
