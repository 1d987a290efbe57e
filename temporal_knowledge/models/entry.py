"""
Knowledge entry models.

A knowledge entry is one piece of captured free text plus everything derived
from it: tags, revision links, shopping items and temporal metadata. Entries
are never edited in place to record a change of fact; instead a newer entry
supersedes them by setting ``replaced_by``.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator
from ulid import ULID

from temporal_knowledge.models.temporal import TemporalReference


def _utcnow() -> datetime:
    """Get current UTC time (naive)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def utc_timestamp(dt: datetime | None = None) -> str:
    """Format a naive UTC datetime as an ISO 8601 event timestamp."""
    return (dt or _utcnow()).isoformat(timespec="milliseconds") + "Z"


def _blank_to_none(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, str) and not value.strip():
        return None
    return value


class EntryIntent(str, Enum):
    """What the user meant by the input that produced an entry."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    PURCHASE = "purchase"
    CLEAR_LIST = "clear_list"

    @classmethod
    def _missing_(cls, value: object) -> "EntryIntent | None":
        # Older records used "store" for plain creation
        if isinstance(value, str) and value.lower() in ("store", ""):
            return cls.CREATE
        return None


# Intents whose entries can appear on a shopping list
LIST_ITEM_INTENTS = frozenset({EntryIntent.CREATE, EntryIntent.UPDATE})

# Tags marking purchase and clear records
RECORD_TAGS = frozenset({"purchased", "cleared"})


class Actor(BaseModel):
    """The user performing an operation."""

    user_id: str
    display_name: str | None = None


class KnowledgeEntry(BaseModel):
    """A stored piece of knowledge with revision and temporal metadata."""

    # Core identifiers
    id: str = Field(
        default_factory=lambda: str(ULID()),
        description="Unique entry identifier (ULID for time-ordering)",
    )
    account_id: str = Field(description="Account or shared space owning the entry")

    # Content
    content: str = Field(description="Original free text")
    processed_content: str | None = Field(
        default=None,
        description="Content with resolved dates annotated",
    )
    enhanced_content: str | None = Field(
        default=None,
        description="User, date and temporal context plus content; the embedded text",
    )
    tags: list[str] = Field(default_factory=list)

    # Authorship
    added_by: str = Field(description="User id of the author")
    added_by_name: str | None = Field(default=None)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    # Revision tracking
    timestamp: str = Field(
        default_factory=utc_timestamp,
        description="Logical event time (ISO 8601), may differ from storage time",
    )
    replaces: str | None = Field(
        default=None,
        description="Id or concept tag of the entry being superseded",
    )
    replaced_by: str | None = Field(
        default=None,
        description="Event time of the superseding entry; None means current",
    )
    intent: EntryIntent = Field(default=EntryIntent.CREATE)
    concept_id: str | None = Field(
        default=None,
        description="Stable id shared by every revision of the same fact",
    )

    # Shopping lists
    items: list[str] | None = Field(default=None)
    list_type: str | None = Field(default=None)

    # Temporal intelligence
    temporal_info: list[TemporalReference] = Field(default_factory=list)
    resolved_dates: list[datetime] = Field(default_factory=list)
    temporal_relevance_score: float = Field(default=0.0, ge=0.0, le=1.0)
    contains_temporal_refs: bool = False
    temporal_processed_at: datetime | None = Field(
        default=None,
        description="When temporal metadata was last generated",
    )

    # Secondary index status
    is_indexed: bool = Field(
        default=False,
        description="Whether an embedding for enhanced_content is in the vector index",
    )

    @field_validator("replaces", "replaced_by", "list_type", "concept_id", mode="before")
    @classmethod
    def _normalize_optional(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("tags", mode="before")
    @classmethod
    def _normalize_tags(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        seen: list[str] = []
        for tag in value:
            tag = str(tag).strip().lower()
            if tag and tag not in seen:
                seen.append(tag)
        return seen

    @field_validator("intent", mode="before")
    @classmethod
    def _default_intent(cls, value: Any) -> Any:
        return EntryIntent.CREATE if value is None else value

    @property
    def is_superseded(self) -> bool:
        return is_superseded(self)

    @property
    def is_current(self) -> bool:
        return not is_superseded(self)

    def has_any_tag(self, tags: set[str] | frozenset[str] | list[str]) -> bool:
        return any(tag in self.tags for tag in tags)

    def __str__(self) -> str:
        return f"entry[{self.id[:8]}]: {self.content[:50]}"


def is_superseded(entry: "KnowledgeEntry | dict[str, Any] | None") -> bool:
    """
    Whether an entry has been retired by a newer revision.

    Accepts model instances and raw store rows alike; ``None``, a missing key
    and an empty or whitespace-only string all mean "current".
    """
    if entry is None:
        return False
    if isinstance(entry, dict):
        value = entry.get("replaced_by")
    else:
        value = getattr(entry, "replaced_by", None)
    return _blank_to_none(value) is not None


class SearchResult(BaseModel):
    """A knowledge entry returned by search, with ranking details."""

    entry: KnowledgeEntry
    similarity: float = Field(description="Combined semantic + temporal score")
    semantic_similarity: float = Field(default=0.0)
    temporal_context: str = Field(
        default="",
        description="Human-readable explanation of the entry's dates",
    )
    is_temporally_relevant: bool = True
    next_occurrence: datetime | None = None

    @property
    def id(self) -> str:
        return self.entry.id

    @property
    def content(self) -> str:
        return self.entry.content
