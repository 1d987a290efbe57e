"""
SQLite storage backend for knowledge entries.

Uses aiosqlite for async operations. Tags live in their own table so that
"tag contains any of N values" is an indexed join, and temporal metadata is
stored as JSON columns.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any

import aiosqlite

from temporal_knowledge.config import StorageConfig
from temporal_knowledge.models.entry import KnowledgeEntry
from temporal_knowledge.storage.base import BaseEntryStore, EntryNotFoundError, StorageError

logger = logging.getLogger(__name__)


# SQL Schema
SCHEMA = """
-- Knowledge entries
CREATE TABLE IF NOT EXISTS entries (
    id TEXT PRIMARY KEY,
    account_id TEXT NOT NULL,
    content TEXT NOT NULL,
    processed_content TEXT,
    enhanced_content TEXT,

    -- Authorship
    added_by TEXT NOT NULL,
    added_by_name TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,

    -- Revision tracking
    timestamp TEXT NOT NULL,
    replaces TEXT,
    replaced_by TEXT,
    intent TEXT NOT NULL DEFAULT 'create',
    concept_id TEXT,

    -- Shopping lists
    items_json TEXT,
    list_type TEXT,

    -- Temporal intelligence (stored as JSON)
    temporal_info_json TEXT,
    resolved_dates_json TEXT,
    temporal_relevance_score REAL DEFAULT 0.0,
    contains_temporal_refs INTEGER DEFAULT 0,
    temporal_processed_at TEXT,

    -- Secondary index status
    is_indexed INTEGER DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_account ON entries(account_id);
CREATE INDEX IF NOT EXISTS idx_replaced_by ON entries(account_id, replaced_by);
CREATE INDEX IF NOT EXISTS idx_replaces ON entries(account_id, replaces);
CREATE INDEX IF NOT EXISTS idx_concept ON entries(account_id, concept_id);
CREATE INDEX IF NOT EXISTS idx_created_at ON entries(created_at);

-- Entry tags
CREATE TABLE IF NOT EXISTS entry_tags (
    entry_id TEXT NOT NULL,
    tag TEXT NOT NULL,
    PRIMARY KEY (entry_id, tag),
    FOREIGN KEY (entry_id) REFERENCES entries(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_tag ON entry_tags(tag);
"""

# Rows written by older clients may hold '' instead of NULL
CURRENT_CLAUSE = "(e.replaced_by IS NULL OR TRIM(e.replaced_by) = '')"


def _utcnow() -> datetime:
    """Get current UTC time (naive)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _serialize_datetime(dt: datetime | None) -> str | None:
    """Serialize datetime to ISO format string."""
    return dt.isoformat() if dt else None


def _deserialize_datetime(s: str | None) -> datetime | None:
    """Deserialize datetime from ISO format string."""
    return datetime.fromisoformat(s) if s else None


def _absent(value: str | None) -> str | None:
    """Canonical NULL for None and blank strings."""
    if value is None or not value.strip():
        return None
    return value


class SQLiteEntryStore(BaseEntryStore):
    """
    SQLite-based storage for knowledge entries.

    Usage:
        async with SQLiteEntryStore(config) as store:
            await store.upsert(entry)
            current = await store.find_current_by_tag(account_id, "reunion")
    """

    def __init__(self, config: StorageConfig | None = None):
        """
        Initialize SQLite storage.

        Args:
            config: Storage configuration
        """
        self.config = config or StorageConfig()
        self.db_path = self.config.sqlite_path
        self._connection: aiosqlite.Connection | None = None
        self._connected = False

    async def connect(self) -> None:
        """Initialize connection and create schema."""
        try:
            # Ensure directory exists
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

            self._connection = await aiosqlite.connect(str(self.db_path))
            self._connection.row_factory = aiosqlite.Row

            # Enable foreign keys
            await self._connection.execute("PRAGMA foreign_keys = ON")

            # Create schema
            await self._connection.executescript(SCHEMA)
            await self._connection.commit()

            self._connected = True
            logger.debug(f"Connected to entry store at {self.db_path}")
        except Exception as e:
            raise StorageError(f"Failed to connect to SQLite: {e}") from e

    async def disconnect(self) -> None:
        """Close the database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None
        self._connected = False

    async def is_connected(self) -> bool:
        """Check if storage is connected."""
        return self._connected and self._connection is not None

    def _ensure_connected(self) -> None:
        """Raise error if not connected."""
        if not self._connected:
            raise StorageError("Not connected to database")

    def _entry_to_row(self, entry: KnowledgeEntry) -> dict[str, Any]:
        """Convert an entry to a database row."""
        return {
            "id": entry.id,
            "account_id": entry.account_id,
            "content": entry.content,
            "processed_content": entry.processed_content,
            "enhanced_content": entry.enhanced_content,
            "added_by": entry.added_by,
            "added_by_name": entry.added_by_name,
            "created_at": _serialize_datetime(entry.created_at),
            "updated_at": _serialize_datetime(entry.updated_at),
            "timestamp": entry.timestamp,
            "replaces": _absent(entry.replaces),
            "replaced_by": _absent(entry.replaced_by),
            "intent": entry.intent.value,
            "concept_id": entry.concept_id,
            "items_json": json.dumps(entry.items) if entry.items is not None else None,
            "list_type": entry.list_type,
            "temporal_info_json": json.dumps(
                [ref.model_dump(mode="json") for ref in entry.temporal_info]
            ),
            "resolved_dates_json": json.dumps(
                [_serialize_datetime(d) for d in entry.resolved_dates]
            ),
            "temporal_relevance_score": entry.temporal_relevance_score,
            "contains_temporal_refs": 1 if entry.contains_temporal_refs else 0,
            "temporal_processed_at": _serialize_datetime(entry.temporal_processed_at),
            "is_indexed": 1 if entry.is_indexed else 0,
        }

    def _row_to_entry(self, row: aiosqlite.Row, tags: list[str]) -> KnowledgeEntry:
        """Convert a database row to an entry."""
        return KnowledgeEntry.model_validate(
            {
                "id": row["id"],
                "account_id": row["account_id"],
                "content": row["content"],
                "processed_content": row["processed_content"],
                "enhanced_content": row["enhanced_content"],
                "tags": tags,
                "added_by": row["added_by"],
                "added_by_name": row["added_by_name"],
                "created_at": _deserialize_datetime(row["created_at"]),
                "updated_at": _deserialize_datetime(row["updated_at"]),
                "timestamp": row["timestamp"],
                "replaces": row["replaces"],
                "replaced_by": row["replaced_by"],
                "intent": row["intent"],
                "concept_id": row["concept_id"],
                "items": json.loads(row["items_json"]) if row["items_json"] else None,
                "list_type": row["list_type"],
                "temporal_info": (
                    json.loads(row["temporal_info_json"]) if row["temporal_info_json"] else []
                ),
                "resolved_dates": (
                    json.loads(row["resolved_dates_json"]) if row["resolved_dates_json"] else []
                ),
                "temporal_relevance_score": row["temporal_relevance_score"] or 0.0,
                "contains_temporal_refs": bool(row["contains_temporal_refs"]),
                "temporal_processed_at": _deserialize_datetime(row["temporal_processed_at"]),
                "is_indexed": bool(row["is_indexed"]),
            }
        )

    async def _fetch(self, query: str, params: list[Any]) -> list[KnowledgeEntry]:
        """Run a query over entries and attach tags to each row."""
        self._ensure_connected()

        async with self._connection.execute(query, params) as cursor:
            rows = await cursor.fetchall()

        if not rows:
            return []

        ids = [row["id"] for row in rows]
        placeholders = ", ".join(["?" for _ in ids])
        tags: dict[str, list[str]] = {entry_id: [] for entry_id in ids}
        async with self._connection.execute(
            f"SELECT entry_id, tag FROM entry_tags WHERE entry_id IN ({placeholders}) "
            "ORDER BY rowid",
            ids,
        ) as cursor:
            async for tag_row in cursor:
                tags[tag_row["entry_id"]].append(tag_row["tag"])

        return [self._row_to_entry(row, tags[row["id"]]) for row in rows]

    # Writes
    async def upsert(self, entry: KnowledgeEntry) -> str:
        """Insert an entry or replace the stored version with the same id."""
        self._ensure_connected()

        row = self._entry_to_row(entry)
        columns = ", ".join(row.keys())
        placeholders = ", ".join(["?" for _ in row])
        updates = ", ".join(f"{k} = excluded.{k}" for k in row if k != "id")

        query = (
            f"INSERT INTO entries ({columns}) VALUES ({placeholders}) "
            f"ON CONFLICT(id) DO UPDATE SET {updates}"
        )

        try:
            await self._connection.execute(query, list(row.values()))

            await self._connection.execute(
                "DELETE FROM entry_tags WHERE entry_id = ?", (entry.id,)
            )
            if entry.tags:
                await self._connection.executemany(
                    "INSERT INTO entry_tags (entry_id, tag) VALUES (?, ?)",
                    [(entry.id, tag) for tag in entry.tags],
                )

            await self._connection.commit()
            return entry.id
        except Exception as e:
            await self._connection.rollback()
            raise StorageError(f"Failed to store entry: {e}") from e

    async def mark_superseded(self, entry_id: str, replaced_by: str) -> bool:
        """
        Retire a current entry.

        Only current entries are updated, so two writers racing to supersede
        the same entry cannot overwrite each other's ``replaced_by``.

        Returns:
            True if updated, False if not found or already superseded
        """
        self._ensure_connected()

        if _absent(replaced_by) is None:
            raise StorageError("replaced_by must be a non-empty event time")

        query = (
            "UPDATE entries SET replaced_by = ?, updated_at = ? "
            "WHERE id = ? AND (replaced_by IS NULL OR TRIM(replaced_by) = '')"
        )

        try:
            cursor = await self._connection.execute(
                query, (replaced_by, _serialize_datetime(_utcnow()), entry_id)
            )
            await self._connection.commit()
            return cursor.rowcount > 0
        except Exception as e:
            await self._connection.rollback()
            raise StorageError(f"Failed to supersede entry {entry_id}: {e}") from e

    async def delete(self, entry_id: str) -> bool:
        """Delete an entry by ID."""
        self._ensure_connected()

        try:
            cursor = await self._connection.execute(
                "DELETE FROM entries WHERE id = ?", (entry_id,)
            )
            await self._connection.commit()
            return cursor.rowcount > 0
        except Exception as e:
            await self._connection.rollback()
            raise StorageError(f"Failed to delete entry: {e}") from e

    async def get(self, account_id: str, entry_id: str) -> KnowledgeEntry:
        """
        Read an entry that must exist.

        Raises:
            EntryNotFoundError: If no such entry exists in the account
        """
        entry = await self.find_by_id(account_id, entry_id)
        if entry is None:
            raise EntryNotFoundError(f"Entry {entry_id} not found")
        return entry

    # Lookups
    async def find_by_id(self, account_id: str, entry_id: str) -> KnowledgeEntry | None:
        """Read an entry by ID within an account."""
        entries = await self._fetch(
            "SELECT e.* FROM entries e WHERE e.account_id = ? AND e.id = ?",
            [account_id, entry_id],
        )
        return entries[0] if entries else None

    async def find_by_ids(
        self, account_id: str, entry_ids: list[str]
    ) -> list[KnowledgeEntry]:
        """Read multiple entries by IDs."""
        if not entry_ids:
            return []

        placeholders = ", ".join(["?" for _ in entry_ids])
        return await self._fetch(
            f"SELECT e.* FROM entries e WHERE e.account_id = ? AND e.id IN ({placeholders})",
            [account_id, *entry_ids],
        )

    async def find_current_by_tag(self, account_id: str, tag: str) -> list[KnowledgeEntry]:
        """Current entries carrying a tag."""
        return await self.find_current_by_any_tag(account_id, [tag])

    async def find_current_by_any_tag(
        self, account_id: str, tags: list[str]
    ) -> list[KnowledgeEntry]:
        """Current entries carrying at least one of the tags."""
        tags = [t.strip().lower() for t in tags if t and t.strip()]
        if not tags:
            return []

        placeholders = ", ".join(["?" for _ in tags])
        query = f"""
            SELECT DISTINCT e.* FROM entries e
            JOIN entry_tags t ON t.entry_id = e.id
            WHERE e.account_id = ? AND t.tag IN ({placeholders}) AND {CURRENT_CLAUSE}
            ORDER BY e.timestamp, e.created_at
        """
        return await self._fetch(query, [account_id, *tags])

    async def find_by_tag(self, account_id: str, tag: str) -> list[KnowledgeEntry]:
        """All entries carrying a tag, including superseded ones."""
        query = """
            SELECT e.* FROM entries e
            JOIN entry_tags t ON t.entry_id = e.id
            WHERE e.account_id = ? AND t.tag = ?
            ORDER BY e.timestamp, e.created_at
        """
        return await self._fetch(query, [account_id, tag.strip().lower()])

    async def find_by_replaces(self, account_id: str, identifier: str) -> list[KnowledgeEntry]:
        """Entries that declared they replace an identifier."""
        return await self._fetch(
            "SELECT e.* FROM entries e WHERE e.account_id = ? AND e.replaces = ? "
            "ORDER BY e.timestamp, e.created_at",
            [account_id, identifier],
        )

    async def find_by_concept(self, account_id: str, concept_id: str) -> list[KnowledgeEntry]:
        """Every revision of a concept, ordered by event timestamp."""
        return await self._fetch(
            "SELECT e.* FROM entries e WHERE e.account_id = ? AND e.concept_id = ? "
            "ORDER BY e.timestamp, e.created_at",
            [account_id, concept_id],
        )

    # Listings
    async def list_current(
        self, account_id: str, limit: int | None = None
    ) -> list[KnowledgeEntry]:
        """Current entries, newest first."""
        query = (
            f"SELECT e.* FROM entries e WHERE e.account_id = ? AND {CURRENT_CLAUSE} "
            "ORDER BY e.created_at DESC"
        )
        params: list[Any] = [account_id]
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
        return await self._fetch(query, params)

    async def list_recent(
        self,
        account_id: str,
        limit: int = 20,
        include_superseded: bool = False,
    ) -> list[KnowledgeEntry]:
        """Most recently created entries."""
        conditions = ["e.account_id = ?"]
        if not include_superseded:
            conditions.append(CURRENT_CLAUSE)

        query = (
            f"SELECT e.* FROM entries e WHERE {' AND '.join(conditions)} "
            "ORDER BY e.created_at DESC LIMIT ?"
        )
        return await self._fetch(query, [account_id, limit])

    async def list_unindexed(
        self, account_id: str | None = None, limit: int = 100
    ) -> list[KnowledgeEntry]:
        """Entries missing temporal processing or a vector."""
        conditions = ["(e.temporal_processed_at IS NULL OR e.is_indexed = 0)"]
        params: list[Any] = []
        if account_id is not None:
            conditions.append("e.account_id = ?")
            params.append(account_id)

        query = (
            f"SELECT e.* FROM entries e WHERE {' AND '.join(conditions)} "
            "ORDER BY e.created_at LIMIT ?"
        )
        params.append(limit)
        return await self._fetch(query, params)

    async def tag_counts(self, account_id: str) -> dict[str, int]:
        """Number of current entries per tag, most used first."""
        self._ensure_connected()

        query = f"""
            SELECT t.tag AS tag, COUNT(*) AS n FROM entry_tags t
            JOIN entries e ON e.id = t.entry_id
            WHERE e.account_id = ? AND {CURRENT_CLAUSE}
            GROUP BY t.tag
            ORDER BY n DESC, t.tag
        """
        async with self._connection.execute(query, (account_id,)) as cursor:
            rows = await cursor.fetchall()

        return {row["tag"]: row["n"] for row in rows}

    async def count(self, account_id: str | None = None) -> int:
        """Count stored entries."""
        self._ensure_connected()

        if account_id is None:
            query, params = "SELECT COUNT(*) FROM entries", ()
        else:
            query, params = "SELECT COUNT(*) FROM entries WHERE account_id = ?", (account_id,)

        async with self._connection.execute(query, params) as cursor:
            row = await cursor.fetchone()

        return row[0] if row else 0
