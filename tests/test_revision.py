"""
Tests for revision chains.
"""

import pytest
from datetime import datetime, timedelta

from temporal_knowledge.models.entry import EntryIntent, KnowledgeEntry, is_superseded
from temporal_knowledge.revision.tracker import (
    RevisionChain,
    RevisionChainTracker,
    tag_search_strategies,
)

ACCOUNT = "acct-1"
T0 = datetime(2025, 5, 30, 12, 0, 0)


def ts(minutes: int) -> str:
    return (T0 + timedelta(minutes=minutes)).isoformat(timespec="milliseconds") + "Z"


def create_entry(content: str, tags: list[str], minutes: int = 0, **kwargs) -> KnowledgeEntry:
    """Create test entry."""
    at = T0 + timedelta(minutes=minutes)
    return KnowledgeEntry(
        account_id=ACCOUNT,
        content=content,
        tags=tags,
        added_by="user-1",
        created_at=at,
        updated_at=at,
        timestamp=ts(minutes),
        **kwargs,
    )


@pytest.fixture
def tracker(store):
    return RevisionChainTracker(store, ACCOUNT)


class TestTagStrategies:
    """Tests for fuzzy identifier expansion."""

    def test_hyphenated(self):
        assert tag_search_strategies("family-reunion") == [
            "family-reunion",
            "family reunion",
            "family",
            "reunion",
        ]

    def test_plain(self):
        assert tag_search_strategies(" Reunion ") == ["reunion"]


class TestIsSuperseded:
    """Tests for the supersession predicate."""

    @pytest.mark.parametrize(
        "value,expected",
        [(None, False), ("", False), ("   ", False), ("2025-05-30T12:00:00.000Z", True)],
    )
    def test_dict_rows(self, value, expected):
        assert is_superseded({"replaced_by": value}) is expected

    def test_missing_key_and_none(self):
        assert not is_superseded({})
        assert not is_superseded(None)


class TestResolve:
    """Tests for replacement identifier resolution."""

    @pytest.mark.asyncio
    async def test_resolve_by_tag_part(self, store, tracker):
        """Test 'family-reunion' finds an entry tagged family/reunion."""
        entry = create_entry("Family reunion June 20", ["family", "reunion"])
        await store.upsert(entry)

        found = await tracker.resolve("family-reunion")

        assert [e.id for e in found] == [entry.id]

    @pytest.mark.asyncio
    async def test_first_strategy_with_hits_wins(self, store, tracker):
        """Test a literal tag match stops the search before the parts."""
        exact = create_entry("Reunion plans", ["family-reunion"])
        broad = create_entry("Family dinner", ["family"], minutes=1)
        await store.upsert(exact)
        await store.upsert(broad)

        found = await tracker.resolve("family-reunion")

        assert [e.id for e in found] == [exact.id]

    @pytest.mark.asyncio
    async def test_resolve_by_id(self, store, tracker):
        entry = create_entry("Dentist June 3", ["health"])
        await store.upsert(entry)

        assert [e.id for e in await tracker.resolve(entry.id)] == [entry.id]

    @pytest.mark.asyncio
    async def test_old_id_follows_chain_to_head(self, store, tracker):
        """Test naming a superseded revision replaces the current one."""
        first = create_entry("v1", ["plan"], concept_id="concept-plan-1")
        second = create_entry("v2", ["plan"], minutes=1, concept_id="concept-plan-1")
        await store.upsert(first)
        await store.upsert(second)
        await store.mark_superseded(first.id, ts(1))

        found = await tracker.resolve(first.id)

        assert [e.id for e in found] == [second.id]

    @pytest.mark.asyncio
    async def test_resolve_by_concept_id(self, store, tracker):
        entry = create_entry("v1", ["plan"], concept_id="concept-plan-1")
        await store.upsert(entry)

        assert [e.id for e in await tracker.resolve("concept-plan-1")] == [entry.id]

    @pytest.mark.asyncio
    async def test_superseded_entries_not_resolved(self, store, tracker):
        entry = create_entry("Old", ["reunion"], replaced_by=ts(5))
        await store.upsert(entry)

        assert await tracker.resolve("reunion") == []


class TestHandleReplacement:
    """Tests for retiring predecessors."""

    @pytest.mark.asyncio
    async def test_family_reunion_scenario(self, store, tracker):
        """Test the predecessor gets the successor's event time."""
        old = create_entry("Family reunion is June 20", ["family", "reunion"])
        await store.upsert(old)

        retired = await tracker.handle_replacement("family-reunion", ts(10))

        assert [e.id for e in retired] == [old.id]
        assert retired[0].replaced_by == ts(10)
        loaded = await store.find_by_id(ACCOUNT, old.id)
        assert loaded.replaced_by == ts(10)

    @pytest.mark.asyncio
    async def test_miss_is_not_an_error(self, tracker, caplog):
        """Test a replacement with no predecessor only logs."""
        with caplog.at_level("INFO"):
            retired = await tracker.handle_replacement("nothing-here", ts(1))

        assert retired == []
        assert "No existing entries found to replace for: nothing-here" in caplog.text

    @pytest.mark.asyncio
    async def test_supersede_skips_already_retired(self, store, tracker):
        entry = create_entry("x", ["t"])
        await store.upsert(entry)

        assert len(await tracker.supersede([entry], ts(1))) == 1
        assert await tracker.supersede([entry], ts(2)) == []


class TestHistory:
    """Tests for revision history queries."""

    @pytest.mark.asyncio
    async def test_revision_history_chronological(self, store, tracker):
        first = create_entry("Reunion June 20", ["reunion"])
        second = create_entry("Reunion July 9", ["family"], minutes=5, replaces="reunion")
        third = create_entry("Reunion July 10", ["reunion"], minutes=10)
        for entry in (third, first, second):
            await store.upsert(entry)

        history = await tracker.get_revision_history("reunion")

        assert [e.content for e in history] == [
            "Reunion June 20",
            "Reunion July 9",
            "Reunion July 10",
        ]

    @pytest.mark.asyncio
    async def test_current_version_newest_first(self, store, tracker):
        a = create_entry("a", ["reunion"])
        b = create_entry("b", ["reunion"], minutes=1)
        await store.upsert(a)
        await store.upsert(b)

        assert [e.content for e in await tracker.get_current_version("reunion")] == ["b", "a"]


class TestRevisionChain:
    """Tests for the RevisionChain abstraction."""

    def test_current_and_history(self):
        v1 = create_entry("v1", [], replaced_by=ts(1))
        v2 = create_entry("v2", [], minutes=1, replaced_by=ts(2))
        v3 = create_entry("v3", [], minutes=2)
        chain = RevisionChain(concept_id="c", entries=[v3, v1, v2])

        assert [e.content for e in chain.history()] == ["v1", "v2", "v3"]
        assert chain.current().content == "v3"
        assert len(chain) == 3

    def test_fully_retired_chain_has_no_head(self):
        chain = RevisionChain(concept_id="c", entries=[create_entry("v1", [], replaced_by=ts(1))])

        assert chain.current() is None

    @pytest.mark.asyncio
    async def test_load(self, store, tracker):
        entry = create_entry("v1", [], concept_id="concept-x")
        await store.upsert(entry)

        chain = await tracker.chain("concept-x")

        assert chain.current().id == entry.id


class TestIntentDefaults:
    """Tests for intent normalization on entries."""

    def test_store_alias(self):
        entry = create_entry("x", [], intent="store")

        assert entry.intent == EntryIntent.CREATE

    def test_none_intent(self):
        entry = create_entry("x", [], intent=None)

        assert entry.intent == EntryIntent.CREATE
