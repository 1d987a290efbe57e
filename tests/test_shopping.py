"""
Tests for shopping list reconciliation.
"""

import pytest

from temporal_knowledge.errors import InvalidEntryError
from temporal_knowledge.models.entry import EntryIntent
from temporal_knowledge.shopping.items import (
    extract_items,
    extract_purchased_items,
    items_match,
    parse_item_list,
)


class TestItems:
    """Tests for item extraction and matching."""

    def test_extract_from_need_phrase(self):
        assert extract_items("Need eggs, milk, and bread from the store") == [
            "eggs",
            "milk",
            "bread",
        ]

    def test_extract_without_verb(self):
        assert extract_items("apples and pears") == ["apples", "pears"]

    @pytest.mark.parametrize(
        "content,expected",
        [
            ("Need to buy eggs and milk", ["eggs", "milk"]),
            ("I added milk and bread", ["milk", "bread"]),
            ("We need to get some apples. Soon!", ["apples"]),
            ("Buy the cheese from the deli", ["cheese"]),
        ],
    )
    def test_extract_list_phrasing(self, content, expected):
        assert extract_items(content) == expected

    @pytest.mark.parametrize("content", ["forget eggs and milk", "budget eggs and milk"])
    def test_verb_inside_word_ignored(self, content):
        """Test "get" and "add" only count as whole words."""
        assert extract_items(content) == [content.split()[0] + " eggs", "milk"]

    @pytest.mark.parametrize(
        "content,expected",
        [
            ("I bought eggs and milk", ["eggs", "milk"]),
            ("Picked up bread at the bakery", ["bread"]),
            ("purchased the cheese.", ["cheese"]),
            ("milk and eggs", ["milk", "eggs"]),
        ],
    )
    def test_extract_purchased(self, content, expected):
        assert extract_purchased_items(content) == expected

    def test_parse_drops_filler(self):
        assert parse_item_list("the, butter, store") == ["butter"]

    @pytest.mark.parametrize(
        "purchased,listed",
        [
            ("milk", "milk"),
            ("Milk ", "milk"),
            ("cheese", "sliced cheese"),
            ("sliced cheese", "cheese"),
            ("milk", "2% milk"),
            ("bread", "whole grain bread"),
        ],
    )
    def test_items_match(self, purchased, listed):
        assert items_match(purchased, listed)

    @pytest.mark.parametrize(
        "purchased,listed",
        [("milk", "eggs"), ("", "milk"), ("butter", "bread")],
    )
    def test_items_do_not_match(self, purchased, listed):
        assert not items_match(purchased, listed)


class TestPurchase:
    """Tests for purchase reconciliation."""

    @pytest.mark.asyncio
    async def test_unbought_items_are_conserved(self, service, clock):
        """Test buying milk leaves eggs and bread on the list."""
        list_id = await service.process_and_store(
            "Need eggs, milk, and bread from the store", tags=["shopping"]
        )
        clock.advance(minutes=30)

        outcome = await service.handle_purchase(["milk"])

        assert [e.id for e in outcome.superseded] == [list_id]
        assert len(outcome.remainders) == 1
        remainder = outcome.remainders[0]
        assert remainder.items == ["eggs", "bread"]
        assert remainder.content == "Need eggs, bread from the store"
        assert remainder.tags == ["shopping"]
        assert remainder.replaces == list_id
        assert outcome.record.content == "Purchased milk"
        assert outcome.record.intent == EntryIntent.PURCHASE
        assert outcome.record.tags[:2] == ["shopping", "purchased"]

        old = await service.get_entry(list_id)
        assert old.replaced_by == remainder.timestamp

        active = await service.get_active_items()
        assert [e.id for e in active] == [remainder.id]

    @pytest.mark.asyncio
    async def test_buying_everything_leaves_no_remainder(self, service):
        await service.process_and_store("Need eggs from the store", tags=["groceries"])

        outcome = await service.handle_purchase(["eggs"])

        assert len(outcome.superseded) == 1
        assert outcome.remainders == []
        assert await service.get_active_items() == []

    @pytest.mark.asyncio
    async def test_unmatched_purchase_still_recorded(self, service):
        await service.process_and_store("Need eggs from the store", tags=["shopping"])

        outcome = await service.handle_purchase(["batteries"], tags=["hardware"])

        assert outcome.superseded == []
        assert outcome.record.tags == ["shopping", "purchased", "hardware"]
        assert len(await service.get_active_items()) == 1

    @pytest.mark.asyncio
    async def test_explicit_items_take_precedence(self, service):
        """Test an entry's stored items are used instead of its content."""
        await service.process_and_store(
            "Weekend list", tags=["shopping"], items=["2% milk", "cheddar cheese"]
        )

        outcome = await service.handle_purchase(["milk"])

        assert outcome.remainders[0].items == ["cheddar cheese"]

    @pytest.mark.asyncio
    async def test_empty_purchase_rejected(self, service):
        with pytest.raises(InvalidEntryError):
            await service.handle_purchase(["", "  "])

    @pytest.mark.asyncio
    async def test_purchase_intent_routes_to_reconciler(self, service):
        """Test storing a purchase intent without replaces reconciles the list."""
        await service.process_and_store(
            "Need eggs, milk, and bread from the store", tags=["shopping"]
        )

        record_id = await service.process_and_store(
            "Bought the milk", intent="purchase", items=["milk"]
        )

        record = await service.get_entry(record_id)
        assert record.content == "Purchased milk"
        active = await service.get_active_items()
        assert [e.items for e in active] == [["eggs", "bread"]]

    @pytest.mark.asyncio
    async def test_free_text_purchase_parses_items(self, service):
        """Test a purchase stored without items is parsed from its wording."""
        await service.process_and_store(
            "Need eggs, milk, and bread from the store", tags=["shopping"]
        )

        record_id = await service.process_and_store("I bought eggs and milk", intent="purchase")

        record = await service.get_entry(record_id)
        assert record.content == "Purchased eggs, milk"
        assert record.items == ["eggs", "milk"]
        active = await service.get_active_items()
        assert [e.items for e in active] == [["bread"]]


class TestClearList:
    """Tests for clearing a list."""

    @pytest.mark.asyncio
    async def test_clear_retires_items_not_records(self, service, clock):
        await service.process_and_store("Need eggs from the store", tags=["shopping"])
        clock.advance(minutes=1)
        await service.process_and_store("Need soap", tags=["shopping"])
        clock.advance(minutes=1)
        purchase = await service.handle_purchase(["soap"])
        clock.advance(minutes=1)

        outcome = await service.clear_list("shopping")

        assert len(outcome.cleared) == 1
        assert outcome.cleared[0].content == "Need eggs from the store"
        assert outcome.record.content == "Cleared shopping list"
        assert outcome.record.tags == ["shopping", "cleared"]
        assert outcome.record.intent == EntryIntent.CLEAR_LIST

        record = await service.get_entry(purchase.record.id)
        assert record.is_current
        assert await service.get_active_items() == []

    @pytest.mark.asyncio
    async def test_clear_only_named_list(self, service):
        await service.process_and_store("Need eggs", tags=["shopping"])
        await service.process_and_store("Need rice", tags=["groceries"])

        outcome = await service.clear_list("groceries")

        assert [e.content for e in outcome.cleared] == ["Need rice"]
        assert [e.content for e in await service.get_active_items()] == ["Need eggs"]

    @pytest.mark.asyncio
    async def test_clear_intent_routes_to_reconciler(self, service):
        await service.process_and_store("Need eggs", tags=["shopping"])

        record_id = await service.process_and_store("Clear the list", intent="clear_list")

        assert (await service.get_entry(record_id)).content == "Cleared shopping list"
        assert await service.get_active_items() == []
