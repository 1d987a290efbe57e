"""
Shopping item extraction and matching.

List entries are usually free text ("need eggs, milk and bread from the
store"), so items are parsed back out of the content when an entry has no
explicit item list, and purchased items are matched loosely.
"""

import re

from temporal_knowledge.models.entry import KnowledgeEntry

# Items end at "from the store", sentence punctuation or the end of text
_ITEMS_END = r"(?=\s+from\b|[.!?]|$)"

# "need eggs", "I added milk", "need to buy eggs", "get bread"
_NEED_PATTERN = re.compile(
    r"\b(?:needs?|needed|add|added|buy|get)\b"
    r"(?:\s+to\s+(?:buy|get|pick\s+up))?\s+([^.!?]+?)" + _ITEMS_END,
    re.IGNORECASE,
)

# "I bought eggs and milk", "picked up bread", "purchased the cheese"
_PURCHASE_PATTERN = re.compile(
    r"\b(?:bought|purchased|got|picked\s+up|grabbed)\b\s+([^.!?]+?)"
    r"(?=\s+(?:from|at)\b|[.!?]|$)",
    re.IGNORECASE,
)

_SEPARATORS = re.compile(r",|\band\b")
_ARTICLES = re.compile(r"^(?:the|some|a|an|more)\s+")
_FILLER = {"from", "the", "store", "shop"}

# Generic item -> specific variants it stands for
SUBSTITUTIONS: dict[str, tuple[str, ...]] = {
    "milk": ("whole milk", "skim milk", "2% milk"),
    "cheese": ("sliced cheese", "cheddar cheese", "swiss cheese"),
    "bread": ("white bread", "wheat bread", "whole grain bread"),
    "butter": ("salted butter", "unsalted butter"),
}


def parse_item_list(text: str) -> list[str]:
    """Split a comma/"and" separated list into lowercase items."""
    items = []
    for item in _SEPARATORS.split(text):
        item = _ARTICLES.sub("", item.strip().lower()).strip()
        if item and item not in _FILLER:
            items.append(item)
    return items


def extract_items(content: str) -> list[str]:
    """
    Parse list items out of free text.

    "Need eggs, milk, and bread from the store" -> ["eggs", "milk", "bread"]
    "Need to buy eggs and milk" -> ["eggs", "milk"]
    """
    text = content.lower().strip()
    match = _NEED_PATTERN.search(text)
    if match:
        return parse_item_list(match.group(1))
    return parse_item_list(text)


def extract_purchased_items(content: str) -> list[str]:
    """
    Parse bought items out of a purchase report.

    "I bought eggs and milk" -> ["eggs", "milk"]
    """
    text = content.lower().strip()
    match = _PURCHASE_PATTERN.search(text)
    if match:
        return parse_item_list(match.group(1))
    return extract_items(text)


def entry_items(entry: KnowledgeEntry) -> list[str]:
    """Items of a list entry, explicit if stored, else parsed from content."""
    if entry.items:
        return [item.strip().lower() for item in entry.items if item.strip()]
    return extract_items(entry.content)


def items_match(purchased_item: str, list_item: str) -> bool:
    """
    Loose item equality.

    Exact match, containment either way ("cheese" ~ "sliced cheese"), or a
    known substitution ("milk" ~ "2% milk").
    """
    purchased = purchased_item.strip().lower()
    listed = list_item.strip().lower()
    if not purchased or not listed:
        return False

    if purchased == listed:
        return True
    if purchased in listed or listed in purchased:
        return True

    for base, variants in SUBSTITUTIONS.items():
        if purchased == base and any(v in listed for v in variants):
            return True
        if listed == base and any(v in purchased for v in variants):
            return True

    return False
