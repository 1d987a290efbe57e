"""Shopping list parsing and purchase/clear reconciliation."""

from temporal_knowledge.shopping.items import (
    SUBSTITUTIONS,
    entry_items,
    extract_items,
    extract_purchased_items,
    items_match,
    parse_item_list,
)
from temporal_knowledge.shopping.reconciler import (
    ClearOutcome,
    PurchaseOutcome,
    ShoppingListReconciler,
    is_list_item,
)

__all__ = [
    "SUBSTITUTIONS",
    "entry_items",
    "extract_items",
    "extract_purchased_items",
    "items_match",
    "parse_item_list",
    "ClearOutcome",
    "PurchaseOutcome",
    "ShoppingListReconciler",
    "is_list_item",
]
