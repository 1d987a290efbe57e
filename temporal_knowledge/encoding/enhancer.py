"""
Construction of the text that gets embedded for an entry.

The embedded text layers who added the entry and when, the content with
relative dates annotated and synonyms appended, and the resolved dates of
every temporal reference, so vector search can match on any of them.
"""

from datetime import datetime

from temporal_knowledge.encoding.synonyms import SynonymExpander
from temporal_knowledge.models.temporal import ProcessedTemporalContent


def display_name(added_by: str, added_by_name: str | None = None) -> str:
    """Name shown for the author, falling back to a short user id."""
    if added_by_name and added_by_name.strip():
        return added_by_name.strip()
    return f"User {added_by[:8]}"


def build_enhanced_content(
    processed: ProcessedTemporalContent,
    author: str,
    stored_at: datetime,
    expander: SynonymExpander,
) -> str:
    """
    Build the enhanced content string for an entry.

    Example:
        'Added by Sam on 2025-05-30: bday tomorrow (Saturday, May 31, 2025),
         referring to temporal events: "tomorrow" (2025-05-31)'
    """
    enriched = expander.enrich_content(processed.processed_content)

    temporal = ""
    if processed.contains_temporal_refs:
        events = ", ".join(
            f'"{ref.original_text}" '
            f"({ref.resolved_date.date().isoformat() if ref.resolved_date else 'unresolved'})"
            for ref in processed.temporal_info
        )
        temporal = f", referring to temporal events: {events}"

    return f"Added by {author} on {stored_at.date().isoformat()}: {enriched}{temporal}"
