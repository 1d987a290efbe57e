"""
Synonym expansion for colloquial language.

Everyday notes are full of slang and euphemism ("nuts", "crib", "whip").
Every member of a synonym group is treated as interchangeable: a query term
expands to its whole group, and stored content gets a bracketed list of
related terms appended before it is embedded, so nearest-neighbor search
connects colloquial variants from either side.
"""

from __future__ import annotations

import logging
import re

logger = logging.getLogger(__name__)


# Groups are mutually exclusive: no term appears in two groups
SYNONYM_GROUPS: dict[str, tuple[str, ...]] = {
    "testicles": (
        "balls", "nuts", "testicles", "testicle", "sack", "ballsack", "nutsack",
        "family jewels", "nads", "gonads", "stones", "plums", "rocks", "eggs",
        "cojones", "bollocks", "beans",
    ),
    "penis": (
        "dick", "cock", "penis", "johnson", "prick", "dong", "wang", "tool",
        "member", "shaft", "rod", "pecker", "stick", "phallus", "meat",
        "package", "junk", "manhood",
    ),
    "vagina": (
        "pussy", "vagina", "cooch", "coochie", "kitty", "snatch", "vajayjay",
        "beaver", "hoo-ha", "fanny", "flower", "lady bits", "cunt",
    ),
    "breasts": (
        "boobs", "tits", "breasts", "boob", "titties", "rack", "melons",
        "knockers", "chest", "girls", "jugs", "assets", "hooters", "bust",
        "bosom",
    ),
    "buttocks": (
        "ass", "butt", "booty", "buttocks", "cheeks", "rear", "behind",
        "bottom", "glutes", "bum", "rump", "arse", "derriere",
    ),
    "anus": (
        "asshole", "anus", "butthole", "arsehole", "brown eye", "backdoor",
        "starfish",
    ),
    "sex": (
        "sex", "hook up", "bang", "smash", "get laid", "bone", "score",
        "screw", "do it", "make love", "shag", "get busy", "fool around",
        "get it on",
    ),
    "money": (
        "money", "cash", "bucks", "dollars", "bread", "cheddar", "dough",
        "moolah", "loot", "stacks", "green", "paper", "bands", "cream",
        "scratch", "bank", "dinero",
    ),
    "car": (
        "car", "ride", "wheels", "vehicle", "whip", "auto", "motor",
        "beater", "hoopty", "set of wheels",
    ),
    "house": (
        "house", "home", "crib", "pad", "place", "spot", "diggs", "dwelling",
        "residence",
    ),
    "alcohol": (
        "booze", "drinks", "alcohol", "liquor", "beer", "brew", "shots",
        "spirits", "vino", "wine", "hooch", "bevvies",
    ),
    "drunk": (
        "drunk", "wasted", "hammered", "sloshed", "plastered", "smashed",
        "lit", "buzzed", "tipsy", "blitzed", "tanked",
    ),
    "marijuana": (
        "weed", "pot", "marijuana", "ganja", "herb", "grass", "bud",
        "mary jane", "chronic", "loud", "reefer", "dope", "greenery",
    ),
    "cocaine": (
        "coke", "blow", "cocaine", "snow", "powder", "nose candy", "white",
        "yayo", "charlie",
    ),
    "police": (
        "cops", "police", "cop", "five-o", "po-po", "law", "heat", "fuzz",
        "boys in blue", "pigs",
    ),
    "friend": (
        "friend", "buddy", "pal", "homie", "bro", "dude", "mate", "amigo",
        "compadre", "ace", "partner-in-crime",
    ),
}

_TOKEN_PATTERN = re.compile(r"[a-z0-9][a-z0-9'%-]*")


def tokenize(text: str) -> list[str]:
    """Split text into lowercase word tokens."""
    return _TOKEN_PATTERN.findall(text.lower())


class SynonymExpander:
    """
    Expands terms to every member of their synonym group.

    Usage:
        expander = SynonymExpander()
        expander.expand(["nuts"])        # ["nuts", "balls", "testicles", ...]
        expander.enrich_content("my nuts hurt")
    """

    def __init__(self, groups: dict[str, tuple[str, ...]] | None = None):
        self.groups = groups if groups is not None else SYNONYM_GROUPS

        # First group wins for a term listed twice
        self._term_to_group: dict[str, str] = {}
        for name, terms in self.groups.items():
            for term in terms:
                self._term_to_group.setdefault(term.lower(), name)

        self._term_patterns: dict[str, list[tuple[str, re.Pattern]]] = {
            name: [
                (term, re.compile(rf"\b{re.escape(term)}\b", re.IGNORECASE))
                for term in terms
            ]
            for name, terms in self.groups.items()
        }

    def group_of(self, term: str) -> str | None:
        """Name of the group a term belongs to, if any."""
        return self._term_to_group.get(term.strip().lower())

    def expand(self, terms: list[str]) -> list[str]:
        """
        Expand terms with all members of their synonym groups.

        Case-insensitive with set semantics; input terms come first and the
        order of the output is otherwise stable.
        """
        expanded: list[str] = []
        seen: set[str] = set()

        def add(term: str) -> None:
            if term and term not in seen:
                seen.add(term)
                expanded.append(term)

        for term in terms:
            term = term.strip().lower()
            add(term)
            group = self._term_to_group.get(term)
            if group:
                for synonym in self.groups[group]:
                    add(synonym.lower())

        return expanded

    def find_groups(self, text: str) -> list[tuple[str, str]]:
        """
        Find synonym groups mentioned in text, including multi-word phrases.

        Returns:
            (group name, matched term) pairs, one per group
        """
        found = []
        for name, patterns in self._term_patterns.items():
            for term, pattern in patterns:
                if pattern.search(text):
                    found.append((name, term))
                    break
        return found

    def expand_text(self, text: str) -> list[str]:
        """Tokenize text and expand every token and phrase it contains."""
        terms = tokenize(text)
        terms.extend(term for _, term in self.find_groups(text))
        return self.expand(terms)

    def enrich_content(self, content: str) -> str:
        """
        Append related terms for every synonym group the content mentions.

        Example:
            "my nuts hurt" ->
            "my nuts hurt [Semantic context: related to testicles.
             Related terms: balls, testicles, ...]"
        """
        found = self.find_groups(content)
        if not found:
            return content

        related: list[str] = []
        for name, matched in found:
            for term in self.groups[name]:
                if term != matched and term not in related:
                    related.append(term)

        contexts = ", ".join(f"related to {name}" for name, _ in found)
        logger.debug(f"Enriched content with {len(related)} terms from {len(found)} groups")
        return f"{content} [Semantic context: {contexts}. Related terms: {', '.join(related)}]"
