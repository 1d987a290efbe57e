"""
Command line interface for the temporal knowledge engine.

Works against a local sqlite + chroma deployment configured by a JSON file
(see ``KnowledgeConfig``) or the defaults.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from temporal_knowledge.api.knowledge_service import KnowledgeService
from temporal_knowledge.config import KnowledgeConfig
from temporal_knowledge.errors import KnowledgeError
from temporal_knowledge.maintenance.reindex import reindex
from temporal_knowledge.models.entry import Actor, EntryIntent, SearchResult
from temporal_knowledge.temporal.parser import TemporalExpressionParser


def print_colored(text: str, color: str = "white") -> None:
    """Print colored text to terminal."""
    colors = {
        "red": "\033[91m",
        "green": "\033[92m",
        "yellow": "\033[93m",
        "cyan": "\033[96m",
        "white": "\033[97m",
        "reset": "\033[0m",
        "dim": "\033[2m",
    }
    print(f"{colors.get(color, '')}{text}{colors['reset']}")


def print_result(i: int, result: SearchResult) -> None:
    content = result.content[:80]
    if len(result.content) > 80:
        content += "..."
    print(f"  {i}. {content}")
    print_colored(
        f"     score {result.similarity:.2f} "
        f"(semantic {result.semantic_similarity:.2f}) tags: {', '.join(result.entry.tags)}",
        "dim",
    )
    if result.temporal_context:
        print_colored(f"     {result.temporal_context}", "dim")


def load_config(path: str | None) -> KnowledgeConfig:
    if path:
        return KnowledgeConfig.from_file(Path(path))
    return KnowledgeConfig()


def cmd_parse(args: argparse.Namespace, config: KnowledgeConfig) -> int:
    parser = TemporalExpressionParser(config.temporal)
    processed = parser.parse(args.text)

    print(processed.processed_content)
    print_colored(
        f"relevance {processed.temporal_relevance_score:.2f}, "
        f"{len(processed.temporal_info)} references",
        "green",
    )
    for ref in processed.temporal_info:
        line = f"  '{ref.original_text}' -> {ref.resolved_date:%Y-%m-%d} [{ref.kind.value}]"
        if ref.recurrence:
            line += f" every {ref.recurrence.frequency.value}"
        print(line)
    return 0


async def run_command(args: argparse.Namespace, config: KnowledgeConfig) -> int:
    actor = Actor(user_id=args.user, display_name=args.name)

    async with await KnowledgeService.open(config, args.account, actor) as service:
        if args.command == "add":
            entry_id = await service.process_and_store(
                args.content,
                intent=EntryIntent(args.intent),
                replaces=args.replaces,
                tags=args.tags,
            )
            print_colored(f"✓ Stored {entry_id}", "green")

        elif args.command == "search":
            results = await service.search(args.query, tags=args.tags or None)
            if not results:
                print_colored("No results.", "yellow")
            for i, result in enumerate(results, 1):
                print_result(i, result)

        elif args.command == "purchase":
            outcome = await service.handle_purchase(args.items, args.tags)
            print_colored(
                f"✓ Purchased {', '.join(args.items)}: "
                f"{len(outcome.superseded)} list entries updated, "
                f"{len(outcome.remainders)} kept with remaining items",
                "green",
            )

        elif args.command == "clear":
            outcome = await service.clear_list(args.list_type)
            print_colored(
                f"✓ Cleared {len(outcome.cleared)} items from {outcome.list_type} list", "green"
            )

        elif args.command == "reindex":
            result = await reindex(
                service.pipeline,
                account_id=None if args.all_accounts else args.account,
                config=config.maintenance,
            )
            print_colored(
                f"✓ {result.scanned} scanned, {result.temporal_backfilled} backfilled, "
                f"{result.indexed} indexed, {result.failed} still pending",
                "green" if not result.failed else "yellow",
            )

    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="temporal-knowledge",
        description="Temporal knowledge store with hybrid semantic search",
    )
    parser.add_argument("--config", "-c", help="Path to a JSON config file")
    parser.add_argument("--account", "-a", default="local", help="Account id (default: local)")
    parser.add_argument("--user", "-u", default="cli", help="Acting user id (default: cli)")
    parser.add_argument("--name", help="Acting user display name")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("parse", help="Show the temporal expressions found in text")
    p.add_argument("text")

    p = sub.add_parser("add", help="Store a piece of knowledge")
    p.add_argument("content")
    p.add_argument("--tags", "-t", nargs="*", default=[])
    p.add_argument(
        "--intent",
        choices=[intent.value for intent in EntryIntent],
        default=EntryIntent.CREATE.value,
    )
    p.add_argument("--replaces", "-r", help="Id or concept tag of the fact being replaced")

    p = sub.add_parser("search", help="Hybrid search")
    p.add_argument("query")
    p.add_argument("--tags", "-t", nargs="*", default=[])

    p = sub.add_parser("purchase", help="Record bought items")
    p.add_argument("items", nargs="+")
    p.add_argument("--tags", "-t", nargs="*", default=[])

    p = sub.add_parser("clear", help="Clear a shopping list")
    p.add_argument("list_type", nargs="?", default="shopping")

    p = sub.add_parser("reindex", help="Backfill temporal metadata and vectors")
    p.add_argument("--all-accounts", action="store_true")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Entry point for CLI."""
    args = build_parser().parse_args(argv)
    config = load_config(args.config)

    logging.basicConfig(
        level=logging.DEBUG if args.debug or config.debug else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    try:
        if args.command == "parse":
            return cmd_parse(args, config)
        return asyncio.run(run_command(args, config))
    except KnowledgeError as e:
        print_colored(f"⚠ {e}", "red")
        return 1


if __name__ == "__main__":
    sys.exit(main())
