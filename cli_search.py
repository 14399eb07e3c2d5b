"""Terminal client that reuses the in-process search logic."""
from __future__ import annotations

import argparse
import asyncio
from pathlib import Path
from typing import Iterable, List, Optional

from sourcescout.errors import SearchError
from sourcescout.models import SearchResponse
from sourcescout.registry import get_search_service
from sourcescout.search_service import build_request
from sourcescout.tiers import TIERS

GREEN = "\033[92m"
RED = "\033[91m"
RESET = "\033[0m"


async def perform_query(
    query: str, sources: Optional[List[str]], tier: str, enhanced: bool, user_id: Optional[str]
) -> SearchResponse:
    service = get_search_service()
    request = build_request(query, sources, enhanced)
    return await service.run(request, tier=tier, user_id=user_id)


async def run_queries(queries: Iterable[str], args: argparse.Namespace) -> None:
    orchestrator = get_search_service().coordinator.orchestrator
    await orchestrator.open()
    try:
        for query in queries:
            try:
                response = await perform_query(query, args.sources, args.tier, args.enhanced, args.user)
            except SearchError as exc:
                print(f"{RED}{query}: {exc.message}{RESET}")
                continue
            pretty_print_response(response)
    finally:
        await orchestrator.close()


def interactive_queries() -> Iterable[str]:
    print("Interactive product search. Type 'exit' to quit.")
    while True:
        try:
            query = input("> ").strip()
        except (EOFError, KeyboardInterrupt):
            print()
            return
        if not query:
            continue
        if query.lower() in {"exit", "quit"}:
            return
        yield query


def pretty_print_response(response: SearchResponse) -> None:
    total = response.elapsed.total_ms
    color = GREEN if total < 10_000 else RED
    label = f"{color}{total:.0f} ms{RESET}"
    mode = " | boss mode" if response.enhanced else ""
    print(f"Query: {response.query} | results: {response.total_results} | took: {label}{mode}")
    if response.per_source_counts:
        counts = ", ".join(f"{source}={count}" for source, count in response.per_source_counts.items())
        print(f"  sources: {counts}")
    for idx, item in enumerate(response.products, start=1):
        price = f"${item.price:.2f}" if item.price is not None else "-"
        rating = f"{item.supplier_rating:.1f}" if item.supplier_rating is not None else "-"
        print(
            f"  {idx:02d}. {item.source} | {price} | moq={item.min_order_quantity} | "
            f"rating={rating} | {item.supplier_name} | {item.title}"
        )


def read_batch(file_path: Path) -> List[str]:
    with file_path.open("r", encoding="utf-8") as fh:
        return [line.strip() for line in fh if line.strip()]


def main(argv: Iterable[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="CLI client for the sourcing search service")
    parser.add_argument("query", nargs="?", help="Query string. If omitted, starts REPL mode.")
    parser.add_argument("--batch", type=Path, help="File with queries to execute line by line")
    parser.add_argument("--source", dest="sources", action="append", help="Restrict to a source (repeatable)")
    parser.add_argument("--tier", default="enterprise", choices=sorted(TIERS), help="Subscription tier to apply")
    parser.add_argument("--enhanced", action="store_true", help="Run the AI enrichment pass (Boss Mode)")
    parser.add_argument("--user", default="cli", help="User id for quota accounting")
    args = parser.parse_args(list(argv) if argv is not None else None)

    if args.batch:
        queries: Iterable[str] = read_batch(args.batch)
    elif args.query:
        queries = [args.query]
    else:
        queries = interactive_queries()
    asyncio.run(run_queries(queries, args))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
