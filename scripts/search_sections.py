#!/usr/bin/env python3
"""Keyword search over legal-code sections from URLs or local dumps.

Builds a section store from the given sources, runs one search and writes
structured JSON results to stdout with summary messages to stderr.

Usage:
    python3 scripts/search_sections.py --url https://example.org/nk-rf \
      --query "статья 54" --limit 5
    python3 scripts/search_sections.py --file data/nk_part1.txt --file data/nk_part2.txt \
      --query "ндс" --output out/hits.json
    python3 scripts/search_sections.py --config config/sources.json --titles
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any

import orjson

from taxcode.config import load_settings
from taxcode.html_utils import read_file
from taxcode.io_utils import save_json
from taxcode.loader import LoadReport, load_sources, make_fetcher
from taxcode.parsing_types import Source
from taxcode.search import EmptyQueryError
from taxcode.store import SectionStore


def dump_json(obj: object) -> None:
    sys.stdout.buffer.write(orjson.dumps(obj, option=orjson.OPT_INDENT_2))
    sys.stdout.buffer.write(b"\n")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Keyword search over legal-code sections."
    )
    parser.add_argument(
        "--url", action="append", default=[], help="Source URL (repeatable)"
    )
    parser.add_argument(
        "--file",
        action="append",
        default=[],
        type=Path,
        help="Local HTML or text dump (repeatable)",
    )
    parser.add_argument(
        "--config", type=Path, default=None, help="Settings JSON with a source list"
    )
    parser.add_argument("--query", default=None, help="Search query")
    parser.add_argument(
        "--limit", type=int, default=10, help="Maximum hits (default: 10, max 50)"
    )
    parser.add_argument(
        "--titles", action="store_true", help="Print section titles instead of searching"
    )
    parser.add_argument(
        "--timeout", type=float, default=30.0, help="Per-source fetch timeout in seconds"
    )
    parser.add_argument(
        "--output", type=Path, default=None, help="Also save the JSON result here"
    )
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    return parser


def collect(args: argparse.Namespace) -> LoadReport:
    """Load all requested sources; local files are read instead of fetched."""
    sources: list[Source] = []
    if args.config is not None:
        sources.extend(load_settings(args.config).sources)
    sources.extend(Source(url=u) for u in args.url)

    local: dict[str, Path] = {}
    for path in args.file:
        url = path.resolve().as_uri()
        local[url] = path
        sources.append(Source(url=url))

    remote = make_fetcher(args.timeout)

    def fetch(url: str) -> str:
        if url in local:
            text = read_file(local[url])
            if not text:
                raise OSError(f"cannot read {local[url]}")
            return text
        return remote(url)

    return load_sources(sources, fetch=fetch)


def main() -> None:
    args = build_parser().parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    if not (args.url or args.file or args.config):
        print("Error: give at least one --url, --file or --config", file=sys.stderr)
        sys.exit(1)
    if not args.titles and not args.query:
        print("Error: --query is required unless --titles is set", file=sys.stderr)
        sys.exit(1)

    report = collect(args)
    store = SectionStore()
    store.publish(report.sections, details=report.details())

    for outcome in report.outcomes:
        print(
            f"[{outcome.status}] {outcome.url}: {outcome.section_count} sections",
            file=sys.stderr,
        )

    result: dict[str, Any]
    if args.titles:
        result = {
            "count": len(store),
            "titles": [{"id": s.id, "title": s.title} for s in store.sections],
        }
    else:
        try:
            hits = store.search(args.query, args.limit)
        except EmptyQueryError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            sys.exit(1)
        result = {
            "query": args.query,
            "total": len(hits),
            "hits": [h.to_dict() for h in hits],
        }
        print(
            f"Found {len(hits)} hits across {len(store)} sections",
            file=sys.stderr,
        )

    dump_json(result)
    if args.output is not None:
        save_json(result, args.output)
        print(f"Saved results to {args.output}", file=sys.stderr)


if __name__ == "__main__":
    main()
