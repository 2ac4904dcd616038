#!/usr/bin/env python3
"""
CLI for offline land matching and condition extraction.

Usage:
    python cli.py match <conditions_json> <properties_json> [--all]
    python cli.py extract <source> <document_json>

Examples:
    # Rank all available properties for every customer
    python cli.py match data/conditions.json data/properties.json

    # Show what a hearing sheet would change
    python cli.py extract hearing_sheet sheets/customer-42.json
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from core.land import (
    LandMatcher,
    LandProperty,
    LandSearchConditions,
    UpdateSource,
    extract_for_source,
)
from utils.config import Config
from utils.formatting import format_man, format_tsubo


logger = logging.getLogger(__name__)


def _load_json(path_str: str) -> Any:
    """Read a JSON file, reporting problems on stderr."""
    path = Path(path_str)
    if not path.exists():
        print(f"Error: File not found: {path}", file=sys.stderr)
        return None
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        print(f"Error: Invalid JSON in {path}: {e}", file=sys.stderr)
        return None


def _as_list(data: Any) -> list:
    return data if isinstance(data, list) else [data]


def _json_default(value: Any) -> Any:
    if hasattr(value, "isoformat"):
        return value.isoformat()
    if hasattr(value, "value"):
        return value.value
    raise TypeError(f"Not JSON serialisable: {value!r}")


def cmd_match(args):
    """Batch-match conditions against properties and print ranked results."""
    conditions_data = _load_json(args.conditions_file)
    properties_data = _load_json(args.properties_file)
    if conditions_data is None or properties_data is None:
        return 1

    try:
        conditions = [LandSearchConditions.from_dict(c) for c in _as_list(conditions_data)]
        properties = [LandProperty.from_dict(p) for p in _as_list(properties_data)]
    except (KeyError, ValueError, TypeError) as e:
        print(f"Error: Invalid input data: {e}", file=sys.stderr)
        return 1

    logger.debug("Loaded %d conditions records and %d properties", len(conditions), len(properties))

    matcher = LandMatcher()
    if args.all:
        results = [
            matcher.calculate(c, p)
            for c in conditions
            for p in properties
        ]
        results.sort(key=lambda r: r.match_score, reverse=True)
    else:
        results = matcher.batch(conditions, properties)

    by_id = {p.id: p for p in properties}
    for result in results:
        land = by_id[result.property_id]
        print(
            f"{result.match_score:>3} [{result.alert_level.value:<6}] "
            f"{result.customer_id} <- {land.name} "
            f"({land.area}, {format_tsubo(land.land_area)}, {format_man(land.price)})",
            file=sys.stderr,
        )

    print(json.dumps([r.to_dict() for r in results], ensure_ascii=False, indent=2))
    return 0


def cmd_extract(args):
    """Print the partial conditions update extracted from a document."""
    document = _load_json(args.document_file)
    if document is None:
        return 1

    try:
        update = extract_for_source(UpdateSource(args.source), document)
    except (KeyError, ValueError, TypeError) as e:
        print(f"Error: Cannot extract from document: {e}", file=sys.stderr)
        return 1

    print(json.dumps(update, ensure_ascii=False, indent=2, default=_json_default))
    return 0


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Land matching engine - offline matching and extraction",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python cli.py match conditions.json properties.json
    python cli.py extract reception reception.json

Output:
    JSON on stdout, human-readable summary on stderr
        """,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    match_parser = subparsers.add_parser(
        "match",
        help="Rank properties for every customer's conditions",
    )
    match_parser.add_argument("conditions_file", help="JSON file with one or more conditions records")
    match_parser.add_argument("properties_file", help="JSON file with one or more land properties")
    match_parser.add_argument(
        "--all",
        action="store_true",
        help="Score every pair, including unavailable properties and low matches",
    )
    match_parser.set_defaults(func=cmd_match)

    extract_parser = subparsers.add_parser(
        "extract",
        help="Extract conditions from an upstream document",
    )
    extract_parser.add_argument(
        "source",
        choices=[s.value for s in UpdateSource if s != UpdateSource.MANUAL],
        help="Kind of document",
    )
    extract_parser.add_argument("document_file", help="JSON document")
    extract_parser.set_defaults(func=cmd_extract)

    args = parser.parse_args(argv)

    config = Config.load()
    if args.verbose:
        config.log_level = "DEBUG"
    config.configure_logging()

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
