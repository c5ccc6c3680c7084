#!/usr/bin/env python3
"""
Print the grounding context a question would select, without calling the model.

Reads the same environment as the API (.env.local):
    MAIN_TWITTER_HANDLE, RETWEET_HANDLES, RECORDS_EXPORT_PATH

Usage:
    python scripts/query_context.py "ninja release date"
    python scripts/query_context.py --export data/export.json --handle kurosun "when is the drop?"
    python scripts/query_context.py --ids-only "\"going live\""
"""

import argparse
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))
load_dotenv(project_root / ".env.local")

from src.corpus import CorpusLoadError, load_snapshot
from src.relevance import RelevanceConfig, build_context


def main() -> int:
    parser = argparse.ArgumentParser(description="Show the context selected for a question")
    parser.add_argument("query", help="Question to build context for")
    parser.add_argument("--handle", default=os.getenv("MAIN_TWITTER_HANDLE"), help="Account handle")
    parser.add_argument("--export", default=os.getenv("RECORDS_EXPORT_PATH"), help="JSON export path")
    parser.add_argument("--retweet-handles", default=os.getenv("RETWEET_HANDLES", ""),
                        help="Comma-separated handles whose retweets are kept")
    parser.add_argument("--no-index", action="store_true", help="Scan the raw file instead of indexing it")
    parser.add_argument("--ids-only", action="store_true", help="Print selected post IDs only")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )

    if not args.handle:
        print("ERROR: --handle or MAIN_TWITTER_HANDLE is required", file=sys.stderr)
        return 1

    export_path = args.export or f"twitter-UserTweets-{args.handle}.json"
    config = RelevanceConfig.from_env()

    try:
        snapshot = load_snapshot(
            export_path,
            owner_handle=args.handle,
            retweet_handles=args.retweet_handles.split(","),
            build_raw_index=not args.no_index,
            raw_window=config.raw_window,
        )
    except CorpusLoadError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    result = build_context(args.query, snapshot, config=config)

    if args.ids_only:
        for record_id in result.record_ids:
            print(record_id)
        return 0

    print(result.context)
    print()
    print(f"--- {len(result.records)} posts, terms: {', '.join(result.terms) or '(none)'}, "
          f"raw matches: {result.raw_match_count}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
