"""
Raw store scan - grep-like recall booster over the original export file.

The parsed corpus can drift from the raw export (filtered retweets,
normalized text), so a literal match in the raw file may not be visible
to the scorer. This module scans the raw text line by line and, for every
line containing a search term, collects the post IDs found on nearby lines.

Window semantics (shared by the file scan and the in-memory index):
    match on line i  ->  inspect lines [max(0, i - window), min(n, i + window))
    every `"id": "<value>"` found in that range is credited

A post is usually pretty-printed over many JSON lines with its "id" key
some distance from "full_text", hence the window. Several posts in one
window are all credited.

Failure mode: an unreadable store yields an empty set, never an exception.
"""

import asyncio
import logging
import re
from pathlib import Path
from typing import List, Optional, Sequence, Set, Union

logger = logging.getLogger(__name__)

DEFAULT_WINDOW = 20

_ID_RE = re.compile(r'"id":\s*"([^"]+)"')


def _extract_id(line: str) -> Optional[str]:
    match = _ID_RE.search(line)
    return match.group(1) if match else None


def _read_lines(path: Union[str, Path]) -> List[str]:
    return Path(path).read_text(encoding="utf-8").split("\n")


def match_lines(
    terms: Sequence[str],
    lowered_lines: Sequence[str],
    line_ids: Sequence[Optional[str]],
    window: int = DEFAULT_WINDOW,
) -> Set[str]:
    """
    Core window scan over pre-split lines.

    Args:
        terms: Search terms (matched as lowercase substrings)
        lowered_lines: Lowercased raw lines
        line_ids: Post ID found on each line (None when absent), same length
        window: Neighborhood size in lines

    Returns:
        Set of post IDs near any term match
    """
    needles = [t.lower() for t in terms if t]
    if not needles:
        return set()

    found: Set[str] = set()
    total = len(lowered_lines)

    for i, line in enumerate(lowered_lines):
        if not any(needle in line for needle in needles):
            continue

        start = max(0, i - window)
        end = min(total, i + window)
        for j in range(start, end):
            post_id = line_ids[j]
            if post_id is not None:
                found.add(post_id)

    return found


def scan_raw_store(
    terms: Sequence[str],
    path: Optional[Union[str, Path]],
    window: int = DEFAULT_WINDOW,
) -> Set[str]:
    """
    Scan the raw export file for terms and return nearby post IDs.

    Reads the file on every call. For repeated queries against the same
    export prefer RawStoreIndex, which reads it once.

    Args:
        terms: Search terms
        path: Raw export file
        window: Neighborhood size in lines

    Returns:
        Set of post IDs (empty when the file is missing or unreadable)

    Example:
        >>> scan_raw_store(["launching"], "twitter-UserTweets-kurosun.json")
        {'1790001234567890123'}
    """
    if not terms or path is None:
        return set()

    try:
        lines = _read_lines(path)
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(f"Raw store scan skipped, cannot read {path}: {e}")
        return set()

    lowered = [line.lower() for line in lines]
    line_ids = [_extract_id(line) for line in lines]

    found = match_lines(terms, lowered, line_ids, window)
    logger.debug(f"Raw scan found {len(found)} post IDs for terms: {', '.join(terms)}")
    return found


async def scan_raw_store_async(
    terms: Sequence[str],
    path: Optional[Union[str, Path]],
    window: int = DEFAULT_WINDOW,
) -> Set[str]:
    """Run scan_raw_store in a worker thread (file read is the slow part)."""
    return await asyncio.to_thread(scan_raw_store, terms, path, window)


class RawStoreIndex:
    """
    In-memory line index of the raw export.

    Built once per corpus snapshot; queries then scan memory instead of
    re-reading the file. Same window semantics as scan_raw_store.
    """

    def __init__(self, lines: Sequence[str], window: int = DEFAULT_WINDOW):
        self.window = window
        self._lowered = [line.lower() for line in lines]
        self._line_ids = [_extract_id(line) for line in lines]

    @classmethod
    def from_path(cls, path: Union[str, Path], window: int = DEFAULT_WINDOW) -> "RawStoreIndex":
        """
        Read and index a raw export file.

        Raises:
            OSError, UnicodeDecodeError: file cannot be read
        """
        index = cls(_read_lines(path), window=window)
        logger.debug(
            f"Built raw store index: {len(index)} lines, "
            f"{sum(1 for i in index._line_ids if i)} id lines from {path}"
        )
        return index

    def __len__(self) -> int:
        return len(self._lowered)

    def match(self, terms: Sequence[str]) -> Set[str]:
        found = match_lines(terms, self._lowered, self._line_ids, self.window)
        logger.debug(f"Raw index matched {len(found)} post IDs for terms: {', '.join(terms)}")
        return found
