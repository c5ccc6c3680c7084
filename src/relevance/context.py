"""
Context assembly - turns a query and a corpus snapshot into the grounding
text handed to the generative model.

Selection:
1. Recency window: the newest `recent_window` posts (always included)
2. Relevant set: every post scored, raw-scan boosted, top `top_k` kept
3. recency window + relevant set -> deduplicate (first wins)
4. Sort by timestamp (newest first) and cap at `max_records`

Rendering:
    <header with owner, totals, date span, search terms>

    [YYYY-MM-DD] text [L likes, R reposts, C replies] URL: <url>

    [YYYY-MM-DD] ...
"""

import asyncio
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Set, Union

from .models import CorpusSnapshot, Record, ScoredRecord
from .ranking import DEFAULT_RAW_MATCH_BOOST, DEFAULT_TOP_K, deduplicate_records, rank_records
from .raw_scan import DEFAULT_WINDOW, RawStoreIndex, scan_raw_store
from .scorer import RelevanceScorer
from .terms import extract_terms

logger = logging.getLogger(__name__)

EMPTY_CORPUS_MESSAGE = "No posts available in memory."

DATE_FORMAT = "%Y-%m-%d"

RawStore = Union[RawStoreIndex, str, Path, None]


@dataclass(frozen=True)
class RelevanceConfig:
    """Size caps and boosts for context assembly"""
    recent_window: int = 75
    top_k: int = DEFAULT_TOP_K
    max_records: int = 200
    raw_match_boost: float = DEFAULT_RAW_MATCH_BOOST
    raw_window: int = DEFAULT_WINDOW
    use_raw_index: bool = True

    @classmethod
    def from_env(cls) -> "RelevanceConfig":
        """
        Read overrides from RELEVANCE_* environment variables.

        RELEVANCE_RECENT_WINDOW, RELEVANCE_TOP_K, RELEVANCE_MAX_RECORDS,
        RELEVANCE_RAW_MATCH_BOOST, RELEVANCE_RAW_WINDOW, RELEVANCE_USE_RAW_INDEX
        """
        defaults = cls()
        return cls(
            recent_window=int(os.getenv("RELEVANCE_RECENT_WINDOW", defaults.recent_window)),
            top_k=int(os.getenv("RELEVANCE_TOP_K", defaults.top_k)),
            max_records=int(os.getenv("RELEVANCE_MAX_RECORDS", defaults.max_records)),
            raw_match_boost=float(os.getenv("RELEVANCE_RAW_MATCH_BOOST", defaults.raw_match_boost)),
            raw_window=int(os.getenv("RELEVANCE_RAW_WINDOW", defaults.raw_window)),
            use_raw_index=os.getenv("RELEVANCE_USE_RAW_INDEX", "true").lower() == "true",
        )


@dataclass
class ContextResult:
    """Rendered context plus the posts it was built from"""
    context: str
    records: List[Record] = field(default_factory=list)
    terms: List[str] = field(default_factory=list)
    raw_match_count: int = 0

    @property
    def record_ids(self) -> List[str]:
        return [r.id for r in self.records]

    @property
    def sources(self) -> List[str]:
        """URLs of selected posts, for the caller's "Sources:" line"""
        return [r.url for r in self.records if r.url]


def format_record(record: Record) -> str:
    """
    Render one post as a single context line.

    Example:
        >>> format_record(record)
        '[2026-10-17] Ninja launching in 24 hours [120 likes, 30 reposts, 12 replies] URL: https://...'
    """
    date_str = record.timestamp.strftime(DATE_FORMAT)
    engagement = f"[{record.likes} likes, {record.reposts} reposts, {record.replies} replies]"
    url = f" URL: {record.url}" if record.url else ""
    return f"[{date_str}] {record.text} {engagement}{url}"


def render_context(snapshot: CorpusSnapshot, selected: List[Record], terms: List[str]) -> str:
    total = len(snapshot.records)
    oldest = min(r.utc_timestamp for r in snapshot.records).strftime(DATE_FORMAT)
    newest = max(r.utc_timestamp for r in snapshot.records).strftime(DATE_FORMAT)

    search_info = f"\nSearch terms used: {', '.join(terms)}" if terms else ""
    body = "\n\n".join(format_record(r) for r in selected)

    return (
        f"Complete post history from @{snapshot.owner_handle} "
        f"({total} total posts from {oldest} to {newest}):\n\n"
        f"Searched through ALL {total} posts - including {len(selected)} most relevant posts"
        f"{search_info}:\n\n{body}"
    )


def select_records(
    query: str,
    records: List[Record],
    terms: List[str],
    raw_matches: Set[str],
    config: RelevanceConfig,
    scorer: Optional[RelevanceScorer] = None,
    now: Optional[datetime] = None,
) -> List[Record]:
    """
    Pick the final, time-ordered post list for a query.

    Args:
        query: Original user query
        records: Corpus, newest first
        terms: Extracted search terms
        raw_matches: Post IDs recovered by the raw store scan
        config: Size caps and boosts
        scorer: Relevance scorer (default weights if None)
        now: Reference time for recency scoring

    Returns:
        Deduplicated posts, newest first, at most config.max_records
    """
    scorer = scorer or RelevanceScorer()

    recent = list(records[:config.recent_window])

    scored = [
        ScoredRecord(record=record, score=scorer.score(record, terms, query, now), position=i)
        for i, record in enumerate(records)
    ]
    ranked = rank_records(scored, raw_matches, boost=config.raw_match_boost, top_k=config.top_k)

    combined = deduplicate_records(recent + [item.record for item in ranked])
    combined.sort(key=lambda r: r.utc_timestamp, reverse=True)

    logger.debug(
        f"Selected posts: recent={len(recent)}, relevant={len(ranked)}, "
        f"combined={len(combined)}, cap={config.max_records}"
    )

    return combined[:config.max_records]


def _resolve_raw_store(snapshot: CorpusSnapshot, config: RelevanceConfig) -> RawStore:
    if config.use_raw_index and snapshot.raw_index is not None:
        return snapshot.raw_index
    return snapshot.source_path


def collect_raw_matches(terms: List[str], raw_store: RawStore, window: int = DEFAULT_WINDOW) -> Set[str]:
    """Query an index or scan a raw file; missing store means no matches."""
    if not terms or raw_store is None:
        return set()
    if isinstance(raw_store, RawStoreIndex):
        return raw_store.match(terms)
    return scan_raw_store(terms, raw_store, window)


def _finish(
    query: str,
    snapshot: CorpusSnapshot,
    terms: List[str],
    raw_matches: Set[str],
    config: RelevanceConfig,
    scorer: Optional[RelevanceScorer],
    now: Optional[datetime],
) -> ContextResult:
    selected = select_records(query, list(snapshot.records), terms, raw_matches, config, scorer, now)
    context = render_context(snapshot, selected, terms)

    logger.info(
        f"Built context: {len(selected)}/{len(snapshot.records)} posts, "
        f"{len(terms)} terms, {len(raw_matches)} raw matches, {len(context)} chars"
    )

    return ContextResult(
        context=context,
        records=selected,
        terms=terms,
        raw_match_count=len(raw_matches),
    )


def build_context(
    query: str,
    snapshot: CorpusSnapshot,
    config: Optional[RelevanceConfig] = None,
    raw_store: RawStore = None,
    scorer: Optional[RelevanceScorer] = None,
    now: Optional[datetime] = None,
) -> ContextResult:
    """
    Build the grounding context for a query.

    Args:
        query: Free-text user question
        snapshot: Corpus snapshot to search (read-only)
        config: Size caps and boosts (defaults if None)
        raw_store: Raw store override (index or file path). Default: the
            snapshot's raw index, else its source file
        scorer: Relevance scorer (default weights if None)
        now: Reference time for recency scoring (default: current UTC time)

    Returns:
        ContextResult with the rendered text and the selected posts.
        An empty corpus short-circuits to EMPTY_CORPUS_MESSAGE.

    Example:
        >>> result = build_context("ninja release date", store.snapshot)
        >>> result.record_ids[:1]
        ['1790001234567890123']
    """
    if snapshot.is_empty:
        return ContextResult(context=EMPTY_CORPUS_MESSAGE)

    config = config or RelevanceConfig()
    terms = extract_terms(query)

    if raw_store is None:
        raw_store = _resolve_raw_store(snapshot, config)
    raw_matches = collect_raw_matches(terms, raw_store, config.raw_window)

    return _finish(query, snapshot, terms, raw_matches, config, scorer, now)


async def build_context_async(
    query: str,
    snapshot: CorpusSnapshot,
    config: Optional[RelevanceConfig] = None,
    raw_store: RawStore = None,
    scorer: Optional[RelevanceScorer] = None,
    now: Optional[datetime] = None,
) -> ContextResult:
    """
    Async variant of build_context.

    Only the raw store lookup leaves the event loop (worker thread);
    scoring and rendering run inline.
    """
    if snapshot.is_empty:
        return ContextResult(context=EMPTY_CORPUS_MESSAGE)

    config = config or RelevanceConfig()
    terms = extract_terms(query)

    if raw_store is None:
        raw_store = _resolve_raw_store(snapshot, config)
    raw_matches = await asyncio.to_thread(collect_raw_matches, terms, raw_store, config.raw_window)

    return _finish(query, snapshot, terms, raw_matches, config, scorer, now)
