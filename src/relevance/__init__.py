"""
Relevance selection and context assembly for post-grounded answers.

Picks the posts most relevant to a free-text question from one account's
post history and renders them into a size-bounded context blob.

Components:
- terms: query term extraction (quoted phrases, expansions, filtered words)
- scorer: additive phrase/term/engagement/recency scoring
- raw_scan: grep-like recall booster over the raw export file
- ranking: raw-scan boost, top-K ranking and deduplication
- context: recency window + relevant set, time ordering, rendering

Key simplification: no inverted index, no IDF
- Every post is scored on each query (corpus is a few thousand posts)
- Queries read an immutable CorpusSnapshot; refresh swaps in a new one
"""

from .models import CorpusSnapshot, Record, ScoredRecord
from .terms import DEFAULT_EXPANSION_RULES, STOPWORDS, ExpansionRule, extract_quoted_phrases, extract_terms
from .scorer import RelevanceScorer
from .raw_scan import RawStoreIndex, scan_raw_store, scan_raw_store_async
from .ranking import deduplicate_records, rank_records
from .context import (
    EMPTY_CORPUS_MESSAGE,
    ContextResult,
    RelevanceConfig,
    build_context,
    build_context_async,
)

__all__ = [
    "CorpusSnapshot",
    "Record",
    "ScoredRecord",
    "DEFAULT_EXPANSION_RULES",
    "STOPWORDS",
    "ExpansionRule",
    "extract_quoted_phrases",
    "extract_terms",
    "RelevanceScorer",
    "RawStoreIndex",
    "scan_raw_store",
    "scan_raw_store_async",
    "deduplicate_records",
    "rank_records",
    "EMPTY_CORPUS_MESSAGE",
    "ContextResult",
    "RelevanceConfig",
    "build_context",
    "build_context_async",
]
