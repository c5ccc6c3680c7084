"""
Ranking and deduplication of scored posts.

rank_records:
    final_score = score + boost   (if post ID was recovered by the raw scan)
    keep final_score > 0, sort descending, take top_k

Ties are broken by corpus position.
"""

from typing import Iterable, List, Set

from .models import Record, ScoredRecord

DEFAULT_RAW_MATCH_BOOST = 50.0
DEFAULT_TOP_K = 150


def rank_records(
    scored: Iterable[ScoredRecord],
    raw_matches: Set[str],
    boost: float = DEFAULT_RAW_MATCH_BOOST,
    top_k: int = DEFAULT_TOP_K,
) -> List[ScoredRecord]:
    """
    Apply the raw-scan boost, drop non-positive scores and return the top_k.

    Args:
        scored: Scored records in corpus order
        raw_matches: Post IDs recovered by the raw store scan
        boost: Score added to posts present in raw_matches
        top_k: Maximum number of results

    Returns:
        New ScoredRecord list sorted by final score (descending)

    Example:
        >>> ranked = rank_records(scored, raw_matches={"42"}, top_k=2)
        >>> [r.record.id for r in ranked]
        ['42', '7']  # "42" jumped ahead thanks to the raw scan boost
    """
    candidates: List[ScoredRecord] = []

    for item in scored:
        score = item.score
        if item.record.id in raw_matches:
            score += boost
        if score > 0:
            candidates.append(ScoredRecord(record=item.record, score=score, position=item.position))

    candidates.sort(key=lambda x: (-x.score, x.position))

    return candidates[:max(top_k, 0)]


def deduplicate_records(records: Iterable[Record]) -> List[Record]:
    """
    Drop repeated post IDs, keeping the first occurrence and the input order.

    Identity is the post ID only; content is not compared.
    """
    seen: Set[str] = set()
    deduplicated: List[Record] = []

    for record in records:
        if record.id in seen:
            continue
        seen.add(record.id)
        deduplicated.append(record)

    return deduplicated
