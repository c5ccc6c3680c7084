"""
Heuristic relevance scorer for posts.

Score is a sum of independent components:

    score = phrase_score + term_score + engagement_bonus + recency_bonus

Where:
    phrase_score     = 100 per quoted query phrase contained in the text
    term_score       = per contained term: 10
                       + 5 per extra occurrence of the term
                       + 5 if the term also matches as a whole word
    engagement_bonus = min((likes + reposts + replies) / 10, 20)
    recency_bonus    = max(0, 2 - age_days / 15), only for posts < 30 days old

All matching is case-insensitive. The weights are constructor parameters.
"""

from datetime import datetime, timezone
from typing import List, Optional, Sequence

from src.utils import count_occurrences, has_whole_word

from .models import Record
from .terms import extract_quoted_phrases

SECONDS_PER_DAY = 60 * 60 * 24


class RelevanceScorer:
    """
    Additive keyword/engagement/recency scorer.

    No corpus-level statistics: every record is scored on its own, so
    scoring needs nothing but the record, the term list and the query.
    """

    def __init__(
        self,
        phrase_weight: float = 100.0,
        term_weight: float = 10.0,
        repeat_weight: float = 5.0,
        whole_word_weight: float = 5.0,
        engagement_divisor: float = 10.0,
        engagement_cap: float = 20.0,
        recency_max: float = 2.0,
        recency_horizon_days: float = 30.0,
    ):
        """
        Initialize scorer.

        Args:
            phrase_weight: Bonus per quoted phrase found verbatim
            term_weight: Base bonus per matching term
            repeat_weight: Bonus per occurrence of a term beyond the first
            whole_word_weight: Extra bonus when a term matches on word boundaries
            engagement_divisor: Total engagement is divided by this
            engagement_cap: Upper bound of the engagement bonus
            recency_max: Bonus for a post published right now
            recency_horizon_days: Posts this old or older get no recency bonus

        The recency bonus decays linearly at recency_max / recency_horizon_days
        per day (1/15 with the defaults), reaching zero at day 30.
        """
        self.phrase_weight = phrase_weight
        self.term_weight = term_weight
        self.repeat_weight = repeat_weight
        self.whole_word_weight = whole_word_weight
        self.engagement_divisor = engagement_divisor
        self.engagement_cap = engagement_cap
        self.recency_max = recency_max
        self.recency_horizon_days = recency_horizon_days

    def phrase_score(self, text: str, phrases: Sequence[str]) -> float:
        text = text.lower()
        return sum(self.phrase_weight for phrase in phrases if phrase.lower() in text)

    def term_score(self, text: str, terms: Sequence[str]) -> float:
        text = text.lower()
        score = 0.0

        for term in terms:
            term = term.lower()
            if not term or term not in text:
                continue

            score += self.term_weight

            occurrences = count_occurrences(term, text)
            score += max(occurrences - 1, 0) * self.repeat_weight

            if has_whole_word(term, text):
                score += self.whole_word_weight

        return score

    def engagement_bonus(self, record: Record) -> float:
        return min(record.engagement / self.engagement_divisor, self.engagement_cap)

    def recency_bonus(self, record: Record, now: Optional[datetime] = None) -> float:
        now = now or datetime.now(timezone.utc)
        age_days = (now - record.utc_timestamp).total_seconds() / SECONDS_PER_DAY

        # Future-dated posts count as brand new
        age_days = max(age_days, 0.0)

        if age_days >= self.recency_horizon_days:
            return 0.0

        decay_per_day = self.recency_max / self.recency_horizon_days
        return max(0.0, self.recency_max - age_days * decay_per_day)

    def score(
        self,
        record: Record,
        terms: List[str],
        query: str,
        now: Optional[datetime] = None,
    ) -> float:
        """
        Compute the relevance score of one record.

        Args:
            record: Post to score
            terms: Extracted search terms (see extract_terms)
            query: Original user query (source of quoted phrases)
            now: Reference time for the recency bonus (default: current UTC time)

        Returns:
            Non-negative score (higher = more relevant)

        Example:
            >>> scorer = RelevanceScorer()
            >>> scorer.score(record, ["ninja", "launching"], "ninja release")
            30.0  # old post, no engagement: ninja (10 + 5) + launching (10 + 5)
        """
        phrases = extract_quoted_phrases(query)

        score = self.phrase_score(record.text, phrases)
        score += self.term_score(record.text, terms)
        score += self.engagement_bonus(record)
        score += self.recency_bonus(record, now)

        return score
