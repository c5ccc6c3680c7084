"""
Query term extraction for relevance scoring.

Extraction pipeline:
1. Lowercase conversion
2. Extract quoted phrases ("going live") verbatim
3. Extract word tokens (ASCII alphanumeric runs)
4. Filter short tokens (<= 2 chars) and stopwords
5. Apply semantic expansion rules (release vocabulary, product names)
6. Concatenate phrases + expansions + words and deduplicate (first seen wins)

Priority order of the output is phrases, then expansions, then words.
All tiers add to the score; order only matters for display and dedup.
"""

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

# Function words and pronouns that carry no topical signal
STOPWORDS = frozenset([
    'the', 'a', 'an', 'and', 'or', 'but', 'in', 'on', 'at', 'to', 'for',
    'of', 'with', 'by', 'is', 'are', 'was', 'were', 'be', 'been',
    'have', 'has', 'had', 'do', 'does', 'did', 'will', 'would', 'could',
    'should', 'may', 'might', 'can', 'about',
    'what', 'when', 'where', 'why', 'how', 'who', 'which',
    'that', 'this', 'these', 'those',
    'i', 'you', 'he', 'she', 'it', 'we', 'they', 'me', 'him', 'her', 'us', 'them',
])

MIN_TOKEN_LENGTH = 3

_QUOTED_PHRASE_RE = re.compile(r'"([^"]+)"')
_WORD_RE = re.compile(r'\w+', re.ASCII)


@dataclass(frozen=True)
class ExpansionRule:
    """Append `terms` whenever any of `triggers` occurs in the query."""
    triggers: Tuple[str, ...]
    terms: Tuple[str, ...]

    def matches(self, query: str) -> bool:
        return any(trigger in query for trigger in self.triggers)


DEFAULT_EXPANSION_RULES: Tuple[ExpansionRule, ...] = (
    # Release / launch date questions
    ExpansionRule(
        triggers=('release', 'launch', 'drop', 'when'),
        terms=(
            'introducing', 'coming', 'going live', 'launch', 'launching',
            'release', 'drop', 'available', 'announcing', 'debut',
        ),
    ),
    # Product names and their full collection titles
    ExpansionRule(triggers=('ninja',), terms=('ninja', 'kurosun ninja')),
    ExpansionRule(triggers=('samurai',), terms=('samurai', 'kurosun samurai')),
    ExpansionRule(triggers=('hana',), terms=('hana',)),
)


def extract_quoted_phrases(text: Optional[str]) -> List[str]:
    """
    Extract lowercase phrases enclosed in double quotes.

    An unmatched quote is left alone and never raises.

    Examples:
        >>> extract_quoted_phrases('When is "Kurosun Ninja" out?')
        ['kurosun ninja']
        >>> extract_quoted_phrases('unbalanced "quote')
        []
    """
    if not text:
        return []
    return _QUOTED_PHRASE_RE.findall(text.lower())


def extract_terms(
    query: Optional[str],
    rules: Iterable[ExpansionRule] = DEFAULT_EXPANSION_RULES,
) -> List[str]:
    """
    Derive the ordered, deduplicated search term list for a query.

    Args:
        query: Free-text user question
        rules: Semantic expansion rules to apply (all independent)

    Returns:
        List of lowercase terms (may be empty)

    Examples:
        >>> extract_terms("ninja release date")
        ['introducing', 'coming', 'going live', 'launch', 'launching', 'release',
         'drop', 'available', 'announcing', 'debut', 'ninja', 'kurosun ninja', 'date']

        >>> extract_terms("the and or")
        []
    """
    if not query or not query.strip():
        return []

    message = query.lower()

    phrases = extract_quoted_phrases(message)

    expanded: List[str] = []
    for rule in rules:
        if rule.matches(message):
            expanded.extend(rule.terms)

    words = [
        w for w in _WORD_RE.findall(message)
        if len(w) >= MIN_TOKEN_LENGTH and w not in STOPWORDS
    ]

    # dict preserves insertion order: first occurrence keeps its priority slot
    return list(dict.fromkeys(phrases + expanded + words))
