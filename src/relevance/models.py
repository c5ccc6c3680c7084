"""
Data model shared by the relevance engine and the corpus loader.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Tuple

if TYPE_CHECKING:
    from .raw_scan import RawStoreIndex


@dataclass(frozen=True)
class Record:
    """A single post from the export. Immutable once loaded."""
    id: str
    text: str
    timestamp: datetime
    author: str
    likes: int = 0
    reposts: int = 0
    replies: int = 0
    url: Optional[str] = None

    @property
    def engagement(self) -> int:
        return self.likes + self.reposts + self.replies

    @property
    def utc_timestamp(self) -> datetime:
        """Timestamp as an aware datetime; naive values are taken as UTC."""
        if self.timestamp.tzinfo is None:
            return self.timestamp.replace(tzinfo=timezone.utc)
        return self.timestamp


@dataclass(frozen=True)
class CorpusSnapshot:
    """
    Immutable view of the loaded corpus.

    Records are ordered newest first. A refresh never edits a snapshot;
    it builds a new one and swaps the reference held by the CorpusStore.
    """
    records: Tuple[Record, ...]
    owner_handle: str
    source_path: Optional[Path] = None
    source_hash: Optional[str] = None
    loaded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    raw_index: Optional["RawStoreIndex"] = None

    def __len__(self) -> int:
        return len(self.records)

    @property
    def is_empty(self) -> bool:
        return not self.records


@dataclass
class ScoredRecord:
    """Record paired with its relevance score for one query"""
    record: Record
    score: float
    position: int  # Index in the corpus, breaks score ties
