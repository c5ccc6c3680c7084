"""
Corpus loading for the post export.

Reads the JSON export (`twitter-UserTweets-<handle>.json`, an array of post
objects) into an immutable CorpusSnapshot and keeps the current snapshot
in a CorpusStore.

Export entry (relevant fields):
    {
        "id": "1790001234567890123",
        "created_at": "2026-10-17 18:00:00+00:00",
        "full_text": "Ninja launching in 24 hours",
        "screen_name": "kurosun",
        "favorite_count": 120,
        "retweet_count": 30,
        "reply_count": 12,
        "url": "https://twitter.com/kurosun/status/1790001234567890123"
    }

Filtering:
- entries without full_text are skipped
- original posts are kept
- retweets ("RT @...") are kept only from configured handles

Refresh is copy-on-write: a new snapshot is fully built, then swapped in.
Readers holding the old snapshot are never affected.
"""

import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from .relevance import CorpusSnapshot, RawStoreIndex, Record
from .utils import calculate_file_hash

logger = logging.getLogger(__name__)

FALLBACK_DATE_FORMATS = (
    "%a %b %d %H:%M:%S %z %Y",  # Wed Oct 10 20:19:24 +0000 2018
    "%Y-%m-%d %H:%M:%S %z",     # 2018-10-10 20:19:24 +00:00
)


class CorpusLoadError(Exception):
    """Raised when the post export cannot be read or parsed"""


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an export timestamp (ISO 8601 or classic Twitter format).

    Naive values are taken as UTC. Returns None when unparseable.

    Examples:
        >>> parse_timestamp("2026-10-17T18:00:00Z")
        datetime.datetime(2026, 10, 17, 18, 0, tzinfo=datetime.timezone.utc)
        >>> parse_timestamp("Wed Oct 10 20:19:24 +0000 2018").year
        2018
    """
    if not isinstance(value, str) or not value.strip():
        return None

    value = value.strip()
    parsed = None

    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        for fmt in FALLBACK_DATE_FORMATS:
            try:
                parsed = datetime.strptime(value, fmt)
                break
            except ValueError:
                continue

    if parsed is None:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _count(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def is_kept_post(text: str, retweet_handles: Iterable[str]) -> bool:
    """Originals are kept; retweets only when they come from a configured handle."""
    if not text.startswith("RT @"):
        return True
    lowered = text.lower()
    return any(lowered.startswith(f"rt @{handle}:") for handle in retweet_handles)


def convert_entry(entry: Dict[str, Any], owner_handle: str) -> Optional[Record]:
    """
    Convert one export entry into a Record.

    Returns None when the entry has no usable id or timestamp.
    """
    post_id = entry.get("id")
    timestamp = parse_timestamp(entry.get("created_at"))

    if post_id is None or timestamp is None:
        logger.warning(f"Skipping export entry with missing id/created_at: id={post_id!r}")
        return None

    post_id = str(post_id)
    url = entry.get("url") or f"https://twitter.com/{owner_handle}/status/{post_id}"

    return Record(
        id=post_id,
        text=entry["full_text"],
        timestamp=timestamp,
        author=entry.get("screen_name") or owner_handle,
        likes=_count(entry.get("favorite_count")),
        reposts=_count(entry.get("retweet_count")),
        replies=_count(entry.get("reply_count")),
        url=url,
    )


def load_records(
    path: Union[str, Path],
    owner_handle: str,
    retweet_handles: Iterable[str] = (),
) -> List[Record]:
    """
    Load and filter posts from the JSON export.

    Args:
        path: Export file path
        owner_handle: Account the export belongs to
        retweet_handles: Lowercase handles whose retweets are kept

    Returns:
        Records sorted newest first (duplicates are not removed here)

    Raises:
        CorpusLoadError: file missing, unreadable or not a JSON array
    """
    handles = [h.strip().lower() for h in retweet_handles if h.strip()]

    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise CorpusLoadError(f"Cannot load post export '{path}': {e}") from e

    if not isinstance(data, list):
        raise CorpusLoadError(f"Post export '{path}' must be a JSON array, got {type(data).__name__}")

    records: List[Record] = []
    for entry in data:
        if not isinstance(entry, dict):
            continue
        text = entry.get("full_text")
        if not text or not isinstance(text, str):
            continue
        if not is_kept_post(text, handles):
            continue

        record = convert_entry(entry, owner_handle)
        if record is not None:
            records.append(record)

    records.sort(key=lambda r: r.utc_timestamp, reverse=True)

    logger.info(f"Loaded {len(records)} posts from {path} ({len(data)} export entries)")
    if records:
        logger.info(
            f"Post range: {records[0].timestamp.date()} to {records[-1].timestamp.date()}"
        )

    return records


def load_snapshot(
    path: Union[str, Path],
    owner_handle: str,
    retweet_handles: Iterable[str] = (),
    build_raw_index: bool = True,
    raw_window: int = 20,
) -> CorpusSnapshot:
    """
    Build a complete CorpusSnapshot from the export file.

    The raw store index is optional; when it cannot be built the snapshot
    still works and queries fall back to scanning the file.

    Raises:
        CorpusLoadError: export cannot be loaded
    """
    path = Path(path)
    records = load_records(path, owner_handle, retweet_handles)

    raw_index = None
    if build_raw_index:
        try:
            raw_index = RawStoreIndex.from_path(path, window=raw_window)
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Raw store index not built for {path}: {e}")

    try:
        source_hash = calculate_file_hash(path)
    except OSError as e:
        logger.warning(f"Could not hash {path}: {e}")
        source_hash = None

    return CorpusSnapshot(
        records=tuple(records),
        owner_handle=owner_handle,
        source_path=path,
        source_hash=source_hash,
        raw_index=raw_index,
    )


class CorpusStore:
    """
    Holder of the current corpus snapshot.

    - First access loads lazily; a failed first load leaves an empty snapshot
    - refresh() builds a new snapshot, then swaps it in under a lock
    - A failed refresh raises and keeps the previous snapshot
    """

    def __init__(
        self,
        export_path: Union[str, Path],
        owner_handle: str,
        retweet_handles: Iterable[str] = (),
        build_raw_index: bool = True,
        raw_window: int = 20,
        snapshot: Optional[CorpusSnapshot] = None,
    ):
        """
        Initialize store.

        Args:
            export_path: JSON export file
            owner_handle: Account the export belongs to
            retweet_handles: Handles whose retweets are kept
            build_raw_index: Build the in-memory raw store index on load
            raw_window: Raw scan neighborhood size (lines)
            snapshot: Preloaded snapshot (skips the lazy first load)
        """
        self.export_path = Path(export_path)
        self.owner_handle = owner_handle
        self.retweet_handles = [h.strip().lower() for h in retweet_handles if h.strip()]
        self.build_raw_index = build_raw_index
        self.raw_window = raw_window
        self._snapshot = snapshot
        self._lock = threading.Lock()

    @property
    def is_loaded(self) -> bool:
        return self._snapshot is not None

    @property
    def snapshot(self) -> CorpusSnapshot:
        """Current snapshot (loads on first access)."""
        snapshot = self._snapshot
        if snapshot is not None:
            return snapshot

        with self._lock:
            if self._snapshot is None:
                try:
                    self._snapshot = self._build()
                except CorpusLoadError as e:
                    logger.error(f"{e}. Make sure the export file exists; serving an empty corpus.")
                    self._snapshot = CorpusSnapshot(records=(), owner_handle=self.owner_handle)
            return self._snapshot

    def _build(self) -> CorpusSnapshot:
        return load_snapshot(
            self.export_path,
            self.owner_handle,
            self.retweet_handles,
            build_raw_index=self.build_raw_index,
            raw_window=self.raw_window,
        )

    def refresh(self) -> CorpusSnapshot:
        """
        Reload the export and swap in the new snapshot.

        Raises:
            CorpusLoadError: reload failed (previous snapshot stays active)
        """
        logger.info(f"Refreshing corpus from {self.export_path}")
        new_snapshot = self._build()

        with self._lock:
            self._snapshot = new_snapshot

        logger.info(f"Corpus refreshed: {len(new_snapshot)} posts")
        return new_snapshot

    def recent(self, count: int = 10) -> List[Record]:
        return list(self.snapshot.records[:max(count, 0)])

    def search(self, keyword: str) -> List[Record]:
        """Posts whose text or author contains keyword (case-insensitive)."""
        needle = keyword.lower()
        return [
            r for r in self.snapshot.records
            if needle in r.text.lower() or needle in r.author.lower()
        ]

    def stats(self) -> Dict[str, Any]:
        """
        Corpus statistics.

        Returns:
            Dict with total_posts, oldest_post, newest_post (ISO strings or
            None) and average_length (rounded characters)
        """
        records = self.snapshot.records
        if not records:
            return {
                "total_posts": 0,
                "oldest_post": None,
                "newest_post": None,
                "average_length": 0,
            }

        timestamps = [r.utc_timestamp for r in records]
        return {
            "total_posts": len(records),
            "oldest_post": min(timestamps).isoformat(),
            "newest_post": max(timestamps).isoformat(),
            "average_length": round(sum(len(r.text) for r in records) / len(records)),
        }
