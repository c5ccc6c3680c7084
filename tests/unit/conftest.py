"""Unit test configuration - in-memory posts and temporary export files"""

import json
import os
from datetime import datetime, timedelta, timezone

import pytest

# main.py reads these at module level (on import)
os.environ.setdefault("MAIN_TWITTER_HANDLE", "kurosun")
os.environ.setdefault("RETWEET_HANDLES", "kurosunart")

from src.relevance import CorpusSnapshot, Record

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    """Fixed reference time for recency scoring"""
    return NOW


@pytest.fixture
def make_record():
    """
    Factory for posts.

    `days_ago` sets the timestamp relative to NOW; everything else is
    passed through to Record.
    """
    def _make(record_id, text="", days_ago=100.0, **kwargs):
        kwargs.setdefault("author", "kurosun")
        kwargs.setdefault("url", f"https://twitter.com/kurosun/status/{record_id}")
        return Record(
            id=str(record_id),
            text=text,
            timestamp=NOW - timedelta(days=days_ago),
            **kwargs,
        )
    return _make


@pytest.fixture
def make_snapshot():
    """Build a snapshot from records, sorted newest first like the loader does"""
    def _make(records, owner_handle="kurosun", **kwargs):
        ordered = sorted(records, key=lambda r: r.timestamp, reverse=True)
        return CorpusSnapshot(records=tuple(ordered), owner_handle=owner_handle, **kwargs)
    return _make


def _export_entry(post_id, text, created_at, **kwargs):
    entry = {
        "id": str(post_id),
        "created_at": created_at,
        "full_text": text,
        "screen_name": "kurosun",
        "name": "Kurosun",
        "favorite_count": 0,
        "retweet_count": 0,
        "reply_count": 0,
        "url": f"https://twitter.com/kurosun/status/{post_id}",
    }
    entry.update(kwargs)
    return entry


@pytest.fixture
def export_entry():
    """Builder for one entry of the JSON export, in its on-disk shape"""
    return _export_entry


@pytest.fixture
def export_file(tmp_path):
    """
    Write a pretty-printed JSON export and return its path.

    Pretty printing puts every field on its own line, like real exports,
    so the raw scan window has something to walk over.
    """
    def _write(entries, name="twitter-UserTweets-kurosun.json"):
        path = tmp_path / name
        path.write_text(json.dumps(entries, indent=2), encoding="utf-8")
        return path
    return _write
