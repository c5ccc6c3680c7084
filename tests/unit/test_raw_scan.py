"""
Unit tests for the raw store scan and its in-memory index.
"""

import pytest

from src.relevance.raw_scan import (
    RawStoreIndex,
    match_lines,
    scan_raw_store,
    scan_raw_store_async,
)

pytestmark = pytest.mark.unit


def _raw_lines(n_lines, ids_at, text_at):
    """
    Build raw store lines: post IDs on some lines, texts on others,
    filler everywhere else.
    """
    lines = []
    for i in range(n_lines):
        if i in ids_at:
            lines.append(f'    "id": "{ids_at[i]}",')
        elif i in text_at:
            lines.append(f'    "full_text": "{text_at[i]}",')
        else:
            lines.append('    "favorite_count": 0,')
    return lines


@pytest.fixture
def raw_file(tmp_path):
    def _write(lines, name="raw.json"):
        path = tmp_path / name
        path.write_text("\n".join(lines), encoding="utf-8")
        return path
    return _write


class TestScanRawStore:
    """Window semantics over a raw file"""

    def test_id_within_window_found(self, raw_file):
        lines = _raw_lines(60, ids_at={25: "A"}, text_at={30: "Ninja launching soon"})
        assert scan_raw_store(["launching"], raw_file(lines)) == {"A"}

    def test_case_insensitive(self, raw_file):
        lines = _raw_lines(10, ids_at={0: "A"}, text_at={1: "GOING LIVE"})
        assert scan_raw_store(["going live"], raw_file(lines)) == {"A"}

    def test_id_outside_window_ignored(self, raw_file):
        lines = _raw_lines(100, ids_at={5: "FAR"}, text_at={60: "ninja"})
        assert scan_raw_store(["ninja"], raw_file(lines)) == set()

    def test_window_bounds(self, raw_file):
        """Match on line i covers [i - window, i + window)"""
        lines = _raw_lines(
            100,
            ids_at={29: "BEFORE", 30: "FIRST", 69: "LAST", 70: "AFTER"},
            text_at={50: "ninja"},
        )
        assert scan_raw_store(["ninja"], raw_file(lines)) == {"FIRST", "LAST"}

    def test_all_ids_in_window_credited(self, raw_file):
        lines = _raw_lines(30, ids_at={8: "A", 12: "B", 16: "C"}, text_at={10: "ninja"})
        assert scan_raw_store(["ninja"], raw_file(lines)) == {"A", "B", "C"}

    def test_custom_window(self, raw_file):
        lines = _raw_lines(30, ids_at={8: "A", 12: "B"}, text_at={10: "ninja"})
        assert scan_raw_store(["ninja"], raw_file(lines), window=1) == set()
        assert scan_raw_store(["ninja"], raw_file(lines), window=3) == {"A", "B"}

    def test_match_outside_full_text_counts(self, raw_file):
        """Any line can match, not just post text"""
        lines = ['  {', '    "id": "A",', '    "screen_name": "kurosunart",', '  }']
        assert scan_raw_store(["kurosunart"], raw_file(lines)) == {"A"}

    def test_first_id_per_line(self, raw_file):
        lines = ['{"id": "A", "full_text": "ninja", "id": "B"}']
        assert scan_raw_store(["ninja"], raw_file(lines)) == {"A"}

    def test_empty_terms(self, raw_file):
        lines = _raw_lines(10, ids_at={0: "A"}, text_at={1: "ninja"})
        assert scan_raw_store([], raw_file(lines)) == set()

    def test_missing_file_returns_empty(self, tmp_path):
        assert scan_raw_store(["ninja"], tmp_path / "missing.json") == set()

    def test_directory_returns_empty(self, tmp_path):
        assert scan_raw_store(["ninja"], tmp_path) == set()

    def test_undecodable_file_returns_empty(self, tmp_path):
        path = tmp_path / "binary.json"
        path.write_bytes(b"\xff\xfe\xfa ninja \x80")
        assert scan_raw_store(["ninja"], path) == set()

    def test_no_path(self):
        assert scan_raw_store(["ninja"], None) == set()

    def test_real_export_layout(self, export_file, export_entry):
        entries = [
            export_entry("1", "Sunday sketch", "2026-10-01T10:00:00Z"),
            export_entry("2", "Ninja launching in 24 hours", "2026-10-17T10:00:00Z"),
        ]
        found = scan_raw_store(["launching"], export_file(entries), window=3)
        assert found == {"2"}

    @pytest.mark.asyncio
    async def test_async_scan(self, raw_file):
        lines = _raw_lines(10, ids_at={0: "A"}, text_at={1: "ninja"})
        assert await scan_raw_store_async(["ninja"], raw_file(lines)) == {"A"}


class TestRawStoreIndex:
    """Index must agree with the file scan"""

    def test_matches_file_scan(self, raw_file):
        lines = _raw_lines(
            120,
            ids_at={5: "A", 30: "B", 55: "C", 90: "D"},
            text_at={20: "ninja drop", 70: "samurai", 100: "coffee"},
        )
        path = raw_file(lines)
        index = RawStoreIndex.from_path(path)

        for terms in (["ninja"], ["samurai"], ["drop", "coffee"], ["nothing"], []):
            assert index.match(terms) == scan_raw_store(terms, path)

    def test_len_counts_lines(self):
        assert len(RawStoreIndex(["a", "b", "c"])) == 3

    def test_from_missing_path_raises(self, tmp_path):
        with pytest.raises(OSError):
            RawStoreIndex.from_path(tmp_path / "missing.json")

    def test_custom_window(self):
        index = RawStoreIndex(_raw_lines(10, ids_at={0: "A"}, text_at={5: "ninja"}), window=2)
        assert index.match(["ninja"]) == set()


class TestMatchLines:
    def test_blank_terms_ignored(self):
        assert match_lines(["", ""], ["ninja"], ["A"]) == set()
