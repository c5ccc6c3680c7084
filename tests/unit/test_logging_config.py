"""Unit tests for logging configuration"""

import logging

import pytest

from src.logging_config import setup_logging

pytestmark = pytest.mark.unit


@pytest.fixture
def restore_root_logger(monkeypatch):
    """setup_logging replaces root handlers; give it a scratch list"""
    root = logging.getLogger()
    monkeypatch.setattr(root, "handlers", [])
    monkeypatch.setattr(root, "level", root.level)
    yield
    for handler in root.handlers:
        handler.close()


class TestSetupLogging:
    """Test session log files and retention"""

    def test_session_log_created(self, tmp_path, restore_root_logger):
        session_log = setup_logging(log_file=str(tmp_path / "logs" / "app.log"))

        assert session_log.parent == tmp_path / "logs"
        assert session_log.name.startswith("app_")
        assert session_log.exists()

    def test_old_sessions_pruned(self, tmp_path, restore_root_logger):
        for day in range(1, 7):
            (tmp_path / f"app_202501{day:02d}_120000.log").write_text("old", encoding="utf-8")

        session_log = setup_logging(log_file=str(tmp_path / "app.log"), keep_sessions=3)

        remaining = sorted(p.name for p in tmp_path.glob("app_*.log"))
        assert len(remaining) == 3
        assert "app_20250106_120000.log" in remaining
        assert "app_20250105_120000.log" in remaining
        assert session_log.name in remaining

    def test_handlers_use_levels(self, tmp_path, restore_root_logger):
        setup_logging(log_file=str(tmp_path / "app.log"), console_level=logging.WARNING, file_level=logging.INFO)

        levels = sorted(h.level for h in logging.getLogger().handlers)
        assert levels == [logging.INFO, logging.WARNING]
