"""Logging configuration with console and rotating file handlers"""
import glob
import logging
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path

MAX_SESSION_LOGS = 5


def setup_logging(
    log_file: str = "logs/timeline-rag.log",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    keep_sessions: int = MAX_SESSION_LOGS,
):
    """
    Configure logging with two destinations:
    - Console: Brief logs (INFO by default)
    - File: Detailed logs (DEBUG by default) with rotation

    Rotation policy:
    - New log file on each server start (timestamp-based naming)
    - Keep the last `keep_sessions` session log files (older ones removed on startup)
    - Auto-rotate when a file reaches 10MB

    Args:
        log_file: Base path to log file (relative to project root)
        console_level: Console logging level (INFO = brief)
        file_level: File logging level (DEBUG = verbose)
        keep_sessions: Session log files to keep, including this one

    Returns:
        Path of this session's log file
    """
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    # This session adds one more file
    log_pattern = str(log_path.parent / f"{log_path.stem}_*.log")
    existing_logs = sorted(glob.glob(log_pattern), reverse=True)
    for old_log in existing_logs[max(keep_sessions - 1, 0):]:
        try:
            Path(old_log).unlink()
        except OSError:
            pass

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    session_log = log_path.parent / f"{log_path.stem}_{timestamp}.log"

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)  # Capture everything, filter in handlers

    # Remove existing handlers to avoid duplicates on reload
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(logging.Formatter('%(levelname)s: %(message)s'))

    file_handler = RotatingFileHandler(
        session_log,
        mode='a',
        maxBytes=10*1024*1024,  # 10MB
        backupCount=10,
        encoding='utf-8'
    )
    file_handler.setLevel(file_level)
    file_handler.setFormatter(logging.Formatter(
        '%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))

    root_logger.addHandler(console_handler)
    root_logger.addHandler(file_handler)

    # Quiet third-party loggers on the console (still recorded in file)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("google_genai").setLevel(logging.WARNING)

    logging.info(f"Logging configured: console={logging.getLevelName(console_level)}, file={session_log} ({logging.getLevelName(file_level)})")

    return session_log
