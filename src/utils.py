"""Utility functions for Timeline RAG"""

import hashlib
import re
from pathlib import Path
from typing import List, Union


def calculate_file_hash(file_path_or_content: Union[str, Path, bytes]) -> str:
    """
    Calculate SHA256 hash of a file

    Used to fingerprint the raw export behind a corpus snapshot.

    Args:
        file_path_or_content: File path (str/Path) or file content (bytes)

    Returns:
        Hexadecimal hash string (64 characters)

    Examples:
        >>> calculate_file_hash("twitter-UserTweets-kurosun.json")
        'a1b2c3d4...'

        >>> calculate_file_hash(b"raw export bytes")
        'e5f6g7h8...'
    """
    if isinstance(file_path_or_content, bytes):
        content = file_path_or_content
    else:
        path = Path(file_path_or_content)
        with open(path, "rb") as f:
            content = f.read()

    return hashlib.sha256(content).hexdigest()


def escape_term(term: str) -> str:
    """
    Escape a search term for use inside a regex pattern.

    Every dynamic match pattern (occurrence counting, whole-word matching)
    is built through this function so both paths agree on what a term means.

    Examples:
        >>> escape_term("c++")
        'c\\\\+\\\\+'
        >>> escape_term("going live")
        'going\\\\ live'
    """
    return re.escape(term)


def count_occurrences(term: str, text: str) -> int:
    """
    Count non-overlapping, case-insensitive occurrences of term in text.

    Examples:
        >>> count_occurrences("drop", "Drop soon. The drop is big")
        2
        >>> count_occurrences("", "anything")
        0
    """
    if not term:
        return 0
    return len(re.findall(escape_term(term), text, re.IGNORECASE))


def has_whole_word(term: str, text: str) -> bool:
    """
    Check whether term appears in text on ASCII word boundaries.

    Examples:
        >>> has_whole_word("launch", "launching tomorrow")
        False
        >>> has_whole_word("launch", "the launch is tomorrow")
        True
    """
    if not term:
        return False
    pattern = rf"\b{escape_term(term)}\b"
    return re.search(pattern, text, re.IGNORECASE | re.ASCII) is not None


def split_message(message: str, max_length: int = 2000) -> List[str]:
    """
    Split a long answer into chat-sized chunks on sentence boundaries.

    A single sentence longer than max_length is hard-cut at max_length.

    Args:
        message: Text to split
        max_length: Maximum characters per chunk (Discord limit: 2000)

    Returns:
        List of chunks, each at most max_length characters
    """
    if len(message) <= max_length:
        return [message]

    chunks: List[str] = []
    current = ""

    for sentence in re.split(r"(?<=[.!?])\s+", message):
        if len(current) + len(sentence) + 1 <= max_length:
            current = f"{current} {sentence}" if current else sentence
            continue

        if current:
            chunks.append(current)

        # Oversized sentence: cut it into max_length pieces
        while len(sentence) > max_length:
            chunks.append(sentence[:max_length])
            sentence = sentence[max_length:]
        current = sentence

    if current:
        chunks.append(current)

    return chunks
