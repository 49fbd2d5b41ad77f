"""
Similarity primitives for note matching.

Pure functions: title similarity, time-window checks, attendee overlap and
Google Drive link parsing.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from datetime import datetime, timezone

from meetq.utils.email import extract_email_address

DRIVE_URL_PATTERN = re.compile(r"https?://(?:docs|drive)\.google\.com/[^\s\"<>]+", re.IGNORECASE)

# Tried in order; the first pattern that matches supplies the file id
_FILE_ID_PATTERNS = [
    re.compile(r"/document/d/([a-zA-Z0-9_-]+)"),
    re.compile(r"/file/d/([a-zA-Z0-9_-]+)"),
    re.compile(r"/spreadsheets/d/([a-zA-Z0-9_-]+)"),
    re.compile(r"/presentation/d/([a-zA-Z0-9_-]+)"),
    re.compile(r"[?&]id=([a-zA-Z0-9_-]+)"),
]


def string_similarity(first: str | None, second: str | None) -> float:
    """
    Title similarity in [0, 1].

    Exact (case-insensitive, trimmed) match scores 1.0, containment in either
    direction 0.8, otherwise the Jaccard overlap of whitespace-separated words.

    Examples:
        >>> string_similarity("Weekly Sync", "weekly sync ")
        1.0
        >>> string_similarity("Weekly Sync", "Weekly Sync - Acme")
        0.8
    """
    if not first or not second:
        return 0.0

    s1 = first.lower().strip()
    s2 = second.lower().strip()

    if not s1 or not s2:
        return 0.0
    if s1 == s2:
        return 1.0
    if s1 in s2 or s2 in s1:
        return 0.8

    words1 = set(s1.split())
    words2 = set(s2.split())
    union = words1 | words2
    if not union:
        return 0.0
    return len(words1 & words2) / len(union)


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps (SQLite, tests) are taken as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def dates_within_window(
    first: datetime | None, second: datetime | None, window_minutes: float
) -> bool:
    """True when both times exist and differ by at most window_minutes."""
    if first is None or second is None:
        return False
    diff = abs((_as_utc(first) - _as_utc(second)).total_seconds()) / 60
    return diff <= window_minutes


def attendee_overlap(first: Iterable[str], second: Iterable[str]) -> float:
    """Jaccard overlap of two attendee email sets; 0 when either is empty."""
    emails1 = {extract_email_address(e) for e in first if e}
    emails2 = {extract_email_address(e) for e in second if e}
    if not emails1 or not emails2:
        return 0.0
    return len(emails1 & emails2) / len(emails1 | emails2)


def extract_drive_file_id(url: str | None) -> str | None:
    """
    File id from a Docs/Drive URL.

    Examples:
        >>> extract_drive_file_id("https://docs.google.com/document/d/abc_123/edit")
        'abc_123'
        >>> extract_drive_file_id("https://drive.google.com/open?id=xyz")
        'xyz'
    """
    if not url:
        return None
    for pattern in _FILE_ID_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)
    return None


def find_drive_links(text: str | None) -> list[str]:
    """Docs/Drive URLs in the order they appear."""
    if not text:
        return []
    return DRIVE_URL_PATTERN.findall(text)
