"""
Filed notes and per-user settings used by the note matcher.

Fetch failures are data-access failures and propagate to the caller.
"""

from __future__ import annotations

import json
import sqlite3
from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path

from meetq.infrastructure.database import db_transaction, get_db_connection, sql_timestamp
from meetq.observability.logging import get_logger
from meetq.storage.models import NoteMeeting, StoredNote
from meetq.utils.email import extract_email_address

logger = get_logger(__name__)


class StoredNoteSource(ABC):
    @abstractmethod
    def recent_notes(self, since: datetime, limit: int) -> list[StoredNote]:
        """Notes created at or after `since`, newest first, at most `limit`."""


class UserSettingsSource(ABC):
    @abstractmethod
    def get_notes_folder_id(self, email: str) -> str | None:
        """The user's default notes folder, or None when unset."""


def _utc(value: datetime) -> datetime:
    # Naive values are UTC, as SQLite stores them
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _note_from_row(row: sqlite3.Row) -> StoredNote:
    return StoredNote(
        id=row["id"],
        drive_file_id=row["drive_file_id"],
        drive_file_url=row["drive_file_url"],
        drive_file_name=row["drive_file_name"],
        meeting=NoteMeeting(
            title=row["meeting_title"],
            organizer=row["meeting_organizer"],
            attendees=json.loads(row["meeting_attendees"] or "[]"),
            start_time=row["meeting_start_time"],
        ),
        classification=json.loads(row["classification"]) if row["classification"] else None,
        status=row["status"],
        created_at=row["created_at"],
    )


class SqliteNoteSource(StoredNoteSource, UserSettingsSource):
    """Notes and user settings in the central SQLite database."""

    def __init__(self, db_path: Path | str | None = None):
        self.db_path = db_path

    def recent_notes(self, since: datetime, limit: int) -> list[StoredNote]:
        with get_db_connection(self.db_path) as conn:
            rows = conn.execute(
                """
                SELECT * FROM notes
                WHERE created_at >= ?
                ORDER BY created_at DESC
                LIMIT ?
                """,
                (sql_timestamp(since), limit),
            ).fetchall()
        return [_note_from_row(row) for row in rows]

    def get_notes_folder_id(self, email: str) -> str | None:
        with get_db_connection(self.db_path) as conn:
            row = conn.execute(
                "SELECT gemini_notes_folder_id FROM user_settings WHERE email = ?",
                (extract_email_address(email),),
            ).fetchone()
        return row["gemini_notes_folder_id"] if row else None

    # Writes below load fixtures and local data; the API only reads notes

    def save_note(self, note: StoredNote) -> None:
        """
        Side Effects:
            - Inserts or replaces a row in the notes table
        """
        created_at = sql_timestamp(note.created_at) if note.created_at else None
        start_time = note.meeting.start_time.isoformat() if note.meeting.start_time else None
        with db_transaction(self.db_path) as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO notes (
                    id, drive_file_id, drive_file_url, drive_file_name,
                    meeting_title, meeting_organizer, meeting_attendees,
                    meeting_start_time, classification, status, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, COALESCE(?, CURRENT_TIMESTAMP))
                """,
                (
                    note.id,
                    note.drive_file_id,
                    note.drive_file_url,
                    note.drive_file_name,
                    note.meeting.title,
                    note.meeting.organizer,
                    json.dumps(note.meeting.attendees),
                    start_time,
                    json.dumps(note.classification) if note.classification else None,
                    note.status,
                    created_at,
                ),
            )

    def set_notes_folder_id(self, email: str, folder_id: str | None) -> None:
        with db_transaction(self.db_path) as conn:
            conn.execute(
                """
                INSERT INTO user_settings (email, gemini_notes_folder_id)
                VALUES (?, ?)
                ON CONFLICT(email) DO UPDATE SET
                    gemini_notes_folder_id = excluded.gemini_notes_folder_id,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (extract_email_address(email), folder_id),
            )


class InMemoryNoteSource(StoredNoteSource, UserSettingsSource):
    def __init__(
        self,
        notes: Iterable[StoredNote] = (),
        folder_settings: dict[str, str] | None = None,
    ):
        self.notes = list(notes)
        self.folder_settings = {
            extract_email_address(k): v for k, v in (folder_settings or {}).items()
        }

    def recent_notes(self, since: datetime, limit: int) -> list[StoredNote]:
        since = _utc(since)
        recent = [n for n in self.notes if n.created_at is None or _utc(n.created_at) >= since]
        recent.sort(key=lambda n: _utc(n.created_at) if n.created_at else since, reverse=True)
        return recent[:limit]

    def get_notes_folder_id(self, email: str) -> str | None:
        return self.folder_settings.get(extract_email_address(email))
