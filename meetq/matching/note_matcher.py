"""
Note Matcher - link a calendar meeting to its notes document.

Search order (first hit wins):
    1. Direct Google Docs link in the meeting description (score 1.0)
    2. Notes already filed in storage over the look-back window
    3. Docs in the user's notes folder on Drive

Scored searches never return a guess: a candidate must clear the floor to be
ranked and the best one must reach the search's acceptance threshold.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import datetime, timedelta, timezone

from meetq.config import DRIVE_FOLDER_PAGE_SIZE, NOTE_CANDIDATE_LIMIT, NOTE_LOOKBACK_DAYS
from meetq.infrastructure.drive import GOOGLE_DOC_MIME, DriveClient
from meetq.infrastructure.note_sources import StoredNoteSource, UserSettingsSource
from meetq.matching.similarity import (
    attendee_overlap,
    dates_within_window,
    extract_drive_file_id,
    find_drive_links,
    string_similarity,
)
from meetq.observability.confidence import (
    ATTENDEE_REASON_MIN,
    CALENDAR_LINK_SCORE,
    CANDIDATE_FLOOR,
    FOLDER_ACCEPT_THRESHOLD,
    FOLDER_NAMING_BONUS,
    FOLDER_TIME_FULL_MINUTES,
    FOLDER_TIME_HALF_MINUTES,
    FOLDER_TIME_WEIGHT,
    FOLDER_TITLE_REASON_MIN,
    FOLDER_TITLE_WEIGHT,
    STORED_ACCEPT_THRESHOLD,
    STORED_ATTENDEE_WEIGHT,
    STORED_ORGANIZER_BONUS,
    STORED_TIME_FULL_MINUTES,
    STORED_TIME_HALF_MINUTES,
    STORED_TIME_WEIGHT,
    STORED_TITLE_REASON_MIN,
    STORED_TITLE_WEIGHT,
)
from meetq.observability.logging import get_logger
from meetq.observability.telemetry import counter, log_event
from meetq.storage.models import (
    DriveFile,
    MatchCandidate,
    MatchSource,
    Meeting,
    NoteMatchResult,
    StoredNote,
)

logger = get_logger(__name__)

# Auto-generated notes docs are named like "<title> - 2024/05/01 10:00 - Notes by Gemini"
_NAMING_PATTERNS = ("meeting notes", "notes -")


def _window_label(minutes: int) -> str:
    if minutes % 60 == 0:
        hours = minutes // 60
        return f"{hours} hour" if hours == 1 else f"{hours} hours"
    return f"{minutes} min"


def score_stored_note(meeting: Meeting, note: StoredNote) -> MatchCandidate:
    """
    Score a filed note against the meeting.

    Title similarity takes the best of the note's meeting title and its Drive
    file name.
    """
    score = 0.0
    reasons: list[str] = []

    title_score = max(
        (string_similarity(meeting.title, t) for t in (note.meeting.title, note.drive_file_name)),
        default=0.0,
    )
    score += title_score * STORED_TITLE_WEIGHT
    if title_score > STORED_TITLE_REASON_MIN:
        reasons.append(f"Title match: {round(title_score * 100)}%")

    if dates_within_window(note.meeting.start_time, meeting.start_time, STORED_TIME_FULL_MINUTES):
        score += STORED_TIME_WEIGHT
        reasons.append(f"Time match: within {_window_label(STORED_TIME_FULL_MINUTES)}")
    elif dates_within_window(note.meeting.start_time, meeting.start_time, STORED_TIME_HALF_MINUTES):
        score += STORED_TIME_WEIGHT / 2
        reasons.append(f"Time match: within {_window_label(STORED_TIME_HALF_MINUTES)}")

    overlap = attendee_overlap(meeting.attendee_emails, note.meeting.attendees)
    score += overlap * STORED_ATTENDEE_WEIGHT
    if overlap > ATTENDEE_REASON_MIN:
        reasons.append(f"Attendee overlap: {round(overlap * 100)}%")

    if meeting.organizer and note.meeting.organizer:
        if meeting.organizer.lower() == note.meeting.organizer.lower():
            score += STORED_ORGANIZER_BONUS
            reasons.append("Organizer match")

    return MatchCandidate(
        file_id=note.drive_file_id,
        file_name=note.drive_file_name or note.meeting.title,
        file_url=note.drive_file_url,
        score=score,
        reasons=reasons,
        source=MatchSource.STORED,
        note=note,
    )


def score_drive_file(meeting: Meeting, drive_file: DriveFile) -> MatchCandidate:
    """Score a Drive doc by name similarity, modification time and naming convention."""
    score = 0.0
    reasons: list[str] = []

    title_score = string_similarity(meeting.title, drive_file.name)
    score += title_score * FOLDER_TITLE_WEIGHT
    if title_score > FOLDER_TITLE_REASON_MIN:
        reasons.append(f"Title match: {round(title_score * 100)}%")

    if dates_within_window(meeting.start_time, drive_file.modified_time, FOLDER_TIME_FULL_MINUTES):
        score += FOLDER_TIME_WEIGHT
        reasons.append(f"Time proximity: within {_window_label(FOLDER_TIME_FULL_MINUTES)}")
    elif dates_within_window(
        meeting.start_time, drive_file.modified_time, FOLDER_TIME_HALF_MINUTES
    ):
        score += FOLDER_TIME_WEIGHT / 2
        reasons.append(f"Time proximity: within {_window_label(FOLDER_TIME_HALF_MINUTES)}")

    lower_name = drive_file.name.lower()
    if any(pattern in lower_name for pattern in _NAMING_PATTERNS):
        score += FOLDER_NAMING_BONUS
        reasons.append("Gemini naming pattern")

    return MatchCandidate(
        file_id=drive_file.id,
        file_name=drive_file.name,
        file_url=drive_file.web_view_link,
        modified_time=drive_file.modified_time,
        score=score,
        reasons=reasons,
        source=MatchSource.DRIVE_FOLDER,
    )


def select_best(
    candidates: Iterable[MatchCandidate], accept_threshold: float
) -> MatchCandidate | None:
    """
    Highest-scoring candidate above the floor, if it reaches accept_threshold.

    sorted() is stable, so equal scores keep the source's order.
    """
    ranked = sorted(
        (c for c in candidates if c.score > CANDIDATE_FLOOR),
        key=lambda c: c.score,
        reverse=True,
    )
    if ranked and ranked[0].score >= accept_threshold:
        return ranked[0]
    return None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NoteMatcher:
    """
    Find the notes document for a meeting.

    Example:
        >>> matcher = NoteMatcher(SqliteNoteSource(), drive=GoogleDriveClient())
        >>> result = matcher.find_note_for_meeting(meeting, user_email="alice@egen.com")
        >>> result.found, result.source
    """

    def __init__(
        self,
        note_source: StoredNoteSource,
        settings_source: UserSettingsSource | None = None,
        drive: DriveClient | None = None,
        lookback_days: int = NOTE_LOOKBACK_DAYS,
        candidate_limit: int = NOTE_CANDIDATE_LIMIT,
        now: Callable[[], datetime] = _utcnow,
    ):
        self.note_source = note_source
        self.settings_source = settings_source
        self.drive = drive
        self.lookback_days = lookback_days
        self.candidate_limit = candidate_limit
        self._now = now

    def find_calendar_link(self, meeting: Meeting) -> MatchCandidate | None:
        """
        First accessible Google Doc linked from the description.

        Links that cannot be resolved (bad id, no access, not a Google Doc) are
        skipped.
        """
        if self.drive is None:
            return None

        for url in find_drive_links(meeting.description):
            file_id = extract_drive_file_id(url)
            if not file_id:
                continue
            try:
                drive_file = self.drive.get_file(file_id)
            except Exception as e:
                logger.info("Could not access Drive file %s: %s", file_id, e)
                continue

            if drive_file.mime_type != GOOGLE_DOC_MIME:
                continue

            return MatchCandidate(
                file_id=drive_file.id,
                file_name=drive_file.name,
                file_url=drive_file.web_view_link,
                modified_time=drive_file.modified_time,
                score=CALENDAR_LINK_SCORE,
                reasons=["Direct link in calendar event description"],
                source=MatchSource.CALENDAR_LINK,
            )
        return None

    def search_stored_notes(self, meeting: Meeting) -> MatchCandidate | None:
        """
        Side Effects:
            - Reads recent notes from the note source (errors propagate)
        """
        since = self._now() - timedelta(days=self.lookback_days)
        notes = self.note_source.recent_notes(since, self.candidate_limit)
        candidates = [score_stored_note(meeting, note) for note in notes]
        return select_best(candidates, STORED_ACCEPT_THRESHOLD)

    def search_drive_folder(self, meeting: Meeting, folder_id: str) -> MatchCandidate | None:
        if self.drive is None:
            return None
        try:
            files = self.drive.list_folder_docs(folder_id, page_size=DRIVE_FOLDER_PAGE_SIZE)
        except Exception as e:
            logger.error("Error searching notes folder %s: %s", folder_id, e)
            counter("notes.drive_search_error")
            return None

        candidates = [score_drive_file(meeting, f) for f in files]
        return select_best(candidates, FOLDER_ACCEPT_THRESHOLD)

    def _resolve_folder(self, folder_id: str | None, user_email: str | None) -> str | None:
        if folder_id:
            return folder_id
        if user_email and self.settings_source is not None:
            return self.settings_source.get_notes_folder_id(user_email)
        return None

    def find_note_for_meeting(
        self,
        meeting: Meeting,
        folder_id: str | None = None,
        user_email: str | None = None,
    ) -> NoteMatchResult:
        """
        Run the three searches in order and report the first match.

        Args:
            meeting: Calendar meeting to match
            folder_id: Drive folder to search when storage has no match
            user_email: Used to look up a default folder when folder_id is absent

        Returns:
            NoteMatchResult (found=False is a normal outcome)
        """
        candidate = None
        if meeting.description:
            try:
                candidate = self.find_calendar_link(meeting)
            except Exception as e:
                logger.warning("Error checking calendar description for Drive links: %s", e)

        if candidate is None:
            candidate = self.search_stored_notes(meeting)

        if candidate is None:
            effective_folder = self._resolve_folder(folder_id, user_email)
            if effective_folder:
                candidate = self.search_drive_folder(meeting, effective_folder)

        if candidate is None:
            counter("notes.match_not_found")
            logger.info("No matching note found")
            return NoteMatchResult.not_found()

        counter("notes.match_found")
        counter(f"notes.match_source.{candidate.source.value}")
        log_event(
            "notes.match_found",
            source=candidate.source.value,
            score=round(candidate.score, 3),
        )
        return NoteMatchResult.from_candidate(candidate)
