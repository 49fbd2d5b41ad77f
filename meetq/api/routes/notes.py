"""Note lookup endpoint.

- POST /api/note-for-meeting - Find the notes document for a calendar meeting
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, HTTPException

from meetq.api.models import NoteForMeetingRequest
from meetq.observability.logging import get_logger
from meetq.observability.telemetry import counter

if TYPE_CHECKING:
    from meetq.matching.note_matcher import NoteMatcher

router = APIRouter(prefix="/api", tags=["notes"])
logger = get_logger(__name__)

_note_matcher: NoteMatcher | None = None


def set_note_matcher(matcher: NoteMatcher) -> None:
    """Inject the note matcher dependency.

    Side Effects:
        - Sets module-level _note_matcher variable
    """
    global _note_matcher
    _note_matcher = matcher


@router.post("/note-for-meeting")
def note_for_meeting(request: NoteForMeetingRequest) -> dict[str, Any]:
    """
    Look for the meeting's notes: description link, then stored notes, then
    the user's Gemini notes folder.  `found: false` is a normal answer.

    Side Effects:
        - Reads notes and user_settings from meetq.db
        - Calls the Google Drive API
    """
    if _note_matcher is None:
        raise HTTPException(status_code=500, detail="Note matcher not initialized")

    try:
        result = _note_matcher.find_note_for_meeting(
            request.meeting,
            folder_id=request.folder_id,
            user_email=request.user_email,
        )
    except Exception as e:
        logger.error("Note lookup failed: %s", e)
        counter("api.notes.error")
        raise HTTPException(status_code=500, detail="Note lookup failed") from None

    return result.model_dump(mode="json", by_alias=True, exclude_none=True)
