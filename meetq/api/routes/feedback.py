"""Classification feedback endpoint.

- POST /api/feedback - Record a user correction of a classification
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, HTTPException

from meetq.api.models import FeedbackRequest, FeedbackResponse
from meetq.observability.logging import get_logger

if TYPE_CHECKING:
    from meetq.classification.feedback import FeedbackRecorder

router = APIRouter(prefix="/api", tags=["feedback"])
logger = get_logger(__name__)

_feedback_recorder: FeedbackRecorder | None = None


def set_feedback_recorder(recorder: FeedbackRecorder) -> None:
    """Inject the feedback recorder dependency.

    Side Effects:
        - Sets module-level _feedback_recorder variable
    """
    global _feedback_recorder
    _feedback_recorder = recorder


@router.post("/feedback", response_model=FeedbackResponse)
def record_feedback(request: FeedbackRequest) -> FeedbackResponse:
    """
    Side Effects:
        - Inserts into the feedback table in meetq.db
        - Increments times_corrected for the originating rule
    """
    if _feedback_recorder is None:
        raise HTTPException(status_code=500, detail="Feedback recorder not initialized")

    try:
        record = _feedback_recorder.record(
            request.original_classification,
            request.corrected_classification,
            note_id=request.note_id,
            user_email=request.user_email,
        )
    except Exception as e:
        logger.error("Failed to record feedback: %s", e)
        raise HTTPException(status_code=500, detail="Failed to record feedback") from None

    return FeedbackResponse(correction_types=record.correction_types, rule_id=record.rule_id)
