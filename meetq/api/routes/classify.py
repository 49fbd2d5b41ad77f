"""Meeting classification endpoint.

- POST /api/classify - Classify a meeting and suggest folder, sharing and tags
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, HTTPException

from meetq.api.models import ClassifyRequest
from meetq.infrastructure.reference_store import ReferenceDataError
from meetq.observability.logging import get_logger
from meetq.observability.telemetry import counter, log_event

if TYPE_CHECKING:
    from meetq.classification.classifier import MeetingClassifier

router = APIRouter(prefix="/api", tags=["classification"])
logger = get_logger(__name__)

# Module-level storage for dependencies injected at startup
_classifier: MeetingClassifier | None = None


def set_classifier(classifier: MeetingClassifier) -> None:
    """Inject the classifier dependency.

    Side Effects:
        - Sets module-level _classifier variable
    """
    global _classifier
    _classifier = classifier


@router.post("/classify")
def classify_meeting(request: ClassifyRequest) -> dict[str, Any]:
    """
    Classify one meeting.

    Runs in FastAPI's threadpool: the Gemini call and the SQLite reads block.

    Side Effects:
        - Reads clients, projects and rules from meetq.db
        - Calls Gemini (unless MEETQ_USE_LLM is off)
        - Increments rule statistics in meetq.db
    """
    if _classifier is None:
        raise HTTPException(status_code=500, detail="Classifier not initialized")

    try:
        response = _classifier.classify(request.meeting)
    except ReferenceDataError as e:
        logger.error("Classification aborted, reference data unavailable: %s", e)
        counter("api.classify.reference_error")
        raise HTTPException(
            status_code=500, detail="Classification is temporarily unavailable"
        ) from None

    log_event(
        "api.classify.success",
        method=response.classification_method.value,
        auto_apply=response.auto_apply,
        has_note_file=request.note_file_id is not None,
    )
    payload = response.model_dump(mode="json", exclude={"match_info"})
    return payload
