"""
Classification corrections.

A correction is stored with the list of dimensions that changed, and the rule
that produced the original classification (if any) has its times_corrected
counter incremented.
"""

from __future__ import annotations

from meetq.infrastructure.feedback_store import FeedbackStore
from meetq.infrastructure.reference_store import ReferenceStore
from meetq.observability.logging import get_logger
from meetq.observability.telemetry import counter, log_event
from meetq.storage.models import ClassificationSnapshot, FeedbackRecord

logger = get_logger(__name__)


def determine_correction_types(
    original: ClassificationSnapshot, corrected: ClassificationSnapshot
) -> list[str]:
    """Changed dimensions, in a fixed order; ["other"] when nothing differs."""
    corrections = []
    if original.type != corrected.type:
        corrections.append("type_change")
    if original.client_id != corrected.client_id:
        corrections.append("client_change")
    if original.project_id != corrected.project_id:
        corrections.append("project_change")
    if original.internal_team != corrected.internal_team:
        corrections.append("team_change")
    return corrections or ["other"]


class FeedbackRecorder:
    def __init__(self, store: ReferenceStore, feedback_store: FeedbackStore):
        self.store = store
        self.feedback_store = feedback_store

    def record(
        self,
        original: ClassificationSnapshot,
        corrected: ClassificationSnapshot,
        note_id: str | None = None,
        user_email: str | None = None,
    ) -> FeedbackRecord:
        """
        Store a correction.

        Side Effects:
            - Writes the correction to the feedback store (errors propagate)
            - Increments times_corrected for the originating rule (errors logged)
        """
        record = FeedbackRecord(
            note_id=note_id,
            user_email=user_email,
            rule_id=original.matched_rule_id,
            original=original,
            corrected=corrected,
            correction_types=determine_correction_types(original, corrected),
        )
        self.feedback_store.save(record)
        counter("feedback.recorded")

        if record.rule_id:
            try:
                self.store.increment_rule_stats(record.rule_id, applied=False, corrected=True)
            except Exception as e:
                logger.warning("Failed to update rule stats for %s: %s", record.rule_id, e)
                counter("feedback.rule_stats_error")

        log_event(
            "feedback.recorded",
            rule_id=record.rule_id,
            correction_types=record.correction_types,
        )
        return record
