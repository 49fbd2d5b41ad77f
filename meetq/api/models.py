"""Pydantic request/response models for the MeetQ API.

Meeting and rule payloads reuse the domain models, so a missing title, an
attendee without a domain or a rule condition with an unsupported operator is
rejected as a 422 before any classification logic runs.
"""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from meetq.config import API_MAX_ATTENDEES, API_MAX_TEST_MEETINGS
from meetq.storage.models import ClassificationRule, ClassificationSnapshot, Meeting

# =============================================================================
# REQUESTS
# =============================================================================


def _check_attendee_count(meeting: Meeting) -> Meeting:
    if len(meeting.attendees) > API_MAX_ATTENDEES:
        raise ValueError(f"Too many attendees (max {API_MAX_ATTENDEES})")
    return meeting


class ClassifyRequest(BaseModel):
    meeting: Meeting
    note_file_id: str | None = None

    @field_validator("meeting")
    @classmethod
    def bound_attendees(cls, v: Meeting) -> Meeting:
        return _check_attendee_count(v)


class NoteForMeetingRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    meeting: Meeting
    folder_id: str | None = Field(
        default=None, validation_alias=AliasChoices("folder_id", "geminiFolderId")
    )
    user_email: str | None = Field(
        default=None, validation_alias=AliasChoices("user_email", "userEmail")
    )

    @field_validator("meeting")
    @classmethod
    def bound_attendees(cls, v: Meeting) -> Meeting:
        return _check_attendee_count(v)


class RuleTestRequest(BaseModel):
    rule: ClassificationRule
    meetings: list[Meeting] = Field(min_length=1, max_length=API_MAX_TEST_MEETINGS)


class FeedbackRequest(BaseModel):
    note_id: str | None = None
    original_classification: ClassificationSnapshot
    corrected_classification: ClassificationSnapshot
    user_email: str | None = None


# =============================================================================
# RESPONSES
# =============================================================================


class RuleTestResult(BaseModel):
    index: int
    matched: bool
    condition_results: list[bool]


class RuleTestResponse(BaseModel):
    rule_id: str
    matched_count: int
    results: list[RuleTestResult]


class FeedbackResponse(BaseModel):
    success: bool = True
    correction_types: list[str]
    rule_id: str | None = None


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
    error_count: int = 1
    invalid_fields: list[str] = []
