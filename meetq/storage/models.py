"""
Domain models (Pydantic v2) for the MeetQ classification and matching core.

Every model is frozen: meetings, reference data and results are built fresh per
request and never mutated.  Meeting titles, descriptions and addresses are
hashed in repr so models can be logged safely.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from hashlib import sha256
from typing import Any, Literal

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from meetq.utils.email import (
    extract_domain_only,
    extract_domains,
    extract_email_address,
    external_domains,
    is_internal_email,
)


def _hash_value(value: str) -> str:
    digest = sha256(value.encode("utf-8")).hexdigest()
    return f"hash:{digest[:12]}"


def _string_list(value: Any, what: str) -> list[str]:
    """A missing value, one string or a list of strings; anything else is a ValueError."""
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, (list, tuple)) or not all(isinstance(v, str) for v in value):
        raise ValueError(f"{what} must be a string or a list of strings")
    return list(value)


class RedactedModel(BaseModel):
    """Base model that redacts sensitive fields in repr/dumps."""

    model_config = ConfigDict(frozen=True)
    _redact_fields = {"title", "description", "organizer", "email", "name"}

    def _redacted_dump(self) -> dict[str, Any]:
        data = self.model_dump(exclude_none=True)
        for field in self._redact_fields:
            if field in data and isinstance(data[field], str) and data[field]:
                data[field] = _hash_value(data[field])
        return data

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self._redacted_dump()})"

    def redacted(self) -> dict[str, Any]:
        """Public helper for telemetry-safe dumps."""
        return self._redacted_dump()


class MeetingType(str, Enum):
    CLIENT = "client"
    INTERNAL = "internal"
    EXTERNAL = "external"
    PERSONAL = "personal"
    UNCATEGORIZED = "uncategorized"


class ClassificationMethod(str, Enum):
    AI = "gemini_ai"
    RULE_BASED = "rule_based"
    NONE = "none"


# =============================================================================
# MEETING
# =============================================================================


class Attendee(RedactedModel):
    email: str
    name: str | None = None
    # Derived from the email domain; any caller-supplied value is ignored
    internal: bool = False

    @model_validator(mode="before")
    @classmethod
    def _normalize(cls, data: Any) -> Any:
        if isinstance(data, str):
            data = {"email": data}
        if not isinstance(data, dict):
            return data
        raw_email = data.get("email")
        if not isinstance(raw_email, str):
            raise ValueError("attendee email must be a string")
        email = extract_email_address(raw_email)
        if not extract_domain_only(email):
            raise ValueError("attendee email must contain a domain")
        return {**data, "email": email, "internal": is_internal_email(email)}


class Meeting(RedactedModel):
    title: str
    description: str | None = None
    organizer: str | None = None
    attendees: list[Attendee] = Field(default_factory=list)
    start_time: datetime | None = None
    end_time: datetime | None = None

    @field_validator("title")
    @classmethod
    def _title_required(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("meeting title is required")
        return value

    @field_validator("organizer")
    @classmethod
    def _normalize_organizer(cls, value: str | None) -> str | None:
        return extract_email_address(value) or None

    @field_validator("attendees")
    @classmethod
    def _dedupe_attendees(cls, value: list[Attendee]) -> list[Attendee]:
        seen: set[str] = set()
        unique = []
        for attendee in value:
            if attendee.email in seen:
                continue
            seen.add(attendee.email)
            unique.append(attendee)
        return unique

    @property
    def attendee_emails(self) -> list[str]:
        return [a.email for a in self.attendees]

    @property
    def attendee_domains(self) -> list[str]:
        return extract_domains(self.attendee_emails)

    @property
    def external_domains(self) -> list[str]:
        return external_domains(self.attendee_domains)

    @property
    def all_internal(self) -> bool:
        # Vacuously true for a meeting without attendees
        return all(a.internal for a in self.attendees)

    @property
    def internal_attendees(self) -> list[Attendee]:
        return [a for a in self.attendees if a.internal]


# =============================================================================
# REFERENCE DATA
# =============================================================================


def _clean_keywords(value: Any) -> list[str]:
    return [kw.strip() for kw in _string_list(value, "keywords") if kw.strip()]


class Client(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    domains: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
    status: Literal["active", "inactive", "archived"] = "active"

    @field_validator("domains", mode="before")
    @classmethod
    def _normalize_domains(cls, value: Any) -> list[str]:
        return [d.strip().lower().lstrip("@") for d in _string_list(value, "domains") if d.strip()]

    @field_validator("keywords", mode="before")
    @classmethod
    def _normalize_keywords(cls, value: Any) -> list[str]:
        return _clean_keywords(value)

    @property
    def is_active(self) -> bool:
        return self.status == "active"


class Project(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    client_id: str
    name: str = Field(validation_alias=AliasChoices("name", "project_name"))
    keywords: list[str] = Field(default_factory=list)
    status: Literal["active", "completed", "on_hold", "inactive"] = "active"

    @field_validator("keywords", mode="before")
    @classmethod
    def _normalize_keywords(cls, value: Any) -> list[str]:
        return _clean_keywords(value)

    @property
    def is_active(self) -> bool:
        return self.status == "active"


# =============================================================================
# RULES
# =============================================================================


class InvalidConditionError(ValueError):
    """Raised when a condition pairs a field with an operator it does not support."""


class ConditionField(str, Enum):
    TITLE = "title"
    DESCRIPTION = "description"
    ATTENDEE_DOMAINS = "attendee_domains"
    ORGANIZER = "organizer"
    ALL_ATTENDEES_DOMAIN = "all_attendees_domain"


class ConditionOperator(str, Enum):
    CONTAINS = "contains"
    CONTAINS_ANY = "contains_any"
    EQUALS = "equals"
    STARTS_WITH = "starts_with"
    INTERSECTS = "intersects"
    ENDS_WITH = "ends_with"


_TEXT_OPERATORS = frozenset(
    {
        ConditionOperator.CONTAINS,
        ConditionOperator.CONTAINS_ANY,
        ConditionOperator.EQUALS,
        ConditionOperator.STARTS_WITH,
    }
)

ALLOWED_OPERATORS: dict[ConditionField, frozenset[ConditionOperator]] = {
    ConditionField.TITLE: _TEXT_OPERATORS,
    ConditionField.DESCRIPTION: _TEXT_OPERATORS,
    ConditionField.ATTENDEE_DOMAINS: frozenset(
        {ConditionOperator.INTERSECTS, ConditionOperator.CONTAINS}
    ),
    ConditionField.ORGANIZER: frozenset({ConditionOperator.EQUALS, ConditionOperator.ENDS_WITH}),
    ConditionField.ALL_ATTENDEES_DOMAIN: frozenset({ConditionOperator.EQUALS}),
}

# Operators whose value is a list of strings; every other pairing takes one string
_LIST_VALUED = {
    (ConditionField.TITLE, ConditionOperator.CONTAINS_ANY),
    (ConditionField.DESCRIPTION, ConditionOperator.CONTAINS_ANY),
    (ConditionField.ATTENDEE_DOMAINS, ConditionOperator.INTERSECTS),
    (ConditionField.ATTENDEE_DOMAINS, ConditionOperator.CONTAINS),
}


class Condition(BaseModel):
    """One field/operator/value test.  Unsupported pairings are rejected here."""

    model_config = ConfigDict(frozen=True)

    field: ConditionField
    operator: ConditionOperator
    value: str | list[str]

    @model_validator(mode="before")
    @classmethod
    def _coerce_value(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        try:
            key = (ConditionField(data.get("field")), ConditionOperator(data.get("operator")))
        except ValueError:
            # Unknown field/operator names are reported by field validation
            return data
        if key not in _LIST_VALUED:
            return data

        values = [v.strip() for v in _string_list(data.get("value"), "condition value") if v.strip()]
        if key[0] is ConditionField.ATTENDEE_DOMAINS:
            values = [v.lower().lstrip("@") for v in values]
        return {**data, "value": values}

    @model_validator(mode="after")
    def _check_pairing(self) -> Condition:
        if self.operator not in ALLOWED_OPERATORS[self.field]:
            raise InvalidConditionError(
                f"operator '{self.operator.value}' is not supported for field '{self.field.value}'"
            )
        if (self.field, self.operator) in _LIST_VALUED:
            if not self.value:
                raise InvalidConditionError(f"condition on '{self.field.value}' needs a value")
        elif not isinstance(self.value, str) or not self.value.strip():
            raise InvalidConditionError(
                f"operator '{self.operator.value}' needs a single string value"
            )
        return self


class ConditionGroup(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    operator: Literal["AND", "OR"] = "AND"
    conditions: list[Condition] = Field(
        default_factory=list, validation_alias=AliasChoices("conditions", "rules")
    )

    @field_validator("operator", mode="before")
    @classmethod
    def _upper(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value


class RuleActions(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    classify_as: MeetingType | None = None
    client_id: str | None = None
    project_id: str | None = None
    team: str | None = None
    folder_path: str | None = None
    share_with: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list, validation_alias=AliasChoices("tags", "add_tags"))

    @field_validator("share_with", mode="before")
    @classmethod
    def _normalize_share_with(cls, value: Any) -> list[str]:
        return [extract_email_address(e) for e in _string_list(value, "share_with") if e.strip()]


class RuleStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    times_applied: int = 0
    times_corrected: int = 0
    last_applied: datetime | None = None


class ClassificationRule(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str | None = None
    priority: int = 0
    conditions: ConditionGroup = Field(default_factory=ConditionGroup)
    actions: RuleActions = Field(default_factory=RuleActions)
    confidence_boost: float = Field(default=0.0, ge=0.0, le=0.5)
    status: Literal["active", "disabled", "testing"] = "active"
    stats: RuleStats = Field(default_factory=RuleStats)

    @property
    def is_active(self) -> bool:
        return self.status == "active"


# =============================================================================
# CLASSIFICATION RESULT
# =============================================================================


class ClientRef(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str | None = None


class ProjectRef(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str | None = None
    client_id: str | None = Field(default=None, exclude=True)


class ClassificationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: MeetingType = MeetingType.UNCATEGORIZED
    client: ClientRef | None = None
    project: ProjectRef | None = None
    internal_team: str | None = None
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    matched_rule_id: str | None = None
    ai_reasoning: str | None = None
    method: ClassificationMethod = Field(default=ClassificationMethod.NONE, exclude=True)

    @model_validator(mode="after")
    def _client_project_consistent(self) -> ClassificationResult:
        if self.project is None:
            return self
        if self.client is None:
            raise ValueError("project reference requires a client reference")
        if self.project.client_id and self.project.client_id != self.client.id:
            raise ValueError("project belongs to a different client")
        return self


class ShareSuggestion(BaseModel):
    model_config = ConfigDict(frozen=True)

    email: str
    role: Literal["attendee", "rule"] | None = None
    name: str | None = None


class SuggestedActions(BaseModel):
    model_config = ConfigDict(frozen=True)

    folder_path: str
    folder_id: str | None = None
    share_with: list[ShareSuggestion] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)


class AutoShare(BaseModel):
    model_config = ConfigDict(frozen=True)

    emails: list[str]
    permission: str = "reader"
    triggered_by_rule: str


class ClassificationResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    classification: ClassificationResult
    suggested_actions: SuggestedActions
    auto_apply: bool
    auto_share: AutoShare | None = None
    classification_method: ClassificationMethod
    match_info: dict[str, Any] = Field(default_factory=dict)


# =============================================================================
# FEEDBACK
# =============================================================================


class ClassificationSnapshot(BaseModel):
    """The comparable dimensions of a classification, before or after correction."""

    model_config = ConfigDict(frozen=True)

    type: MeetingType
    client_id: str | None = None
    project_id: str | None = None
    internal_team: str | None = None
    matched_rule_id: str | None = None


class FeedbackRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    note_id: str | None = None
    user_email: str | None = None
    rule_id: str | None = None
    original: ClassificationSnapshot
    corrected: ClassificationSnapshot
    correction_types: list[str]


# =============================================================================
# NOTE MATCHING
# =============================================================================


class NoteMeeting(BaseModel):
    """Meeting metadata stored alongside a filed note."""

    model_config = ConfigDict(frozen=True)

    title: str | None = None
    organizer: str | None = None
    attendees: list[str] = Field(default_factory=list)
    start_time: datetime | None = None

    @field_validator("attendees", mode="before")
    @classmethod
    def _emails_only(cls, value: list[Any] | None) -> list[str]:
        emails = []
        if not isinstance(value, (list, tuple)):
            value = _string_list(value, "attendees")
        for entry in value:
            email = entry.get("email") if isinstance(entry, dict) else entry
            if email is not None and not isinstance(email, str):
                raise ValueError("attendee email must be a string")
            if email:
                emails.append(extract_email_address(email))
        return emails


class StoredNote(BaseModel):
    """A note document already filed in the notes store."""

    model_config = ConfigDict(frozen=True)

    id: str
    drive_file_id: str | None = None
    drive_file_url: str | None = None
    drive_file_name: str | None = None
    meeting: NoteMeeting = Field(default_factory=NoteMeeting)
    classification: dict[str, Any] | None = None
    status: str | None = None
    created_at: datetime | None = None


class DriveFile(BaseModel):
    """A file as listed by the cloud drive."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    web_view_link: str | None = None
    mime_type: str | None = None
    modified_time: datetime | None = None
    created_time: datetime | None = None


class MatchSource(str, Enum):
    CALENDAR_LINK = "calendar_link"
    STORED = "firestore"
    DRIVE_FOLDER = "gemini_folder"


class MatchCandidate(BaseModel):
    model_config = ConfigDict(frozen=True)

    file_id: str | None
    file_name: str | None = None
    file_url: str | None = None
    modified_time: datetime | None = None
    score: float
    reasons: list[str] = Field(default_factory=list)
    source: MatchSource
    note: StoredNote | None = None


class NoteMatchResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    found: bool
    note_id: str | None = Field(default=None, serialization_alias="noteId")
    drive_file_id: str | None = Field(default=None, serialization_alias="driveFileId")
    drive_file_url: str | None = Field(default=None, serialization_alias="driveFileUrl")
    drive_file_name: str | None = Field(default=None, serialization_alias="driveFileName")
    match_score: float | None = Field(default=None, serialization_alias="matchScore")
    match_reasons: list[str] | None = Field(default=None, serialization_alias="matchReasons")
    source: MatchSource | None = None
    classification: dict[str, Any] | None = None
    status: str | None = None
    message: str | None = None

    @classmethod
    def not_found(cls) -> NoteMatchResult:
        return cls(found=False, message="No matching note found for this meeting")

    @classmethod
    def from_candidate(cls, candidate: MatchCandidate) -> NoteMatchResult:
        note = candidate.note
        return cls(
            found=True,
            note_id=note.id if note else None,
            drive_file_id=candidate.file_id,
            drive_file_url=candidate.file_url,
            drive_file_name=candidate.file_name,
            match_score=candidate.score,
            match_reasons=list(candidate.reasons),
            source=candidate.source,
            classification=note.classification if note else None,
            status=note.status if note else None,
        )
