from __future__ import annotations

import pytest
from pydantic import ValidationError

from meetq.storage.models import (
    ClassificationResult,
    ClassificationRule,
    Client,
    ClientRef,
    Condition,
    ConditionGroup,
    Meeting,
    NoteMatchResult,
    NoteMeeting,
    Project,
    ProjectRef,
    RuleActions,
)


def _meeting(**overrides) -> Meeting:
    data = {
        "title": "Weekly Sync",
        "organizer": "Alice <Alice@Egen.com>",
        "attendees": [{"email": "alice@egen.com"}, {"email": "john@acme.com"}],
        "start_time": "2024-05-01T15:00:00Z",
    }
    data.update(overrides)
    return Meeting.model_validate(data)


def test_meeting_happy_path():
    meeting = _meeting()
    assert meeting.organizer == "alice@egen.com"
    assert meeting.attendee_domains == ["egen.com", "acme.com"]
    assert meeting.external_domains == ["acme.com"]
    assert meeting.all_internal is False


@pytest.mark.parametrize("title", [None, "", "   "])
def test_meeting_title_required(title):
    with pytest.raises(ValidationError):
        _meeting(title=title)


def test_attendee_without_domain_is_rejected():
    with pytest.raises(ValidationError):
        _meeting(attendees=[{"email": "alice"}])


@pytest.mark.parametrize(
    ("model", "data"),
    [
        (Meeting, {"title": "Sync", "attendees": [{"email": 5}]}),
        (Client, {"id": "c", "name": "C", "domains": [5]}),
        (Client, {"id": "c", "name": "C", "keywords": 5}),
        (Project, {"id": "p", "client_id": "c", "name": "P", "keywords": [None]}),
        (Condition, {"field": "attendee_domains", "operator": "intersects", "value": {"a": 1}}),
        (RuleActions, {"share_with": [5]}),
        (NoteMeeting, {"attendees": [{"email": ["a@b.com"]}]}),
        (NoteMeeting, {"attendees": 5}),
    ],
)
def test_non_string_values_are_validation_errors(model, data):
    with pytest.raises(ValidationError):
        model.model_validate(data)


def test_attendee_internal_flag_is_derived():
    meeting = _meeting(attendees=[{"email": "JOHN@acme.com", "internal": True}, "bob@egen.com"])
    assert [(a.email, a.internal) for a in meeting.attendees] == [
        ("john@acme.com", False),
        ("bob@egen.com", True),
    ]


def test_duplicate_attendees_are_collapsed():
    meeting = _meeting(attendees=["alice@egen.com", "Alice@egen.com", "Alice <alice@egen.com>"])
    assert meeting.attendee_emails == ["alice@egen.com"]


def test_meeting_without_attendees_is_all_internal():
    assert _meeting(attendees=[]).all_internal is True


def test_meeting_repr_hides_title():
    assert "Weekly Sync" not in repr(_meeting())


def test_redacted_dump_hashes_sensitive_fields():
    data = _meeting().redacted()
    assert data["title"].startswith("hash:")
    assert data["organizer"].startswith("hash:")
    assert "start_time" in data


def test_meeting_is_frozen():
    with pytest.raises(ValidationError):
        _meeting().title = "Other"


def test_project_name_alias():
    project = Project.model_validate({"id": "p", "client_id": "c", "project_name": "Data Platform"})
    assert project.name == "Data Platform"


def test_classification_result_project_requires_client():
    with pytest.raises(ValidationError):
        ClassificationResult(type="client", project=ProjectRef(id="p", client_id="acme"))


def test_classification_result_project_client_mismatch():
    with pytest.raises(ValidationError):
        ClassificationResult(
            type="client",
            client=ClientRef(id="globex"),
            project=ProjectRef(id="p", client_id="acme"),
        )


@pytest.mark.parametrize("confidence", [-0.1, 1.01])
def test_classification_result_confidence_bounds(confidence):
    with pytest.raises(ValidationError):
        ClassificationResult(confidence=confidence)


def test_project_ref_client_is_not_serialized():
    result = ClassificationResult(
        type="client",
        client=ClientRef(id="acme", name="Acme Corp"),
        project=ProjectRef(id="p", name="Data Platform", client_id="acme"),
    )
    assert result.model_dump(mode="json")["project"] == {"id": "p", "name": "Data Platform"}


class TestRuleContracts:
    def test_unsupported_pairing_rejected(self):
        with pytest.raises(ValidationError):
            Condition(field="organizer", operator="contains", value="x")

    def test_unknown_operator_rejected(self):
        with pytest.raises(ValidationError):
            Condition(field="title", operator="regex", value="^x")

    def test_list_valued_operator_normalizes(self):
        condition = Condition(field="attendee_domains", operator="intersects", value="@Acme.com")
        assert condition.value == ["acme.com"]

    def test_text_operator_needs_string(self):
        with pytest.raises(ValidationError):
            Condition(field="title", operator="contains", value=["a", "b"])

    def test_group_accepts_rules_key_and_lowercase_operator(self):
        group = ConditionGroup.model_validate(
            {"operator": "or", "rules": [{"field": "title", "operator": "contains", "value": "sync"}]}
        )
        assert group.operator == "OR"
        assert len(group.conditions) == 1

    def test_add_tags_alias(self):
        actions = RuleActions.model_validate({"add_tags": ["acme"], "share_with": ["Lead@Egen.com", " "]})
        assert actions.tags == ["acme"]
        assert actions.share_with == ["lead@egen.com"]

    def test_confidence_boost_bounds(self):
        with pytest.raises(ValidationError):
            ClassificationRule(id="r", name="R", confidence_boost=0.6)


def test_note_match_result_serializes_camel_case():
    result = NoteMatchResult(
        found=True,
        note_id="note-1",
        drive_file_id="file-1",
        match_score=0.9,
        match_reasons=["Organizer match"],
    )
    payload = result.model_dump(mode="json", by_alias=True, exclude_none=True)
    assert payload == {
        "found": True,
        "noteId": "note-1",
        "driveFileId": "file-1",
        "matchScore": 0.9,
        "matchReasons": ["Organizer match"],
    }


def test_note_not_found_payload():
    payload = NoteMatchResult.not_found().model_dump(mode="json", by_alias=True, exclude_none=True)
    assert payload == {"found": False, "message": "No matching note found for this meeting"}
