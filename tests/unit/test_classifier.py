"""
Tests for the classification orchestrator (AI → rule-based cascade).
"""

from __future__ import annotations

import json

import pytest

from meetq.classification.ai_classifier import GeminiMeetingClassifier
from meetq.classification.classifier import MeetingClassifier, suggest_folder_path
from meetq.classification.strategies import RuleBasedStrategy
from meetq.infrastructure.reference_store import InMemoryReferenceStore, ReferenceDataError
from meetq.observability.telemetry import get_counter
from meetq.storage.models import (
    ClassificationMethod,
    ClassificationResult,
    ClassificationRule,
    ClientRef,
    Meeting,
    MeetingType,
    ProjectRef,
)


class CountingStore(InMemoryReferenceStore):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.rule_loads = 0

    def list_active_rules(self):
        self.rule_loads += 1
        return super().list_active_rules()


class BrokenClientsStore(InMemoryReferenceStore):
    def list_active_clients(self):
        raise RuntimeError("database is unreachable")


class BrokenStatsStore(InMemoryReferenceStore):
    def increment_rule_stats(self, rule_id, applied=True, corrected=False):
        raise RuntimeError("write failed")


@pytest.fixture
def failing_ai(make_generator):
    return GeminiMeetingClassifier(generator=make_generator(error=ConnectionError("unreachable")))


def _classifier(store, ai_strategy) -> MeetingClassifier:
    return MeetingClassifier(store, strategies=[ai_strategy, RuleBasedStrategy()])


def _ai(make_generator, **fields) -> GeminiMeetingClassifier:
    return GeminiMeetingClassifier(generator=make_generator(reply=json.dumps(fields)), use_llm=True)


class TestRuleBasedScenarios:
    def test_client_meeting_by_domain_and_project_keyword(self, client_meeting, reference_store, failing_ai):
        response = _classifier(reference_store, failing_ai).classify(client_meeting)

        result = response.classification
        assert result.type is MeetingType.CLIENT
        assert result.client.name == "Acme Corp"
        assert result.project.name == "Data Platform"
        assert result.confidence >= 0.95
        assert response.auto_apply is True
        assert response.classification_method is ClassificationMethod.RULE_BASED
        assert response.suggested_actions.folder_path == "Meeting Notes/Clients/Acme Corp/Data Platform"
        assert [(s.email, s.role) for s in response.suggested_actions.share_with] == [
            ("alice@egen.com", "attendee"),
            ("bob@egen.com", "attendee"),
        ]
        assert response.match_info["client_matched_by"] == "domain"
        assert response.match_info["project_matched_by"] == "keywords"

    def test_internal_standup_without_rule(self, standup_meeting, reference_store, failing_ai):
        response = _classifier(reference_store, failing_ai).classify(standup_meeting)

        assert response.classification.type is MeetingType.INTERNAL
        assert response.classification.internal_team == "Engineering"
        assert response.classification.confidence == pytest.approx(0.70)
        assert response.auto_apply is False
        assert response.suggested_actions.folder_path == "Meeting Notes/Internal/Engineering"

    def test_internal_standup_with_rule(self, standup_meeting, clients, projects, standup_rule, failing_ai):
        store = InMemoryReferenceStore(clients, projects, [standup_rule])

        response = _classifier(store, failing_ai).classify(standup_meeting)

        assert response.classification.type is MeetingType.INTERNAL
        assert response.classification.internal_team == "Engineering"
        assert response.classification.confidence == pytest.approx(0.90)
        assert response.classification.matched_rule_id == "rule-standup"
        assert response.auto_apply is True
        assert response.auto_share is None
        assert response.suggested_actions.tags == ["standup"]

    def test_external_meeting(self, external_meeting, reference_store, failing_ai):
        response = _classifier(reference_store, failing_ai).classify(external_meeting)

        assert response.classification.type is MeetingType.EXTERNAL
        assert response.classification.client is None
        assert response.classification.confidence == pytest.approx(0.50)
        assert response.auto_apply is False
        assert response.suggested_actions.folder_path == "Meeting Notes/External"

    def test_keyword_client_without_domain(self, reference_store, failing_ai):
        meeting = Meeting(
            title="Globex CRM review",
            attendees=[{"email": "alice@egen.com"}, {"email": "buyer@globex-partner.com"}],
        )
        response = _classifier(reference_store, failing_ai).classify(meeting)

        assert response.classification.client.id == "globex"
        assert response.classification.project.id == "globex-crm"
        assert response.classification.confidence == pytest.approx(0.85)
        assert response.match_info["client_matched_by"] == "keywords"

    def test_rule_named_client_and_project(self, clients, projects, failing_ai):
        rule = ClassificationRule.model_validate(
            {
                "id": "rule-renewal",
                "name": "Renewals",
                "conditions": {
                    "conditions": [{"field": "title", "operator": "contains", "value": "renewal"}]
                },
                "actions": {"client_id": "globex", "project_id": "globex-crm"},
            }
        )
        store = InMemoryReferenceStore(clients, projects, [rule])
        meeting = Meeting(title="Renewal prep", attendees=[{"email": "alice@egen.com"}])

        response = _classifier(store, failing_ai).classify(meeting)

        assert response.classification.type is MeetingType.CLIENT
        assert response.classification.client.id == "globex"
        assert response.classification.project.id == "globex-crm"
        assert response.classification.confidence == pytest.approx(0.50)

    def test_rule_folder_override(self, standup_meeting, clients, projects, standup_rule, failing_ai):
        rule = standup_rule.model_copy(
            update={
                "actions": standup_rule.actions.model_copy(
                    update={"folder_path": "Meeting Notes/Rituals/Standups"}
                )
            }
        )
        store = InMemoryReferenceStore(clients, projects, [rule])

        response = _classifier(store, failing_ai).classify(standup_meeting)

        assert response.suggested_actions.folder_path == "Meeting Notes/Rituals/Standups"


class TestFallback:
    def test_malformed_ai_reply_falls_back(self, client_meeting, reference_store, make_generator):
        ai = GeminiMeetingClassifier(generator=make_generator(reply="not json at all"), use_llm=True)

        response = _classifier(reference_store, ai).classify(client_meeting)

        assert response.classification_method is ClassificationMethod.RULE_BASED
        assert response.classification.ai_reasoning.startswith("Rule-based fallback: Invalid JSON")
        assert response.match_info["used_ai"] is False
        assert get_counter("classification.ai_fallback") == 1
        assert get_counter("classification.rule_hit") == 1

    @pytest.mark.parametrize(
        "reply",
        ["", "{}", '{"type": "client"}', '{"type": "unknown", "confidence": 0.9}', "[]"],
    )
    def test_ai_failure_never_reports_ai_method(self, client_meeting, reference_store, make_generator, reply):
        ai = GeminiMeetingClassifier(generator=make_generator(reply=reply), use_llm=True)
        response = _classifier(reference_store, ai).classify(client_meeting)
        assert response.classification_method is ClassificationMethod.RULE_BASED

    def test_disabled_ai_falls_back(self, client_meeting, reference_store, make_generator):
        ai = GeminiMeetingClassifier(generator=make_generator(reply="{}"), use_llm=False)
        response = _classifier(reference_store, ai).classify(client_meeting)
        assert response.classification.ai_reasoning == "Rule-based fallback: AI classification disabled"

    def test_no_strategy_succeeds(self, client_meeting, reference_store, failing_ai):
        response = MeetingClassifier(reference_store, strategies=[failing_ai]).classify(client_meeting)

        assert response.classification_method is ClassificationMethod.NONE
        assert response.classification.type is MeetingType.UNCATEGORIZED
        assert response.suggested_actions.folder_path == "Meeting Notes/_Uncategorized"


class TestAIPath:
    def test_ai_result_is_used(self, client_meeting, reference_store, make_generator):
        ai = _ai(make_generator, type="client", client_id="acme", client_name="Acme Corp", confidence=0.8)

        response = _classifier(reference_store, ai).classify(client_meeting)

        assert response.classification_method is ClassificationMethod.AI
        assert response.classification.client.id == "acme"
        assert response.classification.matched_rule_id is None
        assert response.auto_apply is False
        assert get_counter("classification.ai_hit") == 1

    def test_rules_not_loaded_below_auto_apply(self, client_meeting, clients, projects, make_generator):
        store = CountingStore(clients, projects)
        ai = _ai(make_generator, type="client", client_id="acme", confidence=0.6)

        _classifier(store, ai).classify(client_meeting)

        assert store.rule_loads == 0

    def test_confident_ai_result_triggers_rule_auto_share(
        self, client_meeting, clients, projects, acme_share_rule, make_generator
    ):
        store = InMemoryReferenceStore(clients, projects, [acme_share_rule])
        ai = _ai(make_generator, type="client", client_id="acme", confidence=0.93)

        response = _classifier(store, ai).classify(client_meeting)

        assert response.auto_apply is True
        assert response.auto_share.emails == ["lead@egen.com"]
        assert response.auto_share.triggered_by_rule == "rule-acme-share"
        assert ("lead@egen.com", "rule") in [(s.email, s.role) for s in response.suggested_actions.share_with]
        assert response.suggested_actions.tags == ["acme", "client-work"]
        assert store.get_rule("rule-acme-share").stats.times_applied == 1


class TestRuleUsage:
    def test_rule_used_twice_is_counted_once(
        self, client_meeting, clients, projects, acme_share_rule, failing_ai
    ):
        store = CountingStore(clients, projects, [acme_share_rule])

        response = _classifier(store, failing_ai).classify(client_meeting)

        assert response.classification.matched_rule_id == "rule-acme-share"
        assert response.auto_share.triggered_by_rule == "rule-acme-share"
        assert store.get_rule("rule-acme-share").stats.times_applied == 1
        assert store.rule_loads == 1

    def test_stats_failure_does_not_fail_classification(
        self, client_meeting, clients, projects, acme_share_rule, failing_ai
    ):
        store = BrokenStatsStore(clients, projects, [acme_share_rule])

        response = _classifier(store, failing_ai).classify(client_meeting)

        assert response.classification.type is MeetingType.CLIENT
        assert get_counter("classification.rule_stats_error") == 1


class TestReferenceData:
    def test_reference_failure_is_fatal(self, client_meeting, failing_ai):
        with pytest.raises(ReferenceDataError):
            _classifier(BrokenClientsStore(), failing_ai).classify(client_meeting)
        assert get_counter("classification.reference_error") == 1


class TestFolderPath:
    @pytest.mark.parametrize(
        ("result", "expected"),
        [
            (
                ClassificationResult(type=MeetingType.CLIENT, client=ClientRef(id="acme", name="Acme Corp")),
                "Meeting Notes/Clients/Acme Corp",
            ),
            (
                ClassificationResult(
                    type=MeetingType.CLIENT,
                    client=ClientRef(id="acme", name="Acme Corp"),
                    project=ProjectRef(id="acme-dp", name="Data Platform", client_id="acme"),
                ),
                "Meeting Notes/Clients/Acme Corp/Data Platform",
            ),
            (ClassificationResult(type=MeetingType.CLIENT), "Meeting Notes/_Uncategorized"),
            (ClassificationResult(type=MeetingType.INTERNAL), "Meeting Notes/Internal"),
            (ClassificationResult(type=MeetingType.EXTERNAL), "Meeting Notes/External"),
            (ClassificationResult(type=MeetingType.PERSONAL), "Meeting Notes/Personal"),
            (ClassificationResult(), "Meeting Notes/_Uncategorized"),
        ],
    )
    def test_templates(self, result, expected):
        assert suggest_folder_path(result) == expected


def test_package_exports_lazily():
    import meetq
    from meetq.matching.note_matcher import NoteMatcher

    assert meetq.MeetingClassifier is MeetingClassifier
    assert meetq.NoteMatcher is NoteMatcher
    with pytest.raises(AttributeError):
        meetq.Digest  # noqa: B018
