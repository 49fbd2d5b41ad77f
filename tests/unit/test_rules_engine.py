"""
Tests for rule ordering, first-match selection, auto-share and dry runs.
"""

from __future__ import annotations

import pytest

from meetq.classification.rules_engine import (
    build_auto_share,
    evaluate_rule,
    select_matching_rule,
    sort_rules,
    test_rule as dry_run,
)
from meetq.storage.models import ClassificationRule, Meeting

TITLE_SYNC = {"field": "title", "operator": "contains", "value": "sync"}
TITLE_MISSING = {"field": "title", "operator": "contains", "value": "offsite"}
ACME_DOMAIN = {"field": "attendee_domains", "operator": "intersects", "value": ["acme.com"]}


def _rule(rule_id: str, conditions: list[dict], operator: str = "AND", **fields) -> ClassificationRule:
    data = {
        "id": rule_id,
        "name": rule_id,
        "conditions": {"operator": operator, "conditions": conditions},
    }
    data.update(fields)
    return ClassificationRule.model_validate(data)


@pytest.fixture
def meeting() -> Meeting:
    return Meeting(
        title="Weekly Sync",
        attendees=[{"email": "alice@egen.com"}, {"email": "john@acme.com"}],
    )


class TestEvaluateRule:
    def test_rule_without_conditions_never_matches(self, meeting):
        rule = ClassificationRule(id="empty", name="empty")
        assert evaluate_rule(rule, meeting, meeting.attendee_domains) is False
        assert evaluate_rule(_rule("empty-or", [], "OR"), meeting, meeting.attendee_domains) is False

    def test_and_and_or_agree_when_all_conditions_hold(self, meeting):
        conditions = [TITLE_SYNC, ACME_DOMAIN]
        domains = meeting.attendee_domains
        assert evaluate_rule(_rule("and", conditions, "AND"), meeting, domains)
        assert evaluate_rule(_rule("or", conditions, "OR"), meeting, domains)

    def test_and_fails_on_any_false_condition(self, meeting):
        rule = _rule("and", [TITLE_SYNC, TITLE_MISSING], "AND")
        assert not evaluate_rule(rule, meeting, meeting.attendee_domains)

    def test_or_needs_one_condition(self, meeting):
        rule = _rule("or", [TITLE_MISSING, ACME_DOMAIN], "OR")
        assert evaluate_rule(rule, meeting, meeting.attendee_domains)

    def test_operator_is_case_insensitive(self, meeting):
        rule = _rule("lower", [TITLE_MISSING, TITLE_SYNC], "or")
        assert rule.conditions.operator == "OR"
        assert evaluate_rule(rule, meeting, meeting.attendee_domains)


class TestSelectMatchingRule:
    def test_highest_priority_match_wins(self, meeting):
        low = _rule("low", [TITLE_SYNC], priority=1)
        high = _rule("high", [ACME_DOMAIN], priority=10)
        assert select_matching_rule([low, high], meeting, meeting.attendee_domains).id == "high"

    def test_first_match_not_best_match(self, meeting):
        # Fewer conditions, higher priority: still wins over a more specific rule
        broad = _rule("broad", [TITLE_SYNC], priority=5)
        specific = _rule("specific", [TITLE_SYNC, ACME_DOMAIN], priority=4)
        assert select_matching_rule([specific, broad], meeting, meeting.attendee_domains).id == "broad"

    def test_ties_keep_input_order(self, meeting):
        first = _rule("first", [TITLE_SYNC], priority=3)
        second = _rule("second", [ACME_DOMAIN], priority=3)
        assert select_matching_rule([first, second], meeting, meeting.attendee_domains).id == "first"
        assert select_matching_rule([second, first], meeting, meeting.attendee_domains).id == "second"

    def test_inactive_rules_are_skipped(self, meeting):
        disabled = _rule("disabled", [TITLE_SYNC], priority=100, status="disabled")
        testing = _rule("testing", [TITLE_SYNC], priority=50, status="testing")
        active = _rule("active", [TITLE_SYNC], priority=1)
        rules = [disabled, testing, active]
        assert [r.id for r in sort_rules(rules)] == ["active"]
        assert select_matching_rule(rules, meeting, meeting.attendee_domains).id == "active"

    def test_no_match_returns_none(self, meeting):
        rules = [_rule("offsite", [TITLE_MISSING])]
        assert select_matching_rule(rules, meeting, meeting.attendee_domains) is None

    def test_selection_is_deterministic(self, meeting):
        rules = [_rule(f"r{i}", [TITLE_SYNC], priority=i % 3) for i in range(6)]
        picks = {select_matching_rule(rules, meeting, meeting.attendee_domains).id for _ in range(5)}
        assert picks == {"r2"}


class TestAutoShare:
    def test_rule_without_recipients_has_no_auto_share(self):
        assert build_auto_share(_rule("r", [TITLE_SYNC])) is None

    def test_auto_share_from_rule(self):
        rule = _rule(
            "share",
            [TITLE_SYNC],
            actions={"share_with": ["Lead <LEAD@egen.com>", "pm@egen.com"]},
        )
        auto_share = build_auto_share(rule)
        assert auto_share.emails == ["lead@egen.com", "pm@egen.com"]
        assert auto_share.permission == "reader"
        assert auto_share.triggered_by_rule == "share"


class TestDryRun:
    def test_reports_per_condition_results(self, meeting):
        rule = _rule("r", [TITLE_SYNC, TITLE_MISSING, ACME_DOMAIN], "AND")
        other = Meeting(title="Offsite planning", attendees=[{"email": "bob@egen.com"}])

        results = dry_run(rule, [meeting, other])

        assert [r.matched for r in results] == [False, False]
        assert results[0].condition_results == [True, False, True]
        assert results[1].condition_results == [False, True, False]

    def test_disabled_rule_is_still_evaluated(self, meeting):
        rule = _rule("off", [TITLE_SYNC], status="disabled")
        assert dry_run(rule, [meeting])[0].matched is True
        assert rule.stats.times_applied == 0
