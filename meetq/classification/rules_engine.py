"""User-authored rule evaluation.

Rules are evaluated in priority order (highest first, ties in original order)
and the FIRST rule whose condition group holds wins.  Later rules are never
merged in, even if they would also match.

Statistics are not touched here; the classifier records usage once per
classification through the reference store.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from meetq.classification.conditions import evaluate_condition
from meetq.observability.logging import get_logger
from meetq.storage.models import AutoShare, ClassificationRule, Meeting

logger = get_logger(__name__)


@dataclass(frozen=True)
class RuleEvaluation:
    """Outcome of evaluating one rule against one meeting (for dry runs)."""

    rule_id: str
    matched: bool
    condition_results: list[bool] = field(default_factory=list)


def sort_rules(rules: Iterable[ClassificationRule]) -> list[ClassificationRule]:
    """Active rules only, priority descending; sorted() is stable so ties keep input order."""
    active = [rule for rule in rules if rule.is_active]
    return sorted(active, key=lambda rule: rule.priority, reverse=True)


def evaluate_rule(
    rule: ClassificationRule, meeting: Meeting, attendee_domains: list[str]
) -> bool:
    """AND needs every condition, OR needs one.  A rule without conditions never matches."""
    group = rule.conditions
    if not group.conditions:
        return False

    results = (evaluate_condition(c, meeting, attendee_domains) for c in group.conditions)
    if group.operator == "AND":
        return all(results)
    return any(results)


def select_matching_rule(
    active_rules: Iterable[ClassificationRule],
    meeting: Meeting,
    attendee_domains: list[str],
) -> ClassificationRule | None:
    """
    Return the first rule, in priority order, whose conditions hold.

    Side Effects:
        None (pure function)
    """
    for rule in sort_rules(active_rules):
        if evaluate_rule(rule, meeting, attendee_domains):
            logger.debug("Rule matched: %s (priority %d)", rule.id, rule.priority)
            return rule
    return None


def build_auto_share(rule: ClassificationRule) -> AutoShare | None:
    """Auto-share config for a rule that names recipients, else None."""
    if not rule.actions.share_with:
        return None
    return AutoShare(
        emails=list(rule.actions.share_with),
        permission="reader",
        triggered_by_rule=rule.id,
    )


def explain_rule(
    rule: ClassificationRule, meeting: Meeting, attendee_domains: list[str]
) -> RuleEvaluation:
    """Evaluate every condition (no short-circuit) so callers can show which ones held."""
    results = [
        evaluate_condition(c, meeting, attendee_domains) for c in rule.conditions.conditions
    ]
    if not results:
        matched = False
    elif rule.conditions.operator == "AND":
        matched = all(results)
    else:
        matched = any(results)
    return RuleEvaluation(rule_id=rule.id, matched=matched, condition_results=results)


def test_rule(rule: ClassificationRule, meetings: Iterable[Meeting]) -> list[RuleEvaluation]:
    """
    Dry-run a rule (of any status) against sample meetings.

    Side Effects:
        None (statistics are never incremented by a dry run)
    """
    return [explain_rule(rule, m, m.attendee_domains) for m in meetings]


# Keep pytest from collecting the dry-run helper as a test
test_rule.__test__ = False  # type: ignore[attr-defined]
