"""
Classification strategies.

A strategy turns one meeting plus the request's reference data into either a
ClassificationResult or a failure reason.  The orchestrator walks a fixed,
ordered list of strategies and adopts the first success; the rule-based
strategy never fails and always sits last.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from meetq.classification.matchers import (
    detect_internal_team,
    find_client_by_domain,
    find_client_by_keywords,
    find_project,
)
from meetq.classification.rules_engine import select_matching_rule
from meetq.classification.scoring import MatchInfo, score
from meetq.observability.logging import get_logger
from meetq.storage.models import (
    ClassificationMethod,
    ClassificationResult,
    ClassificationRule,
    Client,
    ClientRef,
    Meeting,
    MeetingType,
    Project,
    ProjectRef,
)

logger = get_logger(__name__)


@dataclass
class ClassificationContext:
    """
    Everything a strategy may read for one classification request.

    Rules are loaded on first use only, then reused for the auto-share check.
    """

    meeting: Meeting
    clients: list[Client]
    projects: list[Project]
    rules_loader: Callable[[], list[ClassificationRule]]
    _rules: list[ClassificationRule] | None = field(default=None, repr=False)

    @property
    def attendee_domains(self) -> list[str]:
        return self.meeting.attendee_domains

    @property
    def external_domains(self) -> list[str]:
        return self.meeting.external_domains

    @property
    def all_internal(self) -> bool:
        return self.meeting.all_internal

    def active_rules(self) -> list[ClassificationRule]:
        if self._rules is None:
            self._rules = list(self.rules_loader())
        return self._rules

    def matching_rule(self) -> ClassificationRule | None:
        return select_matching_rule(self.active_rules(), self.meeting, self.attendee_domains)


@dataclass(frozen=True)
class StrategyOutcome:
    """Result-or-failure returned by every strategy."""

    result: ClassificationResult | None = None
    error: str | None = None
    rule: ClassificationRule | None = None
    match_info: dict[str, Any] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.result is not None

    @classmethod
    def failed(cls, error: str) -> StrategyOutcome:
        return cls(error=error)


class ClassificationStrategy(ABC):
    method: ClassificationMethod = ClassificationMethod.NONE

    @abstractmethod
    def classify(self, context: ClassificationContext) -> StrategyOutcome:
        """Classify the meeting or report why this strategy could not."""


def _project_ref(project: Project) -> ProjectRef:
    return ProjectRef(id=project.id, name=project.name, client_id=project.client_id)


class RuleBasedStrategy(ClassificationStrategy):
    """
    Deterministic fallback: rules, then client domain, then client keywords.

    Precedence:
    1. The first matching rule seeds type/team and contributes its boost
    2. Client by external domain (skipped when the rule forced "internal")
    3. Client by title keyword
    4. Rule-named client/project when nothing above produced a client
    5. All-internal meetings become "internal" with a detected team
    6. Remaining meetings with external attendees become "external"
    """

    method = ClassificationMethod.RULE_BASED

    def classify(self, context: ClassificationContext) -> StrategyOutcome:
        meeting = context.meeting
        info = MatchInfo(all_internal=context.all_internal)

        meeting_type = MeetingType.UNCATEGORIZED
        client: Client | None = None
        project: Project | None = None
        internal_team: str | None = None

        rule = context.matching_rule()
        if rule is not None:
            info.rule_confidence_boost = rule.confidence_boost
            if rule.actions.classify_as is not None:
                meeting_type = rule.actions.classify_as
            if rule.actions.team:
                internal_team = rule.actions.team

        if meeting_type is not MeetingType.INTERNAL and context.external_domains:
            client = find_client_by_domain(context.external_domains, context.clients)
            if client is not None:
                info.client_matched_by = "domain"

        if client is None:
            client = find_client_by_keywords(meeting.title, context.clients)
            if client is not None:
                info.client_matched_by = "keywords"

        if client is not None:
            meeting_type = MeetingType.CLIENT
            project_match = find_project(client.id, meeting, context.projects)
            if project_match is not None:
                project = project_match.project
                info.project_matched_by = project_match.matched_by
        elif rule is not None and rule.actions.client_id:
            client, project = self._rule_named_entities(rule, context)
            if client is not None and meeting_type is MeetingType.UNCATEGORIZED:
                meeting_type = MeetingType.CLIENT

        if context.all_internal and meeting_type is MeetingType.UNCATEGORIZED:
            meeting_type = MeetingType.INTERNAL
            internal_team = detect_internal_team(meeting)

        if context.external_domains and meeting_type is MeetingType.UNCATEGORIZED:
            meeting_type = MeetingType.EXTERNAL

        info.type = meeting_type
        confidence = score(info)

        result = ClassificationResult(
            type=meeting_type,
            client=ClientRef(id=client.id, name=client.name) if client else None,
            project=_project_ref(project) if project else None,
            internal_team=internal_team,
            confidence=confidence,
            matched_rule_id=rule.id if rule else None,
            method=self.method,
        )
        logger.info(
            "Rule-based classification: type=%s confidence=%.2f rule=%s client_by=%s",
            meeting_type.value,
            confidence,
            rule.id if rule else None,
            info.client_matched_by,
        )
        return StrategyOutcome(result=result, rule=rule, match_info=info.as_dict())

    @staticmethod
    def _rule_named_entities(
        rule: ClassificationRule, context: ClassificationContext
    ) -> tuple[Client | None, Project | None]:
        """Client/project named by the rule's actions, if they are known and active."""
        client = next(
            (c for c in context.clients if c.id == rule.actions.client_id and c.is_active),
            None,
        )
        if client is None:
            logger.debug("Rule %s names unknown client %s", rule.id, rule.actions.client_id)
            return None, None

        project = None
        if rule.actions.project_id:
            project = next(
                (
                    p
                    for p in context.projects
                    if p.id == rule.actions.project_id
                    and p.client_id == client.id
                    and p.is_active
                ),
                None,
            )
        return client, project
