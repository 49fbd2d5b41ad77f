"""
Meeting classification orchestrator.

Implements the classification cascade:
    GeminiMeetingClassifier → RuleBasedStrategy

The first strategy that succeeds decides the classification.  The AI strategy
may fail for any reason (disabled, transport, malformed reply); the rule-based
strategy always produces a result.  Only reference-data failures are fatal.

After classification the orchestrator derives the suggested folder, share
list, tags, auto-apply flag and rule auto-share, and records rule usage.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Any

from meetq.classification.ai_classifier import GeminiMeetingClassifier
from meetq.classification.rules_engine import build_auto_share
from meetq.classification.scoring import should_auto_apply
from meetq.classification.strategies import (
    ClassificationContext,
    ClassificationStrategy,
    RuleBasedStrategy,
    StrategyOutcome,
)
from meetq.config import REFERENCE_FETCH_WORKERS
from meetq.infrastructure.reference_store import ReferenceDataError, ReferenceStore
from meetq.observability.confidence import AUTO_APPLY_THRESHOLD
from meetq.observability.logging import get_logger
from meetq.observability.telemetry import counter, log_event
from meetq.storage.models import (
    AutoShare,
    ClassificationMethod,
    ClassificationResponse,
    ClassificationResult,
    ClassificationRule,
    Client,
    Meeting,
    MeetingType,
    Project,
    ShareSuggestion,
    SuggestedActions,
)

logger = get_logger(__name__)

FOLDER_ROOT = "Meeting Notes"
UNCATEGORIZED_FOLDER = f"{FOLDER_ROOT}/_Uncategorized"


def suggest_folder_path(result: ClassificationResult) -> str:
    """Deterministic folder path for a classification (no filesystem access)."""
    if result.type is MeetingType.CLIENT and result.client and result.client.name:
        path = f"{FOLDER_ROOT}/Clients/{result.client.name}"
        if result.project and result.project.name:
            path = f"{path}/{result.project.name}"
        return path

    if result.type is MeetingType.INTERNAL:
        if result.internal_team:
            return f"{FOLDER_ROOT}/Internal/{result.internal_team}"
        return f"{FOLDER_ROOT}/Internal"

    if result.type is MeetingType.EXTERNAL:
        return f"{FOLDER_ROOT}/External"

    if result.type is MeetingType.PERSONAL:
        return f"{FOLDER_ROOT}/Personal"

    return UNCATEGORIZED_FOLDER


def _merge_tags(*rules: ClassificationRule | None) -> list[str]:
    tags: list[str] = []
    for rule in rules:
        if rule is None:
            continue
        for tag in rule.actions.tags:
            if tag not in tags:
                tags.append(tag)
    return tags


class MeetingClassifier:
    """
    Classification orchestrator.

    Example:
        >>> classifier = MeetingClassifier(SqliteReferenceStore())
        >>> response = classifier.classify(meeting)
        >>> response.classification.type, response.auto_apply
    """

    def __init__(
        self,
        store: ReferenceStore,
        strategies: list[ClassificationStrategy] | None = None,
    ):
        self.store = store
        self.strategies = strategies or [GeminiMeetingClassifier(), RuleBasedStrategy()]

        logger.info(
            "MeetingClassifier initialized with %s",
            ", ".join(type(s).__name__ for s in self.strategies),
        )

    # --- reference data ---

    def _fetch_reference_data(self) -> tuple[list[Client], list[Project]]:
        """
        Fetch active clients and projects concurrently.

        Raises:
            ReferenceDataError: either read failed
        """
        with ThreadPoolExecutor(max_workers=REFERENCE_FETCH_WORKERS) as pool:
            clients_future = pool.submit(self.store.list_active_clients)
            projects_future = pool.submit(self.store.list_active_projects)
            try:
                return clients_future.result(), projects_future.result()
            except ReferenceDataError:
                counter("classification.reference_error")
                raise
            except Exception as e:
                counter("classification.reference_error")
                logger.error("Reference data fetch failed: %s", e)
                raise ReferenceDataError(f"Reference data unavailable: {e}") from e

    def _load_rules(self) -> list[ClassificationRule]:
        try:
            return self.store.list_active_rules()
        except ReferenceDataError:
            raise
        except Exception as e:
            logger.error("Rule fetch failed: %s", e)
            raise ReferenceDataError(f"Rules unavailable: {e}") from e

    # --- cascade ---

    def _run_strategies(self, context: ClassificationContext) -> tuple[StrategyOutcome, list[str]]:
        failures: list[str] = []
        for strategy in self.strategies:
            try:
                outcome = strategy.classify(context)
            except ReferenceDataError:
                raise
            except Exception as e:
                logger.warning("%s raised: %s", type(strategy).__name__, e)
                outcome = StrategyOutcome.failed(str(e) or type(e).__name__)

            if outcome.success:
                return outcome, failures
            failures.append(outcome.error or "classification failed")

        logger.warning("All classification strategies failed: %s", failures)
        return StrategyOutcome(result=ClassificationResult()), failures

    def classify(self, meeting: Meeting) -> ClassificationResponse:
        """
        Classify a meeting and derive the suggested filing actions.

        Returns:
            ClassificationResponse

        Raises:
            ReferenceDataError: clients, projects or rules could not be read

        Side Effects:
            - Calls Gemini through the AI strategy
            - Increments usage statistics for every rule used
            - Increments telemetry counters
        """
        clients, projects = self._fetch_reference_data()
        context = ClassificationContext(
            meeting=meeting,
            clients=clients,
            projects=projects,
            rules_loader=self._load_rules,
        )

        outcome, failures = self._run_strategies(context)
        result = outcome.result or ClassificationResult()
        match_info: dict[str, Any] = dict(outcome.match_info)

        if result.method is ClassificationMethod.AI:
            counter("classification.ai_hit")
        elif result.method is ClassificationMethod.RULE_BASED:
            counter("classification.rule_hit")
            if failures:
                counter("classification.ai_fallback")
                reason = failures[0]
                result = result.model_copy(
                    update={"ai_reasoning": f"Rule-based fallback: {reason}"}
                )
                match_info.update(used_ai=False, ai_fallback_reason=reason)

        classification_rule = outcome.rule

        share_with = [
            ShareSuggestion(email=a.email, role="attendee", name=a.name)
            for a in meeting.internal_attendees
        ]

        auto_share: AutoShare | None = None
        share_rule: ClassificationRule | None = None
        if result.confidence >= AUTO_APPLY_THRESHOLD:
            share_rule = context.matching_rule()
            auto_share = build_auto_share(share_rule) if share_rule else None
            if auto_share is None:
                share_rule = None
            else:
                seen = {s.email for s in share_with}
                for email in auto_share.emails:
                    if email not in seen:
                        share_with.append(ShareSuggestion(email=email, role="rule", name=None))
                        seen.add(email)

        folder_path = suggest_folder_path(result)
        if classification_rule is not None and classification_rule.actions.folder_path:
            folder_path = classification_rule.actions.folder_path

        auto_apply = should_auto_apply(result.confidence)
        if auto_apply:
            counter("classification.auto_apply")

        self._record_rule_usage(classification_rule, share_rule)

        log_event(
            "classification.complete",
            method=result.method.value,
            type=result.type.value,
            confidence=round(result.confidence, 3),
            auto_apply=auto_apply,
            matched_rule_id=result.matched_rule_id,
            auto_share_rule=auto_share.triggered_by_rule if auto_share else None,
        )

        return ClassificationResponse(
            classification=result,
            suggested_actions=SuggestedActions(
                folder_path=folder_path,
                share_with=share_with,
                tags=_merge_tags(classification_rule, share_rule),
            ),
            auto_apply=auto_apply,
            auto_share=auto_share,
            classification_method=result.method,
            match_info=match_info,
        )

    def _record_rule_usage(self, *rules: ClassificationRule | None) -> None:
        """
        Increment statistics once per distinct rule used.

        Failures are logged and counted; a missed increment never fails the
        classification.
        """
        used: list[str] = []
        for rule in rules:
            if rule is not None and rule.id not in used:
                used.append(rule.id)

        for rule_id in used:
            try:
                self.store.increment_rule_stats(rule_id, applied=True, corrected=False)
            except Exception as e:
                logger.warning("Failed to update rule stats for %s: %s", rule_id, e)
                counter("classification.rule_stats_error")
