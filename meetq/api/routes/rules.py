"""Rule dry-run endpoint.

- POST /api/rules/test - Evaluate a rule against sample meetings
"""

from __future__ import annotations

from fastapi import APIRouter

from meetq.api.models import RuleTestRequest, RuleTestResponse, RuleTestResult
from meetq.classification.rules_engine import test_rule
from meetq.observability.telemetry import log_event

router = APIRouter(prefix="/api/rules", tags=["rules"])


@router.post("/test", response_model=RuleTestResponse)
async def dry_run_rule(request: RuleTestRequest) -> RuleTestResponse:
    """
    Evaluate a rule (whatever its status) against each meeting.

    Nothing is persisted: rule statistics are not touched.
    """
    evaluations = test_rule(request.rule, request.meetings)
    results = [
        RuleTestResult(
            index=i,
            matched=evaluation.matched,
            condition_results=evaluation.condition_results,
        )
        for i, evaluation in enumerate(evaluations)
    ]
    matched_count = sum(1 for r in results if r.matched)

    log_event(
        "api.rules.test",
        rule_id=request.rule.id,
        meetings=len(results),
        matched=matched_count,
    )
    return RuleTestResponse(rule_id=request.rule.id, matched_count=matched_count, results=results)
