"""Additive confidence scoring for the rule-based path."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Literal

from meetq.observability.confidence import (
    ALL_INTERNAL_BOOST,
    AUTO_APPLY_THRESHOLD,
    BASE_CONFIDENCE,
    CLIENT_DOMAIN_BOOST,
    CLIENT_KEYWORD_BOOST,
    CONFIDENCE_CAP,
    PROJECT_DEFAULT_BOOST,
    PROJECT_KEYWORD_BOOST,
)
from meetq.storage.models import MeetingType


@dataclass
class MatchInfo:
    """Signals gathered while classifying; fed to score() and echoed in match_info."""

    all_internal: bool
    client_matched_by: Literal["domain", "keywords"] | None = None
    project_matched_by: Literal["keywords", "default"] | None = None
    rule_confidence_boost: float = 0.0
    type: MeetingType = MeetingType.UNCATEGORIZED

    def as_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["type"] = self.type.value
        return data


def clamp_confidence(value: float) -> float:
    return max(0.0, min(CONFIDENCE_CAP, value))


def score(match_info: MatchInfo) -> float:
    """
    Sum every applicable boost onto the base and cap the result.

    Boosts stack: a client matched by domain with a keyword-matched project and
    a rule boost receives all three.
    """
    confidence = BASE_CONFIDENCE

    if match_info.client_matched_by == "domain":
        confidence += CLIENT_DOMAIN_BOOST
    elif match_info.client_matched_by == "keywords":
        confidence += CLIENT_KEYWORD_BOOST

    if match_info.project_matched_by == "keywords":
        confidence += PROJECT_KEYWORD_BOOST
    elif match_info.project_matched_by == "default":
        confidence += PROJECT_DEFAULT_BOOST

    confidence += match_info.rule_confidence_boost

    # Also applies when a rule forced the type to internal
    if match_info.all_internal and match_info.type is MeetingType.INTERNAL:
        confidence += ALL_INTERNAL_BOOST

    # Rounded so 0.5 + 0.2 + 0.2 lands on 0.9 and passes the auto-apply gate
    return clamp_confidence(round(confidence, 6))


def should_auto_apply(confidence: float) -> bool:
    return confidence >= AUTO_APPLY_THRESHOLD
