"""
Tests for the additive rule-path confidence score.
"""

from __future__ import annotations

import pytest

from meetq.classification.scoring import MatchInfo, clamp_confidence, score, should_auto_apply
from meetq.storage.models import MeetingType


@pytest.mark.parametrize(
    ("info", "expected"),
    [
        (MatchInfo(all_internal=False), 0.50),
        (MatchInfo(all_internal=False, client_matched_by="domain", type=MeetingType.CLIENT), 0.80),
        (MatchInfo(all_internal=False, client_matched_by="keywords", type=MeetingType.CLIENT), 0.70),
        (
            MatchInfo(
                all_internal=False,
                client_matched_by="domain",
                project_matched_by="keywords",
                type=MeetingType.CLIENT,
            ),
            0.95,
        ),
        (
            MatchInfo(
                all_internal=False,
                client_matched_by="keywords",
                project_matched_by="keywords",
                type=MeetingType.CLIENT,
            ),
            0.85,
        ),
        (
            MatchInfo(
                all_internal=False,
                client_matched_by="domain",
                project_matched_by="default",
                type=MeetingType.CLIENT,
            ),
            0.85,
        ),
        (MatchInfo(all_internal=True, type=MeetingType.INTERNAL), 0.70),
    ],
)
def test_additive_scores(info, expected):
    assert score(info) == pytest.approx(expected)


def test_all_internal_bonus_needs_internal_type():
    info = MatchInfo(all_internal=True, client_matched_by="keywords", type=MeetingType.CLIENT)
    assert score(info) == pytest.approx(0.70)


def test_rule_boost_reaches_auto_apply_exactly():
    info = MatchInfo(all_internal=True, rule_confidence_boost=0.2, type=MeetingType.INTERNAL)
    assert score(info) == 0.9
    assert should_auto_apply(score(info))


def test_score_is_capped():
    info = MatchInfo(
        all_internal=False,
        client_matched_by="domain",
        project_matched_by="keywords",
        rule_confidence_boost=0.5,
        type=MeetingType.CLIENT,
    )
    assert score(info) == 0.99


def test_clamp_confidence_bounds():
    assert clamp_confidence(-0.2) == 0.0
    assert clamp_confidence(1.7) == 0.99
    assert clamp_confidence(0.42) == 0.42


def test_auto_apply_threshold():
    assert should_auto_apply(0.90)
    assert not should_auto_apply(0.899)


def test_match_info_dict_uses_type_value():
    info = MatchInfo(all_internal=True, type=MeetingType.INTERNAL)
    assert info.as_dict()["type"] == "internal"
    assert info.as_dict()["client_matched_by"] is None
