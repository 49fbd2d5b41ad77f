"""
Centralized Confidence Thresholds Configuration

All scoring and matching thresholds for MeetQ live here.  Values are loaded from
config/meetq_policy.yaml when present; the constants below are the defaults.

Design:
- Additive scoring: corroborating signals stack, the sum is capped below 1.0
- One automation gate: auto-apply at >= AUTO_APPLY_THRESHOLD
- Note matching prefers "not found" over a low-confidence guess
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]

from meetq.observability.logging import get_logger

logger = get_logger(__name__)


def _load_policy_config() -> dict[str, Any]:
    """
    Load configuration from meetq_policy.yaml.

    Side Effects:
        - Reads config/meetq_policy.yaml file from filesystem
    """
    possible_paths = [
        Path(__file__).parent.parent.parent / "config" / "meetq_policy.yaml",
        Path(__file__).parent.parent / "config" / "meetq_policy.yaml",
        Path("config/meetq_policy.yaml"),
    ]

    for config_path in possible_paths:
        if config_path.exists():
            with open(config_path) as f:
                config = yaml.safe_load(f) or {}
                logger.debug("Loaded confidence config from %s", config_path)
                return config

    logger.warning("meetq_policy.yaml not found, using hardcoded defaults")
    return {}


_POLICY_CONFIG = _load_policy_config()
_SCORING_CONFIG = _POLICY_CONFIG.get("scoring", {})
_MATCHING_CONFIG = _POLICY_CONFIG.get("note_matching", {})

# ============================================================================
# RULE-BASED SCORING
# ============================================================================

BASE_CONFIDENCE = _SCORING_CONFIG.get("base", 0.50)

CLIENT_DOMAIN_BOOST = _SCORING_CONFIG.get("client_domain_boost", 0.30)
# Only applied when the client was not matched by domain
CLIENT_KEYWORD_BOOST = _SCORING_CONFIG.get("client_keyword_boost", 0.20)

PROJECT_KEYWORD_BOOST = _SCORING_CONFIG.get("project_keyword_boost", 0.15)
PROJECT_DEFAULT_BOOST = _SCORING_CONFIG.get("project_default_boost", 0.05)

# All attendees internal AND final type is internal
ALL_INTERNAL_BOOST = _SCORING_CONFIG.get("all_internal_boost", 0.20)

# Every confidence (rule path and AI path) is clamped to [0, CONFIDENCE_CAP]
CONFIDENCE_CAP = _SCORING_CONFIG.get("cap", 0.99)

# The only automation gate: auto-apply and rule auto-share
AUTO_APPLY_THRESHOLD = _SCORING_CONFIG.get("auto_apply", 0.90)

# ============================================================================
# NOTE MATCHING
# ============================================================================

# Search over notes already filed in storage
STORED_TITLE_WEIGHT = _MATCHING_CONFIG.get("stored_title_weight", 0.4)
STORED_TIME_WEIGHT = _MATCHING_CONFIG.get("stored_time_weight", 0.3)
STORED_ATTENDEE_WEIGHT = _MATCHING_CONFIG.get("stored_attendee_weight", 0.3)
STORED_ORGANIZER_BONUS = _MATCHING_CONFIG.get("stored_organizer_bonus", 0.1)
STORED_TIME_FULL_MINUTES = _MATCHING_CONFIG.get("stored_time_full_minutes", 30)
STORED_TIME_HALF_MINUTES = _MATCHING_CONFIG.get("stored_time_half_minutes", 120)
STORED_ACCEPT_THRESHOLD = _MATCHING_CONFIG.get("stored_accept", 0.5)

# Search over a Drive folder listing
FOLDER_TITLE_WEIGHT = _MATCHING_CONFIG.get("folder_title_weight", 0.5)
FOLDER_TIME_WEIGHT = _MATCHING_CONFIG.get("folder_time_weight", 0.3)
FOLDER_NAMING_BONUS = _MATCHING_CONFIG.get("folder_naming_bonus", 0.1)
FOLDER_TIME_FULL_MINUTES = _MATCHING_CONFIG.get("folder_time_full_minutes", 180)
FOLDER_TIME_HALF_MINUTES = _MATCHING_CONFIG.get("folder_time_half_minutes", 1440)
FOLDER_ACCEPT_THRESHOLD = _MATCHING_CONFIG.get("folder_accept", 0.4)

# Candidates must score strictly above this to be ranked at all
CANDIDATE_FLOOR = _MATCHING_CONFIG.get("candidate_floor", 0.3)

# Reason strings are only attached above these similarity levels
STORED_TITLE_REASON_MIN = 0.5
FOLDER_TITLE_REASON_MIN = 0.3
ATTENDEE_REASON_MIN = 0.3

# A direct Drive link in the calendar description is a perfect match
CALENDAR_LINK_SCORE = 1.0


def get_all_thresholds() -> dict[str, Any]:
    """
    Get all thresholds as a dictionary (for API exposure)
    """
    return {
        "scoring": {
            "base": BASE_CONFIDENCE,
            "client_domain_boost": CLIENT_DOMAIN_BOOST,
            "client_keyword_boost": CLIENT_KEYWORD_BOOST,
            "project_keyword_boost": PROJECT_KEYWORD_BOOST,
            "project_default_boost": PROJECT_DEFAULT_BOOST,
            "all_internal_boost": ALL_INTERNAL_BOOST,
            "cap": CONFIDENCE_CAP,
            "auto_apply": AUTO_APPLY_THRESHOLD,
        },
        "note_matching": {
            "stored": {
                "title_weight": STORED_TITLE_WEIGHT,
                "time_weight": STORED_TIME_WEIGHT,
                "attendee_weight": STORED_ATTENDEE_WEIGHT,
                "organizer_bonus": STORED_ORGANIZER_BONUS,
                "time_full_minutes": STORED_TIME_FULL_MINUTES,
                "time_half_minutes": STORED_TIME_HALF_MINUTES,
                "accept": STORED_ACCEPT_THRESHOLD,
            },
            "folder": {
                "title_weight": FOLDER_TITLE_WEIGHT,
                "time_weight": FOLDER_TIME_WEIGHT,
                "naming_bonus": FOLDER_NAMING_BONUS,
                "time_full_minutes": FOLDER_TIME_FULL_MINUTES,
                "time_half_minutes": FOLDER_TIME_HALF_MINUTES,
                "accept": FOLDER_ACCEPT_THRESHOLD,
            },
            "candidate_floor": CANDIDATE_FLOOR,
        },
    }


def validate_thresholds() -> bool:
    """
    Validate that all thresholds are consistent and within valid ranges

    Raises:
        ValueError: If thresholds are inconsistent
    """
    errors = []

    unit_values = {
        "BASE_CONFIDENCE": BASE_CONFIDENCE,
        "CONFIDENCE_CAP": CONFIDENCE_CAP,
        "AUTO_APPLY_THRESHOLD": AUTO_APPLY_THRESHOLD,
        "STORED_ACCEPT_THRESHOLD": STORED_ACCEPT_THRESHOLD,
        "FOLDER_ACCEPT_THRESHOLD": FOLDER_ACCEPT_THRESHOLD,
        "CANDIDATE_FLOOR": CANDIDATE_FLOOR,
    }
    for name, val in unit_values.items():
        if not (0.0 <= val <= 1.0):
            errors.append(f"{name} ({val}) is outside valid range [0.0, 1.0]")

    if AUTO_APPLY_THRESHOLD > CONFIDENCE_CAP:
        errors.append(
            f"AUTO_APPLY_THRESHOLD ({AUTO_APPLY_THRESHOLD}) "
            f"exceeds CONFIDENCE_CAP ({CONFIDENCE_CAP}); nothing could auto-apply"
        )

    stored_weights = STORED_TITLE_WEIGHT + STORED_TIME_WEIGHT + STORED_ATTENDEE_WEIGHT
    if abs(stored_weights - 1.0) > 1e-9:
        errors.append(f"Stored-note weights sum to {stored_weights}, expected 1.0")

    if STORED_TIME_FULL_MINUTES >= STORED_TIME_HALF_MINUTES:
        errors.append("Stored-note full-credit time window must be narrower than half-credit")
    if FOLDER_TIME_FULL_MINUTES >= FOLDER_TIME_HALF_MINUTES:
        errors.append("Folder full-credit time window must be narrower than half-credit")

    for name, accept in (
        ("STORED_ACCEPT_THRESHOLD", STORED_ACCEPT_THRESHOLD),
        ("FOLDER_ACCEPT_THRESHOLD", FOLDER_ACCEPT_THRESHOLD),
    ):
        if accept < CANDIDATE_FLOOR:
            errors.append(f"{name} ({accept}) must be >= CANDIDATE_FLOOR ({CANDIDATE_FLOOR})")

    if errors:
        raise ValueError("Threshold validation failed:\n" + "\n".join(errors))

    return True


# Validate on import
try:
    validate_thresholds()
    logger.info("Confidence thresholds validated successfully")
except ValueError as e:
    logger.warning("Confidence threshold validation warning: %s", e)
