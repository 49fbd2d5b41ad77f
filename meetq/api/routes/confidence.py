"""Confidence threshold endpoint for the MeetQ API."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from meetq.observability.confidence import get_all_thresholds

router = APIRouter(prefix="/api", tags=["confidence"])


@router.get("/config/confidence")
async def get_confidence_thresholds() -> dict[str, Any]:
    """
    Scoring and note-matching thresholds, so the extension and dashboard use
    the same auto-apply cut-off as the backend.

    Side Effects:
        None (reads config constants only)
    """
    return {"version": "1.0.0", "thresholds": get_all_thresholds()}
