"""Health check endpoint for the MeetQ API.

- /health - Service status, LLM readiness, database presence and counters
"""

from __future__ import annotations

import os
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter

from meetq.config import APP_VERSION, DB_PATH, USE_LLM
from meetq.observability.telemetry import get_counters, get_latency_stats

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check() -> dict[str, Any]:
    """Health check endpoint.

    Reports credential presence for Vertex AI without calling it, Gemini call
    latency and the in-process classification/note-matching counters (no PII).
    """
    db_path = os.getenv("MEETQ_DB_PATH") or str(DB_PATH)

    return {
        "status": "healthy",
        "service": "MeetQ API",
        "version": APP_VERSION,
        "timestamp": datetime.now(UTC).isoformat(),
        "llm": {
            "enabled": USE_LLM,
            "google_cloud_project": bool(os.getenv("GOOGLE_CLOUD_PROJECT")),
            "latency_ms": get_latency_stats("llm.gemini.latency"),
        },
        "database": {"exists": os.path.exists(db_path)},
        "counters": {
            "classification": get_counters("classification."),
            "notes": get_counters("notes."),
        },
    }
