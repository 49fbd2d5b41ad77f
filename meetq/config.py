"""Centralized configuration for the MeetQ backend.

Typed constants for the organization, Gemini, database, note matching and API
settings.  Environment variable overrides use safe defaults so the app starts
without extra env configuration.  Scoring thresholds live in
meetq.observability.confidence.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# --- App ---
APP_VERSION: str = "1.0.0"
MEETQ_ENV: str = os.getenv("MEETQ_ENV", "development")

# --- Organization ---
# Attendees on this domain are "internal"; everything else is external.
ORG_DOMAIN: str = os.getenv("MEETQ_ORG_DOMAIN", "egen.com").lower().lstrip("@")
ORG_NAME: str = os.getenv("MEETQ_ORG_NAME", "Egen Solutions")

# --- LLM ---
USE_LLM: bool = os.getenv("MEETQ_USE_LLM", "true").lower() in ("true", "1", "yes")
GOOGLE_CLOUD_PROJECT: str | None = os.getenv("GOOGLE_CLOUD_PROJECT") or None
GEMINI_LOCATION: str = os.getenv("GEMINI_LOCATION", "us-central1")
GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-2.0-flash-001")
GEMINI_TEMPERATURE: float = float(os.getenv("GEMINI_TEMPERATURE", "0.1"))
GEMINI_MAX_OUTPUT_TOKENS: int = int(os.getenv("GEMINI_MAX_OUTPUT_TOKENS", "1024"))

# --- Database ---
DB_PATH: Path = Path(
    os.getenv("MEETQ_DB_PATH", str(Path(__file__).parent / "data" / "meetq.db"))
)
DB_CONNECT_TIMEOUT: float = float(os.getenv("MEETQ_DB_CONNECT_TIMEOUT", "30.0"))
DB_RETRY_MAX: int = int(os.getenv("MEETQ_DB_RETRY_MAX", "5"))
DB_RETRY_BASE_DELAY: float = float(os.getenv("MEETQ_DB_RETRY_BASE_DELAY", "0.1"))
DB_RETRY_MAX_DELAY: float = float(os.getenv("MEETQ_DB_RETRY_MAX_DELAY", "2.0"))
DB_RETRY_JITTER: float = float(os.getenv("MEETQ_DB_RETRY_JITTER", "0.1"))

# --- Reference data ---
REFERENCE_FETCH_WORKERS: int = 2

# --- Note matching ---
NOTE_LOOKBACK_DAYS: int = int(os.getenv("MEETQ_NOTE_LOOKBACK_DAYS", "7"))
NOTE_CANDIDATE_LIMIT: int = 50
DRIVE_FOLDER_PAGE_SIZE: int = 50

# --- Google Drive ---
SERVICE_ACCOUNT_JSON: str | None = os.getenv("SERVICE_ACCOUNT_JSON") or None
DRIVE_DELEGATED_USER: str | None = os.getenv("MEETQ_DRIVE_DELEGATED_USER") or None

# --- API ---
API_MAX_ATTENDEES: int = 500
API_MAX_TEST_MEETINGS: int = 50
