"""FastAPI server for MeetQ meeting classification and note matching"""

from __future__ import annotations

import os
import sqlite3
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from meetq.api.models import ErrorResponse
from meetq.api.routes.classify import router as classify_router
from meetq.api.routes.classify import set_classifier
from meetq.api.routes.confidence import router as confidence_router
from meetq.api.routes.feedback import router as feedback_router
from meetq.api.routes.feedback import set_feedback_recorder
from meetq.api.routes.health import router as health_router
from meetq.api.routes.notes import router as notes_router
from meetq.api.routes.notes import set_note_matcher
from meetq.api.routes.rules import router as rules_router
from meetq.classification.classifier import MeetingClassifier
from meetq.classification.feedback import FeedbackRecorder
from meetq.config import APP_VERSION, MEETQ_ENV
from meetq.infrastructure.database import init_database
from meetq.infrastructure.drive import GoogleDriveClient
from meetq.infrastructure.feedback_store import SqliteFeedbackStore
from meetq.infrastructure.note_sources import SqliteNoteSource
from meetq.infrastructure.reference_store import ReferenceDataError, SqliteReferenceStore
from meetq.matching.note_matcher import NoteMatcher
from meetq.observability.logging import get_logger
from meetq.observability.telemetry import counter, log_event

# Load environment variables from .env file
load_dotenv()

logger = get_logger(__name__)

# Chrome extension and dashboard origins
MEETQ_EXTENSION_ID = os.getenv("MEETQ_EXTENSION_ID", "")
MEETQ_DASHBOARD_ORIGIN = os.getenv("MEETQ_DASHBOARD_ORIGIN", "")


def _allowed_origins() -> list[str]:
    origins = ["https://calendar.google.com"]
    if MEETQ_EXTENSION_ID:
        origins.append(f"chrome-extension://{MEETQ_EXTENSION_ID}")
    if MEETQ_DASHBOARD_ORIGIN:
        origins.append(MEETQ_DASHBOARD_ORIGIN)
    if MEETQ_ENV == "development":
        origins.extend(
            [
                "http://localhost:3000",
                "http://localhost:8000",
                "http://127.0.0.1:3000",
                "http://127.0.0.1:8000",
            ]
        )
    return origins


def _initialize_database() -> None:
    """
    Create the schema (idempotent).

    Side Effects:
        - Creates meetq.db and its tables if missing
    """
    try:
        logger.info("Initializing database schema...")
        init_database()
    except sqlite3.OperationalError as e:
        logger.critical("Database schema error: %s", e)
        raise RuntimeError(f"Database initialization failed: {e}") from e
    except OSError as e:
        logger.critical("Database path not writable: %s", e)
        raise RuntimeError(f"Database initialization failed: {e}") from e


def create_app(
    classifier: MeetingClassifier | None = None,
    note_matcher: NoteMatcher | None = None,
    feedback_recorder: FeedbackRecorder | None = None,
    init_db: bool = True,
) -> FastAPI:
    """
    Build the API with its collaborators injected into the routers.

    Omitted collaborators are built over the SQLite store, Gemini and Google
    Drive.  The schema is created at startup when init_db is set.
    """

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        if init_db:
            _initialize_database()
        log_event("api.startup", service="meetq", version=APP_VERSION)
        yield

    app = FastAPI(title="MeetQ API", version=APP_VERSION, lifespan=lifespan)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """
        Report which fields were invalid, never why.

        Side Effects:
            - Logs the detailed errors for debugging
            - Increments validation error counter
        """
        errors = exc.errors()
        logger.warning(
            "Validation error on %s: %s",
            request.url.path,
            [(err.get("loc"), err.get("type")) for err in errors],
        )
        counter("api.validation_errors")

        payload = ErrorResponse(
            detail="Invalid request format. Please check your request and try again.",
            error_count=len(errors),
            invalid_fields=[str(err["loc"][-1]) for err in errors if err.get("loc")],
        )
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=payload.model_dump(),
        )

    @app.exception_handler(ReferenceDataError)
    async def reference_data_exception_handler(
        request: Request, exc: ReferenceDataError
    ) -> JSONResponse:
        logger.error("Reference data unavailable on %s: %s", request.url.path, exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "An internal error occurred. Please try again later."},
        )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_allowed_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
    )

    store = None
    if classifier is None or feedback_recorder is None:
        store = SqliteReferenceStore()
    if classifier is None:
        classifier = MeetingClassifier(store)
    if note_matcher is None:
        note_source = SqliteNoteSource()
        note_matcher = NoteMatcher(note_source, settings_source=note_source, drive=GoogleDriveClient())
    if feedback_recorder is None:
        feedback_recorder = FeedbackRecorder(store, SqliteFeedbackStore())

    # Inject dependencies into routers
    set_classifier(classifier)
    set_note_matcher(note_matcher)
    set_feedback_recorder(feedback_recorder)

    app.include_router(health_router)
    app.include_router(confidence_router)
    app.include_router(classify_router)
    app.include_router(notes_router)
    app.include_router(rules_router)
    app.include_router(feedback_router)

    return app


app = create_app()


def main() -> None:
    """Console entry point: serve the API with uvicorn."""
    import uvicorn

    uvicorn.run(
        "meetq.api.app:app",
        host=os.getenv("MEETQ_HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
    )
