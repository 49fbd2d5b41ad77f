"""
Gemini-backed meeting classification.

Builds a prompt from the known clients/projects and the meeting, sends it
through a text generator and validates the JSON reply.  Every failure
(disabled LLM, transport error, non-JSON reply, missing fields) comes back as
a failed StrategyOutcome carrying the reason; nothing is raised to the
orchestrator.
"""

from __future__ import annotations

import json
import math
import re
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from meetq.classification.scoring import clamp_confidence
from meetq.classification.strategies import (
    ClassificationContext,
    ClassificationStrategy,
    StrategyOutcome,
)
from meetq.config import GEMINI_MODEL, ORG_DOMAIN, ORG_NAME, USE_LLM
from meetq.llm.prompts import get_classifier_prompt
from meetq.observability.logging import get_logger
from meetq.observability.telemetry import counter, log_event
from meetq.storage.models import (
    ClassificationMethod,
    ClassificationResult,
    Client,
    ClientRef,
    Meeting,
    MeetingType,
    Project,
    ProjectRef,
)

logger = get_logger(__name__)


class AIClassificationError(Exception):
    """The model reply could not be turned into a classification."""


class TextGenerator(Protocol):
    def generate(self, prompt: str) -> str: ...


class AIClassificationSchema(BaseModel):
    """Schema for LLM response validation."""

    model_config = ConfigDict(extra="ignore")

    type: str
    confidence: float
    client_id: str | None = None
    client_name: str | None = None
    project_id: str | None = None
    project_name: str | None = None
    internal_team: str | None = None
    reasoning: str | None = None

    @field_validator("type", mode="before")
    @classmethod
    def _type_is_string(cls, value: Any) -> Any:
        if not isinstance(value, str) or not value.strip():
            raise ValueError("type must be a non-empty string")
        return value.strip().lower()

    @field_validator("confidence", mode="before")
    @classmethod
    def _confidence_is_number(cls, value: Any) -> Any:
        # bool is an int subclass; "0.9" strings are not numbers either
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError("confidence must be a number")
        if not math.isfinite(value):
            raise ValueError("confidence must be finite")
        return value

    @field_validator(
        "client_id", "client_name", "project_id", "project_name", "internal_team", "reasoning",
        mode="before",
    )
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if value is None:
            return None
        if not isinstance(value, str):
            value = str(value)
        value = value.strip()
        if not value or value.lower() in ("null", "none"):
            return None
        return value


def strip_code_fences(text: str) -> str:
    """Remove a leading ```json / ``` fence and a trailing ``` fence."""
    cleaned = text.strip()
    cleaned = re.sub(r"^```(?:json)?", "", cleaned)
    cleaned = re.sub(r"```$", "", cleaned)
    return cleaned.strip()


def sanitize(text: str | None, max_length: int = 500) -> str:
    """Sanitize input to prevent prompt injection."""
    if not text:
        return ""

    text = re.sub(r"(?i)(ignore|disregard).*(instruction|prompt)", "[REDACTED]", text)
    text = re.sub(r"(?i)system\s*:", "", text)
    text = re.sub(r"(?i)assistant\s*:", "", text)

    return text[:max_length]


def build_prompt(
    meeting: Meeting,
    clients: list[Client],
    projects: list[Project],
    attendee_domains: list[str],
) -> str:
    """Render the classifier prompt with known clients/projects and the meeting."""
    client_context = [
        {"id": c.id, "name": c.name, "domains": c.domains, "keywords": c.keywords}
        for c in clients
    ]
    project_context = [
        {"id": p.id, "name": p.name, "client_id": p.client_id, "keywords": p.keywords}
        for p in projects
    ]
    attendees = ", ".join(
        f"{sanitize(a.name, 100) or 'Unknown'} <{a.email}>" for a in meeting.attendees
    )
    external = [d for d in attendee_domains if d != ORG_DOMAIN]

    return get_classifier_prompt(
        org_name=ORG_NAME,
        org_domain=ORG_DOMAIN,
        clients_json=json.dumps(client_context, indent=2),
        projects_json=json.dumps(project_context, indent=2),
        title=sanitize(meeting.title, 200) or "No title",
        description=sanitize(meeting.description, 2000) or "No description",
        organizer=sanitize(meeting.organizer, 100) or "Unknown",
        attendees=attendees or "No attendees",
        external_domains=", ".join(external) or "None",
    )


def parse_response(
    response_text: str, clients: list[Client], projects: list[Project]
) -> ClassificationResult:
    """
    Parse and validate the model reply.

    Raises:
        AIClassificationError: not JSON, not an object, or missing type/confidence
    """
    try:
        data = json.loads(strip_code_fences(response_text))
    except json.JSONDecodeError as e:
        raise AIClassificationError(f"Invalid JSON in AI response: {e.msg}") from e

    if not isinstance(data, dict):
        raise AIClassificationError("AI response is not a JSON object")

    try:
        validated = AIClassificationSchema.model_validate(data)
        meeting_type = MeetingType(validated.type)
    except (ValidationError, ValueError) as e:
        raise AIClassificationError("Missing required fields in AI response") from e

    client = (
        ClientRef(id=validated.client_id, name=validated.client_name)
        if validated.client_id
        else None
    )
    project = _resolve_project(validated, client, clients, projects)
    if project is not None and client is None:
        owner = next((c for c in clients if c.id == project.client_id), None)
        client = ClientRef(id=project.client_id, name=owner.name if owner else None)

    return ClassificationResult(
        type=meeting_type,
        client=client,
        project=project,
        internal_team=validated.internal_team,
        confidence=clamp_confidence(validated.confidence),
        matched_rule_id=None,
        ai_reasoning=validated.reasoning,
        method=ClassificationMethod.AI,
    )


def _resolve_project(
    validated: AIClassificationSchema,
    client: ClientRef | None,
    clients: list[Client],
    projects: list[Project],
) -> ProjectRef | None:
    """
    Attach the owning client id to the reported project.

    A project is dropped when it belongs to a different client than the one
    reported, or when neither the project nor a client is known.
    """
    if not validated.project_id:
        return None

    known = next((p for p in projects if p.id == validated.project_id), None)
    if known is None:
        if client is None:
            logger.debug("Dropping unknown AI project %s without client", validated.project_id)
            return None
        return ProjectRef(id=validated.project_id, name=validated.project_name)

    if client is not None and client.id != known.client_id:
        logger.debug(
            "Dropping AI project %s: belongs to %s, not %s",
            known.id,
            known.client_id,
            client.id,
        )
        return None

    return ProjectRef(
        id=known.id,
        name=validated.project_name or known.name,
        client_id=known.client_id,
    )


class GeminiMeetingClassifier(ClassificationStrategy):
    """
    LLM-based classification over the known client/project catalog.

    The generator is injected so tests can replace the network call.
    """

    method = ClassificationMethod.AI

    def __init__(self, generator: TextGenerator | None = None, use_llm: bool = USE_LLM):
        if generator is None:
            from meetq.llm.gemini import GeminiTextGenerator

            generator = GeminiTextGenerator()
        self.generator = generator
        self.use_llm = use_llm

    def classify(self, context: ClassificationContext) -> StrategyOutcome:
        """
        Classify with Gemini.

        Side Effects:
            - Calls Gemini API
            - Increments telemetry counters
        """
        if not self.use_llm:
            counter("classification.ai_disabled")
            return StrategyOutcome.failed("AI classification disabled")

        try:
            prompt = build_prompt(
                context.meeting, context.clients, context.projects, context.attendee_domains
            )
            response_text = self.generator.generate(prompt)
            result = parse_response(response_text, context.clients, context.projects)
        except AIClassificationError as e:
            counter("classification.ai_parse_error")
            logger.warning("AI classification rejected: %s", e)
            return StrategyOutcome.failed(str(e))
        except Exception as e:
            counter("classification.ai_error")
            logger.warning("Gemini classification failed: %s (model=%s)", e, GEMINI_MODEL)
            log_event("classification.ai_error", error=str(e), model=GEMINI_MODEL)
            return StrategyOutcome.failed(str(e) or e.__class__.__name__)

        logger.info(
            "AI classification: type=%s confidence=%.2f",
            result.type.value,
            result.confidence,
        )
        return StrategyOutcome(
            result=result,
            match_info={
                "all_internal": context.all_internal,
                "used_ai": True,
                "ai_confidence": result.confidence,
            },
        )
