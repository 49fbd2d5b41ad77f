"""
Shared fixtures for MeetQ tests.

Reference data mirrors a small production setup: one client matched by domain
(Acme Corp, two projects) and one matched by keyword only (Globex, one
project).  The organization domain is the default egen.com.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from meetq.infrastructure.feedback_store import InMemoryFeedbackStore
from meetq.infrastructure.reference_store import InMemoryReferenceStore
from meetq.observability.telemetry import reset_counters, reset_latencies
from meetq.storage.models import ClassificationRule, Client, Meeting, Project


class FakeGenerator:
    """Stands in for Gemini: returns a canned reply or raises."""

    def __init__(self, reply: str | None = None, error: Exception | None = None):
        self.reply = reply
        self.error = error
        self.prompts: list[str] = []

    def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.reply or ""


@pytest.fixture(autouse=True)
def _reset_telemetry():
    reset_counters()
    reset_latencies()
    yield
    reset_counters()
    reset_latencies()


@pytest.fixture
def acme() -> Client:
    return Client(id="acme", name="Acme Corp", domains=["acme.com"], keywords=["Acme"])


@pytest.fixture
def globex() -> Client:
    return Client(id="globex", name="Globex", domains=["globex.io"], keywords=["Globex"])


@pytest.fixture
def clients(acme, globex) -> list[Client]:
    return [acme, globex]


@pytest.fixture
def projects() -> list[Project]:
    return [
        Project(id="acme-dp", client_id="acme", name="Data Platform", keywords=["data platform"]),
        Project(id="acme-mobile", client_id="acme", name="Mobile App", keywords=["mobile"]),
        Project(id="globex-crm", client_id="globex", name="CRM Rollout", keywords=["crm"]),
    ]


@pytest.fixture
def standup_rule() -> ClassificationRule:
    return ClassificationRule.model_validate(
        {
            "id": "rule-standup",
            "name": "Engineering standups",
            "priority": 10,
            "conditions": {
                "operator": "AND",
                "conditions": [
                    {"field": "title", "operator": "contains", "value": "standup"},
                    {"field": "all_attendees_domain", "operator": "equals", "value": "egen.com"},
                ],
            },
            "actions": {
                "classify_as": "internal",
                "team": "Engineering",
                "tags": ["standup"],
            },
            "confidence_boost": 0.2,
        }
    )


@pytest.fixture
def acme_share_rule() -> ClassificationRule:
    return ClassificationRule.model_validate(
        {
            "id": "rule-acme-share",
            "name": "Share Acme meetings with account lead",
            "priority": 5,
            "conditions": {
                "operator": "OR",
                "conditions": [
                    {"field": "attendee_domains", "operator": "intersects", "value": ["acme.com"]},
                ],
            },
            "actions": {
                "share_with": ["lead@egen.com"],
                "tags": ["acme", "client-work"],
            },
        }
    )


@pytest.fixture
def client_meeting() -> Meeting:
    return Meeting(
        title="Weekly Sync - Acme Data Platform",
        organizer="alice@egen.com",
        attendees=[
            {"email": "alice@egen.com", "name": "Alice"},
            {"email": "bob@egen.com", "name": "Bob"},
            {"email": "john@acme.com", "name": "John"},
        ],
        start_time=datetime(2024, 5, 1, 15, 0, tzinfo=timezone.utc),
        end_time=datetime(2024, 5, 1, 16, 0, tzinfo=timezone.utc),
    )


@pytest.fixture
def standup_meeting() -> Meeting:
    return Meeting(
        title="Daily Standup",
        attendees=[{"email": "alice@egen.com"}, {"email": "bob@egen.com"}],
    )


@pytest.fixture
def external_meeting() -> Meeting:
    return Meeting(
        title="Intro Call",
        attendees=[{"email": "alice@egen.com"}, {"email": "stranger@unknown.com"}],
    )


@pytest.fixture
def reference_store(clients, projects) -> InMemoryReferenceStore:
    return InMemoryReferenceStore(clients=clients, projects=projects)


@pytest.fixture
def feedback_store() -> InMemoryFeedbackStore:
    return InMemoryFeedbackStore()


@pytest.fixture
def make_generator():
    """Factory for FakeGenerator (reply=..., error=...)."""
    return FakeGenerator
