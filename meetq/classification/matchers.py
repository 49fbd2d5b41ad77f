"""
Domain and keyword matching against known clients and projects.

All matchers walk their input in the order given and return the first hit;
callers pass reference data in the order the store returned it.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Literal

from meetq.storage.models import Client, Meeting, Project

ProjectMatchKind = Literal["keywords", "default"]


@dataclass(frozen=True)
class ProjectMatch:
    project: Project
    matched_by: ProjectMatchKind


# Checked in order; the first pattern that hits decides the team
_TEAM_PATTERNS: list[tuple[str, re.Pattern[str]]] = [
    (
        "Engineering",
        re.compile(r"standup|sprint|retro|architecture|code review|tech|engineering|developer"),
    ),
    ("Sales", re.compile(r"pipeline|opportunity|deal|prospect|sales|revenue|quota")),
    ("All Hands", re.compile(r"all hands|company|town hall|quarterly")),
]


def contains_keywords(text: str | None, keywords: Iterable[str]) -> bool:
    """Case-insensitive substring test for any keyword."""
    if not text:
        return False
    lower_text = text.lower()
    return any(kw.lower() in lower_text for kw in keywords if kw)


def find_client_by_domain(
    external_domains: Sequence[str], clients: Iterable[Client]
) -> Client | None:
    """First active client whose registered domains intersect the external domains."""
    if not external_domains:
        return None
    wanted = set(external_domains)
    for client in clients:
        if client.is_active and wanted.intersection(client.domains):
            return client
    return None


def find_client_by_keywords(title: str | None, clients: Iterable[Client]) -> Client | None:
    """First active client with a keyword appearing in the title."""
    if not title:
        return None
    for client in clients:
        if client.is_active and contains_keywords(title, client.keywords):
            return client
    return None


def find_project(
    client_id: str, meeting: Meeting, projects: Iterable[Project]
) -> ProjectMatch | None:
    """
    Resolve a project for an already-matched client.

    Keyword hits over title + description win; otherwise a client with exactly
    one active project gets that project as a default.
    """
    client_projects = [p for p in projects if p.client_id == client_id and p.is_active]
    search_text = f"{meeting.title or ''} {meeting.description or ''}"

    for project in client_projects:
        if contains_keywords(search_text, project.keywords):
            return ProjectMatch(project=project, matched_by="keywords")

    if len(client_projects) == 1:
        return ProjectMatch(project=client_projects[0], matched_by="default")

    return None


def detect_internal_team(meeting: Meeting) -> str | None:
    """Best-effort team name from title/description keywords."""
    search_text = f"{meeting.title or ''} {meeting.description or ''}".lower()
    for team, pattern in _TEAM_PATTERNS:
        if pattern.search(search_text):
            return team
    return None
