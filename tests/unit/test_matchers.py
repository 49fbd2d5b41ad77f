"""
Tests for client/project matching and internal team detection.
"""

from __future__ import annotations

from meetq.classification.matchers import (
    contains_keywords,
    detect_internal_team,
    find_client_by_domain,
    find_client_by_keywords,
    find_project,
)
from meetq.storage.models import Client, Meeting


class TestClientMatching:
    def test_domain_match(self, clients):
        assert find_client_by_domain(["acme.com"], clients).id == "acme"
        assert find_client_by_domain(["unknown.com"], clients) is None
        assert find_client_by_domain([], clients) is None

    def test_inactive_client_is_ignored(self, clients):
        archived = Client(id="old", name="Old", domains=["acme.com"], status="archived")
        assert find_client_by_domain(["acme.com"], [archived, *clients]).id == "acme"

    def test_first_client_in_store_order_wins(self, acme):
        twin = Client(id="acme-2", name="Acme Two", domains=["acme.com"])
        assert find_client_by_domain(["acme.com"], [twin, acme]).id == "acme-2"

    def test_keyword_match_on_title(self, clients):
        assert find_client_by_keywords("Globex quarterly review", clients).id == "globex"
        assert find_client_by_keywords("GLOBEX kickoff", clients).id == "globex"
        assert find_client_by_keywords("Lunch", clients) is None
        assert find_client_by_keywords(None, clients) is None

    def test_contains_keywords_skips_blank_keywords(self):
        assert contains_keywords("Weekly sync", ["", "sync"])
        assert not contains_keywords("Weekly sync", [""])
        assert not contains_keywords(None, ["sync"])


class TestProjectMatching:
    def test_keyword_match(self, client_meeting, projects):
        match = find_project("acme", client_meeting, projects)
        assert match.project.id == "acme-dp"
        assert match.matched_by == "keywords"

    def test_keyword_match_in_description(self, projects):
        meeting = Meeting(title="Acme check-in", description="Mobile release blockers")
        assert find_project("acme", meeting, projects).project.id == "acme-mobile"

    def test_single_active_project_is_default(self, projects):
        meeting = Meeting(title="Globex weekly")
        match = find_project("globex", meeting, projects)
        assert match.project.id == "globex-crm"
        assert match.matched_by == "default"

    def test_no_default_with_several_projects(self, projects):
        assert find_project("acme", Meeting(title="Acme weekly"), projects) is None

    def test_unknown_client_has_no_project(self, projects):
        assert find_project("nobody", Meeting(title="Data Platform"), projects) is None


class TestInternalTeam:
    def test_engineering(self):
        assert detect_internal_team(Meeting(title="Daily Standup")) == "Engineering"
        assert detect_internal_team(Meeting(title="Sync", description="Code review")) == "Engineering"

    def test_sales(self):
        assert detect_internal_team(Meeting(title="Q3 pipeline review")) == "Sales"

    def test_all_hands(self):
        assert detect_internal_team(Meeting(title="Company all hands")) == "All Hands"

    def test_no_team(self):
        assert detect_internal_team(Meeting(title="Lunch")) is None
