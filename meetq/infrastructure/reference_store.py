"""
Reference data access: clients, projects and classification rules.

Classification reads this data fresh on every request.  The only write the
classifier performs is the rule-statistics increment, which uses the backing
store's atomic "x = x + 1" update; a slight undercount under concurrent
classification of the same rule is accepted.
"""

from __future__ import annotations

import json
import sqlite3
import threading
from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from meetq.infrastructure.database import (
    db_transaction,
    get_db_connection,
    retry_on_db_lock,
    sql_timestamp,
)
from meetq.observability.logging import get_logger
from meetq.storage.models import ClassificationRule, Client, Project, RuleStats

logger = get_logger(__name__)


class ReferenceDataError(RuntimeError):
    """Reference data could not be read; classification cannot proceed."""


class ReferenceStore(ABC):
    """Collaborator interface the classifier depends on."""

    @abstractmethod
    def list_active_clients(self) -> list[Client]: ...

    @abstractmethod
    def list_active_projects(self) -> list[Project]: ...

    @abstractmethod
    def list_active_rules(self) -> list[ClassificationRule]:
        """Active rules, sorted by priority descending."""

    @abstractmethod
    def increment_rule_stats(
        self, rule_id: str, applied: bool = True, corrected: bool = False
    ) -> None: ...

    def get_rule(self, rule_id: str) -> ClassificationRule | None:
        return next((r for r in self.list_active_rules() if r.id == rule_id), None)


def _now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# SQLITE
# =============================================================================


def _loads(raw: str | None, default: Any) -> Any:
    if not raw:
        return default
    return json.loads(raw)


def _rule_from_row(row: sqlite3.Row) -> ClassificationRule:
    return ClassificationRule(
        id=row["id"],
        name=row["name"],
        description=row["description"],
        priority=row["priority"],
        conditions=_loads(row["conditions"], {}),
        actions=_loads(row["actions"], {}),
        confidence_boost=row["confidence_boost"],
        status=row["status"],
        stats=RuleStats(
            times_applied=row["times_applied"],
            times_corrected=row["times_corrected"],
            last_applied=row["last_applied"],
        ),
    )


class SqliteReferenceStore(ReferenceStore):
    """
    Reference data in the central SQLite database.

    Rows that fail model validation (e.g. a rule saved with an unsupported
    condition) are logged and skipped instead of failing the request.
    """

    def __init__(self, db_path: Path | str | None = None):
        self.db_path = db_path

    def _fetch(self, query: str, params: tuple[Any, ...] = ()) -> list[sqlite3.Row]:
        try:
            with get_db_connection(self.db_path) as conn:
                return conn.execute(query, params).fetchall()
        except (sqlite3.Error, FileNotFoundError) as e:
            logger.error("Reference data fetch failed: %s", e)
            raise ReferenceDataError(f"Reference data unavailable: {e}") from e

    def list_active_clients(self) -> list[Client]:
        rows = self._fetch(
            "SELECT * FROM clients WHERE status = 'active' ORDER BY rowid"
        )
        clients = []
        for row in rows:
            try:
                clients.append(
                    Client(
                        id=row["id"],
                        name=row["name"],
                        domains=_loads(row["domains"], []),
                        keywords=_loads(row["keywords"], []),
                        status=row["status"],
                    )
                )
            except (ValidationError, ValueError) as e:
                logger.warning("Skipping invalid client %s: %s", row["id"], e)
        return clients

    def list_active_projects(self) -> list[Project]:
        rows = self._fetch(
            "SELECT * FROM projects WHERE status = 'active' ORDER BY rowid"
        )
        projects = []
        for row in rows:
            try:
                projects.append(
                    Project(
                        id=row["id"],
                        client_id=row["client_id"],
                        project_name=row["project_name"],
                        keywords=_loads(row["keywords"], []),
                        status=row["status"],
                    )
                )
            except (ValidationError, ValueError) as e:
                logger.warning("Skipping invalid project %s: %s", row["id"], e)
        return projects

    def list_active_rules(self) -> list[ClassificationRule]:
        # rowid keeps equal-priority rules in insertion order
        rows = self._fetch(
            "SELECT * FROM rules WHERE status = 'active' ORDER BY priority DESC, rowid"
        )
        rules = []
        for row in rows:
            try:
                rules.append(_rule_from_row(row))
            except (ValidationError, ValueError) as e:
                logger.warning("Skipping invalid rule %s: %s", row["id"], e)
        return rules

    def get_rule(self, rule_id: str) -> ClassificationRule | None:
        rows = self._fetch("SELECT * FROM rules WHERE id = ?", (rule_id,))
        return _rule_from_row(rows[0]) if rows else None

    @retry_on_db_lock()
    def increment_rule_stats(
        self, rule_id: str, applied: bool = True, corrected: bool = False
    ) -> None:
        """
        Side Effects:
            - Atomically increments rule counters in the rules table
        """
        with db_transaction(self.db_path) as conn:
            conn.execute(
                """
                UPDATE rules
                SET times_applied = times_applied + ?,
                    times_corrected = times_corrected + ?,
                    last_applied = CASE WHEN ? THEN ? ELSE last_applied END
                WHERE id = ?
                """,
                (int(applied), int(corrected), int(applied), sql_timestamp(_now()), rule_id),
            )

    # --- Writes for fixtures and local data loading; no route calls these ---

    def upsert_client(self, client: Client) -> None:
        with db_transaction(self.db_path) as conn:
            conn.execute(
                """
                INSERT INTO clients (id, name, domains, keywords, status)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name = excluded.name, domains = excluded.domains,
                    keywords = excluded.keywords, status = excluded.status
                """,
                (
                    client.id,
                    client.name,
                    json.dumps(client.domains),
                    json.dumps(client.keywords),
                    client.status,
                ),
            )

    def upsert_project(self, project: Project) -> None:
        with db_transaction(self.db_path) as conn:
            conn.execute(
                """
                INSERT INTO projects (id, client_id, project_name, keywords, status)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    client_id = excluded.client_id, project_name = excluded.project_name,
                    keywords = excluded.keywords, status = excluded.status
                """,
                (
                    project.id,
                    project.client_id,
                    project.name,
                    json.dumps(project.keywords),
                    project.status,
                ),
            )

    def upsert_rule(self, rule: ClassificationRule) -> None:
        with db_transaction(self.db_path) as conn:
            conn.execute(
                """
                INSERT INTO rules (
                    id, name, description, priority, conditions, actions,
                    confidence_boost, status
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name = excluded.name, description = excluded.description,
                    priority = excluded.priority, conditions = excluded.conditions,
                    actions = excluded.actions, confidence_boost = excluded.confidence_boost,
                    status = excluded.status
                """,
                (
                    rule.id,
                    rule.name,
                    rule.description,
                    rule.priority,
                    rule.conditions.model_dump_json(),
                    rule.actions.model_dump_json(),
                    rule.confidence_boost,
                    rule.status,
                ),
            )


# =============================================================================
# IN-MEMORY
# =============================================================================


class InMemoryReferenceStore(ReferenceStore):
    """Process-local store for tests and local runs without a database."""

    def __init__(
        self,
        clients: Iterable[Client] = (),
        projects: Iterable[Project] = (),
        rules: Iterable[ClassificationRule] = (),
    ):
        self.clients = list(clients)
        self.projects = list(projects)
        self.rules = list(rules)
        self._lock = threading.Lock()

    def list_active_clients(self) -> list[Client]:
        return [c for c in self.clients if c.is_active]

    def list_active_projects(self) -> list[Project]:
        return [p for p in self.projects if p.is_active]

    def list_active_rules(self) -> list[ClassificationRule]:
        active = [r for r in self.rules if r.is_active]
        return sorted(active, key=lambda r: r.priority, reverse=True)

    def get_rule(self, rule_id: str) -> ClassificationRule | None:
        return next((r for r in self.rules if r.id == rule_id), None)

    def increment_rule_stats(
        self, rule_id: str, applied: bool = True, corrected: bool = False
    ) -> None:
        with self._lock:
            for index, rule in enumerate(self.rules):
                if rule.id != rule_id:
                    continue
                stats = rule.stats
                self.rules[index] = rule.model_copy(
                    update={
                        "stats": RuleStats(
                            times_applied=stats.times_applied + int(applied),
                            times_corrected=stats.times_corrected + int(corrected),
                            last_applied=_now() if applied else stats.last_applied,
                        )
                    }
                )
                return
