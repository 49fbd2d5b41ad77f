"""Persistence for classification corrections."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from pathlib import Path

from meetq.infrastructure.database import db_transaction, retry_on_db_lock
from meetq.storage.models import FeedbackRecord


class FeedbackStore(ABC):
    @abstractmethod
    def save(self, record: FeedbackRecord) -> None: ...


class SqliteFeedbackStore(FeedbackStore):
    def __init__(self, db_path: Path | str | None = None):
        self.db_path = db_path

    @retry_on_db_lock()
    def save(self, record: FeedbackRecord) -> None:
        """
        Side Effects:
            - Inserts a row into the feedback table
        """
        with db_transaction(self.db_path) as conn:
            conn.execute(
                """
                INSERT INTO feedback (
                    note_id, rule_id, user_email, original_classification,
                    corrected_classification, correction_types
                )
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    record.note_id,
                    record.rule_id,
                    record.user_email,
                    record.original.model_dump_json(),
                    record.corrected.model_dump_json(),
                    json.dumps(record.correction_types),
                ),
            )


class InMemoryFeedbackStore(FeedbackStore):
    def __init__(self):
        self.records: list[FeedbackRecord] = []

    def save(self, record: FeedbackRecord) -> None:
        self.records.append(record)
