"""
Google Drive access for note matching (read-only).

Two lookups are needed: metadata for a single file referenced from a calendar
description, and the Google Docs inside a notes folder.

Authentication: SERVICE_ACCOUNT_JSON (file path or JSON string), optionally
delegated to MEETQ_DRIVE_DELEGATED_USER; otherwise application default
credentials.
Scope: drive.readonly
"""

from __future__ import annotations

import json
import os
import threading
from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Any

import google.auth
from google.oauth2.service_account import Credentials
from googleapiclient.discovery import build

from meetq.config import DRIVE_DELEGATED_USER, DRIVE_FOLDER_PAGE_SIZE, SERVICE_ACCOUNT_JSON
from meetq.observability.logging import get_logger
from meetq.storage.models import DriveFile

logger = get_logger(__name__)

SCOPES = ["https://www.googleapis.com/auth/drive.readonly"]

GOOGLE_DOC_MIME = "application/vnd.google-apps.document"

_FILE_FIELDS = "id, name, webViewLink, mimeType, createdTime, modifiedTime"


class DriveClient(ABC):
    @abstractmethod
    def get_file(self, file_id: str) -> DriveFile:
        """File metadata; raises when the file is missing or not accessible."""

    @abstractmethod
    def list_folder_docs(self, folder_id: str, page_size: int = DRIVE_FOLDER_PAGE_SIZE) -> list[DriveFile]:
        """Non-trashed Google Docs directly inside a folder, newest modification first."""


def _drive_file(data: dict[str, Any]) -> DriveFile:
    return DriveFile(
        id=data["id"],
        name=data.get("name", ""),
        web_view_link=data.get("webViewLink"),
        mime_type=data.get("mimeType"),
        modified_time=data.get("modifiedTime"),
        created_time=data.get("createdTime"),
    )


def _build_credentials():
    """Service account when configured, else application default credentials."""
    val = (SERVICE_ACCOUNT_JSON or "").strip()
    if not val:
        credentials, _ = google.auth.default(scopes=SCOPES)
        return credentials

    if os.path.exists(val):
        logger.debug("Using service account key file path: %s", val)
        return Credentials.from_service_account_file(
            val, scopes=SCOPES, subject=DRIVE_DELEGATED_USER
        )

    info = json.loads(val)
    if not isinstance(info, dict):
        raise ValueError("SERVICE_ACCOUNT_JSON did not parse into an object")
    logger.debug("Using service account JSON from environment secret content")
    return Credentials.from_service_account_info(info, scopes=SCOPES, subject=DRIVE_DELEGATED_USER)


class GoogleDriveClient(DriveClient):
    """Drive v3 API client; the API service is built lazily and reused."""

    def __init__(self, service: Any = None):
        self._service = service
        self._lock = threading.Lock()

    def _drive(self) -> Any:
        if self._service is None:
            with self._lock:
                if self._service is None:
                    self._service = build(
                        "drive", "v3", credentials=_build_credentials(), cache_discovery=False
                    )
                    logger.info("Initialized Google Drive client")
        return self._service

    def get_file(self, file_id: str) -> DriveFile:
        data = self._drive().files().get(fileId=file_id, fields=_FILE_FIELDS).execute()
        return _drive_file(data)

    def list_folder_docs(self, folder_id: str, page_size: int = DRIVE_FOLDER_PAGE_SIZE) -> list[DriveFile]:
        query = (
            f"'{folder_id}' in parents and mimeType='{GOOGLE_DOC_MIME}' and trashed=false"
        )
        response = (
            self._drive()
            .files()
            .list(
                q=query,
                fields=f"files({_FILE_FIELDS})",
                orderBy="modifiedTime desc",
                pageSize=page_size,
            )
            .execute()
        )
        return [_drive_file(f) for f in response.get("files", [])]


class InMemoryDriveClient(DriveClient):
    """Fixed files keyed by id, optionally grouped by folder."""

    def __init__(
        self,
        files: Iterable[DriveFile] = (),
        folders: dict[str, list[str]] | None = None,
    ):
        self.files = {f.id: f for f in files}
        self.folders = folders or {}

    def get_file(self, file_id: str) -> DriveFile:
        if file_id not in self.files:
            raise LookupError(f"File not found: {file_id}")
        return self.files[file_id]

    def list_folder_docs(self, folder_id: str, page_size: int = DRIVE_FOLDER_PAGE_SIZE) -> list[DriveFile]:
        docs = [
            self.files[fid]
            for fid in self.folders.get(folder_id, [])
            if fid in self.files and self.files[fid].mime_type == GOOGLE_DOC_MIME
        ]
        docs.sort(key=lambda f: f.modified_time.timestamp() if f.modified_time else 0, reverse=True)
        return docs[:page_size]
