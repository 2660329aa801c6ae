"""
Backup event store backed by Cloud Firestore, plus an in-memory implementation.

Writes land here best-effort; listings read an unfiltered snapshot from here
only when the primary store fails.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Optional, Protocol

import firebase_admin
from firebase_admin import credentials, firestore
from google.api_core import exceptions as google_exceptions
from google.cloud.firestore_v1.base_query import FieldFilter

from eventboard.errors import BackupStoreError
from eventboard.events import EVENT_COLUMNS, EventRecord

logger = logging.getLogger(__name__)

FIREBASE_APP_NAME = "eventboard-backup"


class BackupStore(Protocol):
    """Operations the reconciliation layer needs from the backup store."""

    def add_event(self, payload: dict) -> str:
        ...

    def list_events(self) -> list[EventRecord]:
        ...

    def delete_event(self, doc_id: str) -> None:
        ...

    def delete_by_created_at(self, created_at: str) -> int:
        ...


@dataclass
class InMemoryBackupStore:
    """Test double keyed by random document ids."""

    available: bool = True
    documents: dict = field(default_factory=dict)

    def _check(self) -> None:
        if not self.available:
            raise BackupStoreError("backup store unavailable")

    def add_event(self, payload: dict) -> str:
        self._check()
        doc_id = uuid.uuid4().hex[:20]
        self.documents[doc_id] = {column: payload.get(column) for column in EVENT_COLUMNS}
        return doc_id

    def list_events(self) -> list[EventRecord]:
        self._check()
        return [
            EventRecord.from_dict(data, event_id=doc_id)
            for doc_id, data in self.documents.items()
        ]

    def delete_event(self, doc_id: str) -> None:
        self._check()
        self.documents.pop(doc_id, None)

    def delete_by_created_at(self, created_at: str) -> int:
        self._check()
        doomed = [
            doc_id
            for doc_id, data in self.documents.items()
            if data.get("created_at") == created_at
        ]
        for doc_id in doomed:
            del self.documents[doc_id]
        return len(doomed)

    def reset(self) -> None:
        self.documents.clear()


def _get_firebase_app(
    credentials_path: Optional[str], project_id: Optional[str]
) -> firebase_admin.App:
    try:
        return firebase_admin.get_app(FIREBASE_APP_NAME)
    except ValueError:
        pass
    if credentials_path:
        credential = credentials.Certificate(credentials_path)
    else:
        credential = credentials.ApplicationDefault()
    options = {"projectId": project_id} if project_id else None
    return firebase_admin.initialize_app(credential, options, name=FIREBASE_APP_NAME)


class FirestoreBackupStore:
    """Events collection in Cloud Firestore."""

    def __init__(
        self,
        collection: str = "events",
        *,
        credentials_path: Optional[str] = None,
        project_id: Optional[str] = None,
        client=None,
    ):
        if client is None:
            app = _get_firebase_app(credentials_path, project_id)
            client = firestore.client(app=app)
        self._client = client
        self.collection_name = collection

    @property
    def collection(self):
        return self._client.collection(self.collection_name)

    def add_event(self, payload: dict) -> str:
        try:
            _, doc_ref = self.collection.add(dict(payload))
        except google_exceptions.GoogleAPIError as exc:
            raise BackupStoreError(f"Firestore add failed: {exc}") from exc
        return doc_ref.id

    def list_events(self) -> list[EventRecord]:
        try:
            snapshots = list(self.collection.stream())
        except google_exceptions.GoogleAPIError as exc:
            raise BackupStoreError(f"Firestore read failed: {exc}") from exc
        return [
            EventRecord.from_dict(snapshot.to_dict() or {}, event_id=snapshot.id)
            for snapshot in snapshots
        ]

    def delete_event(self, doc_id: str) -> None:
        try:
            self.collection.document(doc_id).delete()
        except google_exceptions.GoogleAPIError as exc:
            raise BackupStoreError(f"Firestore delete failed: {exc}") from exc

    def delete_by_created_at(self, created_at: str) -> int:
        query = self.collection.where(filter=FieldFilter("created_at", "==", created_at))
        deleted = 0
        try:
            for snapshot in query.stream():
                snapshot.reference.delete()
                deleted += 1
        except google_exceptions.GoogleAPIError as exc:
            raise BackupStoreError(f"Firestore delete failed: {exc}") from exc
        return deleted
