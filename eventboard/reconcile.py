"""
Write/read reconciliation across the event backends.

Creates fan out to the primary store (critical), then the backup store, the
local cache and the user's Drive (best-effort). Listings read the primary and
fall back to a client-side filtered snapshot of the backup store. Deletes are
gated by a shared secret and remove the primary copy before the others.
"""

from __future__ import annotations

import hmac
import logging
from dataclasses import dataclass
from typing import Optional

from eventboard.backup import BackupStore
from eventboard.cache import EventCache
from eventboard.drive import DriveExporter
from eventboard.errors import (
    BackendUnavailableError,
    DriveAuthError,
    InvalidDeleteSecretError,
)
from eventboard.events import (
    EventFilters,
    EventId,
    EventRecord,
    apply_filters,
    is_document_id,
    new_created_at,
    sort_events,
)
from eventboard.pipeline import PipelineResult, Step, StepPolicy, run_pipeline
from eventboard.primary import PrimaryStore
from eventboard.session import DriveSession

logger = logging.getLogger(__name__)

SOURCE_PRIMARY = "primary"
SOURCE_BACKUP = "backup"


@dataclass
class EventListing:
    events: list[EventRecord]
    source: str


def prepare_submission(payload: dict) -> dict:
    """Stamp ``created_at`` once so every copy of a submission shares it."""
    submission = dict(payload)
    submission.pop("id", None)
    if not submission.get("created_at"):
        submission["created_at"] = new_created_at()
    return submission


class EventReconciler:
    def __init__(
        self,
        primary: PrimaryStore,
        backup: BackupStore,
        cache: EventCache,
        drive: DriveExporter,
        *,
        delete_secret: str,
        symmetric_delete: bool = True,
    ):
        self.primary = primary
        self.backup = backup
        self.cache = cache
        self.drive = drive
        self.delete_secret = delete_secret
        self.symmetric_delete = symmetric_delete

    # Create

    def create_event(
        self, payload: dict, drive_session: Optional[DriveSession] = None
    ) -> PipelineResult:
        event = prepare_submission(payload)

        def drive_connected() -> bool:
            return drive_session is not None and drive_session.connected

        steps = [
            Step("primary", StepPolicy.CRITICAL, lambda: self.primary.insert_event(dict(event))),
            Step("backup", StepPolicy.BEST_EFFORT, lambda: self.backup.add_event(dict(event))),
            Step("cache", StepPolicy.BEST_EFFORT, lambda: self.cache.add_event(dict(event))),
            Step(
                "drive",
                StepPolicy.BEST_EFFORT,
                lambda: self.export_event(event, drive_session),
                enabled=drive_connected,
            ),
        ]
        result = run_pipeline(steps, label="create")
        if result.success:
            logger.info(
                "Added event %r (primary id %s, created_at %s)",
                event.get("name"),
                result.value("primary"),
                event["created_at"],
            )
        return result

    def export_event(self, event_data: dict, drive_session: Optional[DriveSession]) -> str:
        """
        Export one event to the session's Drive. An auth failure drops the
        stored token so the client is asked to reconnect.
        """
        if drive_session is None or not drive_session.connected:
            raise DriveAuthError("session has no Drive token")
        try:
            return self.drive.export(event_data, drive_session.token)
        except DriveAuthError:
            drive_session.clear()
            logger.warning(
                "Drive token rejected for session %s; cleared", drive_session.session_id
            )
            raise

    # Read

    def list_events(self, filters: Optional[EventFilters] = None) -> EventListing:
        filters = filters or EventFilters()
        try:
            events = self.primary.query_events(filters)
        except Exception as exc:
            logger.error("Failed to fetch events from primary store: %s", exc)
        else:
            return EventListing(sort_events(events), SOURCE_PRIMARY)

        try:
            snapshot = self.backup.list_events()
        except Exception as exc:
            logger.exception("Backup store fallback failed")
            raise BackendUnavailableError(str(exc)) from exc
        logger.info("Serving %d events from backup store", len(snapshot))
        return EventListing(sort_events(apply_filters(snapshot, filters)), SOURCE_BACKUP)

    # Delete

    def check_secret(self, secret: Optional[str]) -> bool:
        if not secret:
            return False
        return hmac.compare_digest(secret.encode("utf-8"), self.delete_secret.encode("utf-8"))

    def delete_event(self, event_id: EventId, secret: Optional[str]) -> PipelineResult:
        if not self.check_secret(secret):
            logger.warning("Rejected delete of event %s: wrong secret", event_id)
            raise InvalidDeleteSecretError()

        found: dict = {}

        def delete_primary():
            if self.symmetric_delete:
                record = self.primary.get_event(event_id)
                found["created_at"] = record.created_at if record else None
            self.primary.delete_event(event_id)
            return event_id

        def backup_applies() -> bool:
            return is_document_id(event_id) or bool(found.get("created_at"))

        def delete_backup():
            deleted = 0
            if is_document_id(event_id):
                self.backup.delete_event(event_id)
                deleted += 1
            if found.get("created_at"):
                deleted += self.backup.delete_by_created_at(found["created_at"])
            return deleted

        def delete_cached():
            # Cache row ids are independent of primary ids.
            if found.get("created_at"):
                return self.cache.delete_by_created_at(found["created_at"])
            return self.cache.delete_event(event_id)

        steps = [
            Step("primary", StepPolicy.CRITICAL, delete_primary),
            Step("backup", StepPolicy.BEST_EFFORT, delete_backup, enabled=backup_applies),
            Step("cache", StepPolicy.BEST_EFFORT, delete_cached),
        ]
        result = run_pipeline(steps, label="delete")
        if result.success:
            logger.info("Deleted event %s", event_id)
        return result
