import unittest
from unittest.mock import MagicMock, patch

from redis import exceptions as redis_exceptions

from eventboard.backup import InMemoryBackupStore
from eventboard.cache import InMemoryEventCache
from eventboard.drive import InMemoryDriveExporter
from eventboard.errors import (
    BackendUnavailableError,
    CacheStoreError,
    DriveAuthError,
    DriveExportError,
    InvalidDeleteSecretError,
)
from eventboard.events import EventFilters, parse_created_at
from eventboard.pipeline import StepStatus
from eventboard.primary import InMemoryPrimaryStore
from eventboard.reconcile import EventReconciler, prepare_submission
from eventboard.session import DriveSession, InMemoryTokenStore

SECRET = "0179215718"


class UnreachableTokenStore:
    """Token store whose Redis connection is gone."""

    def get_token(self, session_id):
        raise redis_exceptions.ConnectionError("redis down")

    def set_token(self, session_id, token):
        raise redis_exceptions.ConnectionError("redis down")

    def clear_token(self, session_id):
        raise redis_exceptions.ConnectionError("redis down")


class ReconcilerTestCase(unittest.TestCase):
    def setUp(self):
        self.primary = InMemoryPrimaryStore()
        self.backup = InMemoryBackupStore()
        self.cache = InMemoryEventCache()
        self.drive = InMemoryDriveExporter()
        self.tokens = InMemoryTokenStore()
        self.session = DriveSession(session_id="s1", store=self.tokens)
        self.reconciler = EventReconciler(
            self.primary,
            self.backup,
            self.cache,
            self.drive,
            delete_secret=SECRET,
        )


class CreateEventTests(ReconcilerTestCase):
    def test_community_iftar_with_backup_down(self):
        self.backup.available = False
        result = self.reconciler.create_event(
            {"name": "Community Iftar", "district": "ঢাকা", "event_date": "10 Ramadan"}
        )

        self.assertTrue(result.success)
        self.assertEqual(result.outcome("backup").status, StepStatus.FAILED)
        self.assertEqual(result.outcome("cache").status, StepStatus.SUCCEEDED)
        self.assertEqual(result.outcome("drive").status, StepStatus.SKIPPED)

        listing = self.reconciler.list_events()
        self.assertEqual(listing.source, "primary")
        self.assertEqual([e.name for e in listing.events], ["Community Iftar"])

    def test_primary_failure_fails_and_writes_nothing_else(self):
        self.primary.available = False
        self.tokens.set_token("s1", {"token": "t"})
        result = self.reconciler.create_event({"name": "x"}, drive_session=self.session)

        self.assertFalse(result.success)
        self.assertEqual(result.outcome("primary").status, StepStatus.FAILED)
        for name in ("backup", "cache", "drive"):
            self.assertEqual(result.outcome(name).status, StepStatus.SKIPPED)
        self.assertEqual(self.backup.documents, {})
        self.assertEqual(self.cache.rows, {})
        self.assertEqual(self.drive.files, [])

    def test_copies_share_created_at_but_not_ids(self):
        self.tokens.set_token("s1", {"token": "t"})
        result = self.reconciler.create_event(
            {"name": "Iftar", "lat": "bad"}, drive_session=self.session
        )
        self.assertTrue(result.success)

        primary_row = self.primary.rows[result.value("primary")]
        backup_doc = self.backup.documents[result.value("backup")]
        cache_row = self.cache.rows[result.value("cache")]
        drive_file = self.drive.files[0]

        stamps = {
            primary_row["created_at"],
            backup_doc["created_at"],
            cache_row["created_at"],
            drive_file["data"]["created_at"],
        }
        self.assertEqual(len(stamps), 1)
        self.assertIsNotNone(parse_created_at(stamps.pop()))
        self.assertNotEqual(result.value("primary"), result.value("backup"))
        self.assertIsNone(cache_row["lat"])

    def test_supplied_created_at_is_kept(self):
        submission = prepare_submission({"name": "x", "created_at": "2026-03-01T00:00:00.000Z"})
        self.assertEqual(submission["created_at"], "2026-03-01T00:00:00.000Z")
        self.reconciler.create_event(submission)
        self.assertEqual(
            self.cache.list_events()[0].created_at, "2026-03-01T00:00:00.000Z"
        )

    def test_drive_auth_failure_clears_token_and_create_succeeds(self):
        self.tokens.set_token("s1", {"token": "expired"})
        self.drive.error = DriveAuthError("revoked")

        result = self.reconciler.create_event({"name": "x"}, drive_session=self.session)

        self.assertTrue(result.success)
        self.assertEqual(result.outcome("drive").status, StepStatus.FAILED)
        self.assertFalse(self.session.connected)

    def test_drive_failure_keeps_token(self):
        self.tokens.set_token("s1", {"token": "t"})
        self.drive.error = DriveExportError("quota")

        result = self.reconciler.create_event({"name": "x"}, drive_session=self.session)

        self.assertTrue(result.success)
        self.assertEqual(result.outcome("drive").status, StepStatus.FAILED)
        self.assertTrue(self.session.connected)

    def test_token_store_outage_only_fails_drive_step(self):
        session = DriveSession(session_id="s1", store=UnreachableTokenStore())

        result = self.reconciler.create_event({"name": "x"}, drive_session=session)

        self.assertTrue(result.success)
        self.assertEqual(len(self.primary.rows), 1)
        self.assertEqual(result.outcome("backup").status, StepStatus.SUCCEEDED)
        self.assertEqual(result.outcome("cache").status, StepStatus.SUCCEEDED)
        self.assertEqual(result.outcome("drive").status, StepStatus.FAILED)
        self.assertEqual(self.drive.files, [])

    def test_export_without_token_raises_auth_error(self):
        with self.assertRaises(DriveAuthError):
            self.reconciler.export_event({"name": "x"}, self.session)
        self.assertEqual(self.drive.files, [])


class ListEventsTests(ReconcilerTestCase):
    def _seed_backup(self):
        for name, district, upazila, created_at in [
            ("old", "ঢাকা", "Savar", "2026-03-01T10:00:00.000Z"),
            ("undated", "ঢাকা", "Savar Sadar", None),
            ("new", "ঢাকা", "savar", "2026-03-03T10:00:00.000Z"),
            ("elsewhere", "খুলনা", "Savar", "2026-03-04T10:00:00.000Z"),
        ]:
            self.backup.add_event(
                {"name": name, "district": district, "upazila": upazila, "created_at": created_at}
            )

    def test_falls_back_to_backup_with_filters_and_order(self):
        self._seed_backup()
        self.primary.available = False

        listing = self.reconciler.list_events(EventFilters(district="ঢাকা", upazila="SAVAR"))

        self.assertEqual(listing.source, "backup")
        self.assertEqual([e.name for e in listing.events], ["new", "old", "undated"])
        self.assertTrue(all(isinstance(e.id, str) for e in listing.events))

    def test_fallback_matches_primary_results(self):
        for name, created_at in [("a", "2026-03-01T00:00:00.000Z"), ("b", "2026-03-02T00:00:00.000Z")]:
            self.reconciler.create_event(
                {"name": name, "district": "ঢাকা", "created_at": created_at}
            )
        filters = EventFilters(district="ঢাকা")
        from_primary = [e.name for e in self.reconciler.list_events(filters).events]

        self.primary.available = False
        from_backup = [e.name for e in self.reconciler.list_events(filters).events]

        self.assertEqual(from_primary, ["b", "a"])
        self.assertEqual(from_primary, from_backup)

    def test_never_reads_local_cache(self):
        self.cache.add_event({"name": "cached only"})
        self.primary.available = False
        listing = self.reconciler.list_events()
        self.assertEqual(listing.events, [])

    def test_both_sources_down(self):
        self.primary.available = False
        self.backup.available = False
        with self.assertRaises(BackendUnavailableError):
            self.reconciler.list_events()


class DeleteEventTests(ReconcilerTestCase):
    def test_wrong_secret_makes_no_backend_calls(self):
        primary, backup, cache = MagicMock(), MagicMock(), MagicMock()
        reconciler = EventReconciler(
            primary, backup, cache, MagicMock(), delete_secret=SECRET
        )
        for secret in ("wrong", "", None):
            with self.assertRaises(InvalidDeleteSecretError):
                reconciler.delete_event(1, secret)
        self.assertEqual(primary.mock_calls, [])
        self.assertEqual(backup.mock_calls, [])
        self.assertEqual(cache.mock_calls, [])

    def test_wrong_secret_leaves_events(self):
        self.reconciler.create_event({"name": "keep"})
        with self.assertRaises(InvalidDeleteSecretError):
            self.reconciler.delete_event(1, "guess")
        self.assertEqual(len(self.reconciler.list_events().events), 1)

    def test_symmetric_delete_removes_every_copy(self):
        created = self.reconciler.create_event({"name": "gone"})
        primary_id = created.value("primary")

        result = self.reconciler.delete_event(primary_id, SECRET)

        self.assertTrue(result.success)
        self.assertEqual(self.primary.rows, {})
        self.assertEqual(self.backup.documents, {})
        self.assertEqual(self.cache.rows, {})
        self.assertEqual(result.value("backup"), 1)

    def test_symmetric_delete_keeps_cache_rows_with_colliding_ids(self):
        with patch.object(self.cache, "add_event", side_effect=CacheStoreError("locked")):
            first = self.reconciler.create_event(
                {"name": "A", "created_at": "2026-03-01T00:00:00.000Z"}
            )
        second = self.reconciler.create_event(
            {"name": "B", "created_at": "2026-03-02T00:00:00.000Z"}
        )
        self.assertEqual(first.value("primary"), 1)
        self.assertEqual(second.value("cache"), 1)

        result = self.reconciler.delete_event(first.value("primary"), SECRET)

        self.assertTrue(result.success)
        self.assertEqual(result.value("cache"), 0)
        self.assertEqual([e.name for e in self.cache.list_events()], ["B"])
        self.assertEqual(
            [e.name for e in self.reconciler.list_events().events], ["B"]
        )

    def test_id_only_delete_skips_backup_for_numeric_ids(self):
        self.reconciler.symmetric_delete = False
        self.reconciler.create_event({"name": "x"})

        result = self.reconciler.delete_event(1, SECRET)

        self.assertTrue(result.success)
        self.assertEqual(result.outcome("backup").status, StepStatus.SKIPPED)
        self.assertEqual(result.outcome("cache").status, StepStatus.SUCCEEDED)
        self.assertEqual(self.primary.rows, {})
        self.assertEqual(self.cache.rows, {})
        self.assertEqual(len(self.backup.documents), 1)

    def test_primary_failure_aborts_delete(self):
        self.reconciler.create_event({"name": "x"})
        self.primary.available = False

        result = self.reconciler.delete_event(1, SECRET)

        self.assertFalse(result.success)
        self.assertEqual(result.outcome("cache").status, StepStatus.SKIPPED)
        self.assertEqual(len(self.cache.rows), 1)
        self.assertEqual(len(self.backup.documents), 1)

    def test_document_id_is_rejected_by_primary(self):
        created = self.reconciler.create_event({"name": "x"})
        doc_id = created.value("backup")

        result = self.reconciler.delete_event(doc_id, SECRET)

        self.assertFalse(result.success)
        self.assertIn(doc_id, self.backup.documents)

    def test_backup_failure_does_not_fail_delete(self):
        created = self.reconciler.create_event({"name": "x"})
        self.backup.available = False

        result = self.reconciler.delete_event(created.value("primary"), SECRET)

        self.assertTrue(result.success)
        self.assertEqual(result.outcome("backup").status, StepStatus.FAILED)
        self.assertEqual(self.cache.rows, {})


if __name__ == "__main__":
    unittest.main()
