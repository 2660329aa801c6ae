"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging

from fastapi import Depends, Request

from eventboard.backup import BackupStore, FirestoreBackupStore, InMemoryBackupStore
from eventboard.cache import EventCache, InMemoryEventCache, SqlEventCache
from eventboard.config import get_settings
from eventboard.drive import DriveExporter, GoogleDriveExporter, GoogleOAuthClient
from eventboard.primary import InMemoryPrimaryStore, PrimaryStore, SupabasePrimaryStore
from eventboard.reconcile import EventReconciler
from eventboard.session import DriveSession, InMemoryTokenStore, RedisTokenStore, TokenStore

logger = logging.getLogger(__name__)

_primary_store: PrimaryStore | None = None
_backup_store: BackupStore | None = None
_event_cache: EventCache | None = None
_token_store: TokenStore | None = None
_oauth_client: GoogleOAuthClient | None = None
_drive_exporter: DriveExporter | None = None


def get_primary_store() -> PrimaryStore:
    global _primary_store
    if _primary_store:
        return _primary_store

    settings = get_settings()
    if (
        settings.use_in_memory_backends
        or not settings.supabase_url
        or not settings.supabase_anon_key
    ):
        logger.warning("Supabase not configured; using in-memory primary store")
        _primary_store = InMemoryPrimaryStore()
    else:
        _primary_store = SupabasePrimaryStore(
            url=settings.supabase_url,
            anon_key=settings.supabase_anon_key,
            table=settings.supabase_table,
            timeout=settings.request_timeout,
        )
    return _primary_store


def get_backup_store() -> BackupStore:
    global _backup_store
    if _backup_store:
        return _backup_store

    settings = get_settings()
    if settings.use_in_memory_backends or not (
        settings.firebase_credentials_path or settings.firebase_project_id
    ):
        logger.warning("Firestore not configured; using in-memory backup store")
        _backup_store = InMemoryBackupStore()
    else:
        _backup_store = FirestoreBackupStore(
            settings.firestore_collection,
            credentials_path=settings.firebase_credentials_path,
            project_id=settings.firebase_project_id,
        )
    return _backup_store


def get_event_cache() -> EventCache:
    """
    Return a singleton cache so the SQL engine is shared across requests.
    """
    global _event_cache
    if _event_cache:
        return _event_cache

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        _event_cache = InMemoryEventCache()
    else:
        _event_cache = SqlEventCache(settings.database_url)
    return _event_cache


def get_token_store() -> TokenStore:
    global _token_store
    if _token_store:
        return _token_store

    settings = get_settings()
    if settings.redis_url and not settings.use_in_memory_backends:
        _token_store = RedisTokenStore(
            url=settings.redis_url,
            prefix=settings.redis_token_prefix,
            ttl_seconds=settings.token_ttl_seconds,
        )
    else:
        _token_store = InMemoryTokenStore()
    return _token_store


def get_oauth_client() -> GoogleOAuthClient:
    global _oauth_client
    if _oauth_client:
        return _oauth_client

    settings = get_settings()
    if not settings.google_client_id or not settings.google_client_secret:
        logger.warning("GOOGLE_CLIENT_ID/GOOGLE_CLIENT_SECRET not set; Drive export will fail")
    _oauth_client = GoogleOAuthClient(
        client_id=settings.google_client_id or "",
        client_secret=settings.google_client_secret or "",
        redirect_uri=settings.oauth_redirect_uri,
    )
    return _oauth_client


def get_drive_exporter() -> DriveExporter:
    global _drive_exporter
    if _drive_exporter:
        return _drive_exporter

    settings = get_settings()
    _drive_exporter = GoogleDriveExporter(
        get_oauth_client(), folder_name=settings.drive_folder_name
    )
    return _drive_exporter


def get_drive_session(
    request: Request, store: TokenStore = Depends(get_token_store)
) -> DriveSession:
    return DriveSession.from_cookie_session(request.session, store)


def get_reconciler(
    primary: PrimaryStore = Depends(get_primary_store),
    backup: BackupStore = Depends(get_backup_store),
    cache: EventCache = Depends(get_event_cache),
    drive: DriveExporter = Depends(get_drive_exporter),
) -> EventReconciler:
    settings = get_settings()
    return EventReconciler(
        primary,
        backup,
        cache,
        drive,
        delete_secret=settings.delete_secret,
        symmetric_delete=settings.symmetric_delete,
    )
