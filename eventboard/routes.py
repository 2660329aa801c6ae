"""
HTTP routes for the event board API.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import HTMLResponse, PlainTextResponse

from eventboard.cache import EventCache
from eventboard.dependencies import (
    get_drive_session,
    get_event_cache,
    get_oauth_client,
    get_reconciler,
)
from eventboard.drive import GoogleOAuthClient
from eventboard.errors import OAuthExchangeError, PrimaryStoreError
from eventboard.events import EventFilters, EventRecord
from eventboard.reconcile import EventReconciler, prepare_submission
from eventboard.schemas import (
    AuthStatusResponse,
    AuthUrlResponse,
    CachedEventPayload,
    CreateEventResponse,
    DeleteEventRequest,
    DeleteListingRequest,
    DeleteListingResponse,
    DriveSaveRequest,
    DriveSaveResponse,
    EventOut,
    ListingResponse,
    SubmitEventPayload,
    SubmitEventResponse,
    SuccessResponse,
)
from eventboard.session import DriveSession

logger = logging.getLogger(__name__)

router = APIRouter()
auth_router = APIRouter()

AUTH_SUCCESS_PAGE = """
<html>
  <body>
    <script>
      if (window.opener) {
        window.opener.postMessage({ type: 'GOOGLE_AUTH_SUCCESS' }, '*');
        window.close();
      } else {
        window.location.href = '/';
      }
    </script>
    <p>Authentication successful. This window should close automatically.</p>
  </body>
</html>
"""


def _event_out(record: EventRecord) -> EventOut:
    return EventOut(**record.as_dict())


# Google OAuth


@router.get("/auth/google/url", response_model=AuthUrlResponse)
def google_auth_url(
    session: DriveSession = Depends(get_drive_session),
    oauth: GoogleOAuthClient = Depends(get_oauth_client),
):
    return AuthUrlResponse(url=oauth.authorization_url(session))


@auth_router.get("/auth/google/callback", response_class=HTMLResponse)
def google_auth_callback(
    code: Optional[str] = Query(None),
    session: DriveSession = Depends(get_drive_session),
    oauth: GoogleOAuthClient = Depends(get_oauth_client),
):
    if not code:
        return PlainTextResponse("Missing authorization code", status_code=400)
    try:
        oauth.exchange_code(code, session)
    except OAuthExchangeError:
        logger.exception("Google Auth Error")
        return PlainTextResponse(OAuthExchangeError.message, status_code=500)
    return HTMLResponse(AUTH_SUCCESS_PAGE)


@router.get("/auth/google/status", response_model=AuthStatusResponse)
def google_auth_status(session: DriveSession = Depends(get_drive_session)):
    return AuthStatusResponse(connected=session.connected)


@router.post("/auth/google/disconnect", response_model=AuthStatusResponse)
def google_auth_disconnect(session: DriveSession = Depends(get_drive_session)):
    session.clear()
    return AuthStatusResponse(connected=False)


@router.post("/drive/save", response_model=DriveSaveResponse)
def save_to_drive(
    payload: DriveSaveRequest,
    session: DriveSession = Depends(get_drive_session),
    reconciler: EventReconciler = Depends(get_reconciler),
):
    file_id = reconciler.export_event(payload.eventData, session)
    return DriveSaveResponse(success=True, fileId=file_id)


# Local cache


@router.get("/events", response_model=list[EventOut])
def list_cached_events(cache: EventCache = Depends(get_event_cache)):
    return [_event_out(record) for record in cache.list_events()]


@router.post("/events", response_model=CreateEventResponse)
def add_cached_event(
    payload: CachedEventPayload, cache: EventCache = Depends(get_event_cache)
):
    logger.info("Adding event: %s", payload.name)
    row_id = cache.add_event(payload.model_dump())
    return CreateEventResponse(success=True, id=row_id)


@router.post("/events/delete", response_model=SuccessResponse)
def delete_cached_event(
    payload: DeleteEventRequest, cache: EventCache = Depends(get_event_cache)
):
    cache.delete_event(payload.id)
    return SuccessResponse(success=True)


# Reconciled listings


@router.get("/listings", response_model=ListingResponse)
def list_listings(
    type: Optional[str] = Query(None),
    district: Optional[str] = Query(None),
    upazila: Optional[str] = Query(None),
    village: Optional[str] = Query(None),
    reconciler: EventReconciler = Depends(get_reconciler),
):
    filters = EventFilters(type=type, district=district, upazila=upazila, village=village)
    listing = reconciler.list_events(filters)
    return ListingResponse(
        events=[_event_out(record) for record in listing.events], source=listing.source
    )


@router.post("/listings", response_model=SubmitEventResponse)
def submit_listing(
    payload: SubmitEventPayload,
    session: DriveSession = Depends(get_drive_session),
    reconciler: EventReconciler = Depends(get_reconciler),
):
    submission = prepare_submission(payload.model_dump())
    result = reconciler.create_event(submission, drive_session=session)
    if not result.success:
        raise PrimaryStoreError(message="Failed to add event")
    return SubmitEventResponse(
        success=True,
        id=result.value("primary"),
        created_at=submission["created_at"],
        steps=result.as_dict(),
    )


@router.post("/listings/delete", response_model=DeleteListingResponse)
def delete_listing(
    payload: DeleteListingRequest,
    reconciler: EventReconciler = Depends(get_reconciler),
):
    result = reconciler.delete_event(payload.id, payload.secret)
    if not result.success:
        raise PrimaryStoreError(message="Failed to delete event")
    return DeleteListingResponse(success=True, steps=result.as_dict())

